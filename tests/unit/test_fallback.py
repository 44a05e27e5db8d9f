"""Unit tests for the live -> GeoJSON -> placeholder fallback chain."""
import pytest

from conftest import DELTA_URL, make_session, query_route, requested_urls
from gis_core.core.client import FeatureServiceClient
from gis_core.core.fallback import ChainState, FallbackChain, Scheduler
from gis_core.core.registry import LayerKind


def run_chain(source, viewer, routes, scheduler, live=True):
    session = make_session(routes)
    chain = FallbackChain(
        source,
        FeatureServiceClient(session=session),
        lambda: live,
        viewer=viewer,
        scheduler=scheduler,
    )
    return chain.run(), session


def test_primary_success(delta_source, viewer_config, live_routes, scheduler):
    result, _ = run_chain(delta_source, viewer_config, live_routes, scheduler)
    assert result.states == [ChainState.PROBING_PRIMARY, ChainState.DONE]
    assert result.final_kind == "live"
    assert all(layer.kind == LayerKind.LIVE for layer in result.registry)
    assert scheduler.sleeps == []


def test_not_found_uses_geojson_not_placeholder(delta_source, viewer_config, townships_collection, scheduler):
    routes = {
        DELTA_URL: {"layers": []},
        f"{DELTA_URL}/7/query": query_route(townships_collection),
    }
    result, _ = run_chain(delta_source, viewer_config, routes, scheduler)
    assert result.states == [
        ChainState.PROBING_PRIMARY, ChainState.PROBING_GEOJSON_FALLBACK, ChainState.DONE,
    ]
    assert result.final_kind == "fallback"
    assert [layer.id for layer in result.registry] == ["delta_fallback_7"]
    assert not any(layer.is_placeholder for layer in result.registry)
    assert result.reasons[0][0] == ChainState.PROBING_PRIMARY


def test_nothing_available_gives_one_placeholder_per_item(delta_source, viewer_config, scheduler):
    delta_source.item_ids = ["item-a", "item-b"]
    result, _ = run_chain(delta_source, viewer_config, {}, scheduler)
    assert result.states[-2:] == [ChainState.USING_PLACEHOLDER, ChainState.DONE]
    assert len(result.registry) == 2
    assert all(layer.is_placeholder for layer in result.registry)
    assert [state for state, _ in result.reasons] == [
        ChainState.PROBING_PRIMARY, ChainState.PROBING_GEOJSON_FALLBACK,
    ]


def test_missing_capability_waits_once_then_falls_back(
    delta_source, viewer_config, live_routes, scheduler
):
    result, session = run_chain(delta_source, viewer_config, live_routes, scheduler, live=False)
    assert scheduler.sleeps == [viewer_config.capability_wait_seconds]
    assert result.final_kind == "fallback"
    assert "missing capability" in result.reasons[0][1]
    # The service metadata is never probed without live layer support.
    assert DELTA_URL not in requested_urls(session)


def test_capability_arriving_during_wait(delta_source, viewer_config, live_routes, scheduler):
    checks = iter([False, True])
    chain = FallbackChain(
        delta_source,
        FeatureServiceClient(session=make_session(live_routes)),
        lambda: next(checks),
        viewer=viewer_config,
        scheduler=scheduler,
    )
    result = chain.run()
    assert len(scheduler.sleeps) == 1
    assert result.final_kind == "live"


def test_chain_result_to_dict(delta_source, viewer_config, live_routes, scheduler):
    result, _ = run_chain(delta_source, viewer_config, live_routes, scheduler)
    data = result.to_dict()
    assert data["source"] == "delta"
    assert data["outcome"] == "live"
    assert data["summary"]["total"] == 3


def test_repeated_layer_ids_do_not_abort_the_chain(delta_source, viewer_config, scheduler):
    routes = {
        DELTA_URL: {"layers": [{"id": 3, "name": "A"}, {"id": 3, "name": "B"}]},
    }
    result, _ = run_chain(delta_source, viewer_config, routes, scheduler)
    assert result.final_kind == "live"
    assert [layer.id for layer in result.registry] == ["delta_3"]


def test_repeated_item_ids_still_reach_placeholders(delta_source, viewer_config, scheduler):
    delta_source.item_ids = ["item-a", "item-a"]
    result, _ = run_chain(delta_source, viewer_config, {}, scheduler)
    assert result.final_kind == "placeholder"
    assert [layer.id for layer in result.registry] == ["delta_placeholder_item-a"]


def test_scheduler_is_abstract():
    with pytest.raises(TypeError):
        Scheduler()
