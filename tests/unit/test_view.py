"""Unit tests for the folium map view."""
import pytest
from shapely.geometry import box

from conftest import feature, feature_collection, polygon
from config.schemas import BaseMapConfig, GeometryType, LayerStyle, MapSettings, PopupTemplate
from gis_core.core.errors import RenderFailure
from gis_core.core.view import FoliumMapView, MapView, features_frame, merge_bounds


@pytest.fixture
def view():
    return FoliumMapView(MapSettings())


@pytest.fixture
def overlay(view, townships_collection):
    return view.create_static_overlay(
        "twp",
        townships_collection,
        LayerStyle(color="#2E86AB", weight=2),
        PopupTemplate(title="Township: {NAME}", body="<p>{OBJECTID}</p>"),
        GeometryType.POLYGON,
    )


def test_features_frame_indexes_by_position(townships_collection):
    frame = features_frame(townships_collection["features"])
    assert list(frame.index) == ["0", "1"]
    assert frame.crs.to_epsg() == 4326
    assert frame.geometry.iloc[0].equals(box(-87.2, 45.7, -87.0, 45.9))


def test_empty_frame():
    assert features_frame([]).empty


def test_overlay_attributes_and_bounds(overlay):
    assert overlay.attributes("1") == {"OBJECTID": 2, "NAME": "Garden Township"}
    assert overlay.bounds(["1"]) == pytest.approx((-86.9, 45.8, -86.7, 46.0))
    assert overlay.bounds() == pytest.approx((-87.2, 45.7, -86.7, 46.0))


def test_unknown_feature(overlay):
    with pytest.raises(KeyError):
        overlay.attributes("7")


def test_without_client_live_layers_are_unsupported(view):
    assert not view.supports_live_layers()
    with pytest.raises(RenderFailure):
        view.create_feature_overlay("x", "https://svc/0", LayerStyle(), PopupTemplate())


def test_set_style_whole_overlay_clears_feature_overrides(view, overlay):
    view.set_style(overlay, LayerStyle(color="#f00"), "0")
    assert overlay.style_for("0").color == "#f00"
    view.set_style(overlay, LayerStyle(color="#0f0"))
    assert overlay.feature_styles == {}
    assert overlay.style_for("0").color == "#0f0"


def test_filter_features(view, overlay):
    view.filter_features(overlay, ["1"])
    assert list(overlay.drawn_features().index) == ["1"]
    view.filter_features(overlay, None)
    assert len(overlay.drawn_features()) == 2


def test_merge_bounds_ignores_missing():
    assert merge_bounds([None, (0, 0, 1, 1), (-1, 0.5, 0.5, 2)]) == (-1, 0, 1, 2)
    assert merge_bounds([None]) is None


def test_render_includes_layers_and_popups(view, overlay):
    view.create_tile_overlay(BaseMapConfig(name="Street Map", tiles="OpenStreetMap"))
    overlay.label = "🏘️ Townships"
    view.add_to_view(overlay)
    view.fit_bounds(overlay.bounds())
    html = view.to_html()
    assert "Township: Baldwin Township" in html
    assert "#2E86AB" in html
    assert "Street Map" in html


def test_render_point_layer(view):
    points = feature_collection(
        feature({"type": "Point", "coordinates": [-87.0, 45.8]}, OBJECTID=1, ADDRESS="1 Main St"),
    )
    layer = view.create_static_overlay(
        "pts", points, LayerStyle(radius=6, fill_color="#ff7800"), PopupTemplate(body="{ADDRESS}"), GeometryType.POINT
    )
    view.add_to_view(layer)
    assert "1 Main St" in view.to_html()


def test_save(tmp_path, view, overlay):
    path = tmp_path / "map.html"
    view.save(str(path))
    assert path.read_text(encoding="utf-8").lstrip().lower().startswith("<!doctype html>")


def test_messages_are_drained(view):
    view.show_message("No features found for Nahma")
    assert view.pop_messages() == [{"text": "No features found for Nahma", "level": "info"}]
    assert view.pop_messages() == []


def test_invalid_geojson_is_render_failure(view):
    with pytest.raises(RenderFailure):
        view.create_static_overlay("bad", {"features": [{"geometry": {"type": "Polygon"}}]}, LayerStyle(), None)


def test_polygon_helper_roundtrip():
    assert polygon(0, 0, 1, 1)["coordinates"][0][0] == [0, 0]


def test_map_view_is_abstract():
    with pytest.raises(TypeError):
        MapView()


def test_render_posts_clicks_to_parent_page(overlay):
    view = FoliumMapView(MapSettings(), selected_style=LayerStyle(color="#00ffff", weight=4))
    view.overlays.append(overlay)
    view.add_to_view(overlay)
    html = view.to_html()
    assert "postMessage" in html
    assert '"feature-click"' in html
    assert '"map-click"' in html
    assert 'layerId: "twp"' in html
    assert "#00ffff" in html


def test_empty_overlays_are_not_clickable(view):
    view.create_empty_overlay("uw_placeholder_item")
    html = view.to_html()
    assert 'layerId: "uw_placeholder_item"' not in html
    assert '"map-click"' in html
