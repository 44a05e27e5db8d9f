"""Unit tests for the feature-service client."""
import pytest
import requests

from conftest import DELTA_URL, make_response, make_session
from config.schemas import GeometryType
from gis_core.core.client import FeatureServiceClient, where_equals
from gis_core.core.errors import EmptyResult, NetworkFailure, ServiceError


def client(routes):
    return FeatureServiceClient(session=make_session(routes), timeout=1.0)


def test_fetch_service_parses_layers(delta_service_payload):
    service = client({DELTA_URL: delta_service_payload}).fetch_service(DELTA_URL)
    assert [layer.id for layer in service.layers] == [7, 2, 0]
    assert service.layers[0].geometry_type == GeometryType.POLYGON
    assert service.layers[2].geometry_type == GeometryType.POINT


def test_fetch_service_sends_json_format_and_timeout(delta_service_payload):
    session = make_session({DELTA_URL: delta_service_payload})
    FeatureServiceClient(session=session, timeout=3.0).fetch_service(DELTA_URL)
    _, kwargs = session.get.call_args
    assert kwargs["params"]["f"] == "json"
    assert kwargs["timeout"] == 3.0


def test_unknown_geometry_type_is_unknown():
    service = client({DELTA_URL: {"layers": [{"id": 1, "name": "X", "geometryType": "esriGeometryEnvelope"}]}})
    assert service.fetch_service(DELTA_URL).layers[0].geometry_type == GeometryType.UNKNOWN


def test_malformed_layer_entries_are_skipped():
    payload = {"layers": [{"name": "no id"}, {"id": 3, "name": "Roads"}]}
    service = client({DELTA_URL: payload}).fetch_service(DELTA_URL)
    assert [layer.name for layer in service.layers] == ["Roads"]


def test_zero_layers_is_empty_result():
    with pytest.raises(EmptyResult):
        client({DELTA_URL: {"layers": []}}).fetch_service(DELTA_URL)


def test_error_payload_is_service_error():
    payload = {"error": {"code": 403, "message": "You do not have permissions", "details": []}}
    with pytest.raises(ServiceError) as excinfo:
        client({DELTA_URL: payload}).fetch_service(DELTA_URL)
    assert excinfo.value.code == 403
    assert excinfo.value.access_denied


def test_http_error_status_is_network_failure():
    with pytest.raises(NetworkFailure) as excinfo:
        client({DELTA_URL: make_response(status_code=500)}).fetch_service(DELTA_URL)
    assert excinfo.value.status_code == 500


def test_timeout_is_network_failure():
    with pytest.raises(NetworkFailure):
        client({DELTA_URL: requests.Timeout("slow")}).fetch_service(DELTA_URL)


def test_unreachable_is_network_failure():
    with pytest.raises(NetworkFailure):
        client({}).fetch_service(DELTA_URL)


def test_invalid_json_is_network_failure():
    with pytest.raises(NetworkFailure):
        client({DELTA_URL: make_response(json_error=True)}).fetch_service(DELTA_URL)


def test_fetch_geojson_queries_all_features(townships_collection):
    session = make_session({f"{DELTA_URL}/7/query": townships_collection})
    collection = FeatureServiceClient(session=session).fetch_geojson(f"{DELTA_URL}/7")
    assert len(collection["features"]) == 2
    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"f": "geojson", "where": "1=1", "outFields": "*"}


def test_fetch_geojson_without_features_is_empty_result():
    with pytest.raises(EmptyResult):
        client({f"{DELTA_URL}/7/query": {"features": []}}).fetch_geojson(f"{DELTA_URL}/7")


def test_query_attributes_normalizes_to_properties():
    payload = {"features": [{"attributes": {"NAME": "Baldwin"}}, {"properties": {"NAME": "Garden"}}]}
    rows = client({f"{DELTA_URL}/7/query": payload}).query_attributes(f"{DELTA_URL}/7", "1=1")
    assert rows == [{"NAME": "Baldwin"}, {"NAME": "Garden"}]


def test_resolve_item_url():
    portal = "https://portal.example.com"
    routes = {f"{portal}/sharing/rest/content/items/abc": {"url": "https://svc.example.com/FeatureServer/"}}
    assert client(routes).resolve_item_url(portal, "abc") == "https://svc.example.com/FeatureServer"


def test_where_equals_escapes_quotes():
    assert where_equals("NAME", "O'Brien") == "NAME = 'O''Brien'"
