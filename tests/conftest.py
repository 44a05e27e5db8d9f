"""Configuration and fixtures for pytest."""
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent.absolute()))

from config.schemas import SourceConfig, ViewerConfig  # noqa: E402
from gis_core.core.client import FeatureServiceClient  # noqa: E402
from gis_core.core.fallback import Scheduler  # noqa: E402

DELTA_URL = "https://services.example.com/arcgis/rest/services/Delta_County_view/FeatureServer"


def make_response(payload=None, status_code=200, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = "OK" if response.ok else "Error"
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = payload
    return response


def make_session(routes):
    """A mocked ``requests.Session`` answering GETs from ``routes``.

    Route values are a payload dict, a response mock, an exception instance
    (raised), or a callable taking the request params. Unknown URLs raise
    ``requests.ConnectionError``.
    """
    session = MagicMock(spec=requests.Session)

    def get(url, params=None, headers=None, timeout=None):
        if url not in routes:
            raise requests.ConnectionError(f"no route to {url}")
        value = routes[url]
        if callable(value) and not isinstance(value, MagicMock):
            value = value(params or {})
        if isinstance(value, Exception):
            raise value
        if isinstance(value, MagicMock):
            return value
        return make_response(value)

    session.get.side_effect = get
    return session


def query_route(collection):
    """Layer ``/query`` route: GeoJSON export, or exact ``NAME = '...'`` attribute queries."""

    def answer(params):
        where = params.get("where", "1=1")
        features = collection["features"]
        if where != "1=1":
            field, _, value = where.partition(" = ")
            value = value.strip("'").replace("''", "'")
            features = [f for f in features if f["properties"].get(field) == value]
        if params.get("returnGeometry") == "false":
            return {"features": [{"attributes": f["properties"]} for f in features]}
        return {"type": "FeatureCollection", "features": features}

    return answer


def requested_urls(session):
    return [c.args[0] for c in session.get.call_args_list]


def polygon(minx, miny, maxx, maxy):
    return {
        "type": "Polygon",
        "coordinates": [[[minx, miny], [maxx, miny], [maxx, maxy], [minx, maxy], [minx, miny]]],
    }


def feature_collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


def feature(geometry, **properties):
    return {"type": "Feature", "geometry": geometry, "properties": properties}


@pytest.fixture(scope="session")
def project_root():
    """Return the absolute path to the project root directory."""
    return Path(__file__).parent.parent.absolute()


@pytest.fixture
def townships_collection():
    return feature_collection(
        feature(polygon(-87.2, 45.7, -87.0, 45.9), OBJECTID=1, NAME="Baldwin Township"),
        feature(polygon(-86.9, 45.8, -86.7, 46.0), OBJECTID=2, NAME="Garden Township"),
    )


@pytest.fixture
def parcels_collection():
    return feature_collection(
        feature(polygon(-87.1, 45.75, -87.05, 45.8), OBJECTID=10, PARCEL_ID="123", OWNER_NAME="Smith"),
        feature(polygon(-86.8, 45.85, -86.75, 45.9), OBJECTID=11, PARCEL_ID="456", OWNER_NAME=None),
    )


@pytest.fixture
def delta_source():
    return SourceConfig.from_dict({
        "key": "delta",
        "name": "Delta County",
        "service_urls": [DELTA_URL],
        "item_ids": ["18855e2c"],
        "fallback_layers": [
            {"layer_id": 7, "name": "Townships", "style_key": "Townships", "visible": True},
            {"layer_id": 2, "name": "Parcels", "style_key": "parcels", "visible": True},
        ],
        "default_visible": ["Townships", "parcels"],
        "display_names": {"Townships": "🏘️ Townships", "parcels": "🏠 Parcels"},
        "layer_styles": {
            "Townships": {
                "style": {"color": "#ff7800", "weight": 2, "fillOpacity": 0.1},
                "popup": {"title": "{NAME}", "content": "<p>Township: {NAME}</p>"},
            },
            "parcels": {
                "style": {"color": "#2ca25f", "weight": 1, "fillOpacity": 0.2},
                "popup": {"title": "Parcel: {PARCEL_ID}", "content": "<p>Owner: {OWNER_NAME}</p>"},
            },
        },
        "placeholder_kind": "connection_failed",
        "contact": {"email": "gis@example.org"},
    })


@pytest.fixture
def viewer_config(delta_source):
    viewer = ViewerConfig.from_dict({
        "map": {"center": [45.87, -87.0], "zoom": 9},
        "townships": ["Choose a Township", "Baldwin", "Garden"],
    })
    viewer.sources = [delta_source]
    viewer.capability_wait_seconds = 0.5
    return viewer


@pytest.fixture
def delta_service_payload():
    return {
        "layers": [
            {"id": 7, "name": "Townships", "geometryType": "esriGeometryPolygon"},
            {"id": 2, "name": "parcels", "geometryType": "esriGeometryPolygon"},
            {"id": 0, "name": "Site_Structure_Address_Points", "geometryType": "esriGeometryPoint"},
        ]
    }


@pytest.fixture
def live_routes(delta_service_payload, townships_collection, parcels_collection):
    """Routes for a healthy primary service."""
    return {
        DELTA_URL: delta_service_payload,
        f"{DELTA_URL}/7/query": query_route(townships_collection),
        f"{DELTA_URL}/2/query": query_route(parcels_collection),
        f"{DELTA_URL}/0/query": {"features": []},
    }


@pytest.fixture
def client_for():
    def _client(routes):
        return FeatureServiceClient(session=make_session(routes), timeout=1.0)

    return _client


class RecordingScheduler(Scheduler):
    def __init__(self):
        self.sleeps = []

    def sleep(self, seconds):
        self.sleeps.append(seconds)


@pytest.fixture
def scheduler():
    return RecordingScheduler()
