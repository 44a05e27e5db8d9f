"""HTTP client for the remote feature-service REST API.

Every call is a read-only GET with a strict timeout. Failures are raised as the
viewer's error taxonomy (:mod:`gis_core.core.errors`) so callers can decide
whether to advance to the next candidate or strategy.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from requests import exceptions as req_exc

from config.schemas import GeometryType

from gis_core.core.errors import EmptyResult, NetworkFailure, ServiceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
BASE_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "county-gis-viewer/1.0",
}


@dataclass
class LayerDescriptor:
    """One layer as declared by service metadata."""

    id: int
    name: str
    geometry_type: GeometryType = GeometryType.UNKNOWN
    display_field: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "LayerDescriptor":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or f"Layer {data['id']}"),
            geometry_type=GeometryType.from_service(data.get("geometryType")),
            display_field=data.get("displayField") or None,
        )


@dataclass
class ServiceDescriptor:
    url: str
    layers: List[LayerDescriptor] = field(default_factory=list)
    description: str = ""

    @classmethod
    def from_json(cls, url: str, data: Dict[str, Any]) -> "ServiceDescriptor":
        layers = []
        for entry in data.get("layers") or []:
            try:
                layers.append(LayerDescriptor.from_json(entry))
            except (KeyError, TypeError, ValueError):
                logger.debug("Ignoring malformed layer entry %r from %s", entry, url)
        return cls(
            url=url.rstrip("/"),
            layers=layers,
            description=data.get("serviceDescription") or data.get("description") or "",
        )


def layer_url(service_url: str, layer_id: int) -> str:
    return f"{service_url.rstrip('/')}/{layer_id}"


class FeatureServiceClient:
    """Thin wrapper over a :class:`requests.Session` for feature-service calls."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {**BASE_HEADERS, **(headers or {})}

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``url`` and decode the JSON body.

        Raises:
            NetworkFailure: connection error, timeout, HTTP error status or a
                body that is not a JSON object.
            ServiceError: the body carries an ``error`` payload.
        """
        params = {"f": "json", **(params or {})}
        logger.debug("GET %s params=%s", url, params)
        try:
            response = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
        except req_exc.Timeout as e:
            raise NetworkFailure(f"Timed out after {self.timeout}s", url) from e
        except req_exc.RequestException as e:
            raise NetworkFailure(f"Connection failed: {e}", url) from e

        if not response.ok:
            raise NetworkFailure(
                f"HTTP {response.status_code}: {response.reason}", url, status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise NetworkFailure("Response is not valid JSON", url) from e
        if not isinstance(payload, dict):
            raise NetworkFailure("Response is not a JSON object", url)

        error = payload.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", "Unknown service error") if isinstance(error, dict) else str(error)
            details = error.get("details") if isinstance(error, dict) else None
            if details:
                message = f"{message} Details: {'; '.join(str(d) for d in details)}"
            raise ServiceError(message, url, code=code)
        return payload

    def fetch_service(self, service_url: str) -> ServiceDescriptor:
        """Fetch service metadata.

        Raises:
            EmptyResult: the service declares no layers.
        """
        payload = self.get_json(service_url.rstrip("/"))
        service = ServiceDescriptor.from_json(service_url, payload)
        if not service.layers:
            raise EmptyResult("No layers found in service", service_url)
        return service

    def resolve_item_url(self, portal_url: str, item_id: str) -> Optional[str]:
        """Ask the portal which service URL backs ``item_id``; None when it does not say."""
        item_url = f"{portal_url.rstrip('/')}/sharing/rest/content/items/{item_id}"
        payload = self.get_json(item_url)
        url = payload.get("url")
        return url.rstrip("/") if isinstance(url, str) and url else None

    def fetch_geojson(self, url: str, where: str = "1=1") -> Dict[str, Any]:
        """Export a layer's features as a GeoJSON FeatureCollection.

        Raises:
            EmptyResult: the collection has no features.
        """
        payload = self.get_json(
            f"{url.rstrip('/')}/query",
            {"where": where, "outFields": "*", "f": "geojson"},
        )
        features = payload.get("features") or []
        if not features:
            raise EmptyResult("Layer returned no features", url)
        return {"type": "FeatureCollection", "features": features}

    def query_attributes(self, url: str, where: str, out_fields: str = "*") -> List[Dict[str, Any]]:
        """Attribute-only query; returns one ``properties`` mapping per feature."""
        payload = self.get_json(
            f"{url.rstrip('/')}/query",
            {"where": where, "outFields": out_fields, "returnGeometry": "false"},
        )
        result = []
        for feature in payload.get("features") or []:
            attributes = feature.get("properties", feature.get("attributes")) or {}
            result.append(dict(attributes))
        return result


def where_equals(field_name: str, value: str) -> str:
    """Build ``FIELD = 'value'`` with single quotes doubled."""
    escaped = value.replace("'", "''")
    return f"{field_name} = '{escaped}'"
