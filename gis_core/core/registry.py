"""Normalized layer configurations and the per-source registries that own them."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from config.schemas import GeometryType, LayerStyle, PopupTemplate, SourceConfig, ViewerConfig
from config.schemas.source_config import ContactInfo, FallbackLayer

from gis_core.core import styles
from gis_core.core.client import LayerDescriptor, ServiceDescriptor, layer_url
from gis_core.core.util import unique

logger = logging.getLogger(__name__)


class LayerKind(str, Enum):
    LIVE = "live"
    STATIC_GEOJSON = "static_geojson"
    PLACEHOLDER = "placeholder"


@dataclass
class LayerConfig:
    """A layer as the viewer knows it.

    Only visibility flags and ``rendered_layer`` change after construction.
    ``features`` is set for STATIC_GEOJSON layers; ``item_id`` and ``contact``
    for placeholders.
    """

    id: str
    name: str
    display_name: str
    kind: LayerKind
    source: str
    source_url: str = ""
    style: LayerStyle = field(default_factory=LayerStyle)
    popup_template: PopupTemplate = field(default_factory=PopupTemplate)
    visible_by_default: bool = False
    currently_visible: bool = False
    geometry_type: GeometryType = GeometryType.UNKNOWN
    control_label_prefix: str = ""
    features: Optional[Dict[str, Any]] = None
    item_id: Optional[str] = None
    contact: Optional[ContactInfo] = None
    rendered_layer: Any = None

    @property
    def is_placeholder(self) -> bool:
        return self.kind == LayerKind.PLACEHOLDER

    @property
    def is_materialized(self) -> bool:
        return self.rendered_layer is not None

    @property
    def control_label(self) -> str:
        return f"{self.control_label_prefix}{self.display_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "kind": self.kind.value,
            "source": self.source,
            "source_url": self.source_url,
            "style": self.style.to_dict(),
            "visible_by_default": self.visible_by_default,
            "currently_visible": self.currently_visible,
            "geometry_type": self.geometry_type.value,
            "is_placeholder": self.is_placeholder,
            "materialized": self.is_materialized,
        }


class LayerRegistry:
    """Ordered, id-keyed layers of one source. Ids are never reused."""

    def __init__(self, source: str, service_url: Optional[str] = None):
        self.source = source
        self.service_url = service_url
        self._layers: Dict[str, LayerConfig] = {}

    def add(self, layer: LayerConfig) -> LayerConfig:
        if layer.id in self._layers:
            raise ValueError(f"Layer id already registered: {layer.id}")
        self._layers[layer.id] = layer
        return layer

    def get(self, layer_id: str) -> Optional[LayerConfig]:
        return self._layers.get(layer_id)

    def __iter__(self) -> Iterator[LayerConfig]:
        return iter(self._layers.values())

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, layer_id: object) -> bool:
        return layer_id in self._layers

    @property
    def layers(self) -> List[LayerConfig]:
        return list(self._layers.values())

    @property
    def active_layers(self) -> List[LayerConfig]:
        return [layer for layer in self._layers.values() if not layer.is_placeholder]

    def summary(self) -> Dict[str, int]:
        layers = self.layers
        return {
            "total": len(layers),
            "active": sum(1 for l in layers if not l.is_placeholder),
            "placeholder": sum(1 for l in layers if l.is_placeholder),
            "visible": sum(1 for l in layers if l.currently_visible),
        }

    def describe(self) -> str:
        counts = self.summary()
        lines = [
            f"{self.source} integration summary:",
            f"  total layers: {counts['total']}",
            f"  active layers: {counts['active']}",
            f"  placeholder layers: {counts['placeholder']}",
            f"  visible layers: {counts['visible']}",
        ]
        if self.service_url:
            lines.append(f"  service URL: {self.service_url}")
        for index, layer in enumerate(self.layers, start=1):
            state = "visible" if layer.currently_visible else "hidden"
            lines.append(f"  {index:2d}: {layer.display_name} [{layer.kind.value}, {state}]")
        return "\n".join(lines)


class RegistryBuilder:
    """Turn a discovered service, fallback collections or a failure into a registry."""

    def __init__(self, source: SourceConfig, viewer: Optional[ViewerConfig] = None):
        self.source = source
        self.viewer = viewer or ViewerConfig()

    def _visible(self, name: str, index: int) -> bool:
        if self.source.visible_first_n is not None:
            return index < self.source.visible_first_n
        return name in self.source.default_visible

    def layer_config(self, service_url: str, descriptor: LayerDescriptor, index: int = 0) -> LayerConfig:
        visible = self._visible(descriptor.name, index)
        return LayerConfig(
            id=f"{self.source.key}_{descriptor.id}",
            name=descriptor.name,
            display_name=styles.resolve_display_name(descriptor.name, self.source),
            kind=LayerKind.LIVE,
            source=self.source.key,
            source_url=layer_url(service_url, descriptor.id),
            style=styles.resolve_style(
                descriptor.name,
                descriptor.geometry_type,
                self.source,
                self.viewer.geometry_defaults,
                index=index,
                palette=self.viewer.palette,
            ),
            popup_template=styles.resolve_popup(
                descriptor.name, descriptor.geometry_type, self.source, descriptor.display_field
            ),
            visible_by_default=visible,
            currently_visible=visible,
            geometry_type=descriptor.geometry_type,
            control_label_prefix=self.source.control_label_prefix,
        )

    def from_service(self, service: ServiceDescriptor) -> LayerRegistry:
        registry = LayerRegistry(self.source.key, service.url)
        for index, descriptor in enumerate(service.layers):
            layer = self.layer_config(service.url, descriptor, index)
            if layer.id in registry:
                logger.warning(f"Skipping repeated layer id {descriptor.id} ({descriptor.name}) in {service.url}")
                continue
            registry.add(layer)
            logger.info(f"Configured layer: {layer.display_name} ({layer.id})")
        return registry

    def static_layer(self, fallback: FallbackLayer, service_url: str, collection: Dict[str, Any]) -> LayerConfig:
        features = collection.get("features") or []
        first_properties = (features[0].get("properties") or {}) if features else {}
        return LayerConfig(
            id=f"{self.source.key}_fallback_{fallback.layer_id}",
            name=fallback.name,
            display_name=f"📄 {fallback.name} (GeoJSON)",
            kind=LayerKind.STATIC_GEOJSON,
            source=self.source.key,
            source_url=layer_url(service_url, fallback.layer_id),
            style=styles.fallback_style(fallback.style_key, self.source),
            popup_template=styles.fallback_popup(fallback.name, first_properties.keys()),
            visible_by_default=fallback.visible,
            currently_visible=fallback.visible,
            geometry_type=_collection_geometry(features),
            control_label_prefix=self.source.control_label_prefix,
            features=collection,
        )

    def placeholders(self, service_url: Optional[str] = None) -> LayerRegistry:
        """One diagnostic layer per configured item (a source without items has one)."""
        registry = LayerRegistry(self.source.key, service_url)
        item_ids: List[Optional[str]] = unique(self.source.item_ids) or [None]
        for index, item_id in enumerate(item_ids):
            suffix = item_id or "service"
            registry.add(
                LayerConfig(
                    id=f"{self.source.key}_placeholder_{suffix}",
                    name=self.source.name,
                    display_name=styles.placeholder_name(self.source, item_id, index),
                    kind=LayerKind.PLACEHOLDER,
                    source=self.source.key,
                    style=styles.placeholder_style(self.source),
                    popup_template=styles.placeholder_popup(self.source, item_id, service_url),
                    control_label_prefix=self.source.control_label_prefix,
                    item_id=item_id,
                    contact=self.source.contact,
                )
            )
        return registry


def _collection_geometry(features: List[Dict[str, Any]]) -> GeometryType:
    for feature in features:
        geometry = feature.get("geometry") or {}
        kind = geometry.get("type", "")
        if "Point" in kind:
            return GeometryType.POINT
        if "LineString" in kind:
            return GeometryType.POLYLINE
        if "Polygon" in kind:
            return GeometryType.POLYGON
    return GeometryType.UNKNOWN
