"""Map overlay manager: materialization, toggling, selection and region filtering."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.schemas import LayerStyle, ViewerConfig

from gis_core.core.client import FeatureServiceClient, where_equals
from gis_core.core.errors import ViewerError
from gis_core.core.registry import LayerConfig, LayerKind, LayerRegistry
from gis_core.core.util import normalize_name
from gis_core.core.view import MapView, Overlay, merge_bounds

logger = logging.getLogger(__name__)

FeatureCallback = Callable[[Dict[str, Any]], None]


@dataclass
class ControlEntry:
    layer_id: str
    label: str
    overlay: Overlay


class ToggleControl:
    """Layer-toggle control exposed to the host page."""

    def __init__(self):
        self.entries: List[ControlEntry] = []

    def add_overlay(self, overlay: Overlay, label: str) -> ControlEntry:
        overlay.label = label
        entry = ControlEntry(overlay.layer_id, label, overlay)
        self.entries.append(entry)
        return entry

    def labels(self) -> List[str]:
        return [entry.label for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


class MapOverlayManager:
    """Owns the rendered overlays of every registry and the single selection."""

    def __init__(
        self,
        view: MapView,
        viewer: Optional[ViewerConfig] = None,
        client: Optional[FeatureServiceClient] = None,
        on_feature_selected: Optional[FeatureCallback] = None,
    ):
        self.view = view
        self.viewer = viewer or ViewerConfig()
        self.client = client
        self.on_feature_selected = on_feature_selected
        self.registries: List[LayerRegistry] = []
        self._layers: Dict[str, LayerConfig] = {}
        self.selection: Optional[Tuple[str, str]] = None
        self.region: Optional[str] = None
        self.region_layer_id: Optional[str] = None
        self.region_matches: List[str] = []
        self._pre_filter_visibility: Optional[Dict[str, bool]] = None

    # Materialization

    def materialize(self, registry: LayerRegistry) -> List[LayerConfig]:
        """Build overlays for a registry; a layer that fails to render is dropped."""
        self.registries.append(registry)
        materialized = []
        for layer in registry:
            try:
                overlay = self._build_overlay(layer)
            except ViewerError as e:
                logger.error(f"Failed to add layer {layer.display_name}: {e}")
                self.view.show_message(f"Layer failed to load: {layer.display_name}", level="error")
                layer.currently_visible = False
                continue
            layer.rendered_layer = overlay
            self._layers[layer.id] = layer
            if layer.visible_by_default and not layer.is_placeholder:
                self.view.add_to_view(overlay)
                layer.currently_visible = True
            materialized.append(layer)
            logger.info(f"Added layer: {layer.display_name}")
        return materialized

    def _build_overlay(self, layer: LayerConfig) -> Overlay:
        if layer.kind == LayerKind.PLACEHOLDER:
            return self.view.create_empty_overlay(layer.id)
        popup = layer.popup_template if self.viewer.interaction.enable_popups else None
        if layer.kind == LayerKind.STATIC_GEOJSON:
            return self.view.create_static_overlay(
                layer.id, layer.features or {}, layer.style, popup, layer.geometry_type
            )
        return self.view.create_feature_overlay(
            layer.id, layer.source_url, layer.style, popup, layer.geometry_type
        )

    @property
    def layers(self) -> List[LayerConfig]:
        return list(self._layers.values())

    def get_layer(self, layer_id: str) -> LayerConfig:
        try:
            return self._layers[layer_id]
        except KeyError:
            raise KeyError(f"Unknown layer: {layer_id}") from None

    # Visibility

    def toggle(self, layer_id: str, visible: bool) -> LayerConfig:
        layer = self.get_layer(layer_id)
        if visible:
            self.view.add_to_view(layer.rendered_layer)
        else:
            self.view.remove_from_view(layer.rendered_layer)
        layer.currently_visible = visible
        return layer

    def register_with_control(self, control: ToggleControl) -> List[ControlEntry]:
        """Add every non-duplicate materialized overlay to ``control``."""
        registered: List[str] = [normalize_name(entry.label) for entry in control.entries]
        added = []
        for layer in self.layers:
            name = normalize_name(layer.display_name)
            duplicate = self._duplicate_of(name, registered)
            if duplicate is not None:
                logger.info(f"Skipping duplicate layer in control: {layer.display_name} (matches '{duplicate}')")
                continue
            registered.append(name)
            added.append(control.add_overlay(layer.rendered_layer, layer.control_label))
        return added

    def _duplicate_of(self, name: str, registered: List[str]) -> Optional[str]:
        markers = [normalize_name(marker) for marker in self.viewer.duplicate_markers]
        for existing in registered:
            if existing == name:
                return existing
            for marker in markers:
                if marker and marker in existing and marker in name:
                    return existing
        return None

    def legend_entries(self) -> List[Tuple[str, str]]:
        entries = []
        for layer in self.layers:
            if layer.is_placeholder or not layer.currently_visible:
                continue
            entries.append((layer.display_name, layer.style.color or layer.style.fill_color or "#3388ff"))
        return entries

    # Hover and selection

    def _feature(self, layer_id: str, feature_id: str) -> Tuple[LayerConfig, Overlay]:
        layer = self.get_layer(layer_id)
        overlay: Overlay = layer.rendered_layer
        if feature_id not in overlay.features.index:
            raise KeyError(f"Unknown feature {feature_id} in layer {layer_id}")
        return layer, overlay

    def _base_style(self, layer_id: str, feature_id: str) -> Optional[LayerStyle]:
        """Style a feature falls back to: region highlight if matched, else the layer style."""
        if layer_id == self.region_layer_id and feature_id in self.region_matches:
            return self.viewer.interaction.selected_style
        return None

    def hover(self, layer_id: str, feature_id: str) -> None:
        if not self.viewer.interaction.highlight_on_hover:
            return
        layer, overlay = self._feature(layer_id, feature_id)
        if self.selection == (layer_id, feature_id):
            base = self.viewer.interaction.selected_style
        else:
            base = self._base_style(layer_id, feature_id) or overlay.style
        self.view.set_style(overlay, base.emphasized(), feature_id)

    def unhover(self, layer_id: str, feature_id: str) -> None:
        layer, overlay = self._feature(layer_id, feature_id)
        if self.selection == (layer_id, feature_id):
            return
        self.view.set_style(overlay, self._base_style(layer_id, feature_id), feature_id)

    def select_feature(self, layer_id: str, feature_id: str) -> Dict[str, Any]:
        """Select one feature, clearing any previous selection; returns its attributes."""
        layer, overlay = self._feature(layer_id, feature_id)
        self.clear_selection()
        if self.viewer.interaction.enable_selection:
            self.view.set_style(overlay, self.viewer.interaction.selected_style, feature_id)
        self.selection = (layer_id, feature_id)
        attributes = overlay.attributes(feature_id)
        if self.on_feature_selected is not None:
            self.on_feature_selected(attributes)
        return attributes

    def clear_selection(self) -> None:
        if self.selection is None:
            return
        layer_id, feature_id = self.selection
        self.selection = None
        layer = self._layers.get(layer_id)
        if layer is not None:
            self.view.set_style(layer.rendered_layer, self._base_style(layer_id, feature_id), feature_id)

    # Region filter

    def find_region_layer(self) -> Optional[LayerConfig]:
        keyword = self.viewer.region_keyword.lower()
        for layer in self.layers:
            if layer.is_placeholder:
                continue
            if keyword in layer.name.lower() or keyword in layer.display_name.lower():
                return layer
        return None

    def select_region(self, name: str) -> List[str]:
        """Filter the map to one region; the sentinel name resets instead."""
        if not name or name == self.viewer.township_sentinel:
            self.reset_region()
            return []

        layer = self.find_region_layer()
        if layer is None:
            self.view.show_message(f"No {self.viewer.region_keyword} layer available")
            return []

        if self._pre_filter_visibility is None:
            self._pre_filter_visibility = {l.id: l.currently_visible for l in self.layers}
        else:
            self._clear_region_highlight()

        for other in self.layers:
            if other.id != layer.id and other.currently_visible:
                self.toggle(other.id, False)
        self.toggle(layer.id, True)

        overlay: Overlay = layer.rendered_layer
        matches = self._query_region(layer, name) or self._scan_region(overlay, name)
        self.region = name
        self.region_layer_id = layer.id
        self.region_matches = matches
        if not matches:
            self.view.filter_features(overlay, None)
            self.view.show_message(f"No features found for {name}")
            return []

        self.view.filter_features(overlay, matches)
        bounds = merge_bounds([overlay.bounds(matches)])
        if bounds is not None:
            self.view.fit_bounds(bounds)
        for feature_id in matches:
            self.view.set_style(overlay, self.viewer.interaction.selected_style, feature_id)
        logger.info(f"Filtered to {name}: {len(matches)} feature(s)")
        return matches

    def _query_region(self, layer: LayerConfig, name: str) -> List[str]:
        """Exact ``NAME = '<name>'`` query against the live endpoint."""
        if self.client is None or layer.kind != LayerKind.LIVE:
            return []
        try:
            rows = self.client.query_attributes(layer.source_url, where_equals("NAME", name))
        except ViewerError as e:
            logger.warning(f"Region query failed, scanning loaded features instead: {e}")
            return []
        overlay: Overlay = layer.rendered_layer
        frame = overlay.features
        object_ids = {row.get("OBJECTID") for row in rows if row.get("OBJECTID") is not None}
        if object_ids and "OBJECTID" in frame.columns:
            return [i for i in frame.index if frame.at[i, "OBJECTID"] in object_ids]
        names = {row.get("NAME") for row in rows if row.get("NAME") is not None}
        if names and "NAME" in frame.columns:
            return [i for i in frame.index if frame.at[i, "NAME"] in names]
        return []

    def _scan_region(self, overlay: Overlay, name: str) -> List[str]:
        """Case-insensitive substring match on the first name-like field."""
        frame = overlay.features
        field = next((f for f in self.viewer.region_name_fields if f in frame.columns), None)
        if field is None:
            return []
        needle = name.lower()
        return [
            i for i in frame.index
            if frame.at[i, field] is not None and needle in str(frame.at[i, field]).lower()
        ]

    def _clear_region_highlight(self) -> None:
        if self.selection is not None and self.selection[0] == self.region_layer_id:
            self.clear_selection()
        layer = self._layers.get(self.region_layer_id) if self.region_layer_id else None
        if layer is not None:
            self.view.filter_features(layer.rendered_layer, None)
            for feature_id in self.region_matches:
                self.view.set_style(layer.rendered_layer, None, feature_id)
        self.region = None
        self.region_layer_id = None
        self.region_matches = []

    def reset_region(self) -> None:
        """Restore pre-filter visibility, layer styles and the default view."""
        self.clear_selection()
        self._clear_region_highlight()
        if self._pre_filter_visibility is not None:
            for layer_id, visible in self._pre_filter_visibility.items():
                if layer_id in self._layers:
                    self.toggle(layer_id, visible)
            self._pre_filter_visibility = None
        for layer in self.layers:
            self.view.set_style(layer.rendered_layer, layer.style)
        settings = self.viewer.map
        self.view.set_view(tuple(settings.center), settings.zoom)
