"""Map view abstraction and its folium implementation.

The overlay manager only talks to :class:`MapView`. :class:`FoliumMapView`
keeps overlays as GeoDataFrames, applies visibility and style changes in
memory and renders a Leaflet page with folium on demand.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import folium
import geopandas as gpd
import numpy as np
import pandas as pd
from branca.element import MacroElement
from jinja2 import Template

from config.schemas import BaseMapConfig, GeometryType, LayerStyle, MapSettings, PopupTemplate

from gis_core.core.client import FeatureServiceClient
from gis_core.core.errors import EmptyResult, RenderFailure, ViewerError
from gis_core.core.styles import popup_html
from gis_core.core.util import has_data

logger = logging.getLogger(__name__)

CRS = "EPSG:4326"
FEATURE_ID_FIELD = "_feature_id"
POPUP_FIELD = "_popup_html"

Bounds = Tuple[float, float, float, float]  # minx, miny, maxx, maxy


def features_frame(features: Optional[Sequence[Dict[str, Any]]] = None) -> gpd.GeoDataFrame:
    """GeoDataFrame from GeoJSON features, indexed by feature id strings."""
    if not features:
        return gpd.GeoDataFrame(geometry=[], crs=CRS)
    frame = gpd.GeoDataFrame.from_features(list(features), crs=CRS)
    frame.index = [str(i) for i in range(len(frame))]
    return frame


@dataclass(eq=False)
class Overlay:
    """Handle for one overlay group on the map.

    ``feature_styles`` holds per-feature overrides (hover, selection,
    highlight); ``visible_ids`` restricts which features are drawn.
    """

    layer_id: str
    features: gpd.GeoDataFrame = field(default_factory=features_frame)
    style: LayerStyle = field(default_factory=LayerStyle)
    popup: Optional[PopupTemplate] = None
    geometry_type: GeometryType = GeometryType.UNKNOWN
    url: Optional[str] = None
    tiles: Optional[BaseMapConfig] = None
    label: Optional[str] = None
    feature_styles: Dict[str, LayerStyle] = field(default_factory=dict)
    visible_ids: Optional[Set[str]] = None

    @property
    def is_empty(self) -> bool:
        return self.features.empty

    def feature_ids(self) -> List[str]:
        return list(self.features.index)

    def attributes(self, feature_id: str) -> Dict[str, Any]:
        if feature_id not in self.features.index:
            raise KeyError(feature_id)
        row = self.features.loc[feature_id].drop(labels=self.features.geometry.name)
        return {key: _clean(value) for key, value in row.to_dict().items()}

    def style_for(self, feature_id: str) -> LayerStyle:
        return self.feature_styles.get(feature_id, self.style)

    def bounds(self, feature_ids: Optional[Sequence[str]] = None) -> Optional[Bounds]:
        frame = self.features if feature_ids is None else self.features.loc[list(feature_ids)]
        if frame.empty:
            return None
        minx, miny, maxx, maxy = frame.total_bounds
        if pd.isna(minx):
            return None
        return float(minx), float(miny), float(maxx), float(maxy)

    def drawn_features(self) -> gpd.GeoDataFrame:
        if self.visible_ids is None:
            return self.features
        return self.features.loc[[i for i in self.features.index if i in self.visible_ids]]


def _clean(value: Any) -> Any:
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


class FeatureClickBridge(MacroElement):
    """Posts feature and empty-map clicks to the embedding page.

    Messages are ``{type: "feature-click", layerId, featureId}`` and
    ``{type: "map-click"}``.
    """

    _template = Template(
        """
        {% macro script(this, kwargs) %}
            (function() {
                var selectedStyle = {{ this.selected_style|tojson }};
                var selected = null;
                function clearSelected() {
                    if (selected) {
                        selected.group.resetStyle(selected.layer);
                        selected = null;
                    }
                }
                function notify(message) {
                    if (window.parent && window.parent !== window && window.parent.postMessage) {
                        window.parent.postMessage(message, "*");
                    }
                }
                {% for layer_id, layer in this.layers %}
                {{ layer }}.on("click", function(e) {
                    L.DomEvent.stopPropagation(e);
                    clearSelected();
                    if (selectedStyle && e.layer && e.layer.setStyle) {
                        e.layer.setStyle(selectedStyle);
                        selected = {group: {{ layer }}, layer: e.layer};
                    }
                    var props = e.layer && e.layer.feature ? e.layer.feature.properties : {};
                    notify({type: "feature-click", layerId: {{ layer_id|tojson }}, featureId: props.{{ this.id_field }}});
                });
                {% endfor %}
                {{ this._parent.get_name() }}.on("click", function() {
                    clearSelected();
                    notify({type: "map-click"});
                });
            })();
        {% endmacro %}
        """
    )

    def __init__(
        self,
        layers: Sequence[Tuple[str, str]],
        selected_style: Optional[LayerStyle] = None,
        id_field: str = FEATURE_ID_FIELD,
    ):
        super().__init__()
        self._name = "FeatureClickBridge"
        self.layers = list(layers)
        self.selected_style = selected_style.to_dict() if selected_style is not None else None
        self.id_field = id_field


def merge_bounds(bounds: Sequence[Optional[Bounds]]) -> Optional[Bounds]:
    present = [b for b in bounds if b is not None]
    if not present:
        return None
    return (
        min(b[0] for b in present),
        min(b[1] for b in present),
        max(b[2] for b in present),
        max(b[3] for b in present),
    )


class MapView(ABC):
    """Rendering capability consumed by the overlay manager."""

    @abstractmethod
    def supports_live_layers(self) -> bool:
        ...

    @abstractmethod
    def create_tile_overlay(self, base_map: BaseMapConfig) -> Overlay:
        ...

    @abstractmethod
    def create_feature_overlay(
        self, layer_id: str, url: str, style: LayerStyle, popup: PopupTemplate,
        geometry_type: GeometryType = GeometryType.UNKNOWN,
    ) -> Overlay:
        ...

    @abstractmethod
    def create_static_overlay(
        self, layer_id: str, collection: Dict[str, Any], style: LayerStyle, popup: PopupTemplate,
        geometry_type: GeometryType = GeometryType.UNKNOWN,
    ) -> Overlay:
        ...

    @abstractmethod
    def create_empty_overlay(self, layer_id: str) -> Overlay:
        ...

    @abstractmethod
    def add_to_view(self, overlay: Overlay) -> None:
        ...

    @abstractmethod
    def remove_from_view(self, overlay: Overlay) -> None:
        ...

    @abstractmethod
    def is_on_view(self, overlay: Overlay) -> bool:
        ...

    @abstractmethod
    def set_style(self, overlay: Overlay, style: Optional[LayerStyle], feature_id: Optional[str] = None) -> None:
        ...

    @abstractmethod
    def filter_features(self, overlay: Overlay, feature_ids: Optional[Sequence[str]]) -> None:
        ...

    @abstractmethod
    def fit_bounds(self, bounds: Bounds) -> None:
        ...

    @abstractmethod
    def set_view(self, center: Tuple[float, float], zoom: int) -> None:
        ...

    @abstractmethod
    def show_message(self, text: str, level: str = "info") -> None:
        ...


class FoliumMapView(MapView):
    """In-memory map state rendered to HTML with folium.

    Live layers are exported once as GeoJSON through ``client``; without a
    client the view cannot render live layers.
    """

    def __init__(
        self,
        settings: Optional[MapSettings] = None,
        client: Optional[FeatureServiceClient] = None,
        selected_style: Optional[LayerStyle] = None,
    ):
        self.settings = settings or MapSettings()
        self.client = client
        self.selected_style = selected_style
        self.center: Tuple[float, float] = tuple(self.settings.center)
        self.zoom = self.settings.zoom
        self.bounds: Optional[Bounds] = None
        self.messages: List[Dict[str, str]] = []
        self.tile_overlays: List[Overlay] = []
        self.overlays: List[Overlay] = []
        self._on_view: List[Overlay] = []

    def supports_live_layers(self) -> bool:
        return self.client is not None

    def create_tile_overlay(self, base_map: BaseMapConfig) -> Overlay:
        overlay = Overlay(layer_id=base_map.name, tiles=base_map, label=base_map.name)
        self.tile_overlays.append(overlay)
        return overlay

    def create_feature_overlay(self, layer_id, url, style, popup, geometry_type=GeometryType.UNKNOWN):
        if self.client is None:
            raise RenderFailure("Live feature layers are not available", url)
        try:
            collection = self.client.fetch_geojson(url)
        except EmptyResult:
            logger.info(f"Layer {layer_id} has no features")
            collection = {"features": []}
        except ViewerError as e:
            raise RenderFailure(f"Could not load features: {e.message}", url) from e
        overlay = self.create_static_overlay(layer_id, collection, style, popup, geometry_type)
        overlay.url = url
        return overlay

    def create_static_overlay(self, layer_id, collection, style, popup, geometry_type=GeometryType.UNKNOWN):
        try:
            frame = features_frame(collection.get("features"))
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise RenderFailure(f"Invalid GeoJSON for {layer_id}: {e}") from e
        overlay = Overlay(layer_id=layer_id, features=frame, style=style, popup=popup, geometry_type=geometry_type)
        self.overlays.append(overlay)
        return overlay

    def create_empty_overlay(self, layer_id: str) -> Overlay:
        overlay = Overlay(layer_id=layer_id)
        self.overlays.append(overlay)
        return overlay

    def add_to_view(self, overlay: Overlay) -> None:
        if overlay not in self._on_view:
            self._on_view.append(overlay)

    def remove_from_view(self, overlay: Overlay) -> None:
        if overlay in self._on_view:
            self._on_view.remove(overlay)

    def is_on_view(self, overlay: Overlay) -> bool:
        return overlay in self._on_view

    def set_style(self, overlay, style, feature_id=None):
        """Restyle the whole overlay, or one feature; ``None`` drops a feature override."""
        if feature_id is None:
            if style is not None:
                overlay.style = style
            overlay.feature_styles.clear()
        elif style is None:
            overlay.feature_styles.pop(feature_id, None)
        else:
            overlay.feature_styles[feature_id] = style

    def filter_features(self, overlay, feature_ids):
        overlay.visible_ids = None if feature_ids is None else set(feature_ids)

    def fit_bounds(self, bounds: Bounds) -> None:
        self.bounds = bounds

    def set_view(self, center, zoom):
        self.center = tuple(center)
        self.zoom = zoom
        self.bounds = None

    def show_message(self, text: str, level: str = "info") -> None:
        logger.info(f"[map] {text}")
        self.messages.append({"text": text, "level": level})

    def pop_messages(self) -> List[Dict[str, str]]:
        messages, self.messages = self.messages, []
        return messages

    def render(self) -> folium.Map:
        fmap = folium.Map(
            location=list(self.center),
            zoom_start=self.zoom,
            min_zoom=self.settings.min_zoom,
            max_zoom=self.settings.max_zoom,
            tiles=None,
            control_scale=True,
        )
        for index, overlay in enumerate(self.tile_overlays):
            folium.TileLayer(
                tiles=overlay.tiles.tiles,
                attr=overlay.tiles.attribution or overlay.tiles.name,
                name=overlay.tiles.name,
                overlay=False,
                control=True,
                show=index == 0,
            ).add_to(fmap)

        clickable = []
        for overlay in self.overlays:
            group = folium.FeatureGroup(
                name=overlay.label or overlay.layer_id,
                show=overlay in self._on_view,
                control=overlay.label is not None,
            )
            layer = self._add_features(overlay, group)
            if layer is not None:
                clickable.append((overlay.layer_id, layer.get_name()))
            group.add_to(fmap)
        FeatureClickBridge(clickable, self.selected_style).add_to(fmap)

        if self.tile_overlays or any(o.label for o in self.overlays):
            folium.LayerControl(collapsed=False).add_to(fmap)
        if self.bounds is not None:
            minx, miny, maxx, maxy = self.bounds
            fmap.fit_bounds([[miny, minx], [maxy, maxx]])
        return fmap

    def _add_features(self, overlay: Overlay, group: folium.FeatureGroup) -> Optional[folium.GeoJson]:
        frame = overlay.drawn_features()
        if not has_data(frame):
            return None
        frame = frame.copy()
        frame[FEATURE_ID_FIELD] = list(frame.index)
        fields = [FEATURE_ID_FIELD]
        if overlay.popup is not None:
            frame[POPUP_FIELD] = [popup_html(overlay.popup, overlay.attributes(i)) for i in frame.index]
            fields.append(POPUP_FIELD)
        frame = frame[fields + [frame.geometry.name]]

        def style_function(feature, overlay=overlay):
            return overlay.style_for(feature["properties"][FEATURE_ID_FIELD]).to_dict()

        def highlight_function(feature, overlay=overlay):
            return overlay.style_for(feature["properties"][FEATURE_ID_FIELD]).emphasized().to_dict()

        marker = None
        if overlay.geometry_type == GeometryType.POINT:
            marker = folium.CircleMarker(radius=overlay.style.radius or 6)

        layer = folium.GeoJson(
            frame,
            name=overlay.layer_id,
            style_function=style_function,
            highlight_function=highlight_function,
            marker=marker,
        )
        if POPUP_FIELD in fields:
            layer.add_child(folium.GeoJsonPopup(fields=[POPUP_FIELD], labels=False, style="max-width: 350px;"))
        layer.add_to(group)
        return layer

    def to_html(self) -> str:
        return self.render().get_root().render()

    def save(self, path: str) -> None:
        self.render().save(path)
        logger.info(f"Saved map to {path}")
