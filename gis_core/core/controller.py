"""Viewer controller: the single owner of registries, overlays and selection."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from config.schemas import ViewerConfig

from gis_core.core.client import FeatureServiceClient
from gis_core.core.fallback import ChainResult, FallbackChain, Scheduler
from gis_core.core.overlay import MapOverlayManager, ToggleControl
from gis_core.core.registry import LayerConfig
from gis_core.core.util import log_progress
from gis_core.core.view import FoliumMapView, MapView

logger = logging.getLogger(__name__)


class ViewerController:
    """Runs discovery for every source once, then serves interaction requests."""

    def __init__(
        self,
        viewer: ViewerConfig,
        client: Optional[FeatureServiceClient] = None,
        view: Optional[MapView] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.viewer = viewer
        self.client = client or FeatureServiceClient(timeout=viewer.http_timeout)
        self.view = view or FoliumMapView(viewer.map, self.client, viewer.interaction.selected_style)
        self.scheduler = scheduler
        self.control = ToggleControl()
        self.manager = MapOverlayManager(
            self.view, viewer, self.client, on_feature_selected=self._feature_selected
        )
        self.results: Dict[str, ChainResult] = {}
        self.selected_attributes: Optional[Dict[str, Any]] = None
        self.loading = False
        self.started = False

    def start(self) -> Dict[str, ChainResult]:
        """Discover and materialize every configured source. Runs at most once."""
        if self.started:
            return self.results
        self.started = True
        self.loading = True
        try:
            for base_map in self.viewer.base_maps:
                self.view.create_tile_overlay(base_map)
            for source in self.viewer.sources:
                log_progress(f"[viewer] Loading {source.name} data...")
                chain = FallbackChain(
                    source,
                    self.client,
                    self.view.supports_live_layers,
                    viewer=self.viewer,
                    scheduler=self.scheduler,
                )
                result = chain.run()
                self.results[source.key] = result
                self.manager.materialize(result.registry)
            if self.viewer.ui.show_layer_control:
                self.manager.register_with_control(self.control)
        finally:
            self.loading = False
        log_progress(f"[viewer] Ready with {len(self.manager.layers)} layers")
        return self.results

    def _feature_selected(self, attributes: Dict[str, Any]) -> None:
        self.selected_attributes = attributes

    @property
    def layers(self) -> List[LayerConfig]:
        return self.manager.layers

    def control_entries(self) -> List[Dict[str, Any]]:
        entries = []
        for entry in self.control.entries:
            layer = self.manager.get_layer(entry.layer_id)
            entries.append({**layer.to_dict(), "label": entry.label})
        return entries

    def toggle_layer(self, layer_id: str, visible: bool) -> LayerConfig:
        return self.manager.toggle(layer_id, visible)

    def legend(self) -> List[Dict[str, str]]:
        return [{"label": label, "color": color} for label, color in self.manager.legend_entries()]

    def townships(self) -> List[str]:
        return list(self.viewer.townships)

    def select_township(self, name: str) -> List[str]:
        return self.manager.select_region(name)

    def select_feature(self, layer_id: str, feature_id: str) -> Dict[str, Any]:
        return self.manager.select_feature(layer_id, feature_id)

    def clear_selection(self) -> None:
        """Map click on empty area."""
        self.manager.clear_selection()
        self.selected_attributes = None

    def status(self) -> Dict[str, Any]:
        messages = []
        if isinstance(self.view, FoliumMapView):
            messages = list(self.view.messages)
        return {
            "loading": self.loading,
            "started": self.started,
            "sources": [result.to_dict() for result in self.results.values()],
            "region": self.manager.region,
            "selection": self.selected_attributes,
            "messages": messages,
        }

    def drain_messages(self) -> List[Dict[str, str]]:
        """Transient map messages raised since the last call."""
        if isinstance(self.view, FoliumMapView):
            return self.view.pop_messages()
        return []

    def render_html(self) -> str:
        if not isinstance(self.view, FoliumMapView):
            raise TypeError("Only a FoliumMapView can be rendered to HTML")
        return self.view.to_html()

    def save(self, path: str) -> None:
        if not isinstance(self.view, FoliumMapView):
            raise TypeError("Only a FoliumMapView can be saved")
        self.view.save(path)
