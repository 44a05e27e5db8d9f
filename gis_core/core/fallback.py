"""Per-source fallback chain: live service, then GeoJSON export, then placeholder."""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from config.schemas import SourceConfig, ViewerConfig

from gis_core.core.client import FeatureServiceClient, layer_url
from gis_core.core.errors import CapabilityMissing, ViewerError
from gis_core.core.probe import ServiceProbe, build_candidates
from gis_core.core.registry import LayerRegistry, RegistryBuilder
from gis_core.core.util import log_progress

logger = logging.getLogger(__name__)

CAPABILITY_WAIT_SECONDS = 2.0


class _NotFound(ViewerError):
    """No candidate endpoint declared any layers."""

    reason = "not found"


class ChainState(str, Enum):
    PROBING_PRIMARY = "probing_primary"
    PROBING_GEOJSON_FALLBACK = "probing_geojson_fallback"
    USING_PLACEHOLDER = "using_placeholder"
    DONE = "done"


class Scheduler(ABC):
    """Suspends the chain for the capability wait."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        ...


class TimeScheduler(Scheduler):
    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


@dataclass
class ChainResult:
    source: str
    registry: LayerRegistry
    states: List[ChainState] = field(default_factory=list)
    reasons: List[Tuple[ChainState, str]] = field(default_factory=list)

    @property
    def final_kind(self) -> str:
        """Which strategy produced the registry: live, fallback or placeholder."""
        visited = set(self.states)
        if ChainState.USING_PLACEHOLDER in visited:
            return "placeholder"
        if ChainState.PROBING_GEOJSON_FALLBACK in visited:
            return "fallback"
        return "live"

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "outcome": self.final_kind,
            "states": [state.value for state in self.states],
            "reasons": [{"state": state.value, "reason": reason} for state, reason in self.reasons],
            "summary": self.registry.summary(),
        }


class FallbackChain:
    """Run the three strategies in order for one source; never revisits a state.

    ``supports_live_layers`` is re-checked once after a single wait of
    ``wait_seconds`` if it is initially false.
    """

    def __init__(
        self,
        source: SourceConfig,
        client: FeatureServiceClient,
        supports_live_layers: Callable[[], bool],
        viewer: Optional[ViewerConfig] = None,
        scheduler: Optional[Scheduler] = None,
        wait_seconds: Optional[float] = None,
    ):
        self.source = source
        self.client = client
        self.supports_live_layers = supports_live_layers
        self.viewer = viewer or ViewerConfig()
        self.scheduler = scheduler or TimeScheduler()
        if wait_seconds is None:
            wait_seconds = self.viewer.capability_wait_seconds
        self.wait_seconds = CAPABILITY_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self.builder = RegistryBuilder(source, self.viewer)
        self.probe = ServiceProbe(client)

    def run(self) -> ChainResult:
        states: List[ChainState] = []
        reasons: List[Tuple[ChainState, str]] = []

        def downgrade(state: ChainState, reason: str) -> None:
            logger.warning(f"{self.source.name}: {state.value} failed ({reason}), downgrading")
            reasons.append((state, reason))

        states.append(ChainState.PROBING_PRIMARY)
        registry = None
        try:
            registry = self._probe_primary()
        except ViewerError as e:
            downgrade(ChainState.PROBING_PRIMARY, f"{e.reason}: {e.message}")

        if registry is None:
            states.append(ChainState.PROBING_GEOJSON_FALLBACK)
            registry, reason = self._probe_geojson()
            if registry is None:
                downgrade(ChainState.PROBING_GEOJSON_FALLBACK, reason)
                states.append(ChainState.USING_PLACEHOLDER)
                registry = self.builder.placeholders(self.source.geojson_service_url)
                log_progress(f"[{self.source.key}] Using {len(registry)} placeholder layer(s)")

        states.append(ChainState.DONE)
        log_progress(f"[{self.source.key}] {registry.describe()}")
        return ChainResult(self.source.key, registry, states, reasons)

    def _probe_primary(self) -> LayerRegistry:
        if not self.supports_live_layers():
            logger.info(f"Live layer support not ready, waiting {self.wait_seconds}s")
            self.scheduler.sleep(self.wait_seconds)
            if not self.supports_live_layers():
                raise CapabilityMissing("Live feature layers are not supported by the map view")

        result = self.probe.probe(build_candidates(self.source, self.client))
        if not result.found:
            raise _NotFound(result.last_reason)
        return self.builder.from_service(result.service)

    def _probe_geojson(self) -> Tuple[Optional[LayerRegistry], str]:
        service_url = self.source.geojson_service_url
        if not service_url or not self.source.fallback_layers:
            return None, "no GeoJSON fallback configured"

        registry = LayerRegistry(self.source.key, service_url)
        last_reason = "no features returned"
        for fallback in self.source.fallback_layers:
            if f"{self.source.key}_fallback_{fallback.layer_id}" in registry:
                logger.warning(f"Skipping repeated fallback layer id {fallback.layer_id}")
                continue
            url = layer_url(service_url, fallback.layer_id)
            try:
                collection = self.client.fetch_geojson(url)
            except ViewerError as e:
                logger.warning(f"Failed to load {fallback.name} via GeoJSON: {e}")
                last_reason = f"{e.reason}: {e.message}"
                continue
            layer = registry.add(self.builder.static_layer(fallback, service_url, collection))
            log_progress(f"[{self.source.key}] Loaded {fallback.name} via GeoJSON ({len(collection['features'])} features)")
            logger.debug("Static layer %s ready", layer.id)

        if not len(registry):
            return None, last_reason
        return registry, ""
