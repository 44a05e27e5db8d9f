"""Service discovery: try candidate endpoints until one declares layers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from config.schemas import SourceConfig

from gis_core.core.client import FeatureServiceClient, ServiceDescriptor
from gis_core.core.errors import EmptyResult, NetworkFailure, ServiceError, ViewerError
from gis_core.core.util import log_progress, unique

logger = logging.getLogger(__name__)


@dataclass
class ProbeAttempt:
    url: str
    reason: Optional[str] = None
    error: Optional[ViewerError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class ProbeResult:
    service: Optional[ServiceDescriptor] = None
    attempts: List[ProbeAttempt] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.service is not None

    @property
    def last_reason(self) -> str:
        for attempt in reversed(self.attempts):
            if attempt.reason:
                return attempt.reason
        return "no candidate endpoints"


class ServiceProbe:
    """Request ``<candidate>?f=json`` for each candidate in order.

    The first candidate declaring at least one layer wins and nothing after it
    is requested. Network errors, HTTP errors, error payloads and empty
    services all advance to the next candidate; no candidate is retried.
    """

    def __init__(self, client: FeatureServiceClient):
        self.client = client

    def probe(self, candidates: Iterable[str]) -> ProbeResult:
        result = ProbeResult()
        for url in candidates:
            log_progress(f"[probe] Testing: {url}")
            try:
                service = self.client.fetch_service(url)
            except ServiceError as e:
                if e.access_denied:
                    logger.warning(f"Service requires authentication: {url} ({e.message})")
                else:
                    logger.warning(f"Service error at {url}: {e.message}")
                result.attempts.append(ProbeAttempt(url, f"service error: {e.message}", e))
                continue
            except EmptyResult as e:
                logger.info(f"No layers found in service: {url}")
                result.attempts.append(ProbeAttempt(url, "empty result: no layers", e))
                continue
            except NetworkFailure as e:
                logger.info(f"Connection failed for {url}: {e.message}")
                result.attempts.append(ProbeAttempt(url, f"network error: {e.message}", e))
                continue

            log_progress(f"[probe] Service found with {len(service.layers)} layers: {url}")
            for layer in service.layers:
                logger.info(f"  {layer.id}: {layer.name} ({layer.geometry_type.value})")
            result.attempts.append(ProbeAttempt(url))
            result.service = service
            return result

        logger.warning("Could not discover a service among %d candidates", len(result.attempts))
        return result


def expand_candidates(servers: Iterable[str], service_names: Iterable[str]) -> List[str]:
    """Every ``<server>/<name>/FeatureServer`` combination, servers outermost."""
    names = list(service_names)
    return [f"{server.rstrip('/')}/{name}/FeatureServer" for server in servers for name in names]


def expand_item_patterns(patterns: Iterable[str], item_ids: Iterable[str]) -> List[str]:
    ids = list(item_ids)
    return [pattern.format(item_id=item_id) for item_id in ids for pattern in patterns]


def manual_candidates(source: SourceConfig) -> List[str]:
    """Enabled manual entries that point at a FeatureServer."""
    urls = []
    for service in source.manual_services:
        if not service.enabled:
            continue
        if not service.service_url:
            logger.warning(f"Service {service.name or service.item_id} has no service_url configured")
            continue
        if "FeatureServer" not in service.service_url:
            logger.warning(f"Service {service.name or service.item_id} URL should point to a FeatureServer")
            continue
        urls.append(service.service_url.rstrip("/"))
    return urls


def build_candidates(source: SourceConfig, client: Optional[FeatureServiceClient] = None) -> List[str]:
    """Ordered, de-duplicated candidate list for one source.

    Explicit URLs, then manual entries, then portal item lookups (only when a
    client is given), then server/name combinations, then item URL patterns.
    """
    candidates = [url.rstrip("/") for url in source.service_urls]
    candidates.extend(manual_candidates(source))

    if client is not None and source.portal_url:
        for item_id in source.item_ids:
            try:
                url = client.resolve_item_url(source.portal_url, item_id)
            except ViewerError as e:
                logger.info(f"Item endpoint failed for {item_id}: {e}")
                continue
            if url:
                log_progress(f"[probe] Item {item_id} points to {url}")
                candidates.append(url)

    candidates.extend(expand_candidates(source.servers, source.service_names))
    candidates.extend(expand_item_patterns(source.item_url_patterns, source.item_ids))
    return unique(candidates)
