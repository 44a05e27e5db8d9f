"""Error taxonomy for feature-service discovery and map materialization.

None of these are fatal to the viewer. The probe and the fallback chain turn
them into recorded reasons; the overlay manager drops the offending layer.
"""
from __future__ import annotations

from typing import Optional


class ViewerError(Exception):
    """Base class for recoverable viewer errors."""

    reason = "error"

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} ({self.url})"
        return self.message


class NetworkFailure(ViewerError):
    """Endpoint unreachable, timed out, or answered with an HTTP error status."""

    reason = "network error"

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class ServiceError(ViewerError):
    """The service answered with an explicit error payload.

    Found-but-inaccessible: the resource exists, typically permission denied.
    """

    reason = "service error"

    def __init__(self, message: str, url: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message, url)
        self.code = code

    @property
    def access_denied(self) -> bool:
        return self.code in (401, 403, 498, 499) or 'permission' in self.message.lower()


class EmptyResult(ViewerError):
    """Zero layers or zero features."""

    reason = "empty result"


class CapabilityMissing(ViewerError):
    """The map view cannot render the requested kind of layer."""

    reason = "missing capability"


class RenderFailure(ViewerError):
    """A single layer failed to materialize on the map."""

    reason = "render failure"
