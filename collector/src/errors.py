"""
Error taxonomy for the collector.

Every error raised inside a device poll cycle derives from
:class:`CollectorError` so the orchestrator can report it with device
and stage context before moving on to the next tick.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for all collector errors."""


class DeviceUnreachable(CollectorError):
    """A device did not answer successfully within the request timeout.

    Raised for transport failures (connect errors, timeouts), non-2xx
    responses and bodies that are not a JSON object. The original
    exception is chained as ``__cause__``.

    Attributes:
        identity: Device address that was being queried.
        url: Full URL of the failed request.
    """

    def __init__(self, identity: str, url: str, reason: str) -> None:
        self.identity = identity
        self.url = url
        super().__init__(f"Failed to fetch {url} from {identity}: {reason}")


class MetadataUnresolved(CollectorError):
    """Metadata for a device could not be fetched (non-fatal)."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        super().__init__(f"Failed to get device info for {identity}: {reason}")


class StorageWriteFailed(CollectorError):
    """A storage backend could not persist an entry."""

    def __init__(self, backend: str, detail: str) -> None:
        self.backend = backend
        super().__init__(f"{backend} write failed: {detail}")


class StorageUnavailable(CollectorError):
    """A storage backend is unreachable, unwritable or not configured."""

    def __init__(self, backend: str, detail: str) -> None:
        self.backend = backend
        super().__init__(f"{backend} unavailable: {detail}")
