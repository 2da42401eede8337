"""
Per-device memoization of HomeWizard metadata.

The ``/api/`` metadata of a device practically never changes, so it is
fetched once per process and reused on every poll. A failed fetch is not
cached: the caller gets :data:`UNKNOWN_METADATA` and the next
``resolve()`` for that device tries the network again.

Each device's slot is only written by that device's own poll thread, so
no locking is needed.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging

from collector.src.device_client import DeviceClient, DeviceMetadata
from collector.src.errors import DeviceUnreachable, MetadataUnresolved

logger = logging.getLogger(__name__)

# Placeholder returned (never stored) when a metadata fetch fails.
UNKNOWN_METADATA = DeviceMetadata(product_name="Unknown", product_type="unknown")


class MetadataCache:
    """Cache of :class:`DeviceMetadata` keyed by device identity.

    Args:
        client: Device client used to fetch metadata on a cache miss.
    """

    def __init__(self, client: DeviceClient) -> None:
        self._client = client
        self._entries: dict[str, DeviceMetadata] = {}

    def resolve(self, identity: str) -> DeviceMetadata:
        """Return metadata for *identity*, fetching it on a cache miss.

        Never raises for an unreachable device; the sentinel
        :data:`UNKNOWN_METADATA` is returned instead and nothing is
        cached.
        """
        cached = self._entries.get(identity)
        if cached is not None:
            return cached

        try:
            metadata = self._fetch(identity)
        except MetadataUnresolved as exc:
            logger.warning("%s", exc)
            return UNKNOWN_METADATA

        self._entries[identity] = metadata
        logger.info(
            "Discovered device at %s: %s (%s)",
            identity,
            metadata.product_name,
            metadata.product_type,
        )
        return metadata

    def get(self, identity: str) -> DeviceMetadata | None:
        """Peek at the cached entry without touching the network."""
        return self._entries.get(identity)

    def _fetch(self, identity: str) -> DeviceMetadata:
        try:
            return self._client.fetch_metadata(identity)
        except DeviceUnreachable as exc:
            raise MetadataUnresolved(identity, str(exc)) from exc

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)
