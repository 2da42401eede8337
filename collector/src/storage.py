"""
Storage backend contract and one-time backend selection.

Two interchangeable implementations exist:
- :class:`~collector.src.file_storage.FileStorage`: one JSON file per poll.
- :class:`~collector.src.influx_storage.InfluxStorage`: one InfluxDB point
  per poll.

The backend is chosen once by :func:`create_storage` before polling starts
and injected into the orchestrator, which only ever talks to the abstract
interface below.

Contract shared by both variants:
- ``check_connection()`` is a best-effort probe and never raises.
- ``write_measurement()`` never raises; a lost write is logged and dropped.
- ``log_error()`` never raises and writes to a channel separate from the
  measurements.
- All three are safe to call concurrently from several device threads.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import traceback
from abc import ABC, abstractmethod
from typing import Any

from collector.src.config import CollectorSettings
from collector.src.device_client import DeviceMetadata
from collector.src.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Destination for measurement entries and operational errors."""

    #: Human-readable backend name used in log messages.
    name: str = "storage"

    @abstractmethod
    def check_connection(self) -> bool:
        """Probe reachability/writability.

        Returns:
            ``True`` if the backend looks usable, ``False`` otherwise.
        """

    @abstractmethod
    def write_measurement(
        self,
        identity: str,
        measurement: dict[str, Any],
        metadata: DeviceMetadata,
    ) -> None:
        """Persist one entry stamped with the current time.

        Args:
            identity: Address of the device that produced *measurement*.
            measurement: Field name to number/boolean/string mapping.
            metadata: Metadata of the device (possibly the sentinel).
        """

    @abstractmethod
    def log_error(self, context: str, error: BaseException | str) -> None:
        """Record an operational error on the backend's error channel.

        Args:
            context: Where the error happened (e.g. ``"Polling 10.0.0.5"``).
            error: The exception, or a plain message.
        """

    def close(self) -> None:
        """Release backend resources. Called once on graceful shutdown."""


def describe_error(error: BaseException | str) -> tuple[str, str]:
    """Split *error* into a one-line message and a formatted traceback.

    The traceback is an empty string for plain messages and for
    exceptions that were never raised.
    """
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
        stack = ""
        if error.__traceback__ is not None:
            stack = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        return message, stack
    return str(error), ""


def create_storage(settings: CollectorSettings) -> StorageBackend:
    """Build the storage backend selected by *settings*.

    A complete InfluxDB configuration takes priority over ``DATA_PATH``.

    Raises:
        StorageUnavailable: If neither backend is configured.
    """
    if settings.use_influx:
        from collector.src.influx_storage import InfluxStorage

        return InfluxStorage(
            url=settings.influx_url,
            token=settings.influx_token,
            org=settings.influx_org,
            bucket=settings.influx_bucket,
            error_bucket=settings.error_bucket,
        )

    if settings.data_path:
        from collector.src.file_storage import FileStorage

        return FileStorage(base_path=settings.data_path)

    raise StorageUnavailable(
        "storage", "neither InfluxDB configuration nor DATA_PATH is set"
    )
