"""
InfluxDB 2.x storage backend.

Every poll becomes one point:

- measurement: the device ``product_type`` (``homewizard_device`` if absent)
- tags: ``device``, ``product_name``, ``product_type``
- fields: one per measurement key, typed by value
  (bool -> boolean, int/float -> float, str -> string)
- time: the moment of the write

Operational errors go to a separate ``application_errors`` series,
tagged by ``context`` with ``message``/``stack`` string fields, in the
error bucket (the measurement bucket unless configured otherwise).

Without a URL no client is built and every operation is a no-op, so a
half-configured deployment behaves like the file backend with no path.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from collector.src.device_client import DeviceMetadata
from collector.src.errors import StorageUnavailable, StorageWriteFailed
from collector.src.storage import StorageBackend, describe_error

logger = logging.getLogger(__name__)

DEFAULT_MEASUREMENT = "homewizard_device"
ERROR_MEASUREMENT = "application_errors"

# String fields that are never written as point fields.
_EXCLUDED_STRING_FIELDS = frozenset({"wifi_ssid"})

# Substrings of transport errors that mean the server is not reachable at all.
_CONNECTION_HINTS = ("Connection refused", "ECONNREFUSED", "timed out", "ETIMEDOUT")


def build_measurement_point(
    identity: str,
    measurement: dict[str, Any],
    metadata: DeviceMetadata,
    ts: datetime,
) -> Point:
    """Map one measurement record onto an InfluxDB point.

    Values that are neither bool, number nor string (``None``, lists,
    nested objects) are skipped.
    """
    point = (
        Point(metadata.product_type or DEFAULT_MEASUREMENT)
        .tag("device", identity)
        .tag("product_name", metadata.product_name or "unknown")
        .tag("product_type", metadata.product_type or "unknown")
        .time(ts, WritePrecision.NS)
    )

    for key, value in measurement.items():
        # bool before int: bool is an int subclass.
        if isinstance(value, bool):
            point.field(key, value)
        elif isinstance(value, (int, float)):
            point.field(key, float(value))
        elif isinstance(value, str) and key not in _EXCLUDED_STRING_FIELDS:
            point.field(key, value)

    return point


def build_error_point(context: str, error: BaseException | str, ts: datetime) -> Point:
    message, stack = describe_error(error)
    return (
        Point(ERROR_MEASUREMENT)
        .tag("context", context)
        .field("message", message)
        .field("stack", stack)
        .time(ts, WritePrecision.NS)
    )


class InfluxStorage(StorageBackend):
    """Storage backend writing points to InfluxDB 2.x.

    Writes are synchronous; each device thread blocks only on its own
    write, and the underlying HTTP pool is shared safely across threads.

    Args:
        url: InfluxDB base URL. When empty the backend is inert.
        token: API token.
        org: Organization name or ID.
        bucket: Bucket for measurement points.
        error_bucket: Bucket for error points. Defaults to *bucket*.
        timeout_ms: HTTP timeout for InfluxDB requests.
    """

    name = "InfluxDB"

    def __init__(
        self,
        url: str | None,
        token: str | None,
        org: str | None,
        bucket: str | None,
        error_bucket: str | None = None,
        timeout_ms: int = 10_000,
    ) -> None:
        self._url = url
        self._org = org
        self._bucket = bucket
        self._error_bucket = error_bucket or bucket

        self._client: InfluxDBClient | None = None
        self._write_api = None
        if url:
            self._client = InfluxDBClient(
                url=url, token=token, org=org, timeout=timeout_ms
            )
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

    @property
    def configured(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # StorageBackend API
    # ------------------------------------------------------------------

    def check_connection(self) -> bool:
        if self._client is None:
            return False
        try:
            self._probe()
        except StorageUnavailable as exc:
            logger.error("%s", exc)
            logger.error(
                "Please check if InfluxDB is running and the URL is correct."
            )
            return False
        logger.info("Successfully connected to InfluxDB at %s", self._url)
        return True

    def write_measurement(
        self,
        identity: str,
        measurement: dict[str, Any],
        metadata: DeviceMetadata,
    ) -> None:
        if self._write_api is None:
            return
        point = build_measurement_point(identity, measurement, metadata, _utc_now())
        try:
            self._write(self._bucket, point)
        except StorageWriteFailed as exc:
            self._report_write_failure(exc)

    def log_error(self, context: str, error: BaseException | str) -> None:
        message, _ = describe_error(error)
        if self._write_api is None:
            logger.error("(No Influx) Error in %s: %s", context, message)
            return

        logger.error("Error in %s: %s", context, message)
        try:
            self._write(self._error_bucket, build_error_point(context, error, _utc_now()))
        except StorageWriteFailed as exc:
            self._report_write_failure(exc)

    def close(self) -> None:
        if self._client is None:
            return
        try:
            self._write_api.close()
            self._client.close()
        except Exception:
            logger.warning("Error closing InfluxDB client", exc_info=True)
        else:
            logger.info("InfluxDB client closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _probe(self) -> None:
        try:
            healthy = self._client.ping()
        except Exception as exc:
            raise StorageUnavailable(self.name, f"{self._url}: {exc}") from exc
        if not healthy:
            raise StorageUnavailable(self.name, f"{self._url} did not answer ping")

    def _write(self, bucket: str | None, point: Point) -> None:
        try:
            self._write_api.write(bucket=bucket, org=self._org, record=point)
        except Exception as exc:
            raise StorageWriteFailed(self.name, str(exc) or type(exc).__name__) from exc

    def _report_write_failure(self, exc: StorageWriteFailed) -> None:
        logger.error("%s", exc)
        if any(hint in str(exc) for hint in _CONNECTION_HINTS):
            logger.error(
                "CRITICAL: Unable to connect to InfluxDB at %s. Is it running?",
                self._url,
            )


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)
