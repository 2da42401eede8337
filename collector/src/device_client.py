"""
HomeWizard device client -- reads metadata and measurements via Local API v1.

Two single-attempt accessors:
- ``fetch_metadata()``: ``GET http://{host}/api/`` (product name, type, ...).
- ``fetch_measurements()``: ``GET http://{host}/api/v1/data``.

Every network error, timeout, non-2xx status or non-object JSON body is
raised as :class:`DeviceUnreachable` with the original exception chained.
Retrying is the caller's business.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from collector.src.errors import DeviceUnreachable

logger = logging.getLogger(__name__)

# Default request timeout in seconds.
_DEFAULT_TIMEOUT: float = 5.0

METADATA_PATH = "/api/"
MEASUREMENTS_PATH = "/api/v1/data"


@dataclass(frozen=True)
class DeviceMetadata:
    """Slow-changing descriptive information reported by a device.

    Attributes:
        product_name: Human-readable product name (e.g. ``"P1 meter"``).
        product_type: Product type code (e.g. ``"HWE-P1"``).
        extra: Any further fields the device reports (serial,
            firmware_version, api_version, ...).
    """

    product_name: str
    product_type: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DeviceMetadata:
        extra = {
            k: v
            for k, v in payload.items()
            if k not in ("product_name", "product_type")
        }
        return cls(
            product_name=str(payload.get("product_name") or "Unknown"),
            product_type=str(payload.get("product_type") or "unknown"),
            extra=extra,
        )

    def as_dict(self) -> dict[str, Any]:
        """Flatten back into the shape the device reported."""
        return {
            **self.extra,
            "product_name": self.product_name,
            "product_type": self.product_type,
        }


class DeviceClient:
    """Stateless HTTP accessor for HomeWizard devices.

    Args:
        timeout: HTTP request timeout in seconds. Defaults to 5.0.
    """

    def __init__(self, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    def fetch_metadata(self, identity: str) -> DeviceMetadata:
        """Fetch device metadata from ``http://{identity}/api/``.

        Raises:
            DeviceUnreachable: On a malformed address or any transport or HTTP failure.
        """
        return DeviceMetadata.from_payload(self._get_json(identity, METADATA_PATH))

    def fetch_measurements(self, identity: str) -> dict[str, Any]:
        """Fetch the current measurement record from ``/api/v1/data``.

        Raises:
            DeviceUnreachable: On a malformed address or any transport or HTTP failure.
        """
        return self._get_json(identity, MEASUREMENTS_PATH)

    def _get_json(self, identity: str, path: str) -> dict[str, Any]:
        url = f"http://{identity}{path}"

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(url)
                response.raise_for_status()
                payload = response.json()

        except httpx.HTTPStatusError as exc:
            raise DeviceUnreachable(
                identity, url, f"HTTP {exc.response.status_code}"
            ) from exc

        except httpx.TimeoutException as exc:
            raise DeviceUnreachable(
                identity, url, f"timed out after {self._timeout}s"
            ) from exc

        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DeviceUnreachable(identity, url, str(exc) or type(exc).__name__) from exc

        except ValueError as exc:
            raise DeviceUnreachable(identity, url, "invalid JSON body") from exc

        if not isinstance(payload, dict):
            raise DeviceUnreachable(
                identity, url, f"expected JSON object, got {type(payload).__name__}"
            )

        logger.debug("Fetched %s from %s", path, identity)
        return payload
