"""
Local file storage backend: one pretty-printed JSON file per poll.

Layout under ``base_path``::

    {base_path}/
        errors.log                                  # appended error lines
        {product_type}/                             # sanitized, one per category
            2026-10-19T10-00-00.123456+00-00_10.0.0.5.json

Each file holds ``timestamp``, ``device_ip``, ``device_info`` and
``measurements``. Files are created exclusively, so two writes never
share a file even when their timestamps collide.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from collector.src.device_client import DeviceMetadata
from collector.src.errors import StorageUnavailable, StorageWriteFailed
from collector.src.storage import StorageBackend, describe_error

logger = logging.getLogger(__name__)

ERROR_LOG_NAME = "errors.log"

_UNSAFE_CATEGORY_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

# Upper bound on "_N" suffixes tried when a filename is already taken.
_MAX_NAME_ATTEMPTS = 100


def category_dir_name(product_type: str | None) -> str:
    """Map a product type to a safe single path segment."""
    return _UNSAFE_CATEGORY_CHARS.sub("_", product_type or "unknown_device")


class FileStorage(StorageBackend):
    """Storage backend writing JSON files below *base_path*.

    The base directory is created on construction; a failure there is
    logged and reported again by :meth:`check_connection`.

    Args:
        base_path: Root directory for data files and ``errors.log``.
    """

    name = "Local File Storage"

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._error_log = self._base_path / ERROR_LOG_NAME
        self._error_lock = threading.Lock()

        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Error creating base data path %s", self._base_path)

    @property
    def base_path(self) -> Path:
        return self._base_path

    # ------------------------------------------------------------------
    # StorageBackend API
    # ------------------------------------------------------------------

    def check_connection(self) -> bool:
        try:
            self._probe()
        except StorageUnavailable as exc:
            logger.error("%s", exc)
            return False
        logger.info("Local storage is writable at %s", self._base_path)
        return True

    def write_measurement(
        self,
        identity: str,
        measurement: dict[str, Any],
        metadata: DeviceMetadata,
    ) -> None:
        try:
            path = self._write_entry(identity, measurement, metadata)
        except StorageWriteFailed as exc:
            logger.error("%s", exc)
            return
        logger.debug("Wrote data to %s", path)

    def log_error(self, context: str, error: BaseException | str) -> None:
        message, _ = describe_error(error)
        logger.error("Error in %s: %s", context, message)

        # errors.log holds one entry per line.
        flat = " ".join(message.splitlines())
        line = f"{_utc_now().isoformat()} [{context}] {flat}\n"
        try:
            with self._error_lock, self._error_log.open("a", encoding="utf-8") as fh:
                fh.write(line)
        except OSError:
            logger.exception("Error writing to error log %s", self._error_log)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _probe(self) -> None:
        if not self._base_path.is_dir():
            raise StorageUnavailable(
                self.name, f"{self._base_path} is not a directory"
            )
        if not os.access(self._base_path, os.W_OK):
            raise StorageUnavailable(
                self.name, f"{self._base_path} is not writable"
            )

    def _write_entry(
        self,
        identity: str,
        measurement: dict[str, Any],
        metadata: DeviceMetadata,
    ) -> Path:
        """Write one entry and return the path of the new file.

        Raises:
            StorageWriteFailed: If the directory or file cannot be created.
        """
        timestamp = _utc_now().isoformat(timespec="microseconds")
        category_dir = self._base_path / category_dir_name(metadata.product_type)
        stem = "_".join(
            (
                timestamp.replace(":", "-"),
                _UNSAFE_FILENAME_CHARS.sub("_", identity),
            )
        )

        payload = {
            "timestamp": timestamp,
            "device_ip": identity,
            "device_info": metadata.as_dict(),
            "measurements": measurement,
        }

        try:
            content = json.dumps(payload, indent=2)
        except (TypeError, ValueError) as exc:
            raise StorageWriteFailed(
                self.name, f"entry for {identity} is not serializable: {exc}"
            ) from exc

        try:
            category_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageWriteFailed(
                self.name, f"error creating directory {category_dir}: {exc}"
            ) from exc

        for attempt in range(_MAX_NAME_ATTEMPTS):
            name = f"{stem}.json" if attempt == 0 else f"{stem}_{attempt}.json"
            path = category_dir / name
            try:
                fh = path.open("x", encoding="utf-8")
            except FileExistsError:
                continue
            except OSError as exc:
                raise StorageWriteFailed(
                    self.name, f"error writing file {path}: {exc}"
                ) from exc

            try:
                with fh:
                    fh.write(content)
            except OSError as exc:
                self._discard(path)
                raise StorageWriteFailed(
                    self.name, f"error writing file {path}: {exc}"
                ) from exc
            return path

        raise StorageWriteFailed(
            self.name, f"no free filename for {stem} in {category_dir}"
        )

    def _discard(self, path: Path) -> None:
        """Remove a partially written entry so readers never see truncated JSON."""
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove partial file %s", path)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)
