"""
Shared test fixtures for collector tests.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
from pathlib import Path
from typing import Any

import pytest
from collector.src.device_client import DeviceMetadata
from collector.src.storage import StorageBackend

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# All CollectorSettings environment variable names, used for cleanup.
_ALL_COLLECTOR_ENV_VARS = (
    "DEVICES",
    "POLL_INTERVAL",
    "DEVICE_TIMEOUT_S",
    "DATA_PATH",
    "INFLUX_URL",
    "INFLUX_TOKEN",
    "INFLUX_ORG",
    "INFLUX_BUCKET",
    "INFLUX_ERROR_BUCKET",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_collector_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all collector env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_COLLECTOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> dict[str, str]:
    """Set the variables for a file-storage deployment."""
    env = {
        "DEVICES": "10.0.0.5, 10.0.0.9",
        "DATA_PATH": str(tmp_path / "data"),
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_influx(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set the variables for an InfluxDB deployment."""
    env = {
        "DEVICES": "10.0.0.5",
        "INFLUX_URL": "http://influxdb:8086",
        "INFLUX_TOKEN": "test-token",
        "INFLUX_ORG": "home",
        "INFLUX_BUCKET": "energy",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def hw_responses() -> dict:
    """Load HomeWizard fixture responses from JSON file."""
    return json.loads((FIXTURES_DIR / "hw_responses.json").read_text())


@pytest.fixture()
def p1_metadata(hw_responses: dict) -> DeviceMetadata:
    return DeviceMetadata.from_payload(hw_responses["p1_metadata"])


class RecordingStorage(StorageBackend):
    """In-memory backend that records every call."""

    name = "Recording"

    def __init__(self) -> None:
        self.writes: list[tuple[str, dict[str, Any], DeviceMetadata]] = []
        self.errors: list[tuple[str, BaseException | str]] = []
        self.closed = False

    def check_connection(self) -> bool:
        return True

    def write_measurement(
        self,
        identity: str,
        measurement: dict[str, Any],
        metadata: DeviceMetadata,
    ) -> None:
        self.writes.append((identity, measurement, metadata))

    def log_error(self, context: str, error: BaseException | str) -> None:
        self.errors.append((context, error))

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def recording_storage() -> RecordingStorage:
    return RecordingStorage()
