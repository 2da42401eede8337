"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Either a complete InfluxDB configuration or a local ``DATA_PATH`` must be
present; InfluxDB wins when both are set. Validation failures surface as
``pydantic.ValidationError`` and are fatal at startup.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

# Environment variables that together make the InfluxDB backend usable.
INFLUX_REQUIRED_VARS: tuple[str, ...] = (
    "INFLUX_URL",
    "INFLUX_TOKEN",
    "INFLUX_ORG",
    "INFLUX_BUCKET",
)

_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class CollectorSettings(BaseSettings):
    """Collector configuration.

    Attributes:
        devices: Comma-separated device addresses (IP or hostname).
        poll_interval: Milliseconds between polls of each device.
        device_timeout_s: Per-request timeout when talking to a device.
        data_path: Base directory for the file storage backend.
        influx_url: InfluxDB 2.x base URL.
        influx_token: InfluxDB API token.
        influx_org: InfluxDB organization.
        influx_bucket: Bucket receiving measurement points.
        influx_error_bucket: Bucket receiving error points. Defaults to
            ``influx_bucket`` when not set.
        log_level: Root log level name.
    """

    devices: str
    poll_interval: int = 5000
    device_timeout_s: float = 5.0
    data_path: str | None = None
    influx_url: str | None = None
    influx_token: str | None = None
    influx_org: str | None = None
    influx_bucket: str | None = None
    influx_error_bucket: str | None = None
    log_level: str = "INFO"

    @field_validator("devices")
    @classmethod
    def devices_must_not_be_empty(cls, v: str) -> str:
        """Reject a device list without a single non-blank entry."""
        if not [d for d in v.split(",") if d.strip()]:
            raise ValueError("DEVICES must list at least one device address")
        return v

    @field_validator("poll_interval")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least 100 milliseconds."""
        if v < 100:
            raise ValueError("POLL_INTERVAL must be >= 100 (milliseconds)")
        return v

    @field_validator("device_timeout_s")
    @classmethod
    def device_timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("DEVICE_TIMEOUT_S must be > 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Normalize LOG_LEVEL and reject unknown level names."""
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _storage_must_be_configured(self) -> "CollectorSettings":
        """Require a complete InfluxDB configuration or a DATA_PATH."""
        if not self.use_influx and not self.data_path:
            raise ValueError(
                "Storage backend not configured. Provide either InfluxDB "
                f"configuration ({', '.join(INFLUX_REQUIRED_VARS)}) or a "
                "local file storage path (DATA_PATH)."
            )
        return self

    @property
    def device_list(self) -> list[str]:
        """Device addresses, stripped, in configuration order."""
        return [d.strip() for d in self.devices.split(",") if d.strip()]

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval / 1000

    @property
    def use_influx(self) -> bool:
        """True when every InfluxDB connection setting is present."""
        return all(
            (
                self.influx_url,
                self.influx_token,
                self.influx_org,
                self.influx_bucket,
            )
        )

    @property
    def error_bucket(self) -> str | None:
        return self.influx_error_bucket or self.influx_bucket

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
