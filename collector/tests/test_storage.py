"""
Unit tests for storage backend selection and error description.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from unittest.mock import MagicMock, patch

import pytest
from collector.src.config import CollectorSettings
from collector.src.errors import StorageUnavailable
from collector.src.file_storage import FileStorage
from collector.src.influx_storage import InfluxStorage
from collector.src.storage import create_storage, describe_error


class TestCreateStorage:
    """The backend is chosen from the settings, InfluxDB first."""

    def test_file_storage_when_only_data_path(self, env_vars_file: dict[str, str]) -> None:
        storage = create_storage(CollectorSettings())

        assert isinstance(storage, FileStorage)
        assert str(storage.base_path) == env_vars_file["DATA_PATH"]

    def test_influx_when_configured(self, env_vars_influx: dict[str, str]) -> None:
        with patch("collector.src.influx_storage.InfluxDBClient"):
            storage = create_storage(CollectorSettings())

        assert isinstance(storage, InfluxStorage)

    def test_influx_takes_priority_over_data_path(
        self,
        env_vars_influx: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        tmp_path,
    ) -> None:
        monkeypatch.setenv("DATA_PATH", str(tmp_path / "data"))

        with patch("collector.src.influx_storage.InfluxDBClient"):
            storage = create_storage(CollectorSettings())

        assert isinstance(storage, InfluxStorage)

    def test_error_bucket_passed_through(
        self, env_vars_influx: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("INFLUX_ERROR_BUCKET", "errors")

        with patch("collector.src.influx_storage.InfluxDBClient") as client_cls:
            storage = create_storage(CollectorSettings())
            storage.log_error("ctx", "msg")

        write_api = client_cls.return_value.write_api.return_value
        assert write_api.write.call_args.kwargs["bucket"] == "errors"

    def test_nothing_configured_raises(self) -> None:
        settings = MagicMock(spec=CollectorSettings)
        settings.use_influx = False
        settings.data_path = None

        with pytest.raises(StorageUnavailable):
            create_storage(settings)


class TestDescribeError:
    def test_plain_string(self) -> None:
        assert describe_error("oops") == ("oops", "")

    def test_unraised_exception(self) -> None:
        assert describe_error(RuntimeError("boom")) == ("boom", "")

    def test_empty_message_uses_type_name(self) -> None:
        message, _ = describe_error(TimeoutError())
        assert message == "TimeoutError"

    def test_raised_exception_has_stack(self) -> None:
        try:
            raise KeyError("power_w")
        except KeyError as exc:
            message, stack = describe_error(exc)

        assert message == "'power_w'"
        assert stack.startswith("Traceback")
        assert "KeyError" in stack
