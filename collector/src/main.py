"""
Collector entry point -- one poll thread per configured device.

Startup sequence:
1. Configure structured JSON logging.
2. Load and validate settings. Missing ``DEVICES`` or no usable storage
   configuration logs a diagnostic and exits with status 1 before any
   thread is created.
3. Select the storage backend (InfluxDB if fully configured, else files).
4. Probe the backend once. A failed probe is logged and ignored; the
   collector keeps running in degraded mode rather than crash-looping.
5. Install uncaught-exception hooks that report to the storage error
   channel on a best-effort basis before deferring to the default hook.
6. Start the orchestrator and block until SIGTERM/SIGINT.

Handles SIGTERM and SIGINT for graceful shutdown inside Docker:
- Stops every device loop via the orchestrator's shutdown event.
- Closes the storage backend.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
import signal
import sys
import threading
from types import FrameType, TracebackType

from pydantic import ValidationError

from collector.src.config import CollectorSettings
from collector.src.device_client import DeviceClient
from collector.src.errors import StorageUnavailable
from collector.src.logging_config import setup_logging
from collector.src.orchestrator import PollingOrchestrator
from collector.src.storage import StorageBackend, create_storage

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 1

# Orchestrator currently running, targeted by the signal handler.
_orchestrator: PollingOrchestrator | None = None


def load_settings() -> CollectorSettings | None:
    """Load settings, logging a readable diagnostic on failure.

    Returns:
        The validated settings, or ``None`` if configuration is invalid.
    """
    try:
        return CollectorSettings()
    except ValidationError as exc:
        logger.error("CONFIGURATION ERROR: %d problem(s) found", exc.error_count())
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]).upper()
            logger.error("  - %s: %s", location or "settings", error["msg"])
        logger.error(
            "Set DEVICES plus either INFLUX_URL, INFLUX_TOKEN, INFLUX_ORG, "
            "INFLUX_BUCKET or DATA_PATH in the environment or .env file."
        )
        return None


def check_storage(storage: StorageBackend) -> bool:
    """Run the startup connectivity diagnostic. Never fatal."""
    if storage.check_connection():
        logger.info("Startup Check Passed: %s is ready.", storage.name)
        return True
    logger.error(
        "Startup Check Failed: %s is not reachable/writable. Continuing anyway.",
        storage.name,
    )
    return False


def install_exception_hooks(storage: StorageBackend) -> None:
    """Report uncaught exceptions to *storage* before the default hooks run.

    Covers the main thread (``sys.excepthook``) and any other thread
    (``threading.excepthook``). The exception still surfaces afterwards.
    """
    previous_excepthook = sys.excepthook
    previous_threading_hook = threading.excepthook

    def _excepthook(
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            _record_uncaught(storage, "Uncaught Exception", exc)
        previous_excepthook(exc_type, exc, tb)

    def _threading_hook(args: threading.ExceptHookArgs) -> None:
        if args.exc_value is not None:
            name = args.thread.name if args.thread else "unknown"
            _record_uncaught(storage, f"Uncaught Exception in thread {name}", args.exc_value)
        previous_threading_hook(args)

    sys.excepthook = _excepthook
    threading.excepthook = _threading_hook


def _record_uncaught(storage: StorageBackend, context: str, exc: BaseException) -> None:
    logger.critical(
        "%s: %s", context, exc, exc_info=(type(exc), exc, exc.__traceback__)
    )
    try:
        storage.log_error(context, exc)
    except Exception:
        logger.exception("Failed to record uncaught exception in storage")


def _signal_handler(
    signum: int,
    _frame: FrameType | None,
) -> None:
    """Handle SIGTERM/SIGINT by stopping the orchestrator."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating graceful shutdown", sig_name)
    if _orchestrator is not None:
        _orchestrator.stop()


def main() -> int:
    """Collector entry point.

    Returns:
        Process exit status: 0 after a graceful shutdown,
        ``EXIT_CONFIG_ERROR`` if the collector refused to start.
    """
    global _orchestrator  # noqa: PLW0603

    setup_logging()

    settings = load_settings()
    if settings is None:
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level)

    try:
        storage = create_storage(settings)
    except StorageUnavailable as exc:
        logger.error("CONFIGURATION ERROR: %s", exc)
        return EXIT_CONFIG_ERROR

    devices = settings.device_list
    logger.info("Starting HomeWizard data capture")
    logger.info("Polling interval: %dms", settings.poll_interval)
    logger.info("Devices to poll: %s", ", ".join(devices))
    logger.info("Using storage provider: %s", storage.name)

    check_storage(storage)
    install_exception_hooks(storage)

    orchestrator = PollingOrchestrator(
        devices=devices,
        client=DeviceClient(timeout=settings.device_timeout_s),
        storage=storage,
        interval_s=settings.poll_interval_s,
    )
    _orchestrator = orchestrator

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    orchestrator.start()

    # Block until a signal stops the orchestrator.
    orchestrator.wait()

    logger.info("Shutdown requested, stopping poll threads")
    orchestrator.join(timeout=settings.device_timeout_s + 1)
    storage.close()
    _orchestrator = None
    logger.info("Collector shut down cleanly")
    return 0


def run() -> None:
    """Console-script wrapper that turns :func:`main` into an exit status."""
    sys.exit(main())


if __name__ == "__main__":
    run()
