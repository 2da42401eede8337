"""
Polling orchestrator -- one independent poll thread per device.

Each :class:`DevicePoller` runs on its own daemon thread:

1. **Bootstrap**: resolve metadata through the shared cache (best effort).
2. **Immediate poll**: one poll cycle right away.
3. **Scheduled polls**: one cycle per ``interval_s`` tick, forever.

A poll cycle resolves metadata (a cache hit after the first success),
fetches measurements and hands both to the storage backend. Any failure
is caught at the cycle boundary, logged with device and stage, and sent
to ``storage.log_error``; the next tick runs as scheduled. A slow or dead
device only ever delays its own thread.

Ticks are placed on a fixed grid measured with ``time.monotonic()`` so
that poll duration does not drift the schedule. Ticks missed while a
cycle overran are skipped rather than queued.

:meth:`PollingOrchestrator.stop` sets a shared ``threading.Event`` that
interrupts every timer wait; this is the graceful shutdown path used by
the SIGTERM/SIGINT handlers. Without it the process simply runs until it
is killed.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Iterable

from collector.src.device_client import DeviceClient
from collector.src.errors import CollectorError
from collector.src.metadata_cache import MetadataCache
from collector.src.storage import StorageBackend

logger = logging.getLogger(__name__)

STAGE_METADATA = "metadata"
STAGE_MEASUREMENTS = "measurements"
STAGE_WRITE = "write"


def next_deadline(previous: float, interval_s: float, now: float) -> float:
    """Return the first tick on the ``previous + k * interval_s`` grid after *now*.

    >>> next_deadline(0.0, 5.0, 1.0)
    5.0
    >>> next_deadline(0.0, 5.0, 12.0)
    15.0
    """
    deadline = previous + interval_s
    if deadline <= now:
        missed = math.floor((now - deadline) / interval_s) + 1
        deadline += missed * interval_s
    return deadline


class DevicePoller:
    """Poll loop for a single device.

    Args:
        identity: Device address.
        client: Device client used for measurement fetches.
        cache: Metadata cache shared by all pollers.
        storage: Selected storage backend.
        interval_s: Seconds between scheduled polls.
        stop_event: Event that ends :meth:`run` when set.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        identity: str,
        client: DeviceClient,
        cache: MetadataCache,
        storage: StorageBackend,
        interval_s: float,
        stop_event: threading.Event,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.identity = identity
        self._client = client
        self._cache = cache
        self._storage = storage
        self._interval_s = interval_s
        self._stop_event = stop_event
        self._clock = clock

    def run(self) -> None:
        """Bootstrap, poll immediately, then poll on every tick until stopped."""
        try:
            self._cache.resolve(self.identity)
        except Exception as exc:
            logger.exception("Unexpected error resolving metadata for %s", self.identity)
            self._report(f"Bootstrap {self.identity}", exc)

        deadline = self._clock()
        while not self._stop_event.is_set():
            self.poll_once()
            now = self._clock()
            deadline = next_deadline(deadline, self._interval_s, now)
            self._stop_event.wait(timeout=deadline - now)

        logger.info("Stopped polling %s", self.identity)

    def poll_once(self) -> bool:
        """Run one poll cycle.

        Returns:
            ``True`` if a measurement was handed to storage, ``False`` if
            the cycle failed (the failure has already been reported).
        """
        stage = STAGE_METADATA
        try:
            metadata = self._cache.resolve(self.identity)

            stage = STAGE_MEASUREMENTS
            measurement = self._client.fetch_measurements(self.identity)

            stage = STAGE_WRITE
            self._storage.write_measurement(self.identity, measurement, metadata)

        except CollectorError as exc:
            logger.error("Failed to poll %s (%s): %s", self.identity, stage, exc)
            self._report(f"Polling {self.identity} ({stage})", exc)
            return False

        except Exception as exc:
            logger.exception("Unexpected error polling %s (%s)", self.identity, stage)
            self._report(f"Polling {self.identity} ({stage})", exc)
            return False

        logger.info("Data pushed for %s", self.identity)
        return True

    def _report(self, context: str, error: BaseException) -> None:
        # A broken error channel must not end the loop.
        try:
            self._storage.log_error(context, error)
        except Exception:
            logger.exception("Storage failed to record error for %s", context)


class PollingOrchestrator:
    """Owns the metadata cache and one :class:`DevicePoller` thread per device.

    Duplicate device addresses are polled once.

    Args:
        devices: Device addresses in configuration order.
        client: Device client shared by all pollers.
        storage: Storage backend shared by all pollers.
        interval_s: Seconds between scheduled polls of each device.
        cache: Metadata cache; a fresh one is created when omitted.
    """

    def __init__(
        self,
        devices: Iterable[str],
        client: DeviceClient,
        storage: StorageBackend,
        interval_s: float,
        cache: MetadataCache | None = None,
    ) -> None:
        self._stop_event = threading.Event()
        self._cache = cache if cache is not None else MetadataCache(client)
        self._pollers = [
            DevicePoller(
                identity=identity,
                client=client,
                cache=self._cache,
                storage=storage,
                interval_s=interval_s,
                stop_event=self._stop_event,
            )
            for identity in dict.fromkeys(devices)
        ]
        self._threads: list[threading.Thread] = []

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    @property
    def pollers(self) -> list[DevicePoller]:
        return list(self._pollers)

    @property
    def threads(self) -> list[threading.Thread]:
        return list(self._threads)

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        """Start one daemon thread per device."""
        if self._threads:
            raise RuntimeError("PollingOrchestrator already started")

        for poller in self._pollers:
            thread = threading.Thread(
                target=poller.run,
                daemon=True,
                name=f"poll-{poller.identity}",
            )
            self._threads.append(thread)
            thread.start()

        logger.info("Started %d device poll thread(s)", len(self._threads))

    def stop(self) -> None:
        """Ask every poll loop to exit after its current cycle."""
        self._stop_event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`stop` is called or *timeout* elapses.

        Returns:
            ``True`` if stop was requested.
        """
        return self._stop_event.wait(timeout=timeout)

    def join(self, timeout: float = 5.0) -> None:
        """Wait up to *timeout* seconds per thread for the loops to exit."""
        for thread in self._threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Thread %s did not stop within %.1fs", thread.name, timeout)
