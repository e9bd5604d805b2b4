"""
Periodic snapshot refresh.

`SnapshotScheduler` calls a compute function every `interval` seconds and keeps
the most recent successful result. Ticks never overlap: a tick that fires while
the previous computation is still running is skipped. A failed tick is logged
and leaves the previously cached snapshot in place.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Callable, Generic, Optional, TypeVar

from recon_engine.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

SHUTDOWN_JOIN_SECONDS = 30.0


class SnapshotScheduler(Generic[T]):
    def __init__(self, compute_fn: Callable[[], T], interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._compute_fn = compute_fn
        self.interval = interval
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._inflight: Optional[threading.Thread] = None
        self._last: Optional[T] = None
        self._last_success_at: Optional[datetime] = None
        self._last_error: Optional[BaseException] = None
        self.ticks_run = 0
        self.ticks_skipped = 0
        self.ticks_failed = 0

    @property
    def last_snapshot(self) -> Optional[T]:
        with self._state_lock:
            return self._last

    @property
    def last_success_at(self) -> Optional[datetime]:
        with self._state_lock:
            return self._last_success_at

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._state_lock:
            return self._last_error

    def run_once(self) -> T:
        """Compute synchronously and cache the result; errors propagate."""
        result = self._compute_fn()
        with self._state_lock:
            self._last = result
            self._last_success_at = datetime.now(timezone.utc)
            self._last_error = None
        return result

    def tick(self) -> bool:
        """
        Run one refresh unless one is already in flight.

        Returns True when a computation ran and succeeded.
        """
        if not self._run_lock.acquire(blocking=False):
            self._skip()
            return False
        try:
            self.ticks_run += 1
            self.run_once()
            return True
        except Exception as exc:  # noqa: BLE001 - keep the cached snapshot and retry next tick
            self.ticks_failed += 1
            with self._state_lock:
                self._last_error = exc
            log.exception(
                "[SCHEDULER] Refresh failed; keeping last good snapshot",
                extra={"error_type": type(exc).__name__},
            )
            return False
        finally:
            self._run_lock.release()

    def _skip(self) -> None:
        with self._state_lock:
            self.ticks_skipped += 1
        log.info("[SCHEDULER] Previous refresh still running; tick skipped")

    def run_forever(
        self,
        stop_event: Optional[threading.Event] = None,
        join_timeout: float = SHUTDOWN_JOIN_SECONDS,
    ) -> None:
        """
        Tick on a fixed cadence until stopped.

        Each tick runs on its own daemon thread so a slow computation does not
        delay the cadence; a tick due while the previous one is still running
        is skipped. A caller-supplied `stop_event` becomes the scheduler's own
        stop event, so both `stop_event.set()` and `stop()` wake the loop.
        Before returning, the in-flight refresh is joined for up to
        `join_timeout` seconds.
        """
        with self._state_lock:
            if stop_event is not None:
                if self._stop.is_set():
                    stop_event.set()
                self._stop = stop_event
            stop = self._stop
        log.info("[SCHEDULER START]", extra={"interval_seconds": self.interval})
        next_at = time.monotonic()
        while not stop.is_set():
            if self._inflight is not None and self._inflight.is_alive():
                self._skip()
            else:
                self._inflight = threading.Thread(target=self.tick, name="snapshot-refresh", daemon=True)
                self._inflight.start()
            next_at += self.interval
            stop.wait(timeout=max(0.0, next_at - time.monotonic()))

        inflight = self._inflight
        if inflight is not None:
            inflight.join(join_timeout)
            if inflight.is_alive():
                log.warning(
                    "[SCHEDULER] Refresh still running at shutdown",
                    extra={"join_timeout_seconds": join_timeout},
                )
        log.info(
            "[SCHEDULER STOP]",
            extra={
                "ticks_run": self.ticks_run,
                "ticks_skipped": self.ticks_skipped,
                "ticks_failed": self.ticks_failed,
            },
        )

    def stop(self) -> None:
        with self._state_lock:
            self._stop.set()


__all__ = ["SnapshotScheduler"]
