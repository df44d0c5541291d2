# Overview: Periodic in-process cleanup of rate-limit keys and idle sessions.

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


def run_sweep(*, rate_limiters, sessions) -> dict:
    """
    One cleanup pass. Returns counts of what was removed.
    """
    removed_keys = sum(limiter.sweep() for limiter in rate_limiters)
    removed_sessions = sessions.purge_expired()
    return {"rate_limit_keys": removed_keys, "sessions": removed_sessions}


class MaintenanceSweeper:
    """
    Daemon thread that calls sweep_fn every interval_seconds, independent of
    request traffic. stop() wakes it immediately.
    """

    def __init__(self, sweep_fn: Callable[[], dict], interval_seconds: float, *, log: logging.Logger | None = None):
        self._sweep_fn = sweep_fn
        self.interval_seconds = interval_seconds
        self._log = log or logger
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running or self.interval_seconds <= 0:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="storefront-maintenance", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> dict:
        result = self._sweep_fn()
        self.runs += 1
        if any(result.values()):
            self._log.info("Maintenance sweep removed %s", result)
        return result

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                # Keep the thread alive; the next interval retries.
                self._log.exception("Maintenance sweep failed")
