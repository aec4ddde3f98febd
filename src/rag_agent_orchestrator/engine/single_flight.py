"""Scoped mutual exclusion for background jobs, keyed by job type."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class AlreadyRunning(RuntimeError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"A job for {key!r} is already running")


class SingleFlightGuard:
    """Allow at most one active holder per key.

    The critical sections never await, so a plain ``threading.Lock`` guards
    them whichever thread the caller runs on.
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._active:
                logger.warning("Duplicate execution blocked", extra={"job_key": key})
                return False
            self._active.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._active.discard(key)

    def is_running(self, key: str) -> bool:
        with self._lock:
            return key in self._active

