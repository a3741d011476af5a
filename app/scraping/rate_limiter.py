"""
Interval-based request rate limiter.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class IntervalRateLimiter:
    """
    Enforces a minimum interval between consecutive calls to `wait`.

    A caller reserves the next free slot while holding the lock and sleeps
    after releasing it, so the lock is never held across a sleep or the
    work that follows.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._next_slot: float | None = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until this caller's slot arrives. Returns the seconds slept.
        """

        with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.min_interval_seconds
            wait_seconds = slot - now

        if wait_seconds > 0:
            self._sleep(wait_seconds)
        return max(0.0, wait_seconds)
