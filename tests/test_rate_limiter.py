"""
tests/test_rate_limiter.py

Pytest unit tests for the interval rate limiter and the rate-limited task
queue that paces per-competitor model calls.

Coverage
--------
- First call never sleeps; later calls are spaced by the interval
- Elapsed time counts toward the interval
- Zero interval never sleeps
- Task queue preserves input order, paces each task and propagates errors
"""

from __future__ import annotations

import threading
import time

import pytest

from analyzer.task_queue import RateLimitedTaskQueue
from app.scraping.rate_limiter import IntervalRateLimiter
from tests.fakes import FakeClock


class SleepingClock(FakeClock):
    """Clock whose `sleep` advances time instead of blocking."""

    def __init__(self) -> None:
        super().__init__(start=100.0)
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


class TestIntervalRateLimiter:
    def test_spacing(self) -> None:
        clock = SleepingClock()
        limiter = IntervalRateLimiter(min_interval_seconds=0.5, clock=clock, sleep=clock.sleep)

        assert limiter.wait() == 0.0
        assert limiter.wait() == pytest.approx(0.5)
        assert limiter.wait() == pytest.approx(0.5)
        assert clock.sleeps == [pytest.approx(0.5), pytest.approx(0.5)]

    def test_elapsed_time_counts(self) -> None:
        clock = SleepingClock()
        limiter = IntervalRateLimiter(min_interval_seconds=1.0, clock=clock, sleep=clock.sleep)

        limiter.wait()
        clock.advance(0.75)
        assert limiter.wait() == pytest.approx(0.25)
        clock.advance(5)
        assert limiter.wait() == 0.0

    def test_zero_interval(self) -> None:
        clock = SleepingClock()
        limiter = IntervalRateLimiter(min_interval_seconds=0.0, clock=clock, sleep=clock.sleep)
        for _ in range(3):
            limiter.wait()
        assert clock.sleeps == []

    def test_negative_interval_is_clamped(self) -> None:
        assert IntervalRateLimiter(min_interval_seconds=-1).min_interval_seconds == 0.0


class TestRateLimitedTaskQueue:
    def test_results_in_input_order(self) -> None:
        def work(item: int) -> int:
            time.sleep(0.01 * (5 - item))
            return item * 10

        queue = RateLimitedTaskQueue(
            concurrency=4,
            rate_limiter=IntervalRateLimiter(min_interval_seconds=0.0),
        )
        assert queue.map(work, [1, 2, 3, 4]) == [10, 20, 30, 40]

    def test_every_task_waits_for_a_slot(self) -> None:
        clock = SleepingClock()
        limiter = IntervalRateLimiter(min_interval_seconds=0.5, clock=clock, sleep=clock.sleep)
        queue = RateLimitedTaskQueue(concurrency=1, rate_limiter=limiter)

        assert queue.map(str, [1, 2, 3]) == ["1", "2", "3"]
        assert len(clock.sleeps) == 2

    def test_concurrency_one_runs_sequentially(self) -> None:
        active = 0
        peak = 0
        lock = threading.Lock()

        def work(item: int) -> int:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.005)
            with lock:
                active -= 1
            return item

        queue = RateLimitedTaskQueue(
            concurrency=1,
            rate_limiter=IntervalRateLimiter(min_interval_seconds=0.0),
        )
        queue.map(work, list(range(5)))
        assert peak == 1

    def test_errors_propagate(self) -> None:
        def work(item: int) -> int:
            if item == 2:
                raise ValueError("bad item")
            return item

        queue = RateLimitedTaskQueue(
            concurrency=2,
            rate_limiter=IntervalRateLimiter(min_interval_seconds=0.0),
        )
        with pytest.raises(ValueError, match="bad item"):
            queue.map(work, [1, 2, 3])

    def test_empty_input(self) -> None:
        queue = RateLimitedTaskQueue(
            concurrency=1,
            rate_limiter=IntervalRateLimiter(min_interval_seconds=0.0),
        )
        assert queue.map(str, []) == []
