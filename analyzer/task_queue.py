"""
analyzer/task_queue.py

Rate-limited, order-preserving task queue for per-page model calls.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from app.scraping.rate_limiter import IntervalRateLimiter

T = TypeVar("T")
R = TypeVar("R")


class RateLimitedTaskQueue:
    """
    Runs one callable per item with bounded concurrency.

    Task starts are spaced by the rate limiter; results come back in input
    order regardless of completion order.
    """

    def __init__(self, *, concurrency: int, rate_limiter: IntervalRateLimiter) -> None:
        self.concurrency = max(1, concurrency)
        self.rate_limiter = rate_limiter

    def map(self, func: Callable[[T], R], items: Sequence[T]) -> list[R]:
        if not items:
            return []

        def run(item: T) -> R:
            self.rate_limiter.wait()
            return func(item)

        with ThreadPoolExecutor(
            max_workers=min(self.concurrency, len(items)),
            thread_name_prefix="competitor-analysis",
        ) as executor:
            futures = [executor.submit(run, item) for item in items]
            return [future.result() for future in futures]
