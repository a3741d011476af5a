"""
analyzer/progress.py

Fire-and-forget progress sinks.

A sink never blocks the pipeline and never raises into it: queue sinks drop
events when full and callback sinks log and swallow callback errors.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass

from app.logging_utils import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    progress: int

    def to_dict(self) -> dict[str, object]:
        return {"stage": self.stage, "progress": self.progress}


class ProgressSink:
    """
    Receives progress notifications. The default drops them.
    """

    def emit(self, event: ProgressEvent) -> None:
        return None


class NullProgressSink(ProgressSink):
    pass


class CallbackProgressSink(ProgressSink):
    def __init__(self, callback: Callable[[str, int], None]) -> None:
        self._callback = callback

    def emit(self, event: ProgressEvent) -> None:
        try:
            self._callback(event.stage, event.progress)
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "progress_callback_failed",
                stage=event.stage,
                error=str(exc),
            )


class QueueProgressSink(ProgressSink):
    """
    Puts events on a bounded queue without waiting.
    """

    def __init__(self, target: queue.Queue) -> None:
        self._queue = target
        self.dropped = 0

    def emit(self, event: ProgressEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            log_event(logger, logging.DEBUG, "progress_event_dropped", stage=event.stage)


class ProgressReporter:
    """
    Emits `(stage, percent)` to a sink, never letting the percentage go down.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self._sink = sink or NullProgressSink()
        self._last = 0
        self._lock = threading.Lock()

    @property
    def last(self) -> int:
        return self._last

    def report(self, stage: str, progress: float) -> None:
        with self._lock:
            value = max(self._last, min(100, int(progress)))
            self._last = value
        self._sink.emit(ProgressEvent(stage=stage, progress=value))
