"""
app/services/analysis_service.py

Service orchestration for SEO analysis runs, blocking and streamed.
"""

from __future__ import annotations

import json
import logging
import queue
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any

from analyzer.orchestrator import AnalysisOrchestrator
from analyzer.progress import ProgressEvent, ProgressSink, QueueProgressSink
from analyzer.types import AnalysisReport, AnalysisRequest
from app.cache.base import CacheBackend
from app.config import (
    PipelineSettings,
    get_cache_settings,
    get_llm_settings,
    get_pipeline_settings,
    get_scrape_settings,
    get_search_settings,
)
from app.errors import ModelError, RequestValidationError, format_error_response
from app.logging_utils import log_event
from app.reporting.markdown import render_markdown_report
from app.scraping.fetcher import PageFetcher
from app.scraping.page_scraper import PageScraper
from app.scraping.rate_limiter import IntervalRateLimiter
from app.search.serpapi import SerpApiSearchProvider
from llm_analysis.adapter import BaseLLMAdapter, build_adapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str], BaseLLMAdapter]

PROGRESS_EVENT = "progress"
COMPLETE_EVENT = "complete"
ERROR_EVENT = "error"

_ERROR_STATUS_CODES = {
    "validation": 400,
    "pipeline": 422,
    "timeout": 504,
}


def status_code_for(error_type: str) -> int:
    return _ERROR_STATUS_CODES.get(error_type, 500)


def format_sse(event: str, data: dict[str, Any]) -> str:
    """
    Encode one server-sent event frame.
    """

    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


@dataclass(frozen=True)
class AnalysisOutcome:
    report: AnalysisReport
    markdown: str

    def to_payload(self) -> dict[str, Any]:
        return {"report": self.report.to_dict(), "markdown": self.markdown}


def terminal_event(future: Future) -> tuple[str, dict[str, Any]]:
    """
    `complete` or `error` event for a finished run.
    """

    exc = future.exception()
    if exc is not None:
        return ERROR_EVENT, format_error_response(exc)
    return COMPLETE_EVENT, future.result().to_payload()


class AnalysisRun:
    """
    One in-flight analysis: a droppable progress queue plus a completion
    future. Abandoning the event iterator never cancels the future.
    """

    def __init__(
        self,
        *,
        request: AnalysisRequest,
        events: queue.Queue,
        sink: QueueProgressSink,
        future: Future,
    ) -> None:
        self.request = request
        self.future = future
        self._events = events
        self._sink = sink

    @property
    def dropped_events(self) -> int:
        return self._sink.dropped

    def events(self, *, poll_seconds: float = 0.25) -> Iterator[tuple[str, dict[str, Any]]]:
        """
        Yield `progress` events until the run finishes, then exactly one
        terminal `complete` or `error` event.
        """

        while not self.future.done():
            try:
                event: ProgressEvent = self._events.get(timeout=poll_seconds)
            except queue.Empty:
                continue
            yield PROGRESS_EVENT, event.to_dict()

        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            yield PROGRESS_EVENT, event.to_dict()

        yield terminal_event(self.future)


class AnalysisService:
    """
    Validates requests and runs them through the orchestrator.
    """

    def __init__(
        self,
        *,
        orchestrator: AnalysisOrchestrator,
        adapter_factory: AdapterFactory,
        settings: PipelineSettings,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._adapter_factory = adapter_factory
        self._settings = settings
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.stream_workers,
            thread_name_prefix="analysis",
        )

    def validate(self, keyword: Any, target_url: Any, model: Any) -> AnalysisRequest:
        return AnalysisRequest.create(keyword, target_url, model)

    def analyze(
        self,
        request: AnalysisRequest,
        *,
        progress_sink: ProgressSink | None = None,
    ) -> AnalysisOutcome:
        """
        Run the pipeline to completion on the calling thread.
        """

        adapter = self._adapter_for(request)
        return self._execute(request, adapter, progress_sink)

    def start(self, request: AnalysisRequest) -> AnalysisRun:
        """
        Submit the pipeline to the worker pool and return its run handle.

        Raises:
            RequestValidationError: When no adapter exists for the model,
                before any work is scheduled.
        """

        adapter = self._adapter_for(request)
        events: queue.Queue = queue.Queue(maxsize=self._settings.progress_queue_size)
        sink = QueueProgressSink(events)
        future = self._executor.submit(self._execute, request, adapter, sink)
        return AnalysisRun(request=request, events=events, sink=sink, future=future)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _adapter_for(self, request: AnalysisRequest) -> BaseLLMAdapter:
        try:
            return self._adapter_factory(request.model_id)
        except ModelError as exc:
            raise RequestValidationError(
                f"Model '{request.model_id}' is not available: {exc.message}",
                field="model",
            ) from exc

    def _execute(
        self,
        request: AnalysisRequest,
        adapter: BaseLLMAdapter,
        progress_sink: ProgressSink | None,
    ) -> AnalysisOutcome:
        report = self._orchestrator.run(request, adapter=adapter, progress_sink=progress_sink)
        outcome = AnalysisOutcome(report=report, markdown=render_markdown_report(report))
        log_event(
            logger,
            logging.INFO,
            "analysis_outcome_ready",
            keyword=request.keyword,
            degraded=report.is_degraded,
        )
        return outcome


def stream_events(run: AnalysisRun) -> Iterator[str]:
    for event, data in run.events():
        yield format_sse(event, data)


def build_analysis_service(cache: CacheBackend) -> AnalysisService:
    """
    Wire fetcher, scraper, search provider and orchestrator from settings.
    """

    cache_settings = get_cache_settings()
    scrape_settings = get_scrape_settings()
    pipeline_settings = get_pipeline_settings()

    scraper = PageScraper(
        fetcher=PageFetcher(settings=scrape_settings),
        cache=cache,
        cache_settings=cache_settings,
        rate_limiter=IntervalRateLimiter(
            min_interval_seconds=scrape_settings.rate_limit_delay_seconds
        ),
        content_char_limit=scrape_settings.content_char_limit,
    )
    search_provider = SerpApiSearchProvider(
        settings=get_search_settings(),
        cache=cache,
        cache_settings=cache_settings,
    )
    orchestrator = AnalysisOrchestrator(
        search_provider=search_provider,
        scraper=scraper,
        settings=pipeline_settings,
    )
    return AnalysisService(
        orchestrator=orchestrator,
        adapter_factory=partial(build_adapter, settings=get_llm_settings()),
        settings=pipeline_settings,
    )
