"""
analyzer/orchestrator.py

Runs the analysis graph for one request and turns its final state into an
`AnalysisReport` or a pipeline error.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from analyzer.context import FATAL, TIMEOUT, PageSource, PipelineContext, SearchProvider
from analyzer.deadline import Deadline
from analyzer.graph import build_graph
from analyzer.progress import ProgressReporter, ProgressSink
from analyzer.state import (
    COMPETITORS,
    CONTENT_ORIGIN,
    INTENT,
    PATTERNS,
    RECOMMENDATIONS,
    SEARCH_SCRAPE,
    PipelineState,
)
from analyzer.types import AnalysisReport, AnalysisRequest
from app.config import PipelineSettings
from app.errors import PipelineFatalError, PipelineTimeoutError
from app.logging_utils import log_event
from llm_analysis.adapter import BaseLLMAdapter
from llm_analysis.prompt_builder import StagePromptBuilder

logger = logging.getLogger(__name__)

COMPLETE_LABEL = "Analysis complete"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def partial_snapshot(state: PipelineState) -> dict[str, Any]:
    """
    JSON-safe summary of whatever a halted run managed to produce.
    """

    snapshot: dict[str, Any] = {
        "completedStages": list(state.get("completed_stages") or []),
        "searchResults": [item.to_dict() for item in state.get("search_results") or []],
        "scrapedCompetitors": [item.result.url for item in state.get("competitor_pages") or []],
        "analyzedCompetitors": [
            item.result.url for item in state.get("competitor_analyses") or []
        ],
        "diagnostics": [item.to_dict() for item in state.get("diagnostics") or []],
    }
    intent = state.get("intent_result")
    if intent is not None and intent.usable:
        snapshot["intentAnalysis"] = intent.value.model_dump(by_alias=True)
    return snapshot


class AnalysisOrchestrator:
    """
    Sequences search & scrape, intent, competitor analysis, pattern
    detection, content origin and recommendations for one request.
    """

    def __init__(
        self,
        *,
        search_provider: SearchProvider,
        scraper: PageSource,
        settings: PipelineSettings,
        prompts: StagePromptBuilder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.search_provider = search_provider
        self.scraper = scraper
        self.settings = settings
        self.prompts = prompts or StagePromptBuilder()
        self._clock = clock

    def run(
        self,
        request: AnalysisRequest,
        *,
        adapter: BaseLLMAdapter,
        progress_sink: ProgressSink | None = None,
        deadline_seconds: float | None = None,
    ) -> AnalysisReport:
        """
        Run every stage and return the finished report.

        Raises:
            PipelineFatalError: A precondition failed (no search results, or
                fewer than the minimum scraped / analysed competitor pages).
            PipelineTimeoutError: The deadline expired; carries partial state.
        """

        started_at = _utc_now_iso()
        seconds = self.settings.deadline_seconds if deadline_seconds is None else deadline_seconds
        progress = ProgressReporter(progress_sink)
        ctx = PipelineContext(
            search_provider=self.search_provider,
            scraper=self.scraper,
            adapter=adapter,
            settings=self.settings,
            progress=progress,
            deadline=Deadline(seconds, clock=self._clock),
            prompts=self.prompts,
        )

        log_event(
            logger,
            logging.INFO,
            "analysis_started",
            keyword=request.keyword,
            target_url=request.target_url,
            model=request.model_id,
        )
        initial_state: PipelineState = {
            "keyword": request.keyword,
            "target_url": request.target_url,
            "model_id": request.model_id,
            "incomplete_target_data": False,
            "competitor_analyses": [],
            "completed_stages": [],
            "diagnostics": [],
            "halt": None,
        }
        final_state: PipelineState = build_graph(ctx).invoke(initial_state)

        halt = final_state.get("halt")
        if halt:
            self._raise_halt(halt, final_state)

        report = self._build_report(request, final_state, started_at)
        progress.report(COMPLETE_LABEL, 100)
        log_event(
            logger,
            logging.INFO,
            "analysis_completed",
            keyword=request.keyword,
            competitors=len(report.competitor_analyses),
            diagnostics=len(report.diagnostics),
        )
        return report

    @staticmethod
    def _raise_halt(halt: dict[str, str], state: PipelineState) -> None:
        log_event(
            logger,
            logging.ERROR,
            "analysis_halted",
            kind=halt["kind"],
            stage=halt["stage"],
            precondition=halt["precondition"],
            message=halt["message"],
        )
        if halt["kind"] == TIMEOUT:
            raise PipelineTimeoutError(
                halt["message"],
                stage=halt["stage"],
                partial_state=partial_snapshot(state),
            )
        if halt["kind"] == FATAL:
            raise PipelineFatalError(
                f"Analysis pipeline failed: {halt['message']}",
                precondition=halt["precondition"],
                stage=halt["stage"],
            )
        raise ValueError(f"Unknown halt kind '{halt['kind']}'")

    @staticmethod
    def _build_report(
        request: AnalysisRequest,
        state: PipelineState,
        started_at: str,
    ) -> AnalysisReport:
        intent = state["intent_result"]
        patterns = state["patterns_result"]
        content_origin = state.get("content_origin_result")
        recommendations = state["recommendations_result"]

        stage_status = {
            SEARCH_SCRAPE: "degraded" if state.get("incomplete_target_data") else "ok",
            INTENT: intent.outcome,
            COMPETITORS: state.get("competitors_status") or "ok",
            PATTERNS: patterns.outcome,
            CONTENT_ORIGIN: content_origin.outcome if content_origin is not None else "skipped",
            RECOMMENDATIONS: recommendations.outcome,
        }

        return AnalysisReport(
            keyword=request.keyword,
            target_url=request.target_url,
            model=request.model_id,
            started_at=started_at,
            analyzed_at=_utc_now_iso(),
            search_results=list(state["search_results"]),
            target_page=state["target_page"],
            incomplete_target_data=bool(state.get("incomplete_target_data")),
            intent=intent.value,
            competitor_analyses=list(state["competitor_analyses"]),
            patterns=patterns.value,
            content_origin=content_origin.value if content_origin is not None else None,
            recommendations=recommendations.value,
            schema_audit=state.get("schema_audit") or {},
            stage_status=stage_status,
            diagnostics=list(state.get("diagnostics") or []),
        )
