"""
analyzer/nodes/competitors.py

Competitor node: one model analysis per scraped page.

Pages are analysed through a rate-limited task queue. A page whose analysis
fails is dropped; the stage is fatal only when too few analyses remain for
pattern detection.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Optional

from analyzer.context import (
    FATAL,
    PipelineContext,
    diagnostic,
    halt_update,
    stage_diagnostics,
    timeout_update,
)
from analyzer.state import COMPETITORS, PipelineState
from analyzer.task_queue import RateLimitedTaskQueue
from analyzer.types import CompetitorAnalysis, ScrapedCompetitor, StageDiagnostic
from app.logging_utils import log_event
from app.scraping.rate_limiter import IntervalRateLimiter
from llm_analysis import budgets
from llm_analysis.escalation import EscalationPlan, StageResult, run_with_escalation
from llm_analysis.schema import PageAnalysis

logger = logging.getLogger(__name__)

PROGRESS_LABEL = "Analyzing top 5 competitor pages"
PROGRESS_START = 50
PROGRESS_SPAN = 10


def make_competitors_node(ctx: PipelineContext) -> Callable[[PipelineState], dict]:
    def build_plan(keyword: str, competitor: ScrapedCompetitor) -> EscalationPlan:
        budget = budgets.STAGE_BUDGETS[budgets.PAGE]
        return EscalationPlan(
            stage=f"{COMPETITORS}[{competitor.position}]",
            prompt=ctx.prompts.page_prompt(keyword, competitor.page, competitor.position),
            options=budget.primary_options(budgets.PAGE),
            retry_prompt=ctx.prompts.page_retry_prompt(
                keyword, competitor.page, competitor.position
            ),
            retry_options=budget.retry_options(budgets.PAGE),
            required_fields=budget.required_fields,
            output_model=PageAnalysis,
        )

    def competitors_node(state: PipelineState) -> dict:
        if ctx.deadline.expired():
            return timeout_update(COMPETITORS, ctx.deadline.seconds)
        ctx.progress.report(PROGRESS_LABEL, PROGRESS_START)

        keyword = state["keyword"]
        pages = state["competitor_pages"]
        total = len(pages)
        finished = 0
        lock = threading.Lock()

        def analyze(competitor: ScrapedCompetitor) -> Optional[StageResult]:
            nonlocal finished
            if ctx.deadline.expired():
                return None
            result = run_with_escalation(ctx.adapter, build_plan(keyword, competitor))
            with lock:
                finished += 1
                done = finished
            ctx.progress.report(
                f"Analyzed competitor {done}/{total}",
                PROGRESS_START + PROGRESS_SPAN * done / total,
            )
            return result

        task_queue = RateLimitedTaskQueue(
            concurrency=ctx.settings.competitor_concurrency,
            rate_limiter=IntervalRateLimiter(
                min_interval_seconds=ctx.settings.competitor_call_delay_seconds
            ),
        )
        outcomes = task_queue.map(analyze, pages)

        analyses: list[CompetitorAnalysis] = []
        diagnostics: list[StageDiagnostic] = []
        timed_out = False
        for competitor, result in zip(pages, outcomes):
            if result is None:
                timed_out = True
                continue
            if not result.usable:
                log_event(
                    logger,
                    logging.WARNING,
                    "competitor_analysis_dropped",
                    url=competitor.result.url,
                    reason=result.reason,
                )
                diagnostics.append(
                    diagnostic(
                        COMPETITORS,
                        "skipped",
                        f"Dropped {competitor.result.url}: {result.reason}",
                    )
                )
                continue
            stage = f"{COMPETITORS}[{competitor.position}]"
            diagnostics.extend(stage_diagnostics(stage, result))
            analyses.append(
                CompetitorAnalysis(
                    result=competitor.result,
                    page=competitor.page,
                    analysis=result.value,
                    status=result.status,
                )
            )

        update: dict = {"competitor_analyses": analyses, "diagnostics": diagnostics}
        if timed_out:
            update.update(timeout_update(COMPETITORS, ctx.deadline.seconds))
            return update

        minimum = ctx.settings.min_competitor_pages
        if len(analyses) < minimum:
            update.update(
                halt_update(
                    FATAL,
                    stage=COMPETITORS,
                    precondition="min_competitor_analyses",
                    message=(
                        f"Only {len(analyses)} competitor pages could be analyzed. "
                        f"Need at least {minimum} for pattern detection."
                    ),
                )
            )
            return update

        update["competitors_status"] = "degraded" if diagnostics else "ok"
        update["completed_stages"] = [COMPETITORS]
        return update

    return competitors_node
