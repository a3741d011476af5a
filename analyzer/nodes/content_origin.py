"""
analyzer/nodes/content_origin.py

Content origin node: estimates whether the target page copy is
machine-generated. Skipped when the stage is disabled and short-circuited
when there is too little target text to judge.
"""

from __future__ import annotations

from collections.abc import Callable

from analyzer.context import PipelineContext, stage_diagnostics, timeout_update
from analyzer.state import CONTENT_ORIGIN, PipelineState
from llm_analysis import budgets
from llm_analysis.escalation import EscalationPlan, StageResult, run_with_escalation
from llm_analysis.schema import ContentOriginAnalysis

PROGRESS_LABEL = "Analyzing content for AI generation"
MIN_CONTENT_WORDS = 50


def make_content_origin_node(ctx: PipelineContext) -> Callable[[PipelineState], dict]:
    def content_origin_node(state: PipelineState) -> dict:
        if ctx.deadline.expired():
            return timeout_update(CONTENT_ORIGIN, ctx.deadline.seconds)
        ctx.progress.report(PROGRESS_LABEL, 75)

        if not ctx.settings.content_origin_enabled:
            return {"content_origin_result": None, "completed_stages": [CONTENT_ORIGIN]}

        target = state["target_page"]
        if target.is_placeholder or target.word_count < MIN_CONTENT_WORDS:
            reason = (
                "Target page could not be scraped"
                if target.is_placeholder
                else f"Target page has only {target.word_count} words"
            )
            result = StageResult.degraded(ContentOriginAnalysis.insufficient_content(reason), reason)
        else:
            keyword = state["keyword"]
            budget = budgets.STAGE_BUDGETS[budgets.CONTENT_ORIGIN]
            plan = EscalationPlan(
                stage=CONTENT_ORIGIN,
                prompt=ctx.prompts.content_origin_prompt(keyword, target),
                options=budget.primary_options(budgets.CONTENT_ORIGIN),
                retry_prompt=ctx.prompts.content_origin_retry_prompt(keyword, target),
                retry_options=budget.retry_options(budgets.CONTENT_ORIGIN),
                required_fields=budget.required_fields,
                output_model=ContentOriginAnalysis,
                fallback=ContentOriginAnalysis.fallback,
            )
            result = run_with_escalation(ctx.adapter, plan)

        return {
            "content_origin_result": result,
            "diagnostics": stage_diagnostics(CONTENT_ORIGIN, result),
            "completed_stages": [CONTENT_ORIGIN],
        }

    return content_origin_node
