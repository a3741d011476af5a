"""
analyzer/nodes/patterns.py

Pattern node: what the analysed competitor pages have in common.
"""

from __future__ import annotations

from collections.abc import Callable

from analyzer.context import PipelineContext, stage_diagnostics, timeout_update
from analyzer.state import PATTERNS, PipelineState
from llm_analysis import budgets
from llm_analysis.escalation import EscalationPlan, run_with_escalation
from llm_analysis.schema import PatternAnalysis

PROGRESS_LABEL = "Detecting common patterns"


def make_patterns_node(ctx: PipelineContext) -> Callable[[PipelineState], dict]:
    def patterns_node(state: PipelineState) -> dict:
        if ctx.deadline.expired():
            return timeout_update(PATTERNS, ctx.deadline.seconds)
        ctx.progress.report(PROGRESS_LABEL, 60)

        keyword = state["keyword"]
        analyses = state["competitor_analyses"]
        summaries = [(item.position, item.page, item.analysis) for item in analyses]
        word_counts = [item.page.word_count for item in analyses]

        budget = budgets.STAGE_BUDGETS[budgets.PATTERNS]
        plan = EscalationPlan(
            stage=PATTERNS,
            prompt=ctx.prompts.patterns_prompt(keyword, summaries),
            options=budget.primary_options(budgets.PATTERNS),
            retry_prompt=ctx.prompts.patterns_retry_prompt(keyword, summaries),
            retry_options=budget.retry_options(budgets.PATTERNS),
            required_fields=budget.required_fields,
            output_model=PatternAnalysis,
            fallback=lambda reason: PatternAnalysis.fallback(word_counts, reason),
        )
        result = run_with_escalation(ctx.adapter, plan)
        return {
            "patterns_result": result,
            "diagnostics": stage_diagnostics(PATTERNS, result),
            "completed_stages": [PATTERNS],
        }

    return patterns_node
