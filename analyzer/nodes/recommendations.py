"""
analyzer/nodes/recommendations.py

Recommendations node: gap analysis of the target page against competitor
patterns and search intent.
"""

from __future__ import annotations

from collections.abc import Callable

from analyzer.context import PipelineContext, stage_diagnostics, timeout_update
from analyzer.state import RECOMMENDATIONS, PipelineState
from llm_analysis import budgets
from llm_analysis.escalation import EscalationPlan, run_with_escalation
from llm_analysis.schema import RecommendationAnalysis

PROGRESS_LABEL = "Generating recommendations"


def make_recommendations_node(ctx: PipelineContext) -> Callable[[PipelineState], dict]:
    def recommendations_node(state: PipelineState) -> dict:
        if ctx.deadline.expired():
            return timeout_update(RECOMMENDATIONS, ctx.deadline.seconds)
        ctx.progress.report(PROGRESS_LABEL, 90)

        keyword = state["keyword"]
        target = state["target_page"]
        patterns = state["patterns_result"].value
        intent = state["intent_result"].value
        average_words = patterns.content_length.average or None

        budget = budgets.STAGE_BUDGETS[budgets.RECOMMENDATIONS]
        plan = EscalationPlan(
            stage=RECOMMENDATIONS,
            prompt=ctx.prompts.recommendations_prompt(keyword, target, patterns, intent),
            options=budget.primary_options(budgets.RECOMMENDATIONS),
            retry_prompt=ctx.prompts.recommendations_retry_prompt(keyword, target, patterns),
            retry_options=budget.retry_options(budgets.RECOMMENDATIONS),
            required_fields=budget.required_fields,
            output_model=RecommendationAnalysis,
            fallback=lambda reason: RecommendationAnalysis.fallback(average_words),
        )
        result = run_with_escalation(ctx.adapter, plan)
        return {
            "recommendations_result": result,
            "diagnostics": stage_diagnostics(RECOMMENDATIONS, result),
            "completed_stages": [RECOMMENDATIONS],
        }

    return recommendations_node
