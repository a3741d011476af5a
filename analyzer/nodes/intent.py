"""
analyzer/nodes/intent.py

Intent node: classifies the keyword's search intent from the top results.
"""

from __future__ import annotations

from collections.abc import Callable

from analyzer.context import PipelineContext, stage_diagnostics, timeout_update
from analyzer.state import INTENT, PipelineState
from llm_analysis import budgets
from llm_analysis.escalation import EscalationPlan, run_with_escalation
from llm_analysis.schema import IntentAnalysis

PROGRESS_LABEL = "Analyzing search intent"


def make_intent_node(ctx: PipelineContext) -> Callable[[PipelineState], dict]:
    def intent_node(state: PipelineState) -> dict:
        if ctx.deadline.expired():
            return timeout_update(INTENT, ctx.deadline.seconds)
        ctx.progress.report(PROGRESS_LABEL, 30)

        keyword = state["keyword"]
        results = state["search_results"]
        budget = budgets.STAGE_BUDGETS[budgets.INTENT]
        plan = EscalationPlan(
            stage=INTENT,
            prompt=ctx.prompts.intent_prompt(keyword, results),
            options=budget.primary_options(budgets.INTENT),
            retry_prompt=ctx.prompts.intent_retry_prompt(keyword, results),
            retry_options=budget.retry_options(budgets.INTENT),
            required_fields=budget.required_fields,
            output_model=IntentAnalysis,
            fallback=IntentAnalysis.fallback,
        )
        result = run_with_escalation(ctx.adapter, plan)
        return {
            "intent_result": result,
            "diagnostics": stage_diagnostics(INTENT, result),
            "completed_stages": [INTENT],
        }

    return intent_node
