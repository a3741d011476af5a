"""
tests/test_escalation.py

Pytest unit tests for the retry / fallback escalation policy.

Coverage
--------
- Primary success returns ok with a single model call
- Constrained retry recovers as degraded with both calls made
- Fallback after two failures is ok-tagged, flagged and keeps the joined reasons
- Failed result when no fallback is configured
- Every failure kind (model error, unparseable JSON, non-object JSON,
  missing required fields, schema violation) triggers the retry
- Extra top-level keys from the model are ignored
"""

from __future__ import annotations

import pytest

from app.errors import ModelError
from llm_analysis import budgets
from llm_analysis.adapter import MockLLMAdapter
from llm_analysis.escalation import (
    RETRY_RECOVERY_REASON,
    EscalationPlan,
    StageResult,
    missing_required_fields,
    run_with_escalation,
)
from llm_analysis.schema import IntentAnalysis
from tests.fakes import ScriptedLLMAdapter

VALID_INTENT = {
    "intent": "Commercial Investigation",
    "userGoal": "Compare running shoes",
    "buyerStage": "Consideration",
    "confidence": "85%",
    "reasoning": "Listicles dominate.",
}


def _plan(fallback=IntentAnalysis.fallback) -> EscalationPlan:
    budget = budgets.STAGE_BUDGETS[budgets.INTENT]
    return EscalationPlan(
        stage=budgets.INTENT,
        prompt="primary prompt",
        options=budget.primary_options(budgets.INTENT),
        retry_prompt="retry prompt",
        retry_options=budget.retry_options(budgets.INTENT),
        required_fields=budget.required_fields,
        output_model=IntentAnalysis,
        fallback=fallback,
    )


class TestStageResult:
    def test_shapes(self) -> None:
        assert StageResult.ok(1).usable is True
        assert StageResult.degraded(1, "why").is_degraded is True
        failed = StageResult.failed("boom")
        assert failed.is_failed is True
        assert failed.usable is False
        assert failed.value is None
        assert StageResult.ok(1).fallback_used is False
        assert StageResult.ok(1).outcome == "ok"


class TestRunWithEscalation:
    def test_primary_success_is_ok(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: [VALID_INTENT]})
        result = run_with_escalation(adapter, _plan())

        assert result.status == "ok"
        assert result.value.intent == "commercial"
        assert result.value.buyer_stage == "consideration"
        assert result.value.confidence == 85.0
        assert [call[1] for call in adapter.calls] == ["primary prompt"]

    def test_retry_recovers_as_degraded(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: ["I cannot answer that.", VALID_INTENT]})
        result = run_with_escalation(adapter, _plan())

        assert result.status == "degraded"
        assert result.reason.startswith(RETRY_RECOVERY_REASON)
        assert [call[1] for call in adapter.calls] == ["primary prompt", "retry prompt"]

    def test_retry_uses_lower_temperature_and_budget(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: ["nope", VALID_INTENT]})
        run_with_escalation(adapter, _plan())

        primary, retry = (call[2] for call in adapter.calls)
        assert retry.temperature < primary.temperature
        assert retry.max_tokens < primary.max_tokens

    def test_fallback_after_two_failures(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: ["not json", "still not json"]})
        result = run_with_escalation(adapter, _plan())

        assert result.status == "ok"
        assert result.fallback_used is True
        assert result.outcome == "fallback"
        assert result.value == IntentAnalysis.fallback(result.reason.split("fallback used: ", 1)[1])
        assert result.value.intent == "informational"
        assert len(adapter.calls) == 2
        assert result.reason.count("json_parse") == 2

    def test_deeply_nested_replies_use_fallback(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: ["[" * 100_000]})
        result = run_with_escalation(adapter, _plan())

        assert result.status == "ok"
        assert result.fallback_used is True
        assert result.reason.count("json_parse") == 2
        assert len(adapter.calls) == 2

    def test_failed_without_fallback(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: [ModelError("quota exceeded", provider="x")]})
        result = run_with_escalation(adapter, _plan(fallback=None))

        assert result.status == "failed"
        assert result.value is None
        assert "model_error: quota exceeded" in result.reason
        assert len(adapter.calls) == 2

    @pytest.mark.parametrize(
        "reply, kind",
        [
            (ModelError("rate limited", provider="x"), "model_error"),
            ("Sorry, no JSON here", "json_parse"),
            ("[1, 2, 3]", "schema"),
            ({"intent": "commercial"}, "missing_fields"),
            ({**VALID_INTENT, "intent": "shopping"}, "schema"),
            ({**VALID_INTENT, "confidence": 250}, "schema"),
        ],
    )
    def test_failure_kinds_trigger_retry(self, reply, kind) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: [reply, VALID_INTENT]})
        result = run_with_escalation(adapter, _plan())

        assert result.status == "degraded"
        assert f"({kind}:" in result.reason
        assert len(adapter.calls) == 2

    def test_extra_top_level_keys_are_ignored(self) -> None:
        adapter = ScriptedLLMAdapter(
            {budgets.INTENT: [{**VALID_INTENT, "chatter": "Here you go!", "version": 2}]}
        )
        result = run_with_escalation(adapter, _plan())
        assert result.status == "ok"

    def test_fenced_json_with_trailing_comma_is_ok(self) -> None:
        reply = (
            "Sure!\n```json\n"
            '{"intent": "informational", "userGoal": "Learn", "buyerStage": "awareness",}\n'
            "```"
        )
        adapter = ScriptedLLMAdapter({budgets.INTENT: [reply]})
        result = run_with_escalation(adapter, _plan())
        assert result.status == "ok"
        assert result.value.user_goal == "Learn"

    def test_mock_adapter_satisfies_plan(self) -> None:
        assert run_with_escalation(MockLLMAdapter(), _plan()).status == "ok"


class TestMissingRequiredFields:
    def test_empty_values_are_missing(self) -> None:
        data = {"intent": "", "userGoal": [], "buyerStage": "awareness"}
        assert missing_required_fields(data, ("intent", "userGoal", "buyerStage")) == [
            "intent",
            "userGoal",
        ]

    def test_zero_is_present(self) -> None:
        assert missing_required_fields({"aiLikelihood": 0}, ("aiLikelihood",)) == []
