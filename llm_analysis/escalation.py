"""Retry/fallback escalation for structured model calls.

A stage asks the model for a JSON object matching a pydantic model. The
primary prompt gets one constrained retry; if that also fails, the stage's
hand-authored fallback is returned instead of failing the pipeline.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from app.errors import JSONExtractionError, ModelError
from llm_analysis.adapter import BaseLLMAdapter, GenerationOptions
from llm_analysis.json_extractor import extract_json

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

RETRY_RECOVERY_REASON = "recovered on constrained retry"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one unit of stage work.

    Exactly one of three shapes:
        ok(value), degraded(value, reason) or failed(reason).

    A fallback value is ``ok`` with ``fallback_used`` set and the failure
    reasons kept in ``reason``, so diagnostics can still disclose it.
    """

    status: str
    value: Optional[T] = None
    reason: Optional[str] = None
    fallback_used: bool = False

    @classmethod
    def ok(cls, value: T) -> "StageResult[T]":
        return cls(status="ok", value=value)

    @classmethod
    def from_fallback(cls, value: T, reason: str) -> "StageResult[T]":
        return cls(status="ok", value=value, reason=reason, fallback_used=True)

    @classmethod
    def degraded(cls, value: T, reason: str) -> "StageResult[T]":
        return cls(status="degraded", value=value, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "StageResult[T]":
        return cls(status="failed", reason=reason)

    @property
    def usable(self) -> bool:
        return self.status in ("ok", "degraded")

    @property
    def is_degraded(self) -> bool:
        return self.status == "degraded"

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"

    @property
    def outcome(self) -> str:
        """Status label for reports: ``fallback`` for fallback values."""
        return "fallback" if self.fallback_used else self.status


@dataclass(frozen=True)
class EscalationPlan(Generic[M]):
    """Everything needed to run one stage call with retry and fallback.

    Attributes:
        stage: Stage label for logs and diagnostics.
        prompt: Primary prompt.
        options: Primary temperature / token budget.
        retry_prompt: Smaller, stricter prompt used once on failure.
        retry_options: Lower temperature / smaller budget for the retry.
        required_fields: camelCase keys that must be present and non-empty.
        output_model: Pydantic model the object must validate against.
        fallback: Builds the fallback value from the joined failure reasons.
            ``None`` means the unit of work fails instead.
    """

    stage: str
    prompt: str
    options: GenerationOptions
    retry_prompt: str
    retry_options: GenerationOptions
    required_fields: Tuple[str, ...]
    output_model: Type[M]
    fallback: Optional[Callable[[str], M]] = None


class _AttemptFailure(Exception):
    def __init__(self, kind: str, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}")


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _allowed_keys(model: Type[BaseModel]) -> set:
    keys = set()
    for name, info in model.model_fields.items():
        keys.add(name)
        keys.add(to_camel(name))
        if info.alias:
            keys.add(info.alias)
    return keys


def _project(model: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only keys the model knows, so extra model chatter is ignored."""
    allowed = _allowed_keys(model)
    return {key: value for key, value in data.items() if key in allowed}


def missing_required_fields(data: Dict[str, Any], required: Tuple[str, ...]) -> List[str]:
    return [name for name in required if _is_missing(data.get(name))]


def _attempt(adapter: BaseLLMAdapter, prompt: str, options: GenerationOptions, plan: EscalationPlan) -> Any:
    try:
        response = adapter.generate(prompt, options)
    except ModelError as exc:
        raise _AttemptFailure("model_error", exc.message) from exc

    try:
        data = extract_json(response.text)
    except JSONExtractionError as exc:
        raise _AttemptFailure("json_parse", exc.parser_message) from exc

    if not isinstance(data, dict):
        raise _AttemptFailure("schema", "top-level JSON must be an object")

    missing = missing_required_fields(data, plan.required_fields)
    if missing:
        raise _AttemptFailure("missing_fields", ", ".join(missing))

    try:
        return plan.output_model.model_validate(_project(plan.output_model, data))
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise _AttemptFailure("schema", "; ".join(errors)) from exc


def run_with_escalation(adapter: BaseLLMAdapter, plan: EscalationPlan[M]) -> StageResult[M]:
    """Run a stage call with one constrained retry and a fallback.

    At most two model calls are made.

    Args:
        adapter: Model client.
        plan: Prompts, budgets, validation and fallback for the stage.

    Returns:
        ``ok`` on primary success, ``degraded`` on retry success, ``ok`` with
        ``fallback_used`` when both attempts fail and the stage has a fallback,
        ``failed`` when it has none.
    """
    attempts = (
        (plan.prompt, plan.options),
        (plan.retry_prompt, plan.retry_options),
    )
    failures: List[str] = []

    for attempt, (prompt, options) in enumerate(attempts, start=1):
        try:
            value = _attempt(adapter, prompt, options, plan)
        except _AttemptFailure as exc:
            failures.append(str(exc))
            logger.warning(
                "Attempt %d/%d failed at stage '%s': %s",
                attempt,
                len(attempts),
                plan.stage,
                exc,
            )
            continue

        if attempt == 1:
            return StageResult.ok(value)
        logger.info("Stage '%s' output validated on attempt %d/%d", plan.stage, attempt, len(attempts))
        return StageResult.degraded(value, f"{RETRY_RECOVERY_REASON} ({failures[0]})")

    reason = "; ".join(failures)
    if plan.fallback is None:
        logger.error("Stage '%s' failed after %d attempts: %s", plan.stage, len(attempts), reason)
        return StageResult.failed(reason)

    logger.warning("Stage '%s' using fallback output: %s", plan.stage, reason)
    return StageResult.from_fallback(plan.fallback(reason), f"fallback used: {reason}")
