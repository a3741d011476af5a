"""Per-stage generation budgets and required output fields."""

from dataclasses import dataclass
from typing import Dict, Tuple

from llm_analysis.adapter import GenerationOptions

INTENT = "intent"
PAGE = "page"
PATTERNS = "patterns"
CONTENT_ORIGIN = "content_origin"
RECOMMENDATIONS = "recommendations"


@dataclass(frozen=True)
class StageBudget:
    temperature: float
    max_tokens: int
    retry_temperature: float
    retry_max_tokens: int
    required_fields: Tuple[str, ...]

    def primary_options(self, stage: str) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stage=stage,
        )

    def retry_options(self, stage: str) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.retry_temperature,
            max_tokens=self.retry_max_tokens,
            stage=stage,
        )


STAGE_BUDGETS: Dict[str, StageBudget] = {
    INTENT: StageBudget(0.3, 1000, 0.2, 600, ("intent", "userGoal", "buyerStage")),
    PAGE: StageBudget(0.5, 2000, 0.3, 1000, ("strengths", "contentType")),
    PATTERNS: StageBudget(0.4, 2500, 0.3, 1500, ("commonPatterns", "contentLength")),
    CONTENT_ORIGIN: StageBudget(0.3, 1500, 0.2, 800, ("aiLikelihood", "assessment")),
    RECOMMENDATIONS: StageBudget(0.5, 4096, 0.3, 2048, ("recommendations", "criticalGaps")),
}
