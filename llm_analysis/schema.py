"""Structured output contracts for every generative analysis stage.

Models accept the camelCase keys the prompts ask for and serialise back to
them with ``model_dump(by_alias=True)``. Each top-level model carries a
hand-authored ``fallback`` used when both the primary and retry calls fail.
"""

import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")


def _coerce_number(value: Any) -> Any:
    """Accept ``"85%"`` or ``"2,500 words"`` where a number is expected."""
    if isinstance(value, str):
        match = _NUMBER_PATTERN.search(value.replace(",", ""))
        if match:
            return float(match.group(0))
    return value


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class _StageModel(BaseModel):
    """Top-level stage output: unknown keys are rejected."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class _StageItem(BaseModel):
    """Nested stage item: unknown keys are dropped."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Intent
# ---------------------------------------------------------------------------


class IntentAnalysis(_StageModel):
    """Search intent classification for the keyword."""

    intent: Literal["informational", "transactional", "navigational", "commercial"]
    user_goal: str = Field(min_length=1)
    buyer_stage: Literal["awareness", "consideration", "decision"]
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    reasoning: str = ""

    @field_validator("intent", mode="before")
    @classmethod
    def _normalize_intent(cls, value: Any) -> Any:
        value = _lower(value)
        if isinstance(value, str) and value.startswith("commercial"):
            return "commercial"
        return value

    @field_validator("buyer_stage", mode="before")
    @classmethod
    def _normalize_stage(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> Any:
        value = _coerce_number(value)
        if isinstance(value, (int, float)) and 0.0 < value <= 1.0:
            return float(value) * 100.0
        return value

    @classmethod
    def fallback(cls, reason: str) -> "IntentAnalysis":
        return cls(
            intent="informational",
            user_goal="Unable to determine the searcher's goal automatically.",
            buyer_stage="awareness",
            confidence=0.0,
            reasoning=f"Fallback classification used: {reason}",
        )


# ---------------------------------------------------------------------------
# Competitor page
# ---------------------------------------------------------------------------


class Strength(_StageItem):
    """One element that helps a page rank."""

    description: str = Field(min_length=1)
    selector: Optional[str] = None
    selector_fallback: Optional[str] = None


class PageAnalysis(_StageModel):
    """Qualitative analysis of one ranking competitor page."""

    strengths: List[Strength] = Field(min_length=1)
    content_type: str = Field(min_length=1)
    key_elements: List[str] = Field(default_factory=list)
    target_audience: str = ""
    content_depth: Literal["shallow", "moderate", "comprehensive"] = "moderate"
    notes: str = ""

    @field_validator("strengths", mode="before")
    @classmethod
    def _wrap_plain_strengths(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"description": item} if isinstance(item, str) else item for item in value]
        return value

    @field_validator("content_type", "content_depth", mode="before")
    @classmethod
    def _normalize_labels(cls, value: Any) -> Any:
        return _lower(value)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------


class CommonPattern(_StageItem):
    pattern: str = Field(min_length=1)
    frequency: str = ""
    importance: Literal["high", "medium", "low"] = "medium"
    examples: List[str] = Field(default_factory=list)

    @field_validator("importance", mode="before")
    @classmethod
    def _normalize_importance(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("frequency", mode="before")
    @classmethod
    def _stringify_frequency(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value


class ContentLength(_StageItem):
    average: int = Field(default=0, ge=0)
    range: str = ""
    recommendation: str = ""

    @field_validator("average", mode="before")
    @classmethod
    def _round_average(cls, value: Any) -> Any:
        value = _coerce_number(value)
        if isinstance(value, float):
            return int(round(value))
        return value


class PatternAnalysis(_StageModel):
    """Patterns shared by the ranking competitor pages."""

    common_patterns: List[CommonPattern] = Field(min_length=1)
    content_length: ContentLength
    common_elements: List[str] = Field(default_factory=list)
    content_structure: str = ""
    must_have_elements: List[str] = Field(default_factory=list)

    @classmethod
    def fallback(cls, word_counts: List[int], reason: str) -> "PatternAnalysis":
        """Build a minimal pattern summary from raw competitor word counts."""
        counts = [count for count in word_counts if count > 0]
        average = int(round(sum(counts) / len(counts))) if counts else 0
        word_range = f"{min(counts)} - {max(counts)} words" if counts else "unknown"
        return cls(
            common_patterns=[
                CommonPattern(
                    pattern="Comprehensive coverage of the topic",
                    frequency=f"{len(counts)}/{len(word_counts)}" if word_counts else "0/0",
                    importance="high",
                    examples=[],
                )
            ],
            content_length=ContentLength(
                average=average,
                range=word_range,
                recommendation=(
                    f"Aim for roughly {average} words" if average else "Match competitor depth"
                ),
            ),
            common_elements=[],
            content_structure=f"Pattern detection unavailable: {reason}",
            must_have_elements=[],
        )


# ---------------------------------------------------------------------------
# Content origin
# ---------------------------------------------------------------------------


class ContentOriginAnalysis(_StageModel):
    """Estimate of whether the target page's copy reads as machine-generated."""

    ai_likelihood: int = Field(ge=0, le=100)
    assessment: Literal["likely_human", "mixed", "likely_ai", "insufficient_content", "undetermined"]
    signals: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    reasoning: str = ""

    @field_validator("ai_likelihood", mode="before")
    @classmethod
    def _normalize_likelihood(cls, value: Any) -> Any:
        value = _coerce_number(value)
        if isinstance(value, float):
            return int(round(value))
        return value

    @field_validator("assessment", mode="before")
    @classmethod
    def _normalize_assessment(cls, value: Any) -> Any:
        value = _lower(value)
        if isinstance(value, str):
            return value.replace("-", "_").replace(" ", "_")
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> Any:
        return _coerce_number(value)

    @classmethod
    def insufficient_content(cls, reason: str) -> "ContentOriginAnalysis":
        return cls(
            ai_likelihood=0,
            assessment="insufficient_content",
            signals=[],
            confidence=0.0,
            reasoning=reason,
        )

    @classmethod
    def fallback(cls, reason: str) -> "ContentOriginAnalysis":
        return cls(
            ai_likelihood=0,
            assessment="undetermined",
            signals=[],
            confidence=0.0,
            reasoning=f"Content origin could not be assessed: {reason}",
        )


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


class Recommendation(_StageItem):
    priority: Literal["HIGH", "MEDIUM", "LOW"]
    category: str = "content"
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    reasoning: str = ""
    effort: Literal["low", "medium", "high"] = "medium"

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("effort", "category", mode="before")
    @classmethod
    def _normalize_labels(cls, value: Any) -> Any:
        return _lower(value)


class RecommendationAnalysis(_StageModel):
    """Actionable recommendations for the target page."""

    critical_gaps: List[str] = Field(min_length=1)
    recommendations: List[Recommendation] = Field(min_length=1)
    quick_wins: List[str] = Field(default_factory=list)
    content_strategy: str = ""
    technical_seo: List[str] = Field(default_factory=list, alias="technicalSEO")

    @classmethod
    def fallback(cls, average_word_count: Optional[int] = None) -> "RecommendationAnalysis":
        """Minimal recommendations, anchored on competitor length when known."""
        if average_word_count:
            return cls(
                critical_gaps=["Unable to generate detailed analysis due to JSON parsing issues"],
                recommendations=[
                    Recommendation(
                        priority="HIGH",
                        category="content",
                        title="Match competitor content patterns",
                        description=(
                            f"Based on analysis, top pages average {average_word_count} words. "
                            "Consider expanding content to match."
                        ),
                        reasoning="Content length correlates with rankings for this keyword",
                        effort="high",
                    )
                ],
                quick_wins=["Review competitor strategies manually"],
                content_strategy="Analyze top-ranking pages for content structure and depth",
                technical_seo=["Ensure proper schema markup", "Optimize page speed"],
            )
        return cls(
            critical_gaps=["Analysis encountered issues - manual review recommended"],
            recommendations=[
                Recommendation(
                    priority="HIGH",
                    category="content",
                    title="Analyze top-ranking competitors",
                    description=(
                        "Manually review the top 5 ranking pages to identify key content "
                        "elements and structure."
                    ),
                    reasoning="Automated analysis encountered technical issues",
                    effort="medium",
                )
            ],
            quick_wins=["Review competitor page structures", "Check schema markup implementation"],
            content_strategy="Study successful competitor content patterns",
            technical_seo=["Ensure technical SEO basics are covered"],
        )
