"""
analyzer/types.py

Request, diagnostic and report types for the analysis pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic.alias_generators import to_camel

from app.domain.pages import PageFeatureSet, SearchResult
from app.errors import RequestValidationError
from llm_analysis.adapter import SUPPORTED_MODELS
from llm_analysis.schema import (
    ContentOriginAnalysis,
    IntentAnalysis,
    PageAnalysis,
    PatternAnalysis,
    RecommendationAnalysis,
)

MAX_KEYWORD_LENGTH = 200
_ALLOWED_SCHEMES = {"http", "https"}
_REPORT_PAGE_EXCLUDED_FIELDS = {"content_text", "structured_data"}


@dataclass(frozen=True)
class AnalysisRequest:
    """
    Validated inbound analysis request.
    """

    keyword: str
    target_url: str
    model_id: str

    @classmethod
    def create(cls, keyword: Any, target_url: Any, model_id: Any) -> AnalysisRequest:
        """
        Validate raw inputs and return a trimmed, immutable request.

        Raises:
            RequestValidationError: On an empty or too-long keyword, a
                malformed or non-http(s) URL, or an unknown model id.
        """

        if not isinstance(keyword, str) or not keyword.strip():
            raise RequestValidationError("Keyword is required", field="keyword")
        if len(keyword) > MAX_KEYWORD_LENGTH:
            raise RequestValidationError(
                f"Keyword is too long (max {MAX_KEYWORD_LENGTH} characters)",
                field="keyword",
            )

        if not isinstance(target_url, str) or not target_url.strip():
            raise RequestValidationError("URL is required", field="targetUrl")
        url = target_url.strip()
        try:
            parsed = urlparse(url)
        except ValueError as exc:
            raise RequestValidationError("Invalid URL format", field="targetUrl") from exc
        if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
            raise RequestValidationError("URL must use http or https protocol", field="targetUrl")
        if not parsed.netloc or not parsed.hostname:
            raise RequestValidationError("Invalid URL format", field="targetUrl")

        if not isinstance(model_id, str) or model_id not in SUPPORTED_MODELS:
            raise RequestValidationError(f"Invalid model: {model_id}", field="model")

        return cls(keyword=keyword.strip(), target_url=url, model_id=model_id)


@dataclass(frozen=True)
class StageDiagnostic:
    """
    Why one unit of work was skipped, degraded or replaced by a fallback.
    """

    stage: str
    status: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "status": self.status, "reason": self.reason}


@dataclass(frozen=True)
class ScrapedCompetitor:
    result: SearchResult
    page: PageFeatureSet

    @property
    def position(self) -> int:
        return self.result.position


@dataclass(frozen=True)
class CompetitorAnalysis:
    """
    One competitor page and its model analysis.
    """

    result: SearchResult
    page: PageFeatureSet
    analysis: PageAnalysis
    status: str = "ok"

    @property
    def position(self) -> int:
        return self.result.position

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.result.position,
            "url": self.result.url,
            "title": self.result.title,
            "domain": self.result.domain,
            "status": self.status,
            "pageData": page_to_report_dict(self.page),
            "analysis": self.analysis.model_dump(by_alias=True),
        }


def page_to_report_dict(page: PageFeatureSet) -> dict[str, Any]:
    payload = page.to_dict()
    return {
        to_camel(key): value
        for key, value in payload.items()
        if key not in _REPORT_PAGE_EXCLUDED_FIELDS
    }


@dataclass(frozen=True)
class AnalysisReport:
    """
    Aggregate of every stage output for one run. Immutable once built.
    """

    keyword: str
    target_url: str
    model: str
    started_at: str
    analyzed_at: str
    search_results: list[SearchResult]
    target_page: PageFeatureSet
    incomplete_target_data: bool
    intent: IntentAnalysis
    competitor_analyses: list[CompetitorAnalysis]
    patterns: PatternAnalysis
    content_origin: Optional[ContentOriginAnalysis]
    recommendations: RecommendationAnalysis
    schema_audit: dict[str, Any] = field(default_factory=dict)
    stage_status: dict[str, str] = field(default_factory=dict)
    diagnostics: list[StageDiagnostic] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return self.incomplete_target_data or bool(self.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "targetUrl": self.target_url,
            "model": self.model,
            "startedAt": self.started_at,
            "analyzedAt": self.analyzed_at,
            "incompleteTargetData": self.incomplete_target_data,
            "searchResults": [result.to_dict() for result in self.search_results],
            "targetPageData": page_to_report_dict(self.target_page),
            "intentAnalysis": self.intent.model_dump(by_alias=True),
            "competitorAnalyses": [item.to_dict() for item in self.competitor_analyses],
            "patternAnalysis": self.patterns.model_dump(by_alias=True),
            "contentOriginAnalysis": (
                self.content_origin.model_dump(by_alias=True) if self.content_origin else None
            ),
            "recommendations": self.recommendations.model_dump(by_alias=True),
            "schemaAudit": self.schema_audit,
            "stageStatus": dict(self.stage_status),
            "diagnostics": [item.to_dict() for item in self.diagnostics],
        }
