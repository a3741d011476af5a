"""
analyzer/state.py

LangGraph state schema for the analysis pipeline.
"""

import operator
from typing import Annotated, Any, Optional

from typing_extensions import TypedDict

from analyzer.types import CompetitorAnalysis, ScrapedCompetitor, StageDiagnostic
from app.domain.pages import PageFeatureSet, SearchResult
from llm_analysis.escalation import StageResult

SEARCH_SCRAPE = "search_scrape"
INTENT = "intent"
COMPETITORS = "competitors"
PATTERNS = "patterns"
CONTENT_ORIGIN = "content_origin"
RECOMMENDATIONS = "recommendations"

STAGE_ORDER = (SEARCH_SCRAPE, INTENT, COMPETITORS, PATTERNS, CONTENT_ORIGIN, RECOMMENDATIONS)


class PipelineState(TypedDict, total=False):
    """Shared state passed between all nodes of the analysis graph."""

    keyword: str
    target_url: str
    model_id: str

    search_results: list[SearchResult]
    competitor_pages: list[ScrapedCompetitor]
    target_page: Optional[PageFeatureSet]
    incomplete_target_data: bool
    schema_audit: dict[str, Any]

    intent_result: Optional[StageResult]
    competitor_analyses: list[CompetitorAnalysis]
    competitors_status: str
    patterns_result: Optional[StageResult]
    content_origin_result: Optional[StageResult]
    recommendations_result: Optional[StageResult]

    completed_stages: Annotated[list[str], operator.add]
    diagnostics: Annotated[list[StageDiagnostic], operator.add]
    halt: Optional[dict[str, str]]
