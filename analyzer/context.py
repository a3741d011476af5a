"""
analyzer/context.py

Per-run collaborators handed to every graph node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from analyzer.deadline import Deadline
from analyzer.progress import ProgressReporter
from analyzer.types import StageDiagnostic
from app.config import PipelineSettings
from app.domain.pages import PageFeatureSet, SearchResult
from llm_analysis.adapter import BaseLLMAdapter
from llm_analysis.escalation import StageResult
from llm_analysis.prompt_builder import StagePromptBuilder

FATAL = "fatal"
TIMEOUT = "timeout"


class SearchProvider(Protocol):
    def search(self, keyword: str) -> list[SearchResult]: ...


class PageSource(Protocol):
    def scrape(self, url: str) -> PageFeatureSet: ...


@dataclass
class PipelineContext:
    """
    Everything a node needs besides the graph state.
    """

    search_provider: SearchProvider
    scraper: PageSource
    adapter: BaseLLMAdapter
    settings: PipelineSettings
    progress: ProgressReporter
    deadline: Deadline
    prompts: StagePromptBuilder = field(default_factory=StagePromptBuilder)


def halt_update(kind: str, *, stage: str, precondition: str, message: str) -> dict:
    """
    State update that stops the graph after the current node.
    """

    return {
        "halt": {
            "kind": kind,
            "stage": stage,
            "precondition": precondition,
            "message": message,
        }
    }


def timeout_update(stage: str, seconds: float) -> dict:
    return halt_update(
        TIMEOUT,
        stage=stage,
        precondition="deadline",
        message=f"Analysis exceeded the {seconds:g}s deadline during stage '{stage}'.",
    )


def diagnostic(stage: str, status: str, reason: str | None) -> StageDiagnostic:
    return StageDiagnostic(stage=stage, status=status, reason=reason or "")


def stage_diagnostics(stage: str, result: StageResult) -> list[StageDiagnostic]:
    """
    One diagnostic for a degraded, failed or fallback result, none for a
    clean `ok`.
    """

    if result.status == "ok" and not result.fallback_used:
        return []
    return [diagnostic(stage, result.outcome, result.reason)]
