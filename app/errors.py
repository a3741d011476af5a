"""
app/errors.py

Error taxonomy shared by the pipeline, its collaborators and the HTTP layer.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal error during analysis."


class AnalysisError(Exception):
    """
    Base class for every error the analysis pipeline knows how to report.
    """

    error_type = "analysis"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RequestValidationError(AnalysisError):
    """
    Raised when the inbound keyword, URL or model id is unusable.
    """

    error_type = "validation"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class SearchError(AnalysisError):
    """
    Raised by the search provider on auth, quota or empty-result failures.
    """

    error_type = "search"


class ScrapeError(AnalysisError):
    """
    Raised when a page cannot be fetched or parsed.
    """

    error_type = "scraper"

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ModelError(AnalysisError):
    """
    Raised when a language model provider call fails or returns nothing.
    """

    error_type = "llm"

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class JSONExtractionError(AnalysisError):
    """
    Raised when no JSON object can be recovered from model text.

    Attributes:
        text_length: Length of the original text.
        parser_message: Message from the last parse attempt.
        position: Offset of the parse failure in the attempted candidate.
        excerpt: Bounded, non-empty excerpt around the failure.
    """

    error_type = "parse"

    def __init__(
        self,
        *,
        text_length: int,
        parser_message: str,
        position: int | None,
        excerpt: str,
    ) -> None:
        self.text_length = text_length
        self.parser_message = parser_message
        self.position = position
        self.excerpt = excerpt
        super().__init__(
            f"Failed to extract JSON from model output (length={text_length}): {parser_message}"
        )


class PipelineFatalError(AnalysisError):
    """
    Raised when a pipeline precondition fails and no report can be produced.
    """

    error_type = "pipeline"

    def __init__(self, message: str, *, precondition: str, stage: str) -> None:
        self.precondition = precondition
        self.stage = stage
        super().__init__(message)


class PipelineTimeoutError(PipelineFatalError):
    """
    Raised when the wall-clock deadline expires between stages.
    """

    error_type = "timeout"

    def __init__(self, message: str, *, stage: str, partial_state: dict[str, Any]) -> None:
        self.partial_state = partial_state
        super().__init__(message, precondition="deadline", stage=stage)


_USER_FACING_ERRORS = (RequestValidationError, PipelineFatalError)


def format_error_response(exc: BaseException) -> dict[str, str]:
    """
    Convert any exception into the public `{error, type}` payload.

    Only validation and pipeline errors expose their message; everything
    else collapses to a generic internal error.
    """

    if isinstance(exc, _USER_FACING_ERRORS):
        return {"error": exc.message, "type": exc.error_type}

    logger.error("Unexpected analysis failure: %s", exc, exc_info=exc)
    return {"error": INTERNAL_ERROR_MESSAGE, "type": "internal"}
