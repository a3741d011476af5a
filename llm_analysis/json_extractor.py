"""Resilient JSON extraction from generative model text.

Model output is expected to be a single JSON object but frequently arrives
wrapped in markdown fences, decorated with comments, or slightly malformed.
``extract_json`` escalates through progressively more aggressive recovery
steps and raises ``JSONExtractionError`` only when all of them fail.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional, Tuple, Union

from app.errors import JSONExtractionError

logger = logging.getLogger(__name__)

_EXCERPT_RADIUS = 200

_FENCE_PATTERN = re.compile(r"^```(?:[A-Za-z0-9_+-]+)?\s*\n?([\s\S]*?)\n?```$")
_OBJECT_SPAN_PATTERN = re.compile(r"\{[\s\S]*\}")

_Replacement = Union[str, Callable[["re.Match[str]"], str]]

# Applied in this exact order; later rules assume earlier ones already ran.
_REPAIRS: List[Tuple["re.Pattern[str]", _Replacement]] = [
    # trailing separators before a closing brace/bracket
    (re.compile(r",(\s*[}\]])"), r"\1"),
    # line comments
    (re.compile(r"//.*$", re.MULTILINE), ""),
    # block comments
    (re.compile(r"/\*[\s\S]*?\*/"), ""),
    # single-quoted keys
    (re.compile(r"(\{|,)\s*'([^']+)'\s*:"), r'\1"\2":'),
    # simple single-quoted values
    (re.compile(r":\s*'([^'\"\n]*)'(\s*[,}\]])"), r': "\1"\2'),
    # missing commas between adjacent objects / arrays
    (re.compile(r"\}(\s*)\{"), r"},\1{"),
    (re.compile(r"\](\s*)\["), r"],\1["),
    # missing commas between newline-separated quoted tokens
    (re.compile(r'"(\s*)\n(\s*)"(?=[^:]*:)'), r'",\1' + "\n" + r'\2"'),
    # missing commas after a closing brace/bracket followed by a quoted token
    (re.compile(r'\}(\s*)"(?=[^:]*:)'), r'},\1"'),
    (re.compile(r'\](\s*)"'), r'],\1"'),
]


def strip_code_fence(text: str) -> str:
    """Remove one enclosing markdown code fence, if present.

    Args:
        text: Raw model text.

    Returns:
        The trimmed inner content when the whole text is fenced, otherwise
        the trimmed text unchanged.
    """
    cleaned = text.strip()
    match = _FENCE_PATTERN.match(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def repair_json_text(text: str) -> str:
    """Apply the fixed sequence of textual repairs for common model mistakes.

    Args:
        text: Candidate JSON text that failed to parse.

    Returns:
        The repaired text. It is not guaranteed to be valid JSON.
    """
    repaired = text
    for pattern, replacement in _REPAIRS:
        repaired = pattern.sub(replacement, repaired)
    return repaired


def _excerpt(text: str, position: Optional[int]) -> str:
    if not text:
        return "<empty>"
    center = position if position is not None else 0
    start = max(0, center - _EXCERPT_RADIUS)
    end = min(len(text), center + _EXCERPT_RADIUS)
    snippet = text[start:end]
    return snippet if snippet else text[:_EXCERPT_RADIUS * 2]


def _describe(exc: Exception) -> Tuple[str, Optional[int]]:
    """Parser message and failure offset; nesting overflows have no offset."""
    if isinstance(exc, json.JSONDecodeError):
        return f"{exc.msg}: line {exc.lineno} column {exc.colno}", exc.pos
    return f"JSON nested too deeply: {exc}", None


def extract_json(text: str) -> Any:
    """Recover a JSON value from model output.

    Steps:
        1. Strip an enclosing code fence and parse.
        2. Apply the textual repairs and parse.
        3. Take the greedy first-``{``-to-last-``}`` span, repair it and parse.

    Args:
        text: Raw string returned by the model.

    Returns:
        The parsed JSON value.

    Raises:
        JSONExtractionError: If every recovery step fails.
    """
    raw = text if isinstance(text, str) else ""
    cleaned = strip_code_fence(raw)

    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, RecursionError) as exc:
        logger.debug("Initial JSON parse failed: %s", _describe(exc)[0])

    last_candidate = repair_json_text(cleaned)
    try:
        return json.loads(last_candidate)
    except (json.JSONDecodeError, RecursionError) as exc:
        last_error = exc
        logger.debug("Repaired JSON parse failed: %s", _describe(exc)[0])

    span = _OBJECT_SPAN_PATTERN.search(cleaned)
    if span:
        candidate = repair_json_text(span.group(0))
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, RecursionError) as exc:
            last_error = exc
            last_candidate = candidate

    message, position = _describe(last_error)
    logger.warning("Failed to extract JSON after all attempts (length=%d): %s", len(raw), message)
    raise JSONExtractionError(
        text_length=len(raw),
        parser_message=message,
        position=position,
        excerpt=_excerpt(last_candidate, position),
    )
