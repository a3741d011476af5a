"""
app/domain/pages.py

Domain models for search results and scraped page features.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

PLACEHOLDER_TITLE = "Unable to scrape (403/404 or blocked)"
PLACEHOLDER_CONTENT = "Page could not be scraped - site may have anti-bot protection."


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SearchResult:
    """
    One organic search result, positions starting at 1.
    """

    position: int
    title: str
    url: str
    snippet: str
    domain: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SearchResult:
        return cls(
            position=int(payload.get("position") or 0),
            title=str(payload.get("title") or ""),
            url=str(payload.get("url") or ""),
            snippet=str(payload.get("snippet") or ""),
            domain=str(payload.get("domain") or ""),
        )


@dataclass(frozen=True)
class PageFeatureSet:
    """
    Normalized features extracted from one fetched page.

    A placeholder instance stands in for a page that could not be fetched;
    it is tagged with `is_placeholder` so later stages can branch on it.
    """

    url: str
    title: str = ""
    meta_description: str = ""
    h1_tags: list[str] = field(default_factory=list)
    h2_tags: list[str] = field(default_factory=list)
    h3_tags: list[str] = field(default_factory=list)
    content_text: str = ""
    word_count: int = 0
    has_schema: bool = False
    schema_types: list[str] = field(default_factory=list)
    image_count: int = 0
    has_video: bool = False
    has_faq: bool = False
    has_tables: bool = False
    has_lists: bool = False
    internal_links: int = 0
    external_links: int = 0
    fetched_at: str = field(default_factory=_utc_now_iso)
    structured_data: list[dict[str, Any]] = field(default_factory=list)
    structured_data_errors: list[str] = field(default_factory=list)
    is_placeholder: bool = False
    placeholder_reason: str | None = None

    @classmethod
    def placeholder(cls, url: str, reason: str) -> PageFeatureSet:
        """
        Build the all-empty stand-in for an unscrapable page.
        """

        return cls(
            url=url,
            title=PLACEHOLDER_TITLE,
            content_text=PLACEHOLDER_CONTENT,
            is_placeholder=True,
            placeholder_reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PageFeatureSet:
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in payload.items() if key in known})
