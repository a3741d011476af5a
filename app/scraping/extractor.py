"""
BeautifulSoup-based extraction of SEO page features.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from app.domain.pages import PageFeatureSet
from app.validators.structured_data import flatten_json_ld, parse_json_ld_scripts, schema_type_names

WHITESPACE_REGEX = re.compile(r"\s+")
DEFAULT_CONTENT_CHAR_LIMIT = 10_000
NON_CONTENT_TAGS = ("script", "style", "noscript", "iframe")
VIDEO_SELECTOR = 'video, iframe[src*="youtube"], iframe[src*="vimeo"], iframe[src*="wistia"]'
FAQ_SELECTOR = '.faq, [itemtype*="FAQPage"], [class*="faq"]'


def clean_text(text: str) -> str:
    return WHITESPACE_REGEX.sub(" ", text or "").strip()


def count_words(text: str) -> int:
    cleaned = clean_text(text)
    if not cleaned:
        return 0
    return len(cleaned.split(" "))


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    content = tag.get("content")
    return content if isinstance(content, str) else ""


def _headings(soup: BeautifulSoup, name: str) -> list[str]:
    texts = (clean_text(tag.get_text(" ")) for tag in soup.find_all(name))
    return [text for text in texts if text]


def _count_links(soup: BeautifulSoup, page_url: str) -> tuple[int, int]:
    page_host = urlparse(page_url).hostname
    internal = 0
    external = 0
    for anchor in soup.find_all("a", href=True):
        href = str(anchor.get("href") or "").strip()
        if href.startswith("http"):
            link_host = urlparse(href).hostname
            if not link_host:
                continue
            if link_host == page_host:
                internal += 1
            else:
                external += 1
        elif href.startswith("/") or not href.startswith("#"):
            internal += 1
    return internal, external


def extract_page_features(
    html: str,
    url: str,
    *,
    content_char_limit: int = DEFAULT_CONTENT_CHAR_LIMIT,
) -> PageFeatureSet:
    """
    Extract SEO-relevant features from raw HTML. Pure; performs no I/O.
    """

    soup = BeautifulSoup(html or "", "html.parser")

    # Structured data must be read before scripts are stripped.
    structured_data, structured_data_errors = parse_json_ld_scripts(soup)
    schema_types: list[str] = []
    for item in flatten_json_ld(structured_data):
        for type_name in schema_type_names(item):
            if type_name not in schema_types:
                schema_types.append(type_name)

    title_tag = soup.find("title")
    first_h1 = soup.find("h1")
    title = (
        (title_tag.get_text(strip=True) if title_tag else "")
        or _meta_content(soup, property="og:title")
        or (first_h1.get_text(" ", strip=True) if first_h1 else "")
        or "No title found"
    )
    meta_description = _meta_content(soup, name="description") or _meta_content(
        soup, property="og:description"
    )

    h1_tags = _headings(soup, "h1")
    h2_tags = _headings(soup, "h2")
    h3_tags = _headings(soup, "h3")

    has_video = soup.select_one(VIDEO_SELECTOR) is not None
    has_faq = soup.select_one(FAQ_SELECTOR) is not None or any(
        "faq" in type_name.lower() for type_name in schema_types
    )
    has_tables = soup.find("table") is not None
    has_lists = soup.find(["ul", "ol"]) is not None
    image_count = len(soup.find_all("img"))
    internal_links, external_links = _count_links(soup, url)

    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()
    body = soup.body or soup
    content_text = clean_text(body.get_text(" "))

    return PageFeatureSet(
        url=url,
        title=clean_text(title),
        meta_description=clean_text(meta_description),
        h1_tags=h1_tags,
        h2_tags=h2_tags,
        h3_tags=h3_tags,
        content_text=content_text[:content_char_limit],
        word_count=count_words(content_text),
        has_schema=bool(structured_data) or bool(structured_data_errors),
        schema_types=schema_types,
        image_count=image_count,
        has_video=has_video,
        has_faq=has_faq,
        has_tables=has_tables,
        has_lists=has_lists,
        internal_links=internal_links,
        external_links=external_links,
        fetched_at=datetime.now(timezone.utc).isoformat(),
        structured_data=structured_data,
        structured_data_errors=structured_data_errors,
    )
