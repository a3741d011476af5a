"""
Content-addressed cache key construction.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone

SERP_DOMAIN = "serp"
PAGE_DOMAIN = "page"


def md5_hex(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def build_cache_key(domain: str, content: str, *, now: datetime | None = None) -> str:
    """
    Build `{domain}:{md5(content)}:{YYYY-MM-DD}` using the UTC calendar date.

    The same content on the same UTC day always maps to the same key; the
    date bucket rolls the key over at UTC midnight.
    """

    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{domain}:{md5_hex(content)}:{moment.strftime('%Y-%m-%d')}"
