"""
app/search/serpapi.py

SerpAPI Google search provider returning the top organic results.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import requests

from app.cache.base import CacheBackend
from app.cache.keys import SERP_DOMAIN, build_cache_key
from app.config import CacheSettings, SearchSettings
from app.domain.pages import SearchResult
from app.errors import SearchError
from app.logging_utils import log_event

logger = logging.getLogger(__name__)


def extract_domain(url: str) -> str:
    host = urlparse(url).hostname
    if not host:
        return url
    return host[4:] if host.startswith("www.") else host


class SerpApiSearchProvider:
    """
    Search provider backed by the SerpAPI JSON endpoint.
    """

    def __init__(
        self,
        *,
        settings: SearchSettings,
        cache: CacheBackend,
        cache_settings: CacheSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.cache_settings = cache_settings
        self.session = session or requests.Session()

    def cache_key(self, keyword: str) -> str:
        content = "|".join((keyword, self.settings.location, self.settings.gl, self.settings.hl))
        return build_cache_key(SERP_DOMAIN, content)

    def search(self, keyword: str) -> list[SearchResult]:
        """
        Return up to `result_limit` organic results in ranking order.

        Raises:
            SearchError: On a missing key, provider error, HTTP failure or
                an empty organic result list.
        """

        if not keyword or not keyword.strip():
            raise SearchError("Keyword is required")
        if not self.settings.api_key:
            raise SearchError("SERPAPI_API_KEY environment variable is not set")

        cache_key = self.cache_key(keyword)
        if self.cache_settings.serp_enabled:
            cached = self.cache.get(cache_key)
            if isinstance(cached, list) and cached:
                log_event(logger, logging.INFO, "serp_cache_hit", keyword=keyword)
                return [SearchResult.from_dict(item) for item in cached]

        payload = self._request(keyword)
        organic_results = payload.get("organic_results") or []
        if not organic_results:
            raise SearchError(
                f'No organic results found for keyword: "{keyword}". '
                "This might be a restricted or unavailable search."
            )

        results = [
            self._to_result(item, index)
            for index, item in enumerate(organic_results[: self.settings.result_limit], start=1)
            if isinstance(item, dict) and item.get("link")
        ]
        if not results:
            raise SearchError(f'No usable organic results for keyword: "{keyword}".')

        log_event(logger, logging.INFO, "serp_fetched", keyword=keyword, results=len(results))
        if self.cache_settings.serp_enabled:
            self.cache.set(
                cache_key,
                [result.to_dict() for result in results],
                self.cache_settings.serp_ttl_hours,
            )
        return results

    def _request(self, keyword: str) -> dict[str, Any]:
        params = {
            "api_key": self.settings.api_key,
            "engine": "google",
            "q": keyword,
            "location": self.settings.location,
            "gl": self.settings.gl,
            "hl": self.settings.hl,
            "num": self.settings.num,
        }
        try:
            response = self.session.get(
                self.settings.base_url,
                params=params,
                timeout=self.settings.timeout_seconds,
            )
            payload = response.json()
        except requests.RequestException as exc:
            raise SearchError(f"SerpAPI search failed: {exc}") from exc
        except ValueError as exc:
            raise SearchError("SerpAPI search failed: response was not JSON") from exc

        if not isinstance(payload, dict):
            raise SearchError("SerpAPI search failed: unexpected response shape")
        if payload.get("error"):
            raise SearchError(f"SerpAPI search failed: SerpAPI Error: {payload['error']}")

        metadata = payload.get("search_metadata")
        if isinstance(metadata, dict) and metadata.get("status") == "error":
            raise SearchError(
                "SerpAPI search failed: SerpAPI returned an error status. "
                "Check your API key and quota."
            )
        if response.status_code >= 400:
            raise SearchError(f"SerpAPI search failed: HTTP {response.status_code}")
        return payload

    @staticmethod
    def _to_result(item: dict[str, Any], fallback_position: int) -> SearchResult:
        url = str(item.get("link") or "")
        try:
            position = int(item.get("position") or fallback_position)
        except (TypeError, ValueError):
            position = fallback_position
        return SearchResult(
            position=position,
            title=str(item.get("title") or ""),
            url=url,
            snippet=str(item.get("snippet") or ""),
            domain=extract_domain(url),
        )
