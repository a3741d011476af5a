"""
app/scraping/page_scraper.py

Fetch + extract + daily cache for a single page.
"""

from __future__ import annotations

import logging

from app.cache.base import CacheBackend
from app.cache.keys import PAGE_DOMAIN, build_cache_key
from app.config import CacheSettings
from app.domain.pages import PageFeatureSet
from app.errors import ScrapeError
from app.logging_utils import log_event
from app.scraping.extractor import DEFAULT_CONTENT_CHAR_LIMIT, extract_page_features
from app.scraping.fetcher import PageFetcher
from app.scraping.rate_limiter import IntervalRateLimiter

logger = logging.getLogger(__name__)


class PageScraper:
    """
    Turns a URL into a `PageFeatureSet`, consulting the cache first.

    Live fetches go through the shared rate limiter; cache hits do not.
    """

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        cache: CacheBackend,
        cache_settings: CacheSettings,
        rate_limiter: IntervalRateLimiter | None = None,
        content_char_limit: int = DEFAULT_CONTENT_CHAR_LIMIT,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.cache_settings = cache_settings
        self.rate_limiter = rate_limiter
        self.content_char_limit = content_char_limit

    def scrape(self, url: str) -> PageFeatureSet:
        """
        Return extracted features for `url`.

        Raises:
            ScrapeError: When the page cannot be fetched or parsed.
        """

        cache_key = build_cache_key(PAGE_DOMAIN, url)
        if self.cache_settings.scrape_enabled:
            cached = self.cache.get(cache_key)
            if isinstance(cached, dict):
                log_event(logger, logging.INFO, "page_cache_hit", url=url)
                return PageFeatureSet.from_dict(cached)

        if self.rate_limiter is not None:
            self.rate_limiter.wait()

        html = self.fetcher.fetch(url)
        try:
            features = extract_page_features(
                html,
                url,
                content_char_limit=self.content_char_limit,
            )
        except (ValueError, TypeError, AttributeError) as exc:
            raise ScrapeError(f"Failed to parse {url}: {exc}", url=url) from exc

        log_event(
            logger,
            logging.INFO,
            "page_scraped",
            url=url,
            word_count=features.word_count,
            schema_types=features.schema_types,
        )

        if self.cache_settings.scrape_enabled:
            self.cache.set(cache_key, features.to_dict(), self.cache_settings.scrape_ttl_hours)
        return features
