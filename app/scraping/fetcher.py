"""
HTTP page fetcher with retry, backoff and optional ScrapingBee proxy.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests

from app.config import ScrapeSettings
from app.errors import ScrapeError
from app.logging_utils import log_event

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class PageFetcher:
    """
    Fetches raw HTML for a URL.

    Timeouts, connection errors, 429 and 5xx responses are retried with
    exponential backoff; any other 4xx or request failure (redirect loops,
    invalid URLs, broken bodies) fails immediately. Every failure surfaces
    as `ScrapeError`.
    """

    def __init__(
        self,
        *,
        settings: ScrapeSettings,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self._sleep = sleep
        self.request_headers = {
            "User-Agent": settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
        }

    def fetch(self, url: str) -> str:
        """
        Return the HTML body for `url`, trying ScrapingBee first when enabled.
        """

        if self.settings.scrapingbee_enabled and self.settings.scrapingbee_api_key:
            try:
                return self._fetch_with_scrapingbee(url)
            except ScrapeError as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "scrapingbee_failed_falling_back",
                    url=url,
                    error=str(exc),
                )

        return self._fetch_directly(url)

    def backoff_seconds(self, attempt: int) -> float:
        """
        Delay before retry number `attempt + 1` (attempt is zero-based).
        """

        delay = self.settings.backoff_initial_seconds * (self.settings.backoff_multiplier**attempt)
        return min(delay, self.settings.backoff_max_seconds)

    def _fetch_with_scrapingbee(self, url: str) -> str:
        try:
            response = self.session.get(
                self.settings.scrapingbee_url,
                params={
                    "api_key": self.settings.scrapingbee_api_key,
                    "url": url,
                    "render_js": "false",
                    "premium_proxy": "false",
                    "country_code": "us",
                },
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ScrapeError(f"ScrapingBee request failed: {exc}", url=url) from exc
        if not response.text:
            raise ScrapeError("ScrapingBee returned empty response", url=url)
        log_event(logger, logging.INFO, "scrapingbee_fetched", url=url, size=len(response.text))
        return response.text

    def _fetch_directly(self, url: str) -> str:
        last_error: Exception | None = None
        max_attempts = self.settings.max_retries

        for attempt in range(max_attempts):
            try:
                response = self.session.get(
                    url,
                    headers=self.request_headers,
                    timeout=self.settings.timeout_seconds,
                    allow_redirects=True,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable status={response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                log_event(
                    logger,
                    logging.INFO,
                    "page_fetched",
                    url=url,
                    attempt=attempt + 1,
                    size=len(response.text),
                )
                return response.text
            except (requests.Timeout, requests.ConnectionError, requests.HTTPError) as exc:
                last_error = exc
                if isinstance(exc, requests.HTTPError):
                    status_code = exc.response.status_code if exc.response is not None else None
                    if status_code not in RETRYABLE_STATUS_CODES:
                        raise ScrapeError(
                            f"HTTP {status_code} fetching {url}",
                            url=url,
                            status_code=status_code,
                        ) from exc
            except requests.RequestException as exc:
                raise ScrapeError(f"Request failed for {url}: {exc}", url=url) from exc

            if attempt + 1 >= max_attempts:
                break

            delay = self.backoff_seconds(attempt)
            log_event(
                logger,
                logging.WARNING,
                "page_fetch_retry",
                url=url,
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay_seconds=delay,
                error=str(last_error),
            )
            self._sleep(delay)

        raise ScrapeError(
            f"Failed to fetch {url} after {max_attempts} attempts: {last_error}",
            url=url,
        )
