"""
tests/test_fetcher.py

Pytest unit tests for the retrying HTTP page fetcher.

Coverage
--------
- Successful fetch sends browser-like headers
- 429 / 5xx / timeouts retried with capped exponential backoff
- Definitive 4xx fails immediately with the status code
- Redirect loops and other request failures become ScrapeError without retry
- Exhausted retries raise ScrapeError
- ScrapingBee proxy path and fallback to a direct fetch
"""

from __future__ import annotations

import pytest
import requests

from app.config import ScrapeSettings
from app.errors import ScrapeError
from app.scraping.fetcher import PageFetcher
from tests.fakes import FakeResponse, FakeSession

URL = "https://site.test/page"


def _fetcher(replies, **settings) -> tuple[PageFetcher, FakeSession, list[float]]:
    session = FakeSession(replies)
    sleeps: list[float] = []
    fetcher = PageFetcher(
        settings=ScrapeSettings(**settings),
        session=session,
        sleep=sleeps.append,
    )
    return fetcher, session, sleeps


class TestPageFetcher:
    def test_success(self) -> None:
        fetcher, session, sleeps = _fetcher([FakeResponse(text="<html>ok</html>")])

        assert fetcher.fetch(URL) == "<html>ok</html>"
        assert sleeps == []
        assert session.requests[0]["url"] == URL
        assert "Mozilla" in session.requests[0]["headers"]["User-Agent"]
        assert session.requests[0]["allow_redirects"] is True

    def test_retryable_statuses_then_success(self) -> None:
        fetcher, session, sleeps = _fetcher(
            [
                FakeResponse(status_code=503),
                requests.Timeout("slow"),
                FakeResponse(status_code=429),
                FakeResponse(text="done"),
            ],
            max_retries=4,
        )

        assert fetcher.fetch(URL) == "done"
        assert sleeps == [1.0, 2.0, 4.0]
        assert len(session.requests) == 4

    def test_client_error_is_not_retried(self) -> None:
        fetcher, session, sleeps = _fetcher([FakeResponse(status_code=403)])

        with pytest.raises(ScrapeError) as exc_info:
            fetcher.fetch(URL)

        assert exc_info.value.status_code == 403
        assert exc_info.value.url == URL
        assert len(session.requests) == 1
        assert sleeps == []

    def test_exhausted_retries(self) -> None:
        fetcher, session, sleeps = _fetcher(
            [requests.ConnectionError("refused")] * 3,
            max_retries=3,
        )

        with pytest.raises(ScrapeError, match="after 3 attempts"):
            fetcher.fetch(URL)
        assert len(session.requests) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.parametrize(
        "error",
        [
            requests.TooManyRedirects("Exceeded 30 redirects."),
            requests.exceptions.InvalidURL("bad host"),
            requests.exceptions.ChunkedEncodingError("truncated body"),
            requests.exceptions.ContentDecodingError("bad gzip"),
        ],
    )
    def test_other_request_failures_become_scrape_errors(self, error) -> None:
        fetcher, session, sleeps = _fetcher([error])

        with pytest.raises(ScrapeError) as exc_info:
            fetcher.fetch(URL)

        assert exc_info.value.url == URL
        assert isinstance(exc_info.value.__cause__, type(error))
        assert len(session.requests) == 1
        assert sleeps == []

    def test_backoff_is_capped(self) -> None:
        fetcher, _, _ = _fetcher([], backoff_max_seconds=5.0)
        assert [fetcher.backoff_seconds(attempt) for attempt in range(5)] == [
            1.0,
            2.0,
            4.0,
            5.0,
            5.0,
        ]


class TestScrapingBee:
    def test_proxy_is_used_when_enabled(self) -> None:
        fetcher, session, _ = _fetcher(
            [FakeResponse(text="<html>proxied</html>")],
            scrapingbee_enabled=True,
            scrapingbee_api_key="bee-key",
        )

        assert fetcher.fetch(URL) == "<html>proxied</html>"
        request = session.requests[0]
        assert request["url"] == "https://app.scrapingbee.com/api/v1/"
        assert request["params"]["url"] == URL
        assert request["params"]["api_key"] == "bee-key"

    def test_proxy_failure_falls_back_to_direct(self) -> None:
        fetcher, session, _ = _fetcher(
            [FakeResponse(status_code=500), FakeResponse(text="direct")],
            scrapingbee_enabled=True,
            scrapingbee_api_key="bee-key",
        )

        assert fetcher.fetch(URL) == "direct"
        assert session.requests[1]["url"] == URL

    def test_proxy_redirect_loop_falls_back(self) -> None:
        fetcher, session, _ = _fetcher(
            [requests.TooManyRedirects("loop"), FakeResponse(text="direct")],
            scrapingbee_enabled=True,
            scrapingbee_api_key="bee-key",
        )

        assert fetcher.fetch(URL) == "direct"
        assert session.requests[1]["url"] == URL

    def test_proxy_and_direct_failures_raise_scrape_error(self) -> None:
        fetcher, _, _ = _fetcher(
            [requests.TooManyRedirects("loop"), requests.TooManyRedirects("loop")],
            scrapingbee_enabled=True,
            scrapingbee_api_key="bee-key",
        )

        with pytest.raises(ScrapeError):
            fetcher.fetch(URL)

    def test_empty_proxy_body_falls_back(self) -> None:
        fetcher, _, _ = _fetcher(
            [FakeResponse(text=""), FakeResponse(text="direct")],
            scrapingbee_enabled=True,
            scrapingbee_api_key="bee-key",
        )
        assert fetcher.fetch(URL) == "direct"

    def test_proxy_ignored_without_key(self) -> None:
        fetcher, session, _ = _fetcher([FakeResponse(text="direct")], scrapingbee_enabled=True)
        assert fetcher.fetch(URL) == "direct"
        assert session.requests[0]["url"] == URL
