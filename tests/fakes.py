"""
tests/fakes.py

In-memory stand-ins shared by the test suites. Nothing here touches the
network, a real Redis or a model provider.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import redis
import requests

from app.domain.pages import PageFeatureSet, SearchResult
from app.errors import ModelError, ScrapeError, SearchError
from llm_analysis.adapter import _MOCK_RESPONSES, BaseLLMAdapter, GenerationOptions, LLMResponse


class FakeClock:
    """
    Manually advanced clock usable as a `time.time` / `time.monotonic` stand-in.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """
    Dict-backed subset of the redis-py client used by `RedisCache`.
    """

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise redis.ConnectionError("connection refused")

    def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key: str) -> None:
        self._check()
        self.store.pop(key, None)
        self.ttls.pop(key, None)

    def flushdb(self) -> None:
        self._check()
        self.store.clear()
        self.ttls.clear()

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Model adapter
# ---------------------------------------------------------------------------

Reply = Any  # str | dict | Exception | Callable[[str, GenerationOptions], Any]


class ScriptedLLMAdapter(BaseLLMAdapter):
    """
    Adapter replaying scripted replies per stage label.

    A reply may be a string (returned verbatim), a dict (JSON-encoded), an
    exception instance (raised) or a callable receiving the prompt and the
    options. Stages without a script fall back to the mock payloads; once a
    stage's script is exhausted its last reply repeats.
    """

    model = "scripted"

    def __init__(self, script: dict[str, list[Reply]] | None = None) -> None:
        self.script = {stage: list(replies) for stage, replies in (script or {}).items()}
        self.calls: list[tuple[str | None, str, GenerationOptions]] = []

    def generate(self, prompt: str, options: GenerationOptions) -> LLMResponse:
        self.calls.append((options.stage, prompt, options))
        replies = self.script.get(options.stage or "")
        if replies:
            reply = replies.pop(0) if len(replies) > 1 else replies[0]
        else:
            reply = _MOCK_RESPONSES.get(options.stage or "")
            if reply is None:
                raise ModelError(f"No scripted reply for stage '{options.stage}'", provider="fake")

        if callable(reply) and not isinstance(reply, type):
            reply = reply(prompt, options)
        if isinstance(reply, Exception):
            raise reply
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(text=text, model=self.model, tokens_used=0)

    def calls_for(self, stage: str) -> list[tuple[str | None, str, GenerationOptions]]:
        return [call for call in self.calls if call[0] == stage]


# ---------------------------------------------------------------------------
# Search and scraping
# ---------------------------------------------------------------------------


def make_result(position: int, domain: str | None = None) -> SearchResult:
    domain = domain or f"site{position}.com"
    return SearchResult(
        position=position,
        title=f"Result {position}",
        url=f"https://{domain}/page",
        snippet=f"Snippet for result {position}",
        domain=domain,
    )


def make_page(url: str, *, word_count: int = 1200, **overrides: Any) -> PageFeatureSet:
    words = " ".join(["content"] * min(word_count, 400))
    values: dict[str, Any] = {
        "url": url,
        "title": f"Title for {url}",
        "meta_description": "A page used in tests.",
        "h1_tags": ["Main heading"],
        "h2_tags": ["Section one", "Section two"],
        "h3_tags": [],
        "content_text": words,
        "word_count": word_count,
        "has_schema": True,
        "schema_types": ["Article"],
        "image_count": 3,
        "has_faq": True,
        "has_tables": True,
        "has_lists": True,
        "internal_links": 10,
        "external_links": 2,
        "structured_data": [
            {
                "@context": "https://schema.org",
                "@type": "Article",
                "headline": "Heading",
                "author": {"@type": "Person", "name": "A. Writer"},
                "datePublished": "2025-01-01",
            }
        ],
    }
    values.update(overrides)
    return PageFeatureSet(**values)


class FakeSearchProvider:
    def __init__(
        self,
        results: list[SearchResult] | None = None,
        *,
        error: SearchError | None = None,
    ) -> None:
        self.results = results if results is not None else [make_result(i) for i in range(1, 6)]
        self.error = error
        self.calls: list[str] = []

    def search(self, keyword: str) -> list[SearchResult]:
        self.calls.append(keyword)
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeScraper:
    """
    Returns a generated page for every URL unless the URL is listed in
    `failures` or mapped explicitly in `pages`.
    """

    def __init__(
        self,
        *,
        pages: dict[str, PageFeatureSet] | None = None,
        failures: set[str] | None = None,
        on_scrape: Callable[[str], None] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.failures = failures or set()
        self.on_scrape = on_scrape
        self.calls: list[str] = []

    def scrape(self, url: str) -> PageFeatureSet:
        self.calls.append(url)
        if self.on_scrape is not None:
            self.on_scrape(url)
        if url in self.failures:
            raise ScrapeError(f"HTTP 403 fetching {url}", url=url, status_code=403)
        return self.pages.get(url) or make_page(url)


# ---------------------------------------------------------------------------
# requests
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(
        self,
        *,
        status_code: int = 200,
        text: str = "",
        payload: Any = None,
    ) -> None:
        self.status_code = status_code
        self.text = text
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.text)
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """
    Replays queued responses (or raises queued exceptions) for `get`.
    """

    def __init__(self, replies: list[FakeResponse | Exception]) -> None:
        self.replies = list(replies)
        self.requests: list[dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append({"url": url, **kwargs})
        if not self.replies:
            raise AssertionError(f"Unexpected request to {url}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply
