"""
tests/test_orchestrator.py

Pytest tests for the six-stage analysis graph, driven end to end through
`AnalysisOrchestrator` with in-memory search, scraping and model fakes.

Coverage
--------
- Happy path report shape and stage order
- Competitor scrape and analysis failures drop single pages
- Redirect loops from the real fetcher skip pages instead of failing the run
- Fatal preconditions (no results, too few scraped / analysed pages)
- Placeholder target page and insufficient content
- Retry / fallback degradations surface as diagnostics
- Disabled content origin stage
- Deadline expiry with partial state
- Monotonic progress ending at 100
"""

from __future__ import annotations

import pytest
import requests

from analyzer.orchestrator import AnalysisOrchestrator
from analyzer.progress import CallbackProgressSink
from analyzer.state import STAGE_ORDER
from analyzer.types import AnalysisRequest
from app.cache import RedisCache
from app.config import CacheSettings, PipelineSettings, ScrapeSettings
from app.errors import PipelineFatalError, PipelineTimeoutError, SearchError
from app.scraping.fetcher import PageFetcher
from app.scraping.page_scraper import PageScraper
from llm_analysis import budgets
from llm_analysis.adapter import _MOCK_RESPONSES
from tests.fakes import (
    FakeClock,
    FakeRedis,
    FakeResponse,
    FakeScraper,
    FakeSearchProvider,
    ScriptedLLMAdapter,
    make_page,
)

TARGET_URL = "https://mysite.com/shoes"


def _settings(**overrides) -> PipelineSettings:
    values = {"competitor_call_delay_seconds": 0.0, "deadline_seconds": 280.0}
    values.update(overrides)
    return PipelineSettings(**values)


def _request() -> AnalysisRequest:
    return AnalysisRequest.create("best running shoes", TARGET_URL, "claude-sonnet-4-5")


def _orchestrator(*, search=None, scraper=None, settings=None, clock=None) -> AnalysisOrchestrator:
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return AnalysisOrchestrator(
        search_provider=search or FakeSearchProvider(),
        scraper=scraper or FakeScraper(),
        settings=settings or _settings(),
        **kwargs,
    )


class RoutingSession:
    """Serves a small article for every URL except the ones stuck in a redirect loop."""

    def __init__(self, looping: set[str]) -> None:
        self.looping = looping

    def get(self, url: str, **kwargs) -> FakeResponse:
        if url in self.looping:
            raise requests.TooManyRedirects("Exceeded 30 redirects.")
        return FakeResponse(
            text=(
                "<html><head><title>Running shoes</title></head>"
                "<body><h1>Running shoes</h1><p>Cushioned trainers for daily miles.</p></body></html>"
            )
        )


def _page_reply_failing_for(*positions: int):
    """Page analysis reply that is never JSON for the given ranks."""

    def reply(prompt, options):
        if any(f"#{position} " in prompt for position in positions):
            return "The page looks great but I will not produce JSON."
        return _MOCK_RESPONSES[budgets.PAGE]

    return reply


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestHappyPath:
    def test_full_report(self) -> None:
        adapter = ScriptedLLMAdapter()
        report = _orchestrator().run(_request(), adapter=adapter)

        assert report.keyword == "best running shoes"
        assert report.target_url == TARGET_URL
        assert report.model == "claude-sonnet-4-5"
        assert [item.position for item in report.competitor_analyses] == [1, 2, 3, 4, 5]
        assert report.intent.intent == "commercial"
        assert report.content_origin is not None
        assert report.content_origin.assessment == "likely_human"
        assert report.incomplete_target_data is False
        assert report.diagnostics == []
        assert report.is_degraded is False
        assert set(report.stage_status) == set(STAGE_ORDER)
        assert set(report.stage_status.values()) == {"ok"}

    def test_one_call_per_stage(self) -> None:
        adapter = ScriptedLLMAdapter()
        _orchestrator().run(_request(), adapter=adapter)

        stages = [call[0] for call in adapter.calls]
        assert stages == [
            budgets.INTENT,
            *[budgets.PAGE] * 5,
            budgets.PATTERNS,
            budgets.CONTENT_ORIGIN,
            budgets.RECOMMENDATIONS,
        ]

    def test_report_dict_shape(self) -> None:
        payload = _orchestrator().run(_request(), adapter=ScriptedLLMAdapter()).to_dict()

        assert payload["targetUrl"] == TARGET_URL
        assert len(payload["searchResults"]) == 5
        assert "contentText" not in payload["targetPageData"]
        assert payload["competitorAnalyses"][0]["pageData"]["wordCount"] == 1200
        assert payload["schemaAudit"]["target"]["url"] == TARGET_URL
        assert payload["stageStatus"]["recommendations"] == "ok"

    def test_progress_is_monotonic_and_completes(self) -> None:
        events: list[tuple[str, int]] = []
        _orchestrator().run(
            _request(),
            adapter=ScriptedLLMAdapter(),
            progress_sink=CallbackProgressSink(lambda stage, pct: events.append((stage, pct))),
        )

        percentages = [pct for _, pct in events]
        assert percentages == sorted(percentages)
        assert events[0] == ("Searching Google and scraping top 5 pages", 10)
        assert events[-1] == ("Analysis complete", 100)
        assert ("Analyzed competitor 5/5", 60) in events

    def test_failing_progress_callback_does_not_break_run(self) -> None:
        def explode(stage, pct):
            raise RuntimeError("client went away")

        report = _orchestrator().run(
            _request(),
            adapter=ScriptedLLMAdapter(),
            progress_sink=CallbackProgressSink(explode),
        )
        assert len(report.competitor_analyses) == 5


# ---------------------------------------------------------------------------
# Degradations
# ---------------------------------------------------------------------------


class TestDegradations:
    def test_one_competitor_scrape_failure_is_dropped(self) -> None:
        scraper = FakeScraper(failures={"https://site2.com/page"})
        report = _orchestrator(scraper=scraper).run(_request(), adapter=ScriptedLLMAdapter())

        assert [item.position for item in report.competitor_analyses] == [1, 3, 4, 5]
        assert report.diagnostics[0].status == "skipped"
        assert report.diagnostics[0].reason.startswith("Skipped https://site2.com/page")

    def test_one_competitor_analysis_failure_is_dropped(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.PAGE: [_page_reply_failing_for(3)]})
        report = _orchestrator().run(_request(), adapter=adapter)

        assert [item.position for item in report.competitor_analyses] == [1, 2, 4, 5]
        assert report.stage_status["competitors"] == "degraded"
        dropped = [item for item in report.diagnostics if item.stage == "competitors"]
        assert len(dropped) == 1
        assert dropped[0].reason.startswith("Dropped https://site3.com/page")

    def test_redirect_loops_skip_competitor_and_placeholder_target(self) -> None:
        looping = {"https://site2.com/page", TARGET_URL}
        scraper = PageScraper(
            fetcher=PageFetcher(
                settings=ScrapeSettings(),
                session=RoutingSession(looping),
                sleep=lambda seconds: None,
            ),
            cache=RedisCache(client=FakeRedis()),
            cache_settings=CacheSettings(scrape_enabled=False),
        )
        report = _orchestrator(scraper=scraper).run(_request(), adapter=ScriptedLLMAdapter())

        assert [item.position for item in report.competitor_analyses] == [1, 3, 4, 5]
        assert report.incomplete_target_data is True
        assert report.target_page.is_placeholder is True
        assert report.diagnostics[0].reason.startswith("Skipped https://site2.com/page")

    def test_target_scrape_failure_uses_placeholder(self) -> None:
        scraper = FakeScraper(failures={TARGET_URL})
        adapter = ScriptedLLMAdapter()
        report = _orchestrator(scraper=scraper).run(_request(), adapter=adapter)

        assert report.incomplete_target_data is True
        assert report.target_page.is_placeholder is True
        assert report.stage_status["search_scrape"] == "degraded"
        assert report.content_origin.assessment == "insufficient_content"
        assert report.schema_audit["target"] is None
        assert adapter.calls_for(budgets.CONTENT_ORIGIN) == []
        assert "could not be scraped" in adapter.calls_for(budgets.RECOMMENDATIONS)[0][1]

    def test_short_target_page_skips_content_origin_call(self) -> None:
        scraper = FakeScraper(pages={TARGET_URL: make_page(TARGET_URL, word_count=20)})
        adapter = ScriptedLLMAdapter()
        report = _orchestrator(scraper=scraper).run(_request(), adapter=adapter)

        assert report.content_origin.assessment == "insufficient_content"
        assert report.stage_status["content_origin"] == "degraded"
        assert adapter.calls_for(budgets.CONTENT_ORIGIN) == []

    def test_unparseable_intent_uses_fallback(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.INTENT: ["no json at all"]})
        report = _orchestrator().run(_request(), adapter=adapter)

        assert report.intent.intent == "informational"
        assert report.stage_status["intent"] == "fallback"
        assert len(adapter.calls_for(budgets.INTENT)) == 2
        assert report.diagnostics[0].stage == "intent"
        assert report.diagnostics[0].status == "fallback"
        assert report.diagnostics[0].reason.startswith("fallback used:")

    def test_recommendations_fallback_anchors_on_patterns(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.RECOMMENDATIONS: ["{broken"]})
        report = _orchestrator().run(_request(), adapter=adapter)

        assert report.stage_status["recommendations"] == "fallback"
        assert "2200 words" in report.recommendations.recommendations[0].description

    def test_content_origin_disabled(self) -> None:
        adapter = ScriptedLLMAdapter()
        report = _orchestrator(settings=_settings(content_origin_enabled=False)).run(
            _request(), adapter=adapter
        )

        assert report.content_origin is None
        assert report.stage_status["content_origin"] == "skipped"
        assert report.to_dict()["contentOriginAnalysis"] is None
        assert adapter.calls_for(budgets.CONTENT_ORIGIN) == []


# ---------------------------------------------------------------------------
# Fatal conditions
# ---------------------------------------------------------------------------


class TestFatalConditions:
    def test_search_error_is_fatal(self) -> None:
        search = FakeSearchProvider(error=SearchError("SerpAPI search failed: HTTP 401"))
        adapter = ScriptedLLMAdapter()

        with pytest.raises(PipelineFatalError) as exc_info:
            _orchestrator(search=search).run(_request(), adapter=adapter)

        assert exc_info.value.precondition == "search_results"
        assert exc_info.value.stage == "search_scrape"
        assert "HTTP 401" in exc_info.value.message
        assert adapter.calls == []

    def test_empty_results_are_fatal(self) -> None:
        with pytest.raises(PipelineFatalError) as exc_info:
            _orchestrator(search=FakeSearchProvider(results=[])).run(
                _request(), adapter=ScriptedLLMAdapter()
            )
        assert exc_info.value.precondition == "search_results"

    def test_too_few_scraped_pages_is_fatal(self) -> None:
        failures = {f"https://site{i}.com/page" for i in range(1, 5)}
        with pytest.raises(PipelineFatalError) as exc_info:
            _orchestrator(scraper=FakeScraper(failures=failures)).run(
                _request(), adapter=ScriptedLLMAdapter()
            )

        assert exc_info.value.precondition == "min_competitor_pages"
        assert "Only scraped 1 competitor pages" in exc_info.value.message

    def test_two_scraped_pages_are_enough(self) -> None:
        failures = {f"https://site{i}.com/page" for i in range(1, 4)}
        report = _orchestrator(scraper=FakeScraper(failures=failures)).run(
            _request(), adapter=ScriptedLLMAdapter()
        )
        assert [item.position for item in report.competitor_analyses] == [4, 5]

    def test_too_few_analyses_is_fatal(self) -> None:
        adapter = ScriptedLLMAdapter({budgets.PAGE: [_page_reply_failing_for(1, 2, 3, 4)]})
        with pytest.raises(PipelineFatalError) as exc_info:
            _orchestrator().run(_request(), adapter=adapter)

        assert exc_info.value.precondition == "min_competitor_analyses"
        assert exc_info.value.stage == "competitors"
        assert adapter.calls_for(budgets.PATTERNS) == []


# ---------------------------------------------------------------------------
# Deadline
# ---------------------------------------------------------------------------


class TestDeadline:
    def test_timeout_carries_partial_state(self) -> None:
        clock = FakeClock(start=0.0)

        def slow_target(url: str) -> None:
            if url == TARGET_URL:
                clock.advance(300)

        orchestrator = _orchestrator(scraper=FakeScraper(on_scrape=slow_target), clock=clock)
        adapter = ScriptedLLMAdapter()

        with pytest.raises(PipelineTimeoutError) as exc_info:
            orchestrator.run(_request(), adapter=adapter)

        error = exc_info.value
        assert error.stage == "intent"
        assert error.error_type == "timeout"
        assert error.partial_state["completedStages"] == ["search_scrape"]
        assert len(error.partial_state["searchResults"]) == 5
        assert "intentAnalysis" not in error.partial_state
        assert adapter.calls == []

    def test_per_call_deadline_override(self) -> None:
        clock = FakeClock(start=0.0)

        def tick(url: str) -> None:
            clock.advance(2)

        orchestrator = _orchestrator(scraper=FakeScraper(on_scrape=tick), clock=clock)
        with pytest.raises(PipelineTimeoutError) as exc_info:
            orchestrator.run(_request(), adapter=ScriptedLLMAdapter(), deadline_seconds=5)

        assert exc_info.value.stage == "search_scrape"
        assert "5s deadline" in exc_info.value.message
