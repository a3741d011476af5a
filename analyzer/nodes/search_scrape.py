"""
analyzer/nodes/search_scrape.py

Search & scrape node: top results, competitor pages, target page and the
structured data audit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from analyzer.context import FATAL, PipelineContext, diagnostic, halt_update, timeout_update
from analyzer.state import SEARCH_SCRAPE, PipelineState
from analyzer.types import ScrapedCompetitor, StageDiagnostic
from app.domain.pages import PageFeatureSet
from app.errors import ScrapeError, SearchError
from app.logging_utils import log_event
from app.validators.schema_health import build_schema_audit

logger = logging.getLogger(__name__)

PROGRESS_LABEL = "Searching Google and scraping top 5 pages"


def make_search_scrape_node(ctx: PipelineContext) -> Callable[[PipelineState], dict]:
    def search_scrape_node(state: PipelineState) -> dict:
        if ctx.deadline.expired():
            return timeout_update(SEARCH_SCRAPE, ctx.deadline.seconds)
        ctx.progress.report(PROGRESS_LABEL, 10)

        keyword = state["keyword"]
        try:
            results = ctx.search_provider.search(keyword)
        except SearchError as exc:
            log_event(logger, logging.ERROR, "search_failed", keyword=keyword, error=exc.message)
            return halt_update(
                FATAL,
                stage=SEARCH_SCRAPE,
                precondition="search_results",
                message=f"Search failed: {exc.message}",
            )
        if not results:
            return halt_update(
                FATAL,
                stage=SEARCH_SCRAPE,
                precondition="search_results",
                message=f'No search results found for keyword: "{keyword}".',
            )

        diagnostics: list[StageDiagnostic] = []
        competitors: list[ScrapedCompetitor] = []
        for result in results:
            if ctx.deadline.expired():
                return {
                    **timeout_update(SEARCH_SCRAPE, ctx.deadline.seconds),
                    "search_results": results,
                    "competitor_pages": competitors,
                    "diagnostics": diagnostics,
                }
            try:
                page = ctx.scraper.scrape(result.url)
            except ScrapeError as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "competitor_scrape_skipped",
                    url=result.url,
                    error=exc.message,
                )
                diagnostics.append(
                    diagnostic(SEARCH_SCRAPE, "skipped", f"Skipped {result.url}: {exc.message}")
                )
                continue
            competitors.append(ScrapedCompetitor(result=result, page=page))

        log_event(
            logger,
            logging.INFO,
            "competitors_scraped",
            scraped=len(competitors),
            attempted=len(results),
        )
        minimum = ctx.settings.min_competitor_pages
        if len(competitors) < minimum:
            return {
                **halt_update(
                    FATAL,
                    stage=SEARCH_SCRAPE,
                    precondition="min_competitor_pages",
                    message=(
                        f"Only scraped {len(competitors)} competitor pages. Need at least "
                        f"{minimum} for analysis. Some sites may be blocking the scraper."
                    ),
                ),
                "search_results": results,
                "competitor_pages": competitors,
                "diagnostics": diagnostics,
            }

        target_url = state["target_url"]
        incomplete_target_data = False
        try:
            target_page = ctx.scraper.scrape(target_url)
        except ScrapeError as exc:
            log_event(
                logger,
                logging.WARNING,
                "target_scrape_failed",
                url=target_url,
                error=exc.message,
            )
            target_page = PageFeatureSet.placeholder(target_url, exc.message)
            incomplete_target_data = True
            diagnostics.append(
                diagnostic(
                    SEARCH_SCRAPE,
                    "degraded",
                    f"Target page could not be scraped; using placeholder data: {exc.message}",
                )
            )

        return {
            "search_results": results,
            "competitor_pages": competitors,
            "target_page": target_page,
            "incomplete_target_data": incomplete_target_data,
            "schema_audit": build_schema_audit(target_page, [item.page for item in competitors]),
            "diagnostics": diagnostics,
            "completed_stages": [SEARCH_SCRAPE],
        }

    return search_scrape_node
