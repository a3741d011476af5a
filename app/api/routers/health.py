"""
app/api/routers/health.py

Health endpoint reporting configuration presence.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from app.config import (
    get_cache_settings,
    get_llm_settings,
    get_pipeline_settings,
    get_scrape_settings,
    get_search_settings,
)
from app.schemas.analysis import HealthCache, HealthResponse, HealthServices

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
def healthcheck() -> HealthResponse:
    """
    Report which providers are configured. Key values are never returned.
    """

    cache_settings = get_cache_settings()
    scrape_settings = get_scrape_settings()
    llm_settings = get_llm_settings()

    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        llm_adapter=llm_settings.adapter,
        scrapingbee_enabled=scrape_settings.scrapingbee_enabled,
        content_origin_enabled=get_pipeline_settings().content_origin_enabled,
        services=HealthServices(
            has_serpapi_key=bool(get_search_settings().api_key),
            has_openai_key=bool(llm_settings.openai_api_key),
            has_anthropic_key=bool(llm_settings.anthropic_api_key),
            has_scrapingbee_key=bool(scrape_settings.scrapingbee_api_key),
        ),
        cache=HealthCache(
            backend=cache_settings.backend,
            serp_cache_enabled=cache_settings.serp_enabled,
            scrape_cache_enabled=cache_settings.scrape_enabled,
        ),
    )
