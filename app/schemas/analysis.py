"""
app/schemas/analysis.py

Request and response schemas for the analysis API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AnalyzeRequestBody(BaseModel):
    """
    Raw submit payload. Field rules are enforced by `AnalysisRequest.create`
    so every rejection uses the same `{error, type}` shape.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    keyword: Any = None
    target_url: Any = Field(default=None, alias="targetUrl")
    model: Any = None


class HealthServices(BaseModel):
    has_serpapi_key: bool = Field(..., serialization_alias="hasSerpApiKey")
    has_openai_key: bool = Field(..., serialization_alias="hasOpenAIKey")
    has_anthropic_key: bool = Field(..., serialization_alias="hasAnthropicKey")
    has_scrapingbee_key: bool = Field(..., serialization_alias="hasScrapingBeeKey")


class HealthCache(BaseModel):
    backend: str
    serp_cache_enabled: bool = Field(..., serialization_alias="serpCacheEnabled")
    scrape_cache_enabled: bool = Field(..., serialization_alias="scrapeCacheEnabled")


class HealthResponse(BaseModel):
    """
    Service health and configuration presence. Never carries secret values.
    """

    status: str
    timestamp: str
    llm_adapter: str = Field(..., serialization_alias="llmAdapter")
    scrapingbee_enabled: bool = Field(..., serialization_alias="scrapingBeeEnabled")
    content_origin_enabled: bool = Field(..., serialization_alias="contentOriginEnabled")
    services: HealthServices
    cache: HealthCache
