"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_ALLOWED_CACHE_BACKENDS = {"file", "redis"}
_ALLOWED_LLM_ADAPTERS = {"auto", "mock"}


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class CacheSettings:
    """
    Cache backend selection and per-domain TTLs.
    """

    backend: str = "file"
    directory: str = ".cache"
    redis_url: str | None = None
    serp_enabled: bool = True
    serp_ttl_hours: float = 24.0
    scrape_enabled: bool = True
    scrape_ttl_hours: float = 24.0


@dataclass(frozen=True)
class ScrapeSettings:
    """
    Page fetching behavior for target and competitor pages.
    """

    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_max_seconds: float = 10.0
    rate_limit_delay_seconds: float = 1.0
    content_char_limit: int = 10_000
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    scrapingbee_enabled: bool = False
    scrapingbee_api_key: str | None = None
    scrapingbee_url: str = "https://app.scrapingbee.com/api/v1/"


@dataclass(frozen=True)
class SearchSettings:
    """
    SerpAPI search provider settings.
    """

    api_key: str | None = None
    base_url: str = "https://serpapi.com/search.json"
    location: str = "United States"
    gl: str = "us"
    hl: str = "en"
    num: int = 10
    result_limit: int = 5
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class LLMSettings:
    """
    Language model provider credentials and adapter selection.
    """

    adapter: str = "auto"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    anthropic_api_key: str | None = None


@dataclass(frozen=True)
class PipelineSettings:
    """
    Orchestrator tuning knobs.
    """

    deadline_seconds: float = 280.0
    competitor_call_delay_seconds: float = 0.5
    competitor_concurrency: int = 1
    min_competitor_pages: int = 2
    content_origin_enabled: bool = True
    progress_queue_size: int = 64
    stream_workers: int = 4


@lru_cache(maxsize=1)
def get_cache_settings() -> CacheSettings:
    """
    Return cached cache settings from environment variables.

    The backend is an explicit tag; an unknown value falls back to `file`.
    """

    backend = _get_str_env("CACHE_BACKEND", "file").lower()
    if backend not in _ALLOWED_CACHE_BACKENDS:
        backend = "file"
    return CacheSettings(
        backend=backend,
        directory=_get_str_env("CACHE_DIR", ".cache"),
        redis_url=_get_optional_str_env("REDIS_URL"),
        serp_enabled=_get_bool_env("ENABLE_SERP_CACHE", True),
        serp_ttl_hours=max(0.01, _get_float_env("SERP_CACHE_TTL_HOURS", 24.0)),
        scrape_enabled=_get_bool_env("ENABLE_SCRAPE_CACHE", True),
        scrape_ttl_hours=max(0.01, _get_float_env("SCRAPE_CACHE_TTL_HOURS", 24.0)),
    )


@lru_cache(maxsize=1)
def get_scrape_settings() -> ScrapeSettings:
    """
    Return cached page fetching settings from environment variables.
    """

    defaults = ScrapeSettings()
    return ScrapeSettings(
        timeout_seconds=max(1.0, _get_float_env("SCRAPE_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(1, _get_int_env("SCRAPE_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.0, _get_float_env("SCRAPE_BACKOFF_INITIAL_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env("SCRAPE_BACKOFF_MULTIPLIER", 2.0)),
        backoff_max_seconds=max(0.0, _get_float_env("SCRAPE_BACKOFF_MAX_SECONDS", 10.0)),
        rate_limit_delay_seconds=max(0.0, _get_int_env("RATE_LIMIT_DELAY_MS", 1000) / 1000.0),
        content_char_limit=max(500, _get_int_env("SCRAPE_CONTENT_CHAR_LIMIT", 10_000)),
        user_agent=_get_str_env("SCRAPE_USER_AGENT", defaults.user_agent),
        scrapingbee_enabled=_get_bool_env("USE_SCRAPINGBEE", False),
        scrapingbee_api_key=_get_optional_str_env("SCRAPINGBEE_API_KEY"),
    )


@lru_cache(maxsize=1)
def get_search_settings() -> SearchSettings:
    """
    Return cached SerpAPI settings from environment variables.
    """

    return SearchSettings(
        api_key=_get_optional_str_env("SERPAPI_API_KEY"),
        location=_get_str_env("SERP_LOCATION", "United States"),
        gl=_get_str_env("SERP_GL", "us"),
        hl=_get_str_env("SERP_HL", "en"),
        num=max(5, _get_int_env("SERP_NUM", 10)),
        timeout_seconds=max(1.0, _get_float_env("SERP_TIMEOUT_SECONDS", 30.0)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached language model settings from environment variables.
    """

    adapter = _get_str_env("LLM_ADAPTER", "auto").lower()
    if adapter not in _ALLOWED_LLM_ADAPTERS:
        adapter = "auto"
    return LLMSettings(
        adapter=adapter,
        openai_api_key=_get_optional_str_env("OPENAI_API_KEY"),
        openai_base_url=_get_optional_str_env("OPENAI_BASE_URL"),
        anthropic_api_key=_get_optional_str_env("ANTHROPIC_API_KEY"),
    )


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    """
    Return cached orchestrator settings from environment variables.
    """

    return PipelineSettings(
        deadline_seconds=max(10.0, _get_float_env("PIPELINE_DEADLINE_SECONDS", 280.0)),
        competitor_call_delay_seconds=max(
            0.0,
            _get_int_env("COMPETITOR_CALL_DELAY_MS", 500) / 1000.0,
        ),
        competitor_concurrency=max(1, _get_int_env("COMPETITOR_CONCURRENCY", 1)),
        content_origin_enabled=_get_bool_env("ENABLE_CONTENT_ORIGIN_STAGE", True),
        progress_queue_size=max(1, _get_int_env("PROGRESS_QUEUE_SIZE", 64)),
        stream_workers=max(1, _get_int_env("ANALYSIS_WORKERS", 4)),
    )
