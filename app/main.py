from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as BodyValidationError
from fastapi.responses import JSONResponse

from app.config import load_env_files


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - SERPAPI_API_KEY is always required.
    - At least one LLM provider key is required unless LLM_ADAPTER=mock.
    - CACHE_BACKEND=redis requires REDIS_URL.
    - USE_SCRAPINGBEE=true requires SCRAPINGBEE_API_KEY.
    """

    load_env_files()

    errors: list[str] = []

    # --- Search ---------------------------------------------------------
    if not os.getenv("SERPAPI_API_KEY", "").strip():
        errors.append("SERPAPI_API_KEY is not set. Empty strings are not permitted.")

    # --- LLM API keys ---------------------------------------------------
    adapter = os.getenv("LLM_ADAPTER", "auto").strip().lower()
    if adapter != "mock":
        openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        anthropic_api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        if not openai_api_key and not anthropic_api_key:
            errors.append(
                "No LLM API key is set. Provide OPENAI_API_KEY or ANTHROPIC_API_KEY, "
                "or set LLM_ADAPTER=mock."
            )

    # --- Cache backend --------------------------------------------------
    cache_backend = os.getenv("CACHE_BACKEND", "file").strip().lower()
    if cache_backend not in {"file", "redis"}:
        errors.append(
            f"CACHE_BACKEND='{cache_backend}' is not valid. Allowed values: ['file', 'redis']."
        )
    elif cache_backend == "redis" and not os.getenv("REDIS_URL", "").strip():
        errors.append("CACHE_BACKEND=redis requires REDIS_URL.")

    # --- ScrapingBee ----------------------------------------------------
    scrapingbee_raw = os.getenv("USE_SCRAPINGBEE", "false").strip().lower()
    if scrapingbee_raw in {"1", "true", "yes", "on"} and not os.getenv(
        "SCRAPINGBEE_API_KEY", ""
    ).strip():
        errors.append(
            "USE_SCRAPINGBEE is true but SCRAPINGBEE_API_KEY is not set. "
            "Set the key or disable the proxy with USE_SCRAPINGBEE=false."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Build the shared cache handle and analysis service on boot; release them on exit."""
    from app.cache import build_cache
    from app.config import get_cache_settings
    from app.services.analysis_service import build_analysis_service

    cache = build_cache(get_cache_settings())
    service = build_analysis_service(cache)
    application.state.cache = cache
    application.state.analysis_service = service
    logging.getLogger(__name__).info("Analysis service ready with %s cache", cache.backend_name)
    try:
        yield
    finally:
        service.close()
        cache.close()
        logging.getLogger(__name__).info("Analysis service shut down")


async def _body_validation_handler(request: Request, exc: BodyValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body", "type": "validation"},
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="SERP Intent Agent API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    application.add_exception_handler(BodyValidationError, _body_validation_handler)

    from app.api.routers import analysis_router, health_router

    application.include_router(analysis_router)
    application.include_router(health_router)

    return application


app = create_app()
