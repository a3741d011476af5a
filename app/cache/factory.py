"""
Construct the process-wide cache handle from settings.
"""

from __future__ import annotations

import logging

from app.cache.base import CacheBackend, Clock
from app.cache.file_cache import FileCache
from app.cache.redis_cache import RedisCache
from app.config import CacheSettings
from app.logging_utils import log_event

logger = logging.getLogger(__name__)


def build_cache(settings: CacheSettings, *, clock: Clock | None = None) -> CacheBackend:
    """
    Build the cache backend named by `settings.backend`.

    Called once at startup; the returned handle is passed explicitly to the
    components that need it.
    """

    if settings.backend == "redis":
        if not settings.redis_url:
            raise ValueError("CACHE_BACKEND=redis requires REDIS_URL.")
        log_event(logger, logging.INFO, "cache_backend_selected", backend="redis")
        return RedisCache(url=settings.redis_url, clock=clock)

    log_event(
        logger,
        logging.INFO,
        "cache_backend_selected",
        backend="file",
        directory=settings.directory,
    )
    return FileCache(settings.directory, clock=clock)
