"""
app/cache package marker.
"""

from app.cache.base import CacheBackend
from app.cache.factory import build_cache
from app.cache.file_cache import FileCache
from app.cache.keys import PAGE_DOMAIN, SERP_DOMAIN, build_cache_key
from app.cache.redis_cache import RedisCache

__all__ = [
    "CacheBackend",
    "FileCache",
    "PAGE_DOMAIN",
    "RedisCache",
    "SERP_DOMAIN",
    "build_cache",
    "build_cache_key",
]
