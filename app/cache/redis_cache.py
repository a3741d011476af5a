"""
Redis cache backend built on redis-py.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import redis

from app.cache.base import CacheBackend, Clock
from app.logging_utils import log_event

logger = logging.getLogger(__name__)


class RedisCache(CacheBackend):
    """
    Stores envelopes as plain string values.

    `SETEX` applies the TTL server-side as a courtesy; the envelope expiry is
    still checked on every read.
    """

    backend_name = "redis"

    def __init__(
        self,
        *,
        client: Any | None = None,
        url: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock=clock)
        if client is None:
            if not url:
                raise ValueError("Redis URL not provided. Set REDIS_URL.")
            client = redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        self._client = client

    def _read(self, key: str) -> str | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def _write(self, key: str, payload: str, ttl_seconds: float) -> None:
        self._client.setex(key, max(1, math.floor(ttl_seconds)), payload)

    def _remove(self, key: str) -> None:
        self._client.delete(key)

    def _clear(self) -> None:
        self._client.flushdb()
        log_event(logger, logging.INFO, "cache_cleared", backend=self.backend_name)

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as exc:
            self._log_failure("close", None, exc)
