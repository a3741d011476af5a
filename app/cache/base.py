"""
Cache contract shared by every storage backend.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from app.logging_utils import log_event

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CacheBackend(ABC):
    """
    Key-value cache with TTL expiry enforced from a stored envelope.

    Entries are stored as `{"value": ..., "expiresAt": <epoch ms>}`. An expired
    entry is reported as absent and removed on read. Backend failures are
    logged and degrade to a miss or a no-op; they never reach the caller.
    """

    backend_name = "base"

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or time.time

    def get(self, key: str) -> Any | None:
        """
        Return the cached value for `key`, or None when absent or expired.
        """

        _, value = self._lookup(key)
        return value

    def set(self, key: str, value: Any, ttl_hours: float) -> None:
        """
        Store `value` under `key` for `ttl_hours`.

        Values that are not JSON-serialisable are not stored; the failure is
        logged and the call is a no-op.
        """

        ttl_seconds = max(0.0, float(ttl_hours) * 3600.0)
        entry = {
            "value": value,
            "expiresAt": self._now_ms() + ttl_seconds * 1000.0,
        }
        try:
            payload = json.dumps(entry)
            self._write(key, payload, ttl_seconds)
        except Exception as exc:
            self._log_failure("set", key, exc)

    def has(self, key: str) -> bool:
        """
        Return True when `key` holds a live entry, including a stored null.
        """

        found, _ = self._lookup(key)
        return found

    def delete(self, key: str) -> None:
        """
        Remove `key` if present.
        """

        try:
            self._remove(key)
        except Exception as exc:
            self._log_failure("delete", key, exc)

    def clear(self) -> None:
        """
        Remove every entry owned by this backend.
        """

        try:
            self._clear()
        except Exception as exc:
            self._log_failure("clear", None, exc)

    def close(self) -> None:
        """
        Release backend resources. Safe to call more than once.
        """

    def _lookup(self, key: str) -> tuple[bool, Any]:
        try:
            raw = self._read(key)
        except Exception as exc:
            self._log_failure("get", key, exc)
            return False, None
        if raw is None:
            return False, None

        try:
            entry = json.loads(raw)
            expires_at = float(entry["expiresAt"])
            value = entry["value"]
        except (ValueError, TypeError, KeyError) as exc:
            self._log_failure("decode", key, exc)
            self.delete(key)
            return False, None

        if self._now_ms() > expires_at:
            log_event(logger, logging.DEBUG, "cache_expired", backend=self.backend_name, key=key)
            self.delete(key)
            return False, None
        return True, value

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _log_failure(self, operation: str, key: str | None, exc: BaseException) -> None:
        log_event(
            logger,
            logging.WARNING,
            "cache_operation_failed",
            backend=self.backend_name,
            operation=operation,
            key=key,
            error=str(exc),
        )

    @abstractmethod
    def _read(self, key: str) -> str | None:
        """
        Return the raw envelope for `key`, or None when missing.
        """

    @abstractmethod
    def _write(self, key: str, payload: str, ttl_seconds: float) -> None:
        """
        Persist the raw envelope for `key`.
        """

    @abstractmethod
    def _remove(self, key: str) -> None:
        """
        Drop the raw envelope for `key`.
        """

    @abstractmethod
    def _clear(self) -> None:
        """
        Drop every raw envelope.
        """
