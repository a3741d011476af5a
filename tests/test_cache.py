"""
tests/test_cache.py

Pytest unit tests for the cache layer.

No network and no real Redis: the file backend writes under tmp_path and
the Redis backend talks to an in-memory fake client.

Coverage
--------
- Key construction (domain, md5, UTC date bucket)
- Round trip, overwrite, delete and clear on both backends
- Lazy expiry with an injected clock
- Corrupt envelopes and backend failures degrade to misses
- Stored nulls are present; non-JSON values are never written
- Factory backend selection
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta, timezone

import pytest

from app.cache import FileCache, RedisCache, build_cache, build_cache_key
from app.config import CacheSettings
from tests.fakes import FakeClock, FakeRedis


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestBuildCacheKey:
    def test_key_shape(self) -> None:
        now = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)
        key = build_cache_key("serp", "best running shoes", now=now)
        digest = hashlib.md5(b"best running shoes").hexdigest()
        assert key == f"serp:{digest}:2026-03-14"

    def test_same_content_same_day_is_stable(self) -> None:
        morning = datetime(2026, 3, 14, 0, 1, tzinfo=timezone.utc)
        evening = datetime(2026, 3, 14, 23, 59, tzinfo=timezone.utc)
        assert build_cache_key("page", "https://a.com", now=morning) == build_cache_key(
            "page", "https://a.com", now=evening
        )

    def test_key_rolls_over_at_utc_midnight(self) -> None:
        before = datetime(2026, 3, 14, 23, 59, tzinfo=timezone.utc)
        after = before + timedelta(minutes=2)
        assert build_cache_key("page", "x", now=before) != build_cache_key("page", "x", now=after)

    def test_date_bucket_uses_utc(self) -> None:
        local = datetime(2026, 3, 14, 20, 0, tzinfo=timezone(timedelta(hours=-8)))
        assert build_cache_key("page", "x", now=local).endswith(":2026-03-15")

    def test_domains_do_not_collide(self) -> None:
        now = datetime(2026, 3, 14, tzinfo=timezone.utc)
        assert build_cache_key("serp", "x", now=now) != build_cache_key("page", "x", now=now)


# ---------------------------------------------------------------------------
# Shared backend behavior
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture(params=["file", "redis"])
def cache(request, tmp_path, clock):
    if request.param == "file":
        return FileCache(tmp_path / "cache", clock=clock)
    return RedisCache(client=FakeRedis(), clock=clock)


class TestCacheContract:
    def test_get_missing_returns_none(self, cache) -> None:
        assert cache.get("nope") is None
        assert cache.has("nope") is False

    def test_round_trip_preserves_structure(self, cache) -> None:
        value = {"results": [{"url": "https://a.com", "position": 1}], "count": 1}
        cache.set("k", value, 24)
        assert cache.get("k") == value
        assert cache.has("k") is True

    def test_last_writer_wins(self, cache) -> None:
        cache.set("k", "first", 1)
        cache.set("k", "second", 1)
        assert cache.get("k") == "second"

    def test_delete_removes_entry(self, cache) -> None:
        cache.set("k", 1, 1)
        cache.delete("k")
        assert cache.get("k") is None

    def test_delete_missing_is_noop(self, cache) -> None:
        cache.delete("never-set")

    def test_clear_removes_everything(self, cache) -> None:
        cache.set("a", 1, 1)
        cache.set("b", 2, 1)
        cache.clear()
        assert cache.get("a") is None
        assert cache.get("b") is None

    def test_entry_live_before_ttl(self, cache, clock) -> None:
        cache.set("k", "v", 1)
        clock.advance(3599)
        assert cache.get("k") == "v"

    def test_expired_entry_is_absent_and_deleted(self, cache, clock) -> None:
        cache.set("k", "v", 1)
        clock.advance(3601)
        assert cache.get("k") is None
        assert cache.has("k") is False
        assert cache._read("k") is None

    def test_stored_null_is_present(self, cache) -> None:
        cache.set("k", None, 1)
        assert cache.has("k") is True
        assert cache.get("k") is None

    @pytest.mark.parametrize("value", [object(), {"tags": {"a", "b"}}])
    def test_non_json_value_is_not_stored(self, cache, value) -> None:
        cache.set("k", value, 1)
        assert cache.has("k") is False
        assert cache.get("k") is None
        assert cache._read("k") is None

    def test_non_json_value_keeps_previous_entry(self, cache) -> None:
        cache.set("k", "first", 1)
        cache.set("k", object(), 1)
        assert cache.get("k") == "first"


# ---------------------------------------------------------------------------
# FileCache specifics
# ---------------------------------------------------------------------------


class TestFileCache:
    def test_filename_is_md5_of_key(self, tmp_path, clock) -> None:
        cache = FileCache(tmp_path, clock=clock)
        cache.set("serp:abc:2026-01-01", [1, 2], 1)
        expected = tmp_path / f"{hashlib.md5(b'serp:abc:2026-01-01').hexdigest()}.json"
        assert expected.exists()

    def test_envelope_shape(self, tmp_path, clock) -> None:
        cache = FileCache(tmp_path, clock=clock)
        cache.set("k", {"a": 1}, 2)
        envelope = json.loads(cache.path_for("k").read_text(encoding="utf-8"))
        assert envelope["value"] == {"a": 1}
        assert envelope["expiresAt"] == pytest.approx((clock() + 7200) * 1000)

    def test_no_temp_files_left_behind(self, tmp_path, clock) -> None:
        cache = FileCache(tmp_path, clock=clock)
        for index in range(5):
            cache.set("k", index, 1)
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.startswith(".tmp-")]
        assert leftovers == []

    def test_corrupt_file_is_a_miss(self, tmp_path, clock) -> None:
        cache = FileCache(tmp_path, clock=clock)
        cache.path_for("k").write_text("{not json", encoding="utf-8")
        assert cache.get("k") is None
        assert not cache.path_for("k").exists()

    def test_write_failure_degrades_to_noop(self, tmp_path, clock, monkeypatch) -> None:
        cache = FileCache(tmp_path, clock=clock)

        def _boom(*_args, **_kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("app.cache.file_cache.tempfile.mkstemp", _boom)
        cache.set("k", "v", 1)
        assert cache.get("k") is None


# ---------------------------------------------------------------------------
# RedisCache specifics
# ---------------------------------------------------------------------------


class TestRedisCache:
    def test_setex_receives_ttl_seconds(self, clock) -> None:
        client = FakeRedis()
        cache = RedisCache(client=client, clock=clock)
        cache.set("k", "v", 2)
        assert client.ttls["k"] == 7200

    def test_connection_errors_degrade(self, clock) -> None:
        client = FakeRedis(fail=True)
        cache = RedisCache(client=client, clock=clock)
        cache.set("k", "v", 1)
        assert cache.get("k") is None
        assert cache.has("k") is False
        cache.delete("k")
        cache.clear()

    def test_close_closes_client(self, clock) -> None:
        client = FakeRedis()
        RedisCache(client=client, clock=clock).close()
        assert client.closed is True

    def test_requires_url_or_client(self) -> None:
        with pytest.raises(ValueError):
            RedisCache()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestBuildCache:
    def test_file_backend(self, tmp_path) -> None:
        cache = build_cache(CacheSettings(backend="file", directory=str(tmp_path / "c")))
        assert isinstance(cache, FileCache)

    def test_redis_backend_requires_url(self) -> None:
        with pytest.raises(ValueError):
            build_cache(CacheSettings(backend="redis", redis_url=None))

    def test_redis_backend(self) -> None:
        cache = build_cache(CacheSettings(backend="redis", redis_url="redis://localhost:6379/0"))
        assert isinstance(cache, RedisCache)
