"""Tests for settle-all fan-out and the TTL cache"""
import pytest

from engine.cache import TTLCache
from engine.fanout import Err, Ok, failed, settle_all, successful


async def _value(v):
    return v


async def _boom():
    raise ValueError("feed down")


class TestSettleAll:
    @pytest.mark.asyncio
    async def test_failures_are_captured_per_name(self):
        results = await settle_all({"a": _value(1), "b": _boom(), "c": _value(3)})
        assert results["a"] == Ok(1)
        assert isinstance(results["b"], Err)
        assert isinstance(results["b"].reason, ValueError)
        assert successful(results) == [1, 3]
        assert failed(results) == ["b"]

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await settle_all({}) == {}


class TestTTLCache:
    def test_expires_at_ttl(self):
        now = [100.0]
        cache = TTLCache(10, clock=lambda: now[0])
        cache.set("k", "v")
        now[0] = 109.9
        assert cache.get("k") == "v"
        assert "k" in cache
        now[0] = 110.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_drops_expired_entries(self):
        now = [0.0]
        cache = TTLCache(300, clock=lambda: now[0])
        for i in range(1000):
            cache.set(i, i)
            now[0] += 10
        assert len(cache) == 30
        assert cache.get(999) == 999
        assert cache.get(0) is None

    def test_clear(self):
        cache = TTLCache(10)
        cache.set("k", [])
        assert cache.get("k") == []
        cache.clear()
        assert cache.get("k") is None
