"""Unit tests for the in-process cache backend."""

import time

import pytest

from warden.core.cache import MemoryCache


pytestmark = pytest.mark.unit


class TestMemoryCache:
    """Tests for MemoryCache."""

    async def test_set_and_get(self, cache: MemoryCache) -> None:
        await cache.set("key", "value")

        assert await cache.get("key") == "value"
        assert await cache.get("missing") is None

    async def test_expired_entries_are_gone(self, cache: MemoryCache) -> None:
        await cache.set("key", "value", ttl_seconds=10)
        cache._data["key"] = ("value", time.monotonic() - 1)

        assert await cache.get("key") is None

    async def test_delete_counts_existing_keys(self, cache: MemoryCache) -> None:
        await cache.set("a", "1")
        await cache.set("b", "2")

        assert await cache.delete("a", "b", "c") == 2
        assert await cache.get("a") is None

    async def test_incr_creates_counter(self, cache: MemoryCache) -> None:
        assert await cache.incr("counter") == 1
        assert await cache.incr("counter") == 2
        assert await cache.get("counter") == "2"

    async def test_incr_rejects_non_integer(self, cache: MemoryCache) -> None:
        await cache.set("counter", "abc")

        with pytest.raises(ValueError):
            await cache.incr("counter")

    async def test_prefix(self) -> None:
        cache = MemoryCache(prefix="app:")
        await cache.set("key", "value")

        assert cache._data["app:key"][0] == "value"
        assert await cache.get("key") == "value"

    async def test_clear(self, cache: MemoryCache) -> None:
        await cache.set("key", "value")
        await cache.clear()

        assert await cache.get("key") is None
