"""Unit tests for the Redis cache backend.

The connection pool and client are mocked; these tests cover key
prefixing, TTL handling and error translation.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from warden.core.cache import RedisCache
from warden.core.errors import CacheBackendError


pytestmark = pytest.mark.unit


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def redis_cache(client: AsyncMock):
    pool = MagicMock()
    pool.disconnect = AsyncMock()
    with patch("warden.core.cache.redis.redis.Redis", return_value=client):
        yield RedisCache("redis://localhost:6379", prefix="test:", pool=pool)


class TestRedisCache:
    """Tests for RedisCache."""

    async def test_get_uses_prefixed_key(self, redis_cache: RedisCache, client: AsyncMock) -> None:
        client.get.return_value = "value"

        assert await redis_cache.get("key") == "value"
        client.get.assert_awaited_once_with("test:key")
        client.aclose.assert_awaited_once()

    async def test_set_with_ttl_uses_setex(
        self, redis_cache: RedisCache, client: AsyncMock
    ) -> None:
        await redis_cache.set("key", "value", ttl_seconds=60)

        client.setex.assert_awaited_once_with("test:key", 60, "value")

    async def test_set_without_ttl(self, redis_cache: RedisCache, client: AsyncMock) -> None:
        await redis_cache.set("key", "value")

        client.set.assert_awaited_once_with("test:key", "value")

    async def test_delete(self, redis_cache: RedisCache, client: AsyncMock) -> None:
        client.delete.return_value = 2

        assert await redis_cache.delete("a", "b") == 2
        client.delete.assert_awaited_once_with("test:a", "test:b")

    async def test_delete_nothing(self, redis_cache: RedisCache, client: AsyncMock) -> None:
        assert await redis_cache.delete() == 0
        client.delete.assert_not_awaited()

    async def test_incr(self, redis_cache: RedisCache, client: AsyncMock) -> None:
        client.incr.return_value = 4

        assert await redis_cache.incr("generation") == 4
        client.incr.assert_awaited_once_with("test:generation")

    async def test_outage_raises_backend_error(
        self, redis_cache: RedisCache, client: AsyncMock
    ) -> None:
        client.get.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(CacheBackendError) as exc:
            await redis_cache.get("key")

        assert exc.value.error_code == "cache_unavailable"
        client.aclose.assert_awaited_once()

    async def test_aclose_disconnects_pool(self, redis_cache: RedisCache) -> None:
        await redis_cache.aclose()

        redis_cache._pool.disconnect.assert_awaited_once()
