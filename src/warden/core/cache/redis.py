"""Redis cache backend.

Provides a pooled async Redis client for sharing the resolution cache
across processes.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog
from redis.asyncio.connection import ConnectionPool

from warden.core.errors import CacheBackendError


logger = structlog.get_logger()


class RedisCache:
    """Redis implementation of the cache backend contract.

    Every Redis failure is re-raised as ``CacheBackendError`` so callers
    see an outage instead of a cache miss.
    """

    def __init__(
        self,
        url: str,
        prefix: str = "",
        max_connections: int = 50,
        pool: ConnectionPool | None = None,
    ) -> None:
        """Initialize cache with its connection pool.

        Args:
            url: Redis connection URL
            prefix: Prefix for all keys (e.g., "myapp:")
            max_connections: Pool size when the pool is created here
            pool: Existing pool to share instead of creating one
        """
        self.prefix = prefix
        self._pool = pool or ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )

    def _key(self, key: str) -> str:
        """Generate prefixed key."""
        return f"{self.prefix}{key}" if self.prefix else key

    @asynccontextmanager
    async def _client(self) -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
        client = redis.Redis(connection_pool=self._pool)
        try:
            yield client
        except redis.RedisError as e:
            logger.error("cache_backend_error", backend="redis", error=str(e))
            raise CacheBackendError(
                message=f"Redis cache unavailable: {e}",
                details={"backend": "redis"},
            ) from e
        finally:
            await client.aclose()

    async def get(self, key: str) -> str | None:
        """Get a value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        async with self._client() as client:
            return await client.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set a value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Optional TTL in seconds
        """
        async with self._client() as client:
            if ttl_seconds:
                await client.setex(self._key(key), ttl_seconds, value)
            else:
                await client.set(self._key(key), value)

    async def delete(self, *keys: str) -> int:
        """Delete keys from cache.

        Returns:
            Number of keys that existed
        """
        if not keys:
            return 0
        async with self._client() as client:
            return await client.delete(*(self._key(k) for k in keys))

    async def incr(self, key: str) -> int:
        """Atomically increment an integer counter."""
        async with self._client() as client:
            return await client.incr(self._key(key))

    async def aclose(self) -> None:
        """Close the connection pool.

        Call this during application shutdown.
        """
        await self._pool.disconnect()
