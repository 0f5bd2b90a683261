"""Cache backends for the resolution cache.

Provides:
- The backend contract (get, set with TTL, delete, incr)
- An in-process backend and a pooled Redis backend
- Serialization utilities for cached collections
"""

from warden.config import Settings
from warden.core.cache.base import CacheBackend
from warden.core.cache.memory import MemoryCache
from warden.core.cache.redis import RedisCache
from warden.core.cache.serializers import (
    deserialize,
    dump_collection,
    load_collection,
    serialize,
)


def create_cache(settings: Settings) -> CacheBackend:
    """Build the cache backend selected by ``settings.cache_backend``."""
    if settings.cache_backend == "redis":
        return RedisCache(str(settings.redis_url))
    return MemoryCache()


__all__ = [
    "CacheBackend",
    "MemoryCache",
    "RedisCache",
    "create_cache",
    "deserialize",
    "dump_collection",
    "load_collection",
    "serialize",
]
