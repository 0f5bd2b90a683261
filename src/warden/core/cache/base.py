"""Cache backend contract used by the resolution cache."""

from typing import Protocol


class CacheBackend(Protocol):
    """Key/value store with TTL, delete and an atomic counter.

    Implementations raise ``CacheBackendError`` when the store cannot
    be reached; callers never treat that as an empty cache.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def incr(self, key: str) -> int: ...

    async def aclose(self) -> None: ...
