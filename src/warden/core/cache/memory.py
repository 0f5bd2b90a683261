"""In-process cache backend."""

import time


class MemoryCache:
    """Dictionary-backed cache with per-key expiry.

    Suitable for single-process deployments and tests. Expiry uses the
    monotonic clock so wall-clock adjustments never resurrect entries.
    """

    def __init__(self, prefix: str = "") -> None:
        """Initialize cache with optional key prefix.

        Args:
            prefix: Prefix for all keys (e.g., "myapp:")
        """
        self.prefix = prefix
        self._data: dict[str, tuple[str, float | None]] = {}

    def _key(self, key: str) -> str:
        """Generate prefixed key."""
        return f"{self.prefix}{key}" if self.prefix else key

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        """Get a value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if missing or expired
        """
        return self._live(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set a value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Optional TTL in seconds
        """
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        self._data[self._key(key)] = (value, expires_at)

    async def delete(self, *keys: str) -> int:
        """Delete keys from cache.

        Returns:
            Number of keys that existed
        """
        removed = 0
        for key in keys:
            full_key = self._key(key)
            if self._live(full_key) is not None:
                removed += 1
            self._data.pop(full_key, None)
        return removed

    async def incr(self, key: str) -> int:
        """Increment an integer counter, creating it at 1.

        Raises:
            ValueError: If the stored value is not an integer
        """
        full_key = self._key(key)
        current = self._live(full_key)
        value = int(current) + 1 if current is not None else 1
        self._data[full_key] = (str(value), None)
        return value

    async def clear(self) -> None:
        """Remove every entry."""
        self._data.clear()

    async def aclose(self) -> None:
        """Nothing to release for the in-process store."""
        return None
