"""
Vigil - Cache Utilities
=======================

TTL-based cache with an injectable clock.

The content detector owns one instance; nothing here is global, so two
engines in one process never share cached results.
"""

from datetime import datetime, timedelta
from typing import Dict, Generic, Optional, Tuple, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from vigil.utils.clock import Clock

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """
    A simple TTL-based cache with automatic expiration.

    Safe for single-threaded async use.
    For multi-threaded use, wrap in a lock.
    """

    def __init__(self, ttl: timedelta, clock: "Clock", max_size: int = 10000) -> None:
        """
        Initialize the TTL cache.

        Args:
            ttl: Time-to-live for cached items.
            clock: Time source used for expiry.
            max_size: Maximum number of items to store (oldest evicted first).
        """
        self._ttl = ttl
        self._clock = clock
        self._max_size = max_size
        self._cache: Dict[K, Tuple[V, datetime]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, key: K) -> Optional[V]:
        """
        Get an item from the cache if it exists and hasn't expired.

        Args:
            key: The cache key.

        Returns:
            The cached value or None if not found/expired.
        """
        entry = self._cache.get(key)
        if entry is None:
            return None

        value, cached_at = entry
        if self._clock.now() - cached_at >= self._ttl:
            self._cache.pop(key, None)
            return None

        return value

    def set(self, key: K, value: V) -> None:
        """
        Set an item in the cache.

        Args:
            key: The cache key.
            value: The value to cache.
        """
        if self._ttl <= timedelta(0):
            return
        if len(self._cache) >= self._max_size and key not in self._cache:
            self._evict_oldest()

        self._cache[key] = (value, self._clock.now())

    def delete(self, key: K) -> bool:
        """Delete an item. Returns True if it was present."""
        return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all items from the cache."""
        self._cache.clear()

    def _evict_oldest(self) -> None:
        if not self._cache:
            return
        oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
        del self._cache[oldest_key]

    def cleanup_expired(self) -> int:
        """
        Remove all expired items from the cache.

        Returns:
            Number of items removed.
        """
        now = self._clock.now()
        expired_keys = [
            k for k, (_, cached_at) in self._cache.items()
            if now - cached_at >= self._ttl
        ]
        for key in expired_keys:
            del self._cache[key]
        return len(expired_keys)


__all__ = ["TTLCache"]
