"""
Simple in-memory cache with TTL support for query service results.
"""
import time
from typing import Optional, Any, Dict, Tuple


class MemoryCache:
    """
    An in-process cache with a time-to-live per entry.
    """

    def __init__(self, ttl: int = 5):
        """
        Initialize the cache.

        Args:
            ttl: Default time-to-live for cache entries in seconds.
        """
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self.default_ttl = ttl

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieve an item from the cache.

        Returns:
            The cached item, or None if the item is not found or expired.
        """
        if key not in self._cache:
            return None

        value, expiry = self._cache[key]
        if time.time() > expiry:
            del self._cache[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        ttl_to_use = ttl if ttl is not None else self.default_ttl
        self._cache[key] = (value, time.time() + ttl_to_use)

    def delete(self, key: str):
        self._cache.pop(key, None)

    def clear(self):
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
