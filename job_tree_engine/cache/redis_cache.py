"""
Redis-based cache for query service results. Values are stored as JSON.
"""
import json
from typing import Optional, Any

import redis


class RedisCache:
    """
    A cache implementation that uses Redis as the backend.
    """

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0, ttl: int = 5,
                 prefix: str = "job_tree:"):
        """
        Initialize the Redis cache.

        Args:
            host: Redis server host.
            port: Redis server port.
            db: Redis database number.
            ttl: Default time-to-live for cache entries in seconds.
            prefix: Prefix for every key written by this cache.
        """
        try:
            self.client = redis.StrictRedis(host=host, port=port, db=db, decode_responses=True)
            self.client.ping()
        except redis.exceptions.ConnectionError as e:
            raise ConnectionError(f"Could not connect to Redis at {host}:{port}. Please ensure Redis is running.") from e

        self.default_ttl = ttl
        self.prefix = prefix

    def get(self, key: str) -> Optional[Any]:
        cached_value = self.client.get(self.prefix + key)
        if cached_value is None:
            return None
        return json.loads(cached_value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        ttl_to_use = ttl if ttl is not None else self.default_ttl
        self.client.set(self.prefix + key, json.dumps(value), ex=max(1, ttl_to_use))

    def delete(self, key: str):
        self.client.delete(self.prefix + key)

    def clear(self):
        """Delete every key written under this cache's prefix."""
        keys = list(self.client.scan_iter(match=f"{self.prefix}*"))
        if keys:
            self.client.delete(*keys)
