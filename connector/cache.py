"""
2-tier resource-name cache: in-process LRU + Redis.

Lookups such as "user list by name" or "conversion action by name" hit the
Google Ads API once per TTL instead of once per upload.
"""

import time
from collections import OrderedDict
from typing import Optional, Dict, Tuple
from dataclasses import dataclass
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


# TTL policy by resource type (in seconds)
TTL_BY_RESOURCE: Dict[str, int] = {
    'user_list': 86400,          # 1 day
    'conversion_action': 3600,   # 1 hour
    'default': 300,              # 5 min
}


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "hit_rate": round(self.hit_rate, 2),
        }


class LRUCache:
    """In-process LRU cache of strings with per-entry expiry."""

    def __init__(self, maxsize: int = 1_000):
        """
        Initialize LRU cache.

        Args:
            maxsize: Maximum number of entries to cache
        """
        self.maxsize = maxsize
        self.entries: OrderedDict[str, Tuple[str, float]] = OrderedDict()
        self.stats = CacheStats()

    def get(self, key: str) -> Optional[str]:
        """
        Get a live value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if missing or expired
        """
        entry = self.entries.get(key)
        if entry is not None:
            value, expires_at = entry
            if expires_at > time.monotonic():
                self.entries.move_to_end(key)
                self.stats.hits += 1
                return value
            del self.entries[key]
            self.stats.expirations += 1

        self.stats.misses += 1
        return None

    def set(self, key: str, value: str, ttl: int) -> None:
        """
        Set a value that expires after ``ttl`` seconds.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Lifetime in seconds
        """
        self.entries[key] = (value, time.monotonic() + ttl)
        self.entries.move_to_end(key)

        if len(self.entries) > self.maxsize:
            evicted_key, _ = self.entries.popitem(last=False)
            self.stats.evictions += 1
            logger.debug(f"LRU cache eviction: {evicted_key}")

        self.stats.sets += 1

    def delete(self, key: str) -> bool:
        """Delete key; returns False if it was not cached."""
        return self.entries.pop(key, None) is not None

    def size(self) -> int:
        """Get current cache size."""
        return len(self.entries)


class ResourceCache:
    """
    Cache for Google Ads resource names.

    Checks the LRU first, then Redis. Redis errors are logged and the
    in-process tier keeps working on its own.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, lru_maxsize: int = 1_000):
        """
        Initialize resource cache.

        Args:
            redis_client: Redis async client (None = in-process only)
            lru_maxsize: Maximum size of LRU cache
        """
        self.redis = redis_client
        self.hot_cache = LRUCache(maxsize=lru_maxsize)
        logger.info(f"ResourceCache initialized (LRU size: {lru_maxsize}, redis={redis_client is not None})")

    @staticmethod
    def build_key(resource_type: str, customer_id: str, name: str) -> str:
        """Build a standardized cache key."""
        return f"{resource_type}:{customer_id}:{name}"

    async def get(self, resource_type: str, customer_id: str, name: str) -> Optional[str]:
        """
        Look up a cached resource name.

        Args:
            resource_type: Key of TTL_BY_RESOURCE
            customer_id: Google Ads customer ID owning the resource
            name: Human-readable resource name

        Returns:
            Resource name or None
        """
        key = self.build_key(resource_type, customer_id, name)
        value = self.hot_cache.get(key)
        if value is not None:
            return value

        if self.redis is None:
            return None

        try:
            cached = await self.redis.get(f"resource:{key}")
        except Exception as e:
            logger.error(f"Redis get error for key {key}: {e}")
            return None

        if cached:
            value = cached.decode() if isinstance(cached, bytes) else cached
            # Promote to LRU
            self.hot_cache.set(key, value, self._ttl(resource_type))
            logger.debug(f"Redis cache hit (promoted to LRU): {key}")
            return value
        return None

    async def set(self, resource_type: str, customer_id: str, name: str, value: str) -> None:
        """Store a resource name in both tiers."""
        key = self.build_key(resource_type, customer_id, name)
        ttl = self._ttl(resource_type)
        self.hot_cache.set(key, value, ttl)

        if self.redis is None:
            return

        try:
            await self.redis.setex(f"resource:{key}", ttl, value)
            logger.debug(f"Cached in LRU+Redis: {key} (TTL: {ttl}s)")
        except Exception as e:
            logger.error(f"Redis set error for key {key}: {e}")

    async def invalidate(self, resource_type: str, customer_id: str, name: str) -> None:
        """Drop a resource name from both tiers."""
        key = self.build_key(resource_type, customer_id, name)
        self.hot_cache.delete(key)

        if self.redis is None:
            return

        try:
            await self.redis.delete(f"resource:{key}")
        except Exception as e:
            logger.error(f"Redis delete error for key {key}: {e}")

    def get_stats(self) -> Dict[str, object]:
        """Get cache statistics."""
        return {
            "lru": self.hot_cache.stats.to_dict(),
            "lru_size": self.hot_cache.size(),
            "lru_maxsize": self.hot_cache.maxsize,
        }

    @staticmethod
    def _ttl(resource_type: str) -> int:
        return TTL_BY_RESOURCE.get(resource_type, TTL_BY_RESOURCE['default'])
