"""Tests for resource-name cache module."""

import pytest
from unittest.mock import AsyncMock
from connector.cache import LRUCache, ResourceCache, TTL_BY_RESOURCE


class TestLRUCache:
    """Tests for LRU cache implementation."""

    def test_set_and_get(self):
        """Test basic set and get operations."""
        cache = LRUCache(maxsize=10)

        cache.set("key1", "value1", ttl=60)
        assert cache.get("key1") == "value1"
        assert cache.get("missing") is None

    def test_eviction_follows_lru_order(self):
        """Test that the least recently used entry is evicted."""
        cache = LRUCache(maxsize=3)
        for i in range(1, 4):
            cache.set(f"key{i}", f"value{i}", ttl=60)

        # Touch key1 so key2 becomes least recent
        cache.get("key1")
        cache.set("key4", "value4", ttl=60)

        assert cache.get("key1") == "value1"
        assert cache.get("key2") is None
        assert cache.stats.evictions == 1

    def test_expired_entries(self):
        """Test that expired entries are dropped on read."""
        cache = LRUCache(maxsize=10)

        cache.set("key1", "value1", ttl=-1)

        assert cache.get("key1") is None
        assert cache.stats.expirations == 1
        assert cache.size() == 0

    def test_stats(self):
        """Test hit rate tracking."""
        cache = LRUCache(maxsize=10)
        cache.set("key1", "value1", ttl=60)
        cache.get("key1")
        cache.get("key2")

        assert cache.stats.hits == 1
        assert cache.stats.misses == 1
        assert cache.stats.hit_rate == 50.0

    def test_delete(self):
        """Test delete reports whether the key existed."""
        cache = LRUCache(maxsize=10)
        cache.set("key1", "value1", ttl=60)

        assert cache.delete("key1") is True
        assert cache.delete("key1") is False


class TestResourceCache:
    """Tests for the two-tier ResourceCache."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_set_writes_both_tiers(self, mock_redis):
        """Test values go to LRU and Redis with the resource TTL."""
        cache = ResourceCache(mock_redis)

        await cache.set("user_list", "123", "newsletter", "555")

        mock_redis.setex.assert_awaited_once_with(
            "resource:user_list:123:newsletter", TTL_BY_RESOURCE["user_list"], "555"
        )
        assert await cache.get("user_list", "123", "newsletter") == "555"
        mock_redis.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_hit_promoted(self, mock_redis):
        """Test a Redis hit is decoded and promoted to the LRU."""
        mock_redis.get.return_value = b"customers/1/conversionActions/9"
        cache = ResourceCache(mock_redis)

        value = await cache.get("conversion_action", "1", "purchase")

        assert value == "customers/1/conversionActions/9"
        assert cache.hot_cache.get("conversion_action:1:purchase") == value

    @pytest.mark.asyncio
    async def test_redis_errors_degrade_to_lru(self, mock_redis):
        """Test Redis failures do not break lookups."""
        mock_redis.get.side_effect = ConnectionError("redis down")
        mock_redis.setex.side_effect = ConnectionError("redis down")
        cache = ResourceCache(mock_redis)

        assert await cache.get("user_list", "1", "a") is None
        await cache.set("user_list", "1", "a", "7")
        assert await cache.get("user_list", "1", "a") == "7"

    @pytest.mark.asyncio
    async def test_invalidate(self, mock_redis):
        """Test invalidation clears both tiers."""
        mock_redis.get.return_value = None
        cache = ResourceCache(mock_redis)
        await cache.set("user_list", "1", "a", "7")

        await cache.invalidate("user_list", "1", "a")

        mock_redis.delete.assert_awaited_once_with("resource:user_list:1:a")
        assert await cache.get("user_list", "1", "a") is None

    @pytest.mark.asyncio
    async def test_in_process_only(self):
        """Test the cache works without Redis."""
        cache = ResourceCache(None)

        await cache.set("user_list", "1", "a", "7")

        assert await cache.get("user_list", "1", "a") == "7"
        assert cache.get_stats()["lru_size"] == 1
