"""
Tests for the capacity cache and its backends.
"""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from openday.infrastructure.redis_cache import RedisCacheBackend
from openday.services.cache_service import CapacityCache, capacity_key, counter_key, slot_count_key
from openday.services.interfaces.cache_backend import CacheBackend
from openday.services.interfaces.memory_cache_backend import MemoryCacheBackend
from openday.services.slot_keys import SlotKey


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class BrokenBackend(CacheBackend):
    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, value, ttl):
        raise ConnectionError("cache down")

    async def delete(self, *keys):
        raise ConnectionError("cache down")


@pytest.mark.asyncio
async def test_memory_backend_expires_entries():
    clock = FakeClock()
    backend = MemoryCacheBackend(clock=clock)

    await backend.set("counter:simlab", 4, ttl=30)
    assert await backend.get("counter:simlab") == 4

    clock.now += 31
    assert await backend.get("counter:simlab") is None

    stats = await backend.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["keys"] == 0


@pytest.mark.asyncio
async def test_capacity_and_count_ttls_differ():
    """Capacity outlives count entries."""
    clock = FakeClock()
    cache = CapacityCache(MemoryCacheBackend(clock=clock), capacity_ttl=300, count_ttl=30)

    await cache.set_capacity("simlab", 2)
    await cache.set_counter("simlab", 1)

    clock.now += 60
    assert await cache.get_capacity("simlab") == 2
    assert await cache.get_counter("simlab") is None


@pytest.mark.asyncio
async def test_invalidate_activity_drops_counts_keeps_capacity():
    cache = CapacityCache(MemoryCacheBackend(), max_slots=3)
    await cache.set_capacity("simlab", 2)
    await cache.set_counter("simlab", 1)
    await cache.set_slot_count(SlotKey("simlab", 1), 1)
    await cache.set_slot_count(SlotKey("simlab", 3), 0)
    await cache.set_counter("robotics", 2)

    await cache.invalidate_activity("simlab")

    assert await cache.get_capacity("simlab") == 2
    assert await cache.get_counter("simlab") is None
    assert await cache.get_slot_count(SlotKey("simlab", 1)) is None
    assert await cache.get_slot_count(SlotKey("simlab", 3)) is None
    # Other activities untouched
    assert await cache.get_counter("robotics") == 2


@pytest.mark.asyncio
async def test_invalidation_is_idempotent():
    cache = CapacityCache(MemoryCacheBackend())
    await cache.invalidate_activity("simlab")
    await cache.invalidate_activity("simlab")
    assert await cache.get_counter("simlab") is None


@pytest.mark.asyncio
async def test_broken_backend_degrades_to_miss():
    """A failing backend never fails the caller."""
    cache = CapacityCache(BrokenBackend())

    await cache.set_counter("simlab", 1)
    assert await cache.get_counter("simlab") is None
    await cache.invalidate_activity("simlab")


def test_key_layout():
    assert capacity_key("simlab") == "capacity:simlab"
    assert counter_key("foo-2") == "counter:foo-2"
    assert slot_count_key(SlotKey("foo-2", 1)) == "count:foo-2:1"


@pytest.mark.asyncio
async def test_redis_backend_namespaces_and_converts():
    client = AsyncMock()
    client.get.return_value = "3"
    backend = RedisCacheBackend(client, namespace="test")

    assert await backend.get("counter:simlab") == 3
    client.get.assert_awaited_once_with("test:counter:simlab")

    await backend.set("counter:simlab", 3, ttl=30)
    client.set.assert_awaited_once_with("test:counter:simlab", 3, px=30000)

    await backend.delete("counter:simlab", "count:simlab:1")
    client.delete.assert_awaited_once_with("test:counter:simlab", "test:count:simlab:1")


@pytest.mark.asyncio
async def test_redis_backend_errors_are_misses():
    client = AsyncMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.set.side_effect = redis.ConnectionError("down")
    backend = RedisCacheBackend(client)

    assert await backend.get("counter:simlab") is None
    await backend.set("counter:simlab", 1, ttl=30)
