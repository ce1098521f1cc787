"""
Capacity cache: short-lived memo of capacity and count lookups.

CACHING STRATEGY
================

What we cache:
  - Activity capacity          "capacity:{activity_id}"          long TTL (minutes)
  - Activity participant count "counter:{activity_id}"           short TTL (~30s)
  - Ledger rows per slot key   "count:{activity_id}:{slot}"      short TTL (~30s)

Why:
  - Availability displays poll every activity on every page load
  - Capacity is administratively static; counts change on every booking

Invalidation strategy:
  - Read-through, write-invalidate. Never write-through.
  - The admission coordinator invalidates every count entry of an activity
    synchronously after each committed write touching it.
  - TTL expiry bounds staleness for out-of-band edits.

Why NOT use it for admission:
  - The coordinator re-reads capacity and counter under its lock inside
    the transaction. A stale cache can only make a display slightly wrong,
    never admit past capacity.
"""

from typing import Optional

from openday.core.logging import get_logger
from openday.core.metrics import record_cache_operation, record_cache_error
from openday.services.interfaces.cache_backend import CacheBackend
from openday.services.slot_keys import SlotKey

logger = get_logger(__name__)


def capacity_key(activity_id: str) -> str:
    return f"capacity:{activity_id}"


def counter_key(activity_id: str) -> str:
    return f"counter:{activity_id}"


def slot_count_key(key: SlotKey) -> str:
    return f"count:{key}"


class CapacityCache:
    """Advisory cache. Every consumer must be able to fall back to the ledger."""

    def __init__(
        self,
        backend: CacheBackend,
        capacity_ttl: float = 300,
        count_ttl: float = 30,
        max_slots: int = 5,
    ) -> None:
        self.backend = backend
        self.capacity_ttl = capacity_ttl
        self.count_ttl = count_ttl
        self.max_slots = max_slots

    async def get(self, key: str) -> Optional[int]:
        try:
            value = await self.backend.get(key)
        except Exception as e:
            # Advisory: a broken backend is a miss, never a failed request
            logger.error("cache_get_error", key=key, error=str(e))
            record_cache_error("get")
            return None

        record_cache_operation("get", hit=value is not None)
        if value is None:
            logger.debug("cache_miss", key=key)
        return value

    async def set(self, key: str, value: int, ttl: float) -> None:
        try:
            await self.backend.set(key, value, ttl)
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e))
            record_cache_error("set")
            return
        logger.debug("cache_set", key=key, ttl=ttl)

    async def invalidate(self, *keys: str) -> None:
        try:
            await self.backend.delete(*keys)
        except Exception as e:
            logger.error("cache_invalidation_error", keys=list(keys), error=str(e))
            record_cache_error("invalidate")

    async def get_capacity(self, activity_id: str) -> Optional[int]:
        return await self.get(capacity_key(activity_id))

    async def set_capacity(self, activity_id: str, capacity: int) -> None:
        await self.set(capacity_key(activity_id), capacity, self.capacity_ttl)

    async def get_counter(self, activity_id: str) -> Optional[int]:
        return await self.get(counter_key(activity_id))

    async def set_counter(self, activity_id: str, counter: int) -> None:
        await self.set(counter_key(activity_id), counter, self.count_ttl)

    async def get_slot_count(self, key: SlotKey) -> Optional[int]:
        return await self.get(slot_count_key(key))

    async def set_slot_count(self, key: SlotKey, count: int) -> None:
        await self.set(slot_count_key(key), count, self.count_ttl)

    async def invalidate_activity(self, activity_id: str) -> None:
        """Drop every count entry for an activity. Capacity stays cached."""
        keys = [counter_key(activity_id)]
        keys.extend(
            slot_count_key(SlotKey(activity_id, index))
            for index in range(1, self.max_slots + 1)
        )
        await self.invalidate(*keys)
        logger.debug("cache_invalidated", activity_id=activity_id, keys_deleted=len(keys))

    async def stats(self) -> dict:
        try:
            return await self.backend.stats()
        except Exception as e:
            return {"status": "error", "error": str(e)}

    async def close(self) -> None:
        await self.backend.close()
