"""
Availability reads for display endpoints.

These paths go through the capacity cache and accept staleness up to the
count TTL. Admission never uses them. A warm cache answers without touching
the database; row-id and explicit-key lookups always resolve through it.
"""

import time
from typing import Optional, Union

from openday.core.logging import get_logger
from openday.services.cache_service import CapacityCache
from openday.services.ledger import ReservationLedger, ReservationView
from openday.services.resolution import resolve_activity
from openday.services.slot_keys import ActivityRef, SlotKey, SlotKeyCodec

logger = get_logger(__name__)


class AvailabilityService:
    def __init__(self, ledger: ReservationLedger, cache: CapacityCache, codec: SlotKeyCodec) -> None:
        self.ledger = ledger
        self.cache = cache
        self.codec = codec
        # Activity ids seen by the last full scan, and when that list goes stale
        self._activity_ids: list[str] = []
        self._activity_ids_expire_at = 0.0

    async def get_availability(
        self,
        activity_ref: Union[ActivityRef, SlotKey],
        explicit_key: Optional[int] = None,
    ) -> int:
        """Seats left on an activity (capacity - counter, floored at 0)."""
        activity_id = self._cacheable_id(activity_ref, explicit_key)
        if activity_id is not None:
            seats = await self._seats_from_cache(activity_id)
            if seats is not None:
                return seats

        async with self.ledger.reader() as reader:
            activity = await resolve_activity(reader, self.codec, activity_ref, explicit_key)

        await self.cache.set_capacity(activity.activity_id, activity.capacity)
        await self.cache.set_counter(activity.activity_id, activity.participant_counter)
        return activity.available

    async def get_all_availability(self) -> dict[SlotKey, int]:
        """Seats left for every canonical key. Slots of one activity share its pool."""
        if self._activity_ids and time.monotonic() < self._activity_ids_expire_at:
            availability = await self._all_from_cache(self._activity_ids)
            if availability is not None:
                return availability

        async with self.ledger.reader() as reader:
            activities = await reader.list_activities()

        availability = {}
        for activity in activities:
            await self.cache.set_capacity(activity.activity_id, activity.capacity)
            await self.cache.set_counter(activity.activity_id, activity.participant_counter)
            for key in self.codec.slot_keys(activity.activity_id):
                availability[key] = activity.available

        self._activity_ids = [activity.activity_id for activity in activities]
        self._activity_ids_expire_at = time.monotonic() + self.cache.capacity_ttl
        logger.debug("availability_computed", activities=len(activities), keys=len(availability))
        return availability

    async def get_slot_count(self, key: SlotKey) -> int:
        """Ledger rows booked on one canonical key."""
        cached = await self.cache.get_slot_count(key)
        if cached is not None:
            return cached

        async with self.ledger.reader() as reader:
            count = await reader.count_for_key(key)
        await self.cache.set_slot_count(key, count)
        return count

    async def get_reservation_counts(self) -> dict[SlotKey, int]:
        """Ledger rows per canonical key, for every key that has any."""
        async with self.ledger.reader() as reader:
            counts = await reader.count_by_key()

        for key, count in counts.items():
            await self.cache.set_slot_count(key, count)
        return counts

    async def list_subject_reservations(self, subject_id: str) -> list[ReservationView]:
        async with self.ledger.reader() as reader:
            return await reader.list_for_subject(subject_id)

    def _cacheable_id(
        self,
        activity_ref: Union[ActivityRef, SlotKey],
        explicit_key: Optional[int],
    ) -> Optional[str]:
        """Canonical id to look up in the cache, or None when only the database can tell."""
        if explicit_key is not None or activity_ref is None:
            return None
        if isinstance(activity_ref, SlotKey):
            return activity_ref.activity_id
        if not isinstance(activity_ref, str) or self.codec.is_row_reference(activity_ref):
            return None
        return self.codec.canonicalize_activity(activity_ref)

    async def _seats_from_cache(self, activity_id: str) -> Optional[int]:
        capacity = await self.cache.get_capacity(activity_id)
        if capacity is None:
            return None
        counter = await self.cache.get_counter(activity_id)
        if counter is None:
            return None
        return max(0, capacity - counter)

    async def _all_from_cache(self, activity_ids: list[str]) -> Optional[dict[SlotKey, int]]:
        availability: dict[SlotKey, int] = {}
        for activity_id in activity_ids:
            seats = await self._seats_from_cache(activity_id)
            if seats is None:
                return None
            for key in self.codec.slot_keys(activity_id):
                availability[key] = seats
        return availability
