"""
Engine container: one explicitly constructed set of collaborators per process.

Built in the application lifespan (or by the CLI) and torn down with it; no
component reaches for a module-level singleton.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from openday.core.config import Settings
from openday.services.admission_service import AdmissionCoordinator
from openday.services.availability_service import AvailabilityService
from openday.services.cache_service import CapacityCache
from openday.services.interfaces.cache_backend import CacheBackend
from openday.services.ledger import ReservationLedger
from openday.services.locks import KeyedLockRegistry
from openday.services.reconciliation_service import ReconciliationJob
from openday.services.slot_keys import SlotKeyCodec


@dataclass
class ReservationEngine:
    codec: SlotKeyCodec
    cache: CapacityCache
    ledger: ReservationLedger
    locks: KeyedLockRegistry
    coordinator: AdmissionCoordinator
    availability: AvailabilityService
    reconciliation: ReconciliationJob

    async def close(self) -> None:
        await self.cache.close()


def build_engine(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    cache_backend: CacheBackend,
) -> ReservationEngine:
    codec = SlotKeyCodec(
        preserve_variants=settings.PRESERVE_VARIANTS,
        max_slots=settings.MAX_SLOTS_PER_ACTIVITY,
    )
    cache = CapacityCache(
        cache_backend,
        capacity_ttl=settings.CAPACITY_CACHE_TTL,
        count_ttl=settings.COUNT_CACHE_TTL,
        max_slots=settings.MAX_SLOTS_PER_ACTIVITY,
    )
    ledger = ReservationLedger(session_factory)
    # Shared by admission and reconciliation so both serialize on the same activity keys
    locks = KeyedLockRegistry(timeout=settings.LOCK_TIMEOUT_SECONDS)

    return ReservationEngine(
        codec=codec,
        cache=cache,
        ledger=ledger,
        locks=locks,
        coordinator=AdmissionCoordinator(
            ledger,
            cache,
            codec,
            locks,
            max_attempts=settings.MAX_TRANSACTION_ATTEMPTS,
            retry_backoff=settings.RETRY_BACKOFF_SECONDS,
        ),
        availability=AvailabilityService(ledger, cache, codec),
        reconciliation=ReconciliationJob(ledger, cache, locks),
    )
