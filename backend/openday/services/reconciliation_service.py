"""
Counter reconciliation.

Recomputes every participant_counter from the ledger and overwrites it.
Drift comes from direct administrative edits, partial migrations and old
identifier bugs; the ledger always wins.

A counter above capacity after recomputation means capacity was exceeded at
some point. That is raised as a ConsistencyAlarm for an operator to resolve
(someone has to decide which bookings to honor); it is never auto-corrected.

Safe to run under live traffic: each activity is recomputed while holding
the same per-activity lock the admission coordinator uses.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

from openday.core.logging import get_logger
from openday.core.metrics import consistency_alarms, counter_corrections
from openday.services.cache_service import CapacityCache
from openday.services.ledger import ReservationLedger
from openday.services.locks import KeyedLockRegistry, activity_lock_key

logger = get_logger(__name__)


@dataclass(frozen=True)
class CounterCorrection:
    activity_id: str
    previous: int
    actual: int


@dataclass(frozen=True)
class ConsistencyAlarm:
    activity_id: str
    counter: int
    capacity: int

    @property
    def excess(self) -> int:
        return self.counter - self.capacity


@dataclass
class ReconciliationReport:
    started_at: datetime
    activities_checked: int = 0
    corrections: list[CounterCorrection] = field(default_factory=list)
    alarms: list[ConsistencyAlarm] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.corrections and not self.alarms


class ReconciliationJob:
    def __init__(self, ledger: ReservationLedger, cache: CapacityCache, locks: KeyedLockRegistry) -> None:
        self.ledger = ledger
        self.cache = cache
        self.locks = locks

    async def run(self) -> ReconciliationReport:
        report = ReconciliationReport(started_at=datetime.now(timezone.utc))

        async with self.ledger.reader() as reader:
            activity_ids = [a.activity_id for a in await reader.list_activities()]

        for activity_id in activity_ids:
            await self._reconcile_activity(activity_id, report)

        logger.info(
            "reconciliation_completed",
            activities_checked=report.activities_checked,
            corrected=len(report.corrections),
            alarms=len(report.alarms),
        )
        return report

    async def _reconcile_activity(self, activity_id: str, report: ReconciliationReport) -> None:
        async with self.locks.hold([activity_lock_key(activity_id)]):
            async with self.ledger.transaction() as txn:
                activity = await txn.get_activity(activity_id, for_update=True)
                if activity is None:
                    # Deleted since we listed it
                    return
                actual = await txn.count_for_activity(activity_id)
                # Unconditional write keeps the job idempotent
                await txn.set_counter(activity_id, actual)

            await self.cache.invalidate_activity(activity_id)

        report.activities_checked += 1

        if actual != activity.participant_counter:
            counter_corrections.inc()
            report.corrections.append(CounterCorrection(activity_id, activity.participant_counter, actual))
            logger.warning(
                "counter_corrected",
                activity_id=activity_id,
                previous=activity.participant_counter,
                actual=actual,
            )

        if actual > activity.capacity:
            consistency_alarms.inc()
            report.alarms.append(ConsistencyAlarm(activity_id, actual, activity.capacity))
            logger.error(
                "consistency_alarm",
                activity_id=activity_id,
                counter=actual,
                capacity=activity.capacity,
            )

    async def run_periodically(self, interval: float) -> None:
        """Background loop for the API process. Failures are logged, never fatal."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.run()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("reconciliation_failed", error=str(e))
