"""
Admission coordinator: the only writer of reservations and participant counters.

CONCURRENCY STRATEGY: Per-key locks + row locks, check-then-act in one transaction
================================================================================

Problem:
  Two subjects try to book the last seat of an activity simultaneously.
  Both read participant_counter = capacity - 1, both insert, both commit.
  Result: Overbooking.

Solution:
  1. Resolve identifiers to a canonical SlotKey (SlotKeyCodec)
  2. Acquire the subject lock, then every affected activity lock, in sorted order
  3. Open a transaction and SELECT ... FOR UPDATE the activity rows
  4. Re-read capacity and participant_counter from the store (never the cache)
  5. Apply deletes (replace-all / slot move), check capacity, insert, bump counter
  6. Commit, then invalidate the capacity cache for every touched activity

  The in-process lock makes capacity checks linearizable per activity inside
  one worker; the row lock does the same across workers on PostgreSQL.

Retries:
  Lock timeouts and driver errors (deadlock, serialization failure, busy
  database, concurrent unique violation) abort the attempt and are retried
  with exponential backoff plus jitter. Each attempt re-validates from the
  store, so a retry can never double-book.

Results:
  Business and caller errors come back as a typed ReservationResult, never
  as exceptions, so the request layer maps them without looking inside.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union

from sqlalchemy.exc import DBAPIError

from openday.core.exceptions import (
    EngineError,
    InvalidSlotIdentifier,
    NoSpotsAvailable,
    SlotNotFound,
    TransactionAborted,
)
from openday.core.logging import get_logger
from openday.core.metrics import (
    admission_latency,
    counter_floor_hits,
    record_cancellation,
    record_reservation_attempt,
    transaction_retries,
)
from openday.services.cache_service import CapacityCache
from openday.services.ledger import ActivitySnapshot, LedgerTransaction, ReservationLedger
from openday.services.locks import KeyedLockRegistry, activity_lock_key, subject_lock_key
from openday.services.resolution import resolve_activity, resolve_key
from openday.services.slot_keys import ActivityRef, SlotKey, SlotKeyCodec

logger = get_logger(__name__)

MAX_TRANSACTION_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 0.05


class ReservationStatus(str, Enum):
    SUCCESS = "success"
    NO_SPOTS_AVAILABLE = "no_spots_available"
    SLOT_NOT_FOUND = "slot_not_found"
    TRANSACTION_ABORTED = "transaction_aborted"
    INVALID_SLOT_IDENTIFIER = "invalid_slot_identifier"

    @property
    def error_code(self) -> Optional[str]:
        return None if self is ReservationStatus.SUCCESS else self.name


_STATUS_BY_ERROR = {
    InvalidSlotIdentifier: ReservationStatus.INVALID_SLOT_IDENTIFIER,
    SlotNotFound: ReservationStatus.SLOT_NOT_FOUND,
    NoSpotsAvailable: ReservationStatus.NO_SPOTS_AVAILABLE,
    TransactionAborted: ReservationStatus.TRANSACTION_ABORTED,
}


@dataclass(frozen=True)
class SlotSelection:
    """One requested booking, in whatever identifier shape the caller had."""

    activity_ref: Optional[ActivityRef]
    time_slot_id: Union[str, int]
    explicit_key: Optional[int] = None
    attachment_ref: Optional[str] = None


@dataclass(frozen=True)
class ReservationResult:
    status: ReservationStatus
    keys: tuple[SlotKey, ...] = ()
    detail: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status is ReservationStatus.SUCCESS

    @property
    def error_code(self) -> Optional[str]:
        return self.status.error_code

    @property
    def key(self) -> Optional[SlotKey]:
        return self.keys[0] if self.keys else None


@dataclass(frozen=True)
class CancelResult:
    removed: bool
    status: ReservationStatus = ReservationStatus.SUCCESS
    key: Optional[SlotKey] = None
    detail: Optional[str] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.status.error_code


@dataclass
class _Admission:
    """Per-attempt bookkeeping inside one transaction."""

    counters: dict[str, int]
    touched: set[str] = field(default_factory=set)


class AdmissionCoordinator:
    def __init__(
        self,
        ledger: ReservationLedger,
        cache: CapacityCache,
        codec: SlotKeyCodec,
        locks: KeyedLockRegistry,
        max_attempts: int = MAX_TRANSACTION_ATTEMPTS,
        retry_backoff: float = RETRY_BACKOFF_SECONDS,
    ) -> None:
        self.ledger = ledger
        self.cache = cache
        self.codec = codec
        self.locks = locks
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff

    # -- public operations ----------------------------------------------

    async def reserve(
        self,
        subject_id: str,
        activity_ref: Optional[ActivityRef],
        time_slot_id: Union[str, int],
        explicit_key: Optional[int] = None,
        replace_all: bool = False,
        attachment_ref: Optional[str] = None,
    ) -> ReservationResult:
        """
        Admit one booking or reject it.

        With `replace_all` the subject's whole reservation set (across all
        activities) is swapped for this single booking atomically. Without
        it, an existing booking on the same activity is moved to the new slot.
        """
        selection = SlotSelection(activity_ref, time_slot_id, explicit_key, attachment_ref)
        return await self._admit(subject_id, [selection], replace_all)

    async def replace_all_for_subject(
        self,
        subject_id: str,
        selections: Sequence[SlotSelection],
    ) -> ReservationResult:
        """
        Make the subject's reservation set exactly `selections`.

        Either every selection is admitted and every old booking removed, or
        nothing changes. An empty sequence clears the subject's bookings.
        """
        return await self._admit(subject_id, list(selections), replace_all=True)

    async def cancel(
        self,
        subject_id: str,
        activity_key: Union[ActivityRef, SlotKey],
    ) -> CancelResult:
        """Remove the subject's booking on an activity; `removed` says whether one existed."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                key = await self._cancel_once(subject_id, activity_key)
            except (TransactionAborted, DBAPIError) as e:
                if attempt < self.max_attempts:
                    await self._backoff("cancel", subject_id, attempt, e)
                    continue
                return self._cancel_failed(subject_id, activity_key, TransactionAborted(str(e)))
            except (InvalidSlotIdentifier, SlotNotFound) as e:
                return self._cancel_failed(subject_id, activity_key, e)

            record_cancellation(key is not None)
            if key is None:
                logger.info("cancel_no_reservation", subject_id=subject_id, activity_ref=str(activity_key))
                return CancelResult(removed=False)
            logger.info("reservation_cancelled", subject_id=subject_id, key=str(key))
            return CancelResult(removed=True, key=key)

        raise AssertionError("unreachable")

    # -- admission ------------------------------------------------------

    async def _admit(
        self,
        subject_id: str,
        selections: list[SlotSelection],
        replace_all: bool,
    ) -> ReservationResult:
        start_time = time.perf_counter()
        result = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                keys = await self._admit_once(subject_id, selections, replace_all)
            except (TransactionAborted, DBAPIError) as e:
                if attempt < self.max_attempts:
                    await self._backoff("reserve", subject_id, attempt, e)
                    continue
                result = ReservationResult(
                    ReservationStatus.TRANSACTION_ABORTED, detail=str(e), attempts=attempt
                )
            except (InvalidSlotIdentifier, SlotNotFound, NoSpotsAvailable) as e:
                result = ReservationResult(_STATUS_BY_ERROR[type(e)], detail=str(e), attempts=attempt)
            else:
                result = ReservationResult(ReservationStatus.SUCCESS, keys=keys, attempts=attempt)
            break

        admission_latency.observe(time.perf_counter() - start_time)
        record_reservation_attempt(result.status.value)

        if result.ok:
            logger.info(
                "reservation_admitted",
                subject_id=subject_id,
                keys=[str(k) for k in result.keys],
                replace_all=replace_all,
                attempts=result.attempts,
            )
        else:
            logger.warning(
                "reservation_rejected",
                subject_id=subject_id,
                error_code=result.error_code,
                detail=result.detail,
                attempts=result.attempts,
            )
        return result

    async def _admit_once(
        self,
        subject_id: str,
        selections: list[SlotSelection],
        replace_all: bool,
    ) -> tuple[SlotKey, ...]:
        keys = await self._resolve_selections(selections)

        async with self.locks.hold([subject_lock_key(subject_id)]):
            released: set[str] = set()
            if replace_all:
                # Stable while we hold the subject lock: every writer of this
                # subject's rows takes it first
                async with self.ledger.reader() as reader:
                    held = await reader.list_for_subject(subject_id)
                released = {view.key.activity_id for view in held}

            affected = released | {key.activity_id for key in keys}
            async with self.locks.hold(activity_lock_key(a) for a in affected):
                async with self.ledger.transaction() as txn:
                    activities = await txn.lock_activities(affected)
                    state = _Admission(
                        counters={a: snap.participant_counter for a, snap in activities.items()}
                    )

                    if replace_all:
                        await self._release_all(txn, subject_id, affected, state)

                    for key, selection in zip(keys, selections):
                        activity = activities.get(key.activity_id)
                        if activity is None:
                            raise SlotNotFound(str(key))
                        if not replace_all:
                            await self._release_same_activity(txn, subject_id, key, state)
                        await self._take_seat(txn, subject_id, key, activity, selection, state)

                # Committed
                for activity_id in sorted(state.touched):
                    await self.cache.invalidate_activity(activity_id)

        return keys

    async def _resolve_selections(self, selections: list[SlotSelection]) -> tuple[SlotKey, ...]:
        async with self.ledger.reader() as reader:
            keys = tuple(
                [
                    await resolve_key(
                        reader,
                        self.codec,
                        selection.activity_ref,
                        selection.time_slot_id,
                        selection.explicit_key,
                    )
                    for selection in selections
                ]
            )

        seen: set[str] = set()
        for key in keys:
            if key.activity_id in seen:
                raise InvalidSlotIdentifier(str(key), "one slot per activity per subject")
            seen.add(key.activity_id)
        return keys

    async def _release_all(
        self,
        txn: LedgerTransaction,
        subject_id: str,
        locked: set[str],
        state: _Admission,
    ) -> None:
        held = await txn.list_for_subject(subject_id)
        if any(view.key.activity_id not in locked for view in held):
            # Another worker changed this subject's set between our read and the lock
            raise TransactionAborted(f"Reservation set of {subject_id} changed concurrently")

        await txn.delete_for_subject(subject_id, (view.key.activity_id for view in held))
        for view in held:
            await self._decrement(txn, view.key.activity_id, state)

        # A row committed after our read sits on an activity we never locked
        remaining = await txn.list_for_subject(subject_id)
        if remaining:
            raise TransactionAborted(f"Reservation set of {subject_id} changed concurrently")

    async def _release_same_activity(
        self,
        txn: LedgerTransaction,
        subject_id: str,
        key: SlotKey,
        state: _Admission,
    ) -> None:
        if await txn.delete_reservation(subject_id, key.activity_id):
            await self._decrement(txn, key.activity_id, state)

    async def _take_seat(
        self,
        txn: LedgerTransaction,
        subject_id: str,
        key: SlotKey,
        activity: ActivitySnapshot,
        selection: SlotSelection,
        state: _Admission,
    ) -> None:
        counter = state.counters[key.activity_id]
        if counter >= activity.capacity:
            if counter > activity.capacity:
                logger.error(
                    "consistency_alarm",
                    activity_id=key.activity_id,
                    counter=counter,
                    capacity=activity.capacity,
                )
            raise NoSpotsAvailable(key.activity_id, activity.capacity, counter)

        await txn.insert_reservation(subject_id, key, selection.attachment_ref)
        await txn.adjust_counter(key.activity_id, 1)
        state.counters[key.activity_id] = counter + 1
        state.touched.add(key.activity_id)

    async def _decrement(self, txn: LedgerTransaction, activity_id: str, state: _Admission) -> None:
        counter = state.counters.get(activity_id, 0)
        if counter <= 0:
            counter_floor_hits.inc()
            logger.warning("counter_floor_hit", activity_id=activity_id, counter=counter)
        await txn.adjust_counter(activity_id, -1)
        state.counters[activity_id] = max(0, counter - 1)
        state.touched.add(activity_id)

    # -- cancellation ---------------------------------------------------

    async def _cancel_once(
        self,
        subject_id: str,
        activity_key: Union[ActivityRef, SlotKey],
    ) -> Optional[SlotKey]:
        async with self.ledger.reader() as reader:
            activity = await resolve_activity(reader, self.codec, activity_key)

        activity_id = activity.activity_id
        async with self.locks.hold([subject_lock_key(subject_id)]):
            async with self.locks.hold([activity_lock_key(activity_id)]):
                async with self.ledger.transaction() as txn:
                    current = await txn.get_activity(activity_id, for_update=True)
                    if current is None:
                        raise SlotNotFound(activity_id)
                    existing = await txn.find_reservation(subject_id, activity_id)
                    if existing is None:
                        return None
                    await txn.delete_reservation(subject_id, activity_id)
                    state = _Admission(counters={activity_id: current.participant_counter})
                    await self._decrement(txn, activity_id, state)

                await self.cache.invalidate_activity(activity_id)
        return existing.key

    def _cancel_failed(
        self,
        subject_id: str,
        activity_key: Union[ActivityRef, SlotKey],
        error: EngineError,
    ) -> CancelResult:
        status = _STATUS_BY_ERROR[type(error)]
        record_cancellation(False)
        logger.warning(
            "cancel_failed",
            subject_id=subject_id,
            activity_ref=str(activity_key),
            error_code=status.error_code,
        )
        return CancelResult(removed=False, status=status, detail=str(error))

    async def _backoff(self, operation: str, subject_id: str, attempt: int, error: Exception) -> None:
        delay = self.retry_backoff * (2 ** (attempt - 1)) + random.uniform(0, self.retry_backoff)
        transaction_retries.inc()
        logger.info(
            "transaction_retry",
            operation=operation,
            subject_id=subject_id,
            attempt=attempt,
            delay=round(delay, 4),
            error=str(error),
        )
        await asyncio.sleep(delay)
