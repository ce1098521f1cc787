"""
Reservation ledger and participant counter storage.

The ledger (`reservations` table) is the source of truth; the counter
(`activities.participant_counter`) is a denormalized copy kept in step by
writing both in the same transaction.

Writes go through `ReservationLedger.transaction()`, a scoped handle that
commits when the block exits normally and rolls back on any exception.
`reader()` hands out the same query surface but never commits.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from openday.models.activity import Activity
from openday.models.reservation import ReservationRecord
from openday.services.slot_keys import SlotKey


@dataclass(frozen=True)
class ActivitySnapshot:
    row_id: int
    activity_id: str
    title: str
    capacity: int
    participant_counter: int

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.participant_counter)


@dataclass(frozen=True)
class ReservationView:
    subject_id: str
    key: SlotKey
    created_at: Optional[datetime]
    attachment_ref: Optional[str] = None


_ACTIVITY_COLUMNS = (
    Activity.id,
    Activity.activity_id,
    Activity.title,
    Activity.capacity,
    Activity.participant_counter,
)


def _snapshot(row) -> ActivitySnapshot:
    return ActivitySnapshot(
        row_id=row.id,
        activity_id=row.activity_id,
        title=row.title,
        capacity=row.capacity,
        participant_counter=row.participant_counter,
    )


def _view(record: ReservationRecord) -> ReservationView:
    return ReservationView(
        subject_id=record.subject_id,
        key=SlotKey(record.activity_id, record.slot_index),
        created_at=record.created_at,
        attachment_ref=record.attachment_ref,
    )


class LedgerTransaction:
    """Operations bound to one open database transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # -- activities -----------------------------------------------------

    async def get_activity(self, activity_id: str, for_update: bool = False) -> Optional[ActivitySnapshot]:
        stmt = select(*_ACTIVITY_COLUMNS).where(Activity.activity_id == activity_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self.session.execute(stmt)).first()
        return _snapshot(row) if row else None

    async def get_activity_by_row_id(self, row_id: int) -> Optional[ActivitySnapshot]:
        stmt = select(*_ACTIVITY_COLUMNS).where(Activity.id == row_id)
        row = (await self.session.execute(stmt)).first()
        return _snapshot(row) if row else None

    async def lock_activities(self, activity_ids: Iterable[str]) -> dict[str, ActivitySnapshot]:
        """Row-lock several activities in a stable order and return their state."""
        ids = sorted(set(activity_ids))
        if not ids:
            return {}
        stmt = (
            select(*_ACTIVITY_COLUMNS)
            .where(Activity.activity_id.in_(ids))
            .order_by(Activity.activity_id)
            .with_for_update()
        )
        rows = (await self.session.execute(stmt)).all()
        return {row.activity_id: _snapshot(row) for row in rows}

    async def list_activities(self) -> list[ActivitySnapshot]:
        stmt = select(*_ACTIVITY_COLUMNS).order_by(Activity.activity_id)
        rows = (await self.session.execute(stmt)).all()
        return [_snapshot(row) for row in rows]

    # -- counter --------------------------------------------------------

    async def adjust_counter(self, activity_id: str, delta: int) -> None:
        """Add `delta` to the counter, clamped at zero."""
        new_value = Activity.participant_counter + delta
        await self.session.execute(
            update(Activity)
            .where(Activity.activity_id == activity_id)
            .values(participant_counter=case((new_value < 0, 0), else_=new_value))
            .execution_options(synchronize_session=False)
        )

    async def set_counter(self, activity_id: str, value: int) -> None:
        await self.session.execute(
            update(Activity)
            .where(Activity.activity_id == activity_id)
            .values(participant_counter=value)
            .execution_options(synchronize_session=False)
        )

    # -- reservations ---------------------------------------------------

    async def find_reservation(self, subject_id: str, activity_id: str) -> Optional[ReservationView]:
        record = await self.session.scalar(
            select(ReservationRecord).where(
                ReservationRecord.subject_id == subject_id,
                ReservationRecord.activity_id == activity_id,
            )
        )
        return _view(record) if record else None

    async def list_for_subject(self, subject_id: str) -> list[ReservationView]:
        result = await self.session.scalars(
            select(ReservationRecord)
            .where(ReservationRecord.subject_id == subject_id)
            .order_by(ReservationRecord.activity_id)
        )
        return [_view(record) for record in result.all()]

    async def insert_reservation(
        self,
        subject_id: str,
        key: SlotKey,
        attachment_ref: Optional[str] = None,
    ) -> None:
        self.session.add(
            ReservationRecord(
                subject_id=subject_id,
                activity_id=key.activity_id,
                slot_index=key.slot_index,
                attachment_ref=attachment_ref,
            )
        )
        await self.session.flush()

    async def delete_reservation(self, subject_id: str, activity_id: str) -> int:
        result = await self.session.execute(
            delete(ReservationRecord)
            .where(
                ReservationRecord.subject_id == subject_id,
                ReservationRecord.activity_id == activity_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_for_subject(self, subject_id: str, activity_ids: Iterable[str]) -> int:
        """Delete the subject's rows on the given activities only."""
        ids = sorted(set(activity_ids))
        if not ids:
            return 0
        result = await self.session.execute(
            delete(ReservationRecord)
            .where(
                ReservationRecord.subject_id == subject_id,
                ReservationRecord.activity_id.in_(ids),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def count_for_activity(self, activity_id: str) -> int:
        count = await self.session.scalar(
            select(func.count(ReservationRecord.id)).where(ReservationRecord.activity_id == activity_id)
        )
        return int(count or 0)

    async def count_for_key(self, key: SlotKey) -> int:
        count = await self.session.scalar(
            select(func.count(ReservationRecord.id)).where(
                ReservationRecord.activity_id == key.activity_id,
                ReservationRecord.slot_index == key.slot_index,
            )
        )
        return int(count or 0)

    async def count_by_key(self) -> dict[SlotKey, int]:
        stmt = select(
            ReservationRecord.activity_id,
            ReservationRecord.slot_index,
            func.count(ReservationRecord.id),
        ).group_by(ReservationRecord.activity_id, ReservationRecord.slot_index)
        rows = (await self.session.execute(stmt)).all()
        return {SlotKey(activity_id, slot_index): int(count) for activity_id, slot_index, count in rows}

    async def count_by_activity(self) -> dict[str, int]:
        stmt = select(ReservationRecord.activity_id, func.count(ReservationRecord.id)).group_by(
            ReservationRecord.activity_id
        )
        rows = (await self.session.execute(stmt)).all()
        return {activity_id: int(count) for activity_id, count in rows}


class ReservationLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        """Commit on normal exit, roll back on any exception."""
        async with self._session_factory() as session:
            async with session.begin():
                yield LedgerTransaction(session)

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[LedgerTransaction]:
        """Read-only handle for display paths; nothing is committed."""
        async with self._session_factory() as session:
            yield LedgerTransaction(session)
