"""
Ledger row: one subject holding one time slot of one activity.

Key design decisions:
- Unique constraint on (subject_id, activity_id): one slot per activity per subject,
  any number of activities per subject
- Rows are never updated in place; a change of slot is delete + insert
- Composite index on (activity_id, slot_index) backs per-key counts
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, CheckConstraint, func

from openday.db.base import Base


class ReservationRecord(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String(64), nullable=False, index=True)
    activity_id = Column(String(100), ForeignKey("activities.activity_id"), nullable=False)
    slot_index = Column(Integer, nullable=False)
    attachment_ref = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("subject_id", "activity_id", name="uq_subject_activity_reservation"),
        CheckConstraint("slot_index >= 1", name="check_reservation_slot_index_positive"),
        Index("ix_reservations_activity_slot", "activity_id", "slot_index"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReservationRecord(id={self.id}, subject={self.subject_id}, "
            f"activity={self.activity_id}, slot={self.slot_index})>"
        )
