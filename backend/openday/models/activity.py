"""
Activity model: a bookable offering with one fixed capacity shared by its time slots.

Key design decisions:
- `participant_counter` is denormalized (avoids COUNT over reservations on every check)
- Only the admission coordinator and reconciliation write `participant_counter`
- No `participant_counter <= capacity` constraint: reconciliation must be able
  to store a true count above capacity so it can raise the alarm
- `activity_id` is the textual identifier; numbered variants (`foo-2`) are
  separate rows
"""

from sqlalchemy import Column, Integer, String, CheckConstraint

from openday.db.base import Base, TimestampMixin


class Activity(Base, TimestampMixin):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(String(100), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False)
    participant_counter = Column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_activity_capacity_positive"),
        CheckConstraint("participant_counter >= 0", name="check_participant_counter_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Activity(id={self.id}, activity_id={self.activity_id}, "
            f"taken={self.participant_counter}/{self.capacity})>"
        )
