"""Initial schema: activities and the reservation ledger.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Activities table
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("activity_id", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("participant_counter", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("capacity > 0", name="check_activity_capacity_positive"),
        sa.CheckConstraint("participant_counter >= 0", name="check_participant_counter_non_negative"),
        # No counter <= capacity check: reconciliation stores true counts above
        # capacity so the overbooking stays visible
    )
    op.create_index("ix_activities_id", "activities", ["id"])
    op.create_index("ix_activities_activity_id", "activities", ["activity_id"], unique=True)

    # Reservation ledger
    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column(
            "activity_id",
            sa.String(100),
            sa.ForeignKey("activities.activity_id"),
            nullable=False,
        ),
        sa.Column("slot_index", sa.Integer(), nullable=False),
        sa.Column("attachment_ref", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # One slot per activity per subject; a concurrent duplicate insert
        # fails here and the admission transaction retries
        sa.UniqueConstraint("subject_id", "activity_id", name="uq_subject_activity_reservation"),
        sa.CheckConstraint("slot_index >= 1", name="check_reservation_slot_index_positive"),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    op.create_index("ix_reservations_subject_id", "reservations", ["subject_id"])
    # Backs per-activity and per-key counts used by reconciliation and displays
    op.create_index("ix_reservations_activity_slot", "reservations", ["activity_id", "slot_index"])


def downgrade() -> None:
    op.drop_table("reservations")
    op.drop_table("activities")
