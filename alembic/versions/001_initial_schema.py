"""Initial schema: users, events, participants, rejection ledger, notifications.

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


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'volunteer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('admin', 'staff', 'volunteer', 'scholar', 'sponsor')",
            name="check_user_role",
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Events table. No current <= total constraint: over-admission is
    # allowed while capacity is not enforced.
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'OPEN'")),
        sa.Column("total_volunteers", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_volunteers", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_scholars", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_scholars", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("total_volunteers >= 0", name="check_total_volunteers_non_negative"),
        sa.CheckConstraint("current_volunteers >= 0", name="check_current_volunteers_non_negative"),
        sa.CheckConstraint("total_scholars >= 0", name="check_total_scholars_non_negative"),
        sa.CheckConstraint("current_scholars >= 0", name="check_current_scholars_non_negative"),
        sa.CheckConstraint("status IN ('OPEN', 'CLOSED')", name="check_event_status"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Listings filter by date range ("upcoming", "this week")
    op.create_index("ix_events_date", "events", ["date"])

    # Participations
    op.create_table(
        "event_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'volunteer'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # One row per pair: concurrent joins for the same pair collide here
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_participant"),
        sa.CheckConstraint("role IN ('volunteer', 'scholar')", name="check_participation_role"),
        sa.CheckConstraint("status IN ('PENDING', 'ACTIVE')", name="check_participation_status"),
    )
    op.create_index("ix_event_participants_id", "event_participants", ["id"])
    op.create_index("ix_event_participants_event_id", "event_participants", ["event_id"])
    op.create_index("ix_event_participants_user_id", "event_participants", ["user_id"])

    # Rejection ledger
    op.create_table(
        "rejected_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("admin_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "user_id", name="uq_rejected_participant"),
    )
    op.create_index("ix_rejected_participants_id", "rejected_participants", ["id"])
    op.create_index("ix_rejected_participants_event_id", "rejected_participants", ["event_id"])
    op.create_index("ix_rejected_participants_user_id", "rejected_participants", ["user_id"])

    # In-app notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("related_id", sa.Integer(), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("actor_name", sa.String(255), nullable=True),
        sa.Column("actor_avatar", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("rejected_participants")
    op.drop_table("event_participants")
    op.drop_table("events")
    op.drop_table("users")
