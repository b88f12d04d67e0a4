"""Initial schema: roles, users, lanes, sessions, reservations with constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    roles = op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )
    op.bulk_insert(roles, [
        {"id": 1, "name": "Administrator"},
        {"id": 2, "name": "Trainer"},
        {"id": 3, "name": "User"},
    ])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=False, server_default=sa.text("3")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Lane ids are fixed (1..LANE_COUNT) and filled in by the application
    op.create_table(
        "lanes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("capacity > 0", name="check_lane_capacity_positive"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("available_slots", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("available_slots > 0", name="check_session_slots_positive"),
        sa.CheckConstraint("ends_at > starts_at", name="check_session_end_after_start"),
    )
    op.create_index("ix_sessions_id", "sessions", ["id"])
    # The session listing is always ordered by start
    op.create_index("ix_sessions_starts_at", "sessions", ["starts_at"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("sessions.id"), nullable=True),
        sa.Column("lane_id", sa.Integer(), sa.ForeignKey("lanes.id"), nullable=True),
        sa.Column("slot_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # Exactly one addressing mode per row
        sa.CheckConstraint(
            "(session_id IS NOT NULL AND lane_id IS NULL AND slot_start IS NULL)"
            " OR (session_id IS NULL AND lane_id IS NOT NULL AND slot_start IS NOT NULL)",
            name="check_reservation_single_target",
        ),
        # Duplicate bookings lose at the database even under concurrency.
        # NULLs are distinct, so each constraint only bites its own mode.
        sa.UniqueConstraint("lane_id", "slot_start", "user_id", name="uq_lane_slot_user"),
        sa.UniqueConstraint("session_id", "user_id", name="uq_session_user"),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    op.create_index("ix_reservations_user_id", "reservations", ["user_id"])
    op.create_index("ix_reservations_session_id", "reservations", ["session_id"])
    # Day grid: one range scan over slot_start, grouped by lane
    op.create_index("ix_reservations_slot_lane", "reservations", ["slot_start", "lane_id"])


def downgrade() -> None:
    op.drop_table("reservations")
    op.drop_table("sessions")
    op.drop_table("lanes")
    op.drop_table("users")
    op.drop_table("roles")
