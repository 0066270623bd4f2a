"""Reservations, approval requests, blocked windows and slot locks.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("reservations"):
        op.create_table(
            "reservations",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("requester_id", sa.Integer(), nullable=False),
            sa.Column("team_id", sa.Integer(), nullable=True),
            sa.Column("booking_date", sa.Date(), nullable=False),
            sa.Column("start_time", sa.Time(), nullable=False),
            sa.Column("end_time", sa.Time(), nullable=False),
            sa.Column("duration_hours", sa.Numeric(6, 2), nullable=False),
            sa.Column("amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("status", sa.String(), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.CheckConstraint("start_time < end_time", name="ck_reservations_window_order"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f("ix_reservations_resource_id"), "reservations", ["resource_id"])
        op.create_index(op.f("ix_reservations_requester_id"), "reservations", ["requester_id"])
        op.create_index(op.f("ix_reservations_status"), "reservations", ["status"])
        op.create_index(
            "ix_reservations_resource_date",
            "reservations",
            ["resource_id", "booking_date"],
        )

    if not inspector.has_table("approval_requests"):
        op.create_table(
            "approval_requests",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("reservation_id", sa.Uuid(), nullable=False),
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("requester_id", sa.Integer(), nullable=False),
            sa.Column("processor_id", sa.Integer(), nullable=False),
            sa.Column("message", sa.String(), nullable=False, server_default=""),
            sa.Column("rejection_reason", sa.String(), nullable=True),
            sa.Column("decided_at", sa.DateTime(), nullable=True),
            sa.Column("status", sa.String(), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("reservation_id"),
        )
        op.create_index(
            op.f("ix_approval_requests_resource_id"), "approval_requests", ["resource_id"]
        )
        op.create_index(
            op.f("ix_approval_requests_requester_id"), "approval_requests", ["requester_id"]
        )
        op.create_index(
            op.f("ix_approval_requests_processor_id"), "approval_requests", ["processor_id"]
        )
        op.create_index(op.f("ix_approval_requests_status"), "approval_requests", ["status"])

    if not inspector.has_table("blocked_windows"):
        op.create_table(
            "blocked_windows",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("weekday", sa.String(), nullable=False),
            sa.Column("start_time", sa.Time(), nullable=False),
            sa.Column("end_time", sa.Time(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_blocked_windows_resource_weekday",
            "blocked_windows",
            ["resource_id", "weekday"],
        )

    if not inspector.has_table("slot_locks"):
        op.create_table(
            "slot_locks",
            sa.Column("resource_id", sa.Integer(), nullable=False),
            sa.Column("booking_date", sa.Date(), nullable=False),
            sa.Column("touched_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("resource_id", "booking_date"),
        )

    if bind.dialect.name == "postgresql":
        # Active reservations on the same court and date may never overlap,
        # even if a writer skips the advisory lock.
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE reservations
            ADD CONSTRAINT ex_reservations_active_overlap
            EXCLUDE USING gist (
                resource_id WITH =,
                tsrange(booking_date + start_time, booking_date + end_time, '[)') WITH &&
            )
            WHERE (status IN ('pending', 'confirmed'))
            """,
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if bind.dialect.name == "postgresql":
        op.execute(
            "ALTER TABLE reservations DROP CONSTRAINT IF EXISTS ex_reservations_active_overlap",
        )
    if inspector.has_table("slot_locks"):
        op.drop_table("slot_locks")
    if inspector.has_table("blocked_windows"):
        op.drop_index("ix_blocked_windows_resource_weekday", table_name="blocked_windows")
        op.drop_table("blocked_windows")
    if inspector.has_table("approval_requests"):
        op.drop_index(op.f("ix_approval_requests_status"), table_name="approval_requests")
        op.drop_index(op.f("ix_approval_requests_processor_id"), table_name="approval_requests")
        op.drop_index(op.f("ix_approval_requests_requester_id"), table_name="approval_requests")
        op.drop_index(op.f("ix_approval_requests_resource_id"), table_name="approval_requests")
        op.drop_table("approval_requests")
    if inspector.has_table("reservations"):
        op.drop_index("ix_reservations_resource_date", table_name="reservations")
        op.drop_index(op.f("ix_reservations_status"), table_name="reservations")
        op.drop_index(op.f("ix_reservations_requester_id"), table_name="reservations")
        op.drop_index(op.f("ix_reservations_resource_id"), table_name="reservations")
        op.drop_table("reservations")
