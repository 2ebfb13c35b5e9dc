"""Initial schema: moment window schedules and device tokens.

Revision ID: 001_initial
Revises:
Create Date: 2025-12-07 00:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

schedule_status = postgresql.ENUM("pending", "sent", "cancelled", name="schedule_status", create_type=False)


def upgrade() -> None:
    schedule_status.create(op.get_bind(), checkfirst=True)

    # --- moment_window_schedule ---
    op.create_table(
        "moment_window_schedule",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("next_due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("min_delay_seconds", sa.Integer, nullable=False, server_default=sa.text("30")),
        sa.Column("max_delay_seconds", sa.Integer, nullable=False, server_default=sa.text("120")),
        sa.Column("status", schedule_status, nullable=False, server_default="pending"),
        sa.Column("notification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_moment_window_schedule_user_id", "moment_window_schedule", ["user_id"])
    op.create_index(
        "ix_moment_window_schedule_user_pending",
        "moment_window_schedule",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        "ix_moment_window_schedule_pending_due",
        "moment_window_schedule",
        ["next_due_at"],
        postgresql_where=sa.text("status = 'pending'"),
    )

    # --- device_tokens ---
    op.create_table(
        "device_tokens",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("platform", sa.String(10), nullable=False),
        sa.Column("token", sa.String(512), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "platform", name="uq_device_tokens_user_platform"),
    )
    op.create_index("ix_device_tokens_user_id", "device_tokens", ["user_id"])


def downgrade() -> None:
    op.drop_table("device_tokens")
    op.drop_table("moment_window_schedule")
    schedule_status.drop(op.get_bind(), checkfirst=True)
