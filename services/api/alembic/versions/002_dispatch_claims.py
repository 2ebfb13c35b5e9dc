"""Dispatcher claim columns so overlapping runs skip records already in flight.

Revision ID: 002_dispatch_claims
Revises: 001_initial
Create Date: 2026-01-15 00:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "002_dispatch_claims"
down_revision = "001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("moment_window_schedule", sa.Column("claim_token", postgresql.UUID(as_uuid=True), nullable=True))
    op.add_column("moment_window_schedule", sa.Column("claimed_until", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    op.drop_column("moment_window_schedule", "claimed_until")
    op.drop_column("moment_window_schedule", "claim_token")
