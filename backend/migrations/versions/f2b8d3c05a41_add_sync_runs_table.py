"""Add sync_runs table.

Revision ID: f2b8d3c05a41
Revises: e1a7c2b94f30
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "f2b8d3c05a41"
down_revision: str | None = "e1a7c2b94f30"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("sync_type", sa.String(length=20), nullable=False),
        sa.Column("date_from", sa.Date(), nullable=False),
        sa.Column("date_to", sa.Date(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("execution_ms", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("synced_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("fetched_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("complete", sa.Boolean(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        if_not_exists=True,
    )

    op.create_index("ix_sync_runs_sync_type", "sync_runs", ["sync_type"], if_not_exists=True)
    op.create_index("idx_sync_runs_started_at", "sync_runs", ["started_at"], if_not_exists=True)


def downgrade() -> None:
    op.drop_index("idx_sync_runs_started_at", table_name="sync_runs", if_exists=True)
    op.drop_index("ix_sync_runs_sync_type", table_name="sync_runs", if_exists=True)
    op.drop_table("sync_runs", if_exists=True)
