"""Initial schema for ReserveSync.

Revision ID: e1a7c2b94f30
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "e1a7c2b94f30"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "sheet_rows",
        sa.Column("sheet_name", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("row_number", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("cells", sa.JSON(), nullable=False),
        if_not_exists=True,
    )

    op.create_table(
        "cache_entries",
        sa.Column("key", sa.String(length=250), primary_key=True, nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        if_not_exists=True,
    )

    op.create_table(
        "ledger_entries",
        sa.Column("company_id", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("period_key", sa.String(length=7), primary_key=True, nullable=False),
        sa.Column("resource_type", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("granted", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("used", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    op.create_table(
        "ledger_usages",
        sa.Column("receipt_id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("company_id", sa.String(length=50), nullable=False),
        sa.Column("period_key", sa.String(length=7), nullable=False),
        sa.Column("resource_type", sa.String(length=50), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("compensated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("memo", sa.String(length=255), nullable=True),
        if_not_exists=True,
    )

    op.create_table(
        "plans",
        sa.Column("name", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("allocations", sa.JSON(), nullable=False),
        if_not_exists=True,
    )

    op.create_table(
        "companies",
        sa.Column("company_id", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("plan_name", sa.String(length=100), nullable=True),
        if_not_exists=True,
    )

    op.create_table(
        "company_visitors",
        sa.Column("visitor_id", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("company_id", sa.String(length=50), nullable=False),
        sa.Column("member_type", sa.String(length=50), nullable=True),
        if_not_exists=True,
    )

    op.create_table(
        "menu_ticket_types",
        sa.Column("menu_id", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("ticket_type", sa.String(length=50), nullable=False),
        if_not_exists=True,
    )

    op.create_index(
        "idx_sheet_rows_key",
        "sheet_rows",
        ["sheet_name", "key"],
        if_not_exists=True,
    )
    op.create_index(
        "ix_ledger_usages_company_id",
        "ledger_usages",
        ["company_id"],
        if_not_exists=True,
    )
    op.create_index(
        "ix_company_visitors_company_id",
        "company_visitors",
        ["company_id"],
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("ix_company_visitors_company_id", table_name="company_visitors", if_exists=True)
    op.drop_index("ix_ledger_usages_company_id", table_name="ledger_usages", if_exists=True)
    op.drop_index("idx_sheet_rows_key", table_name="sheet_rows", if_exists=True)

    op.drop_table("menu_ticket_types", if_exists=True)
    op.drop_table("company_visitors", if_exists=True)
    op.drop_table("companies", if_exists=True)
    op.drop_table("plans", if_exists=True)
    op.drop_table("ledger_usages", if_exists=True)
    op.drop_table("ledger_entries", if_exists=True)
    op.drop_table("cache_entries", if_exists=True)
    op.drop_table("sheet_rows", if_exists=True)
