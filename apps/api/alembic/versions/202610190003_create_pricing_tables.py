"""create pricing category and session tables

Revision ID: 202610190003
Revises: 202610190002
Create Date: 2026-10-19 09:20:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190003"
down_revision: str | None = "202610190002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "pricing_category",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("markup_percent", sa.Numeric(7, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "pricing_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=True),
        sa.Column("exchange_rate", sa.Numeric(12, 4), nullable=False),
        sa.Column("tax_rate_percent", sa.Numeric(7, 2), nullable=False),
        sa.Column("rounding_mode", sa.String(length=32), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("total_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=False),
        sa.Column("reviewed_by_id", sa.Uuid(), nullable=True),
        sa.Column("report_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pricing_session_status", "pricing_session", ["status", "created_at"])

    op.create_table(
        "marketplace_pricing_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_url", sa.Text(), nullable=True),
        sa.Column("asin", sa.String(length=16), nullable=True),
        sa.Column("product_name", sa.String(length=500), nullable=True),
        sa.Column("list_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("surcharge_percent", sa.Numeric(7, 2), nullable=False),
        sa.Column("effective_cost", sa.Numeric(14, 4), nullable=False),
        sa.Column("markup_percent", sa.Numeric(7, 2), nullable=False),
        sa.Column("markup_overridden", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("selling_price_source", sa.Numeric(14, 2), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(12, 4), nullable=False),
        sa.Column("tax_rate_percent", sa.Numeric(7, 2), nullable=False),
        sa.Column("rounding_mode", sa.String(length=32), nullable=False),
        sa.Column("final_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_by_id", sa.Uuid(), nullable=False),
        sa.Column("reviewed_by_id", sa.Uuid(), nullable=True),
        sa.Column("report_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_marketplace_pricing_session_status",
        "marketplace_pricing_session",
        ["status", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_marketplace_pricing_session_status", table_name="marketplace_pricing_session")
    op.drop_table("marketplace_pricing_session")
    op.drop_index("ix_pricing_session_status", table_name="pricing_session")
    op.drop_table("pricing_session")
    op.drop_table("pricing_category")
