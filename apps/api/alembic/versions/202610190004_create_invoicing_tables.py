"""create client, company settings, quotation and invoice tables

Revision ID: 202610190004
Revises: 202610190003
Create Date: 2026-10-19 09:30:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190004"
down_revision: str | None = "202610190003"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _document_columns() -> list[sa.Column]:
    return [
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("subtotal", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("apply_gct", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("gct_rate_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("gct_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("total", sa.Numeric(14, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "invoicing_client",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoicing_client_name", "invoicing_client", ["name"])

    op.create_table(
        "invoicing_company_settings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("website", sa.String(length=255), nullable=True),
        sa.Column("tax_registration_number", sa.String(length=64), nullable=True),
        sa.Column("bank_details", sa.Text(), nullable=True),
        sa.Column("default_terms", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "invoicing_quotation",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("quotation_number", sa.String(length=32), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("valid_until", sa.Date(), nullable=True),
        *_document_columns(),
        sa.ForeignKeyConstraint(["client_id"], ["invoicing_client.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quotation_number"),
    )
    op.create_index("ix_invoicing_quotation_status", "invoicing_quotation", ["status", "created_at"])

    op.create_table(
        "invoicing_invoice",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("invoice_number", sa.String(length=32), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("quotation_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_document_columns(),
        sa.ForeignKeyConstraint(["client_id"], ["invoicing_client.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["quotation_id"], ["invoicing_quotation.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sa.UniqueConstraint("quotation_id"),
    )
    op.create_index("ix_invoicing_invoice_status", "invoicing_invoice", ["status", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_invoicing_invoice_status", table_name="invoicing_invoice")
    op.drop_table("invoicing_invoice")
    op.drop_index("ix_invoicing_quotation_status", table_name="invoicing_quotation")
    op.drop_table("invoicing_quotation")
    op.drop_table("invoicing_company_settings")
    op.drop_index("ix_invoicing_client_name", table_name="invoicing_client")
    op.drop_table("invoicing_client")
