"""create desk record, status history, task log and call log tables

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19 09:10:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190002"
down_revision: str | None = "202610190001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _tracked_columns() -> list[sa.Column]:
    return [
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("assigned_user_id", sa.Uuid(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "desk_work_order",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("telephone", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("item_description", sa.Text(), nullable=False),
        sa.Column("issue_description", sa.Text(), nullable=False),
        sa.Column("urgency", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_tracked_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_work_order_status", "desk_work_order", ["status", "created_at"])

    op.create_table(
        "desk_ticket",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        *_tracked_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_ticket_status", "desk_ticket", ["status", "created_at"])

    op.create_table(
        "desk_task",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("urgency_level", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_tracked_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_task_status", "desk_task", ["status", "created_at"])

    op.create_table(
        "desk_quotation_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("telephone_number", sa.String(length=64), nullable=False),
        sa.Column("email_address", sa.String(length=255), nullable=True),
        sa.Column("quote_description", sa.Text(), nullable=False),
        sa.Column("urgency", sa.String(length=16), nullable=False),
        *_tracked_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_quotation_request_status", "desk_quotation_request", ["status", "created_at"])

    op.create_table(
        "desk_customer_inquiry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("telephone_number", sa.String(length=64), nullable=False),
        sa.Column("item_inquiry", sa.Text(), nullable=False),
        sa.Column("urgency", sa.String(length=16), nullable=False),
        *_tracked_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_customer_inquiry_status", "desk_customer_inquiry", ["status", "created_at"])

    op.create_table(
        "desk_status_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=False),
        sa.Column("changed_by_id", sa.Uuid(), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_type", "entity_id", "sequence", name="uq_desk_status_history_sequence"),
    )
    op.create_index("ix_desk_status_history_entity", "desk_status_history", ["entity_type", "entity_id"])

    op.create_table(
        "desk_task_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("task_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_task_log_task", "desk_task_log", ["task_id", "created_at"])

    op.create_table(
        "desk_call_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=64), nullable=False),
        sa.Column("call_type", sa.String(length=16), nullable=False),
        sa.Column("call_purpose", sa.String(length=32), nullable=False),
        sa.Column("outcome", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("duration", sa.String(length=16), nullable=True),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_user_id", sa.Uuid(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_desk_call_log_created", "desk_call_log", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_desk_call_log_created", table_name="desk_call_log")
    op.drop_table("desk_call_log")
    op.drop_index("ix_desk_task_log_task", table_name="desk_task_log")
    op.drop_table("desk_task_log")
    op.drop_index("ix_desk_status_history_entity", table_name="desk_status_history")
    op.drop_table("desk_status_history")
    for table in (
        "desk_customer_inquiry",
        "desk_quotation_request",
        "desk_task",
        "desk_ticket",
        "desk_work_order",
    ):
        op.drop_index(f"ix_{table}_status", table_name=table)
        op.drop_table(table)
