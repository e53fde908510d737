from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackedRecordMixin:
    """Columns shared by every record that moves through a status graph."""

    status: Mapped[str] = mapped_column(String(32), nullable=False)
    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    created_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class WorkOrder(TrackedRecordMixin, Base):
    __tablename__ = "desk_work_order"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    telephone: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    issue_description: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_desk_work_order_status", "status", "created_at"),)

    @property
    def display_title(self) -> str:
        return f"{self.customer_name}: {self.item_description}"


class Ticket(TrackedRecordMixin, Base):
    __tablename__ = "desk_ticket"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    __table_args__ = (Index("ix_desk_ticket_status", "status", "created_at"),)

    @property
    def display_title(self) -> str:
        return self.title


class Task(TrackedRecordMixin, Base):
    __tablename__ = "desk_task"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    urgency_level: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="normal")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_desk_task_status", "status", "created_at"),)

    @property
    def display_title(self) -> str:
        return self.title


class QuotationRequest(TrackedRecordMixin, Base):
    __tablename__ = "desk_quotation_request"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    telephone_number: Mapped[str] = mapped_column(String(64), nullable=False)
    email_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quote_description: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    __table_args__ = (Index("ix_desk_quotation_request_status", "status", "created_at"),)

    @property
    def display_title(self) -> str:
        return f"Quote for {self.customer_name}"


class CustomerInquiry(TrackedRecordMixin, Base):
    __tablename__ = "desk_customer_inquiry"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    telephone_number: Mapped[str] = mapped_column(String(64), nullable=False)
    item_inquiry: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    __table_args__ = (Index("ix_desk_customer_inquiry_status", "status", "created_at"),)

    @property
    def display_title(self) -> str:
        return f"Inquiry from {self.customer_name}"


class StatusHistory(Base):
    """Append-only status history shared by all desk record types."""

    __tablename__ = "desk_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    changed_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "sequence", name="uq_desk_status_history_sequence"),
        Index("ix_desk_status_history_entity", "entity_type", "entity_id"),
    )


class TaskLog(Base):
    __tablename__ = "desk_task_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    log_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_desk_task_log_task", "task_id", "created_at"),)


class CallLog(Base):
    __tablename__ = "desk_call_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(64), nullable=False)
    call_type: Mapped[str] = mapped_column(String(16), nullable=False)
    call_purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[str | None] = mapped_column(String(16), nullable=True)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    created_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_desk_call_log_created", "created_at"),)


DESK_MODELS: dict[str, type[Base]] = {
    "work_order": WorkOrder,
    "ticket": Ticket,
    "task": Task,
    "quotation_request": QuotationRequest,
    "customer_inquiry": CustomerInquiry,
}

DUE_DATE_REMINDER_SOURCES = (
    ("task", Task, "pending"),
    ("ticket", Ticket, "open"),
    ("work_order", WorkOrder, "in_progress"),
)
