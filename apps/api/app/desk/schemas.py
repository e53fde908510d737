from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

Urgency = Literal["low", "medium", "high", "urgent"]
TaskPriority = Literal["low", "normal", "high", "critical"]
CallType = Literal["incoming", "outgoing"]
CallPurpose = Literal["inquiry", "support", "follow_up", "quote", "complaint", "other"]
CallOutcome = Literal["answered", "voicemail", "busy", "no_answer", "resolved", "follow_up_needed"]

_DURATION_PATTERN = r"^\d{1,3}:[0-5]\d$"


class TrackedRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    assigned_user_id: UUID | None
    created_by_id: UUID
    due_date: datetime | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None


class WorkOrderCreate(BaseModel):
    customer_name: str = Field(min_length=1, max_length=255)
    telephone: str = Field(min_length=1, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    item_description: str = Field(min_length=1)
    issue_description: str = Field(min_length=1)
    urgency: Urgency = "medium"
    notes: str | None = None
    due_date: datetime | None = None
    assigned_user_id: UUID | None = None


class WorkOrderUpdate(BaseModel):
    customer_name: str | None = Field(default=None, min_length=1, max_length=255)
    telephone: str | None = Field(default=None, min_length=1, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    item_description: str | None = Field(default=None, min_length=1)
    issue_description: str | None = Field(default=None, min_length=1)
    urgency: Urgency | None = None
    notes: str | None = None
    due_date: datetime | None = None


class WorkOrderRead(TrackedRecordRead):
    customer_name: str
    telephone: str
    email: str | None
    item_description: str
    issue_description: str
    urgency: Urgency
    notes: str | None


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    priority: Urgency = "medium"
    due_date: datetime | None = None
    assigned_user_id: UUID | None = None


class TicketUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    priority: Urgency | None = None
    due_date: datetime | None = None


class TicketRead(TrackedRecordRead):
    title: str
    description: str
    priority: Urgency


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    urgency_level: Urgency = "medium"
    priority: TaskPriority = "normal"
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    due_date: datetime | None = None
    assigned_user_id: UUID | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    urgency_level: Urgency | None = None
    priority: TaskPriority | None = None
    tags: list[str] | None = None
    notes: str | None = None
    due_date: datetime | None = None


class TaskRead(TrackedRecordRead):
    title: str
    description: str | None
    urgency_level: Urgency
    priority: TaskPriority
    tags: list[str]
    notes: str | None


class QuotationRequestCreate(BaseModel):
    customer_name: str = Field(min_length=1, max_length=255)
    telephone_number: str = Field(min_length=1, max_length=64)
    email_address: str | None = Field(default=None, max_length=255)
    quote_description: str = Field(min_length=1)
    urgency: Urgency = "medium"
    due_date: datetime | None = None
    assigned_user_id: UUID | None = None


class QuotationRequestUpdate(BaseModel):
    customer_name: str | None = Field(default=None, min_length=1, max_length=255)
    telephone_number: str | None = Field(default=None, min_length=1, max_length=64)
    email_address: str | None = Field(default=None, max_length=255)
    quote_description: str | None = Field(default=None, min_length=1)
    urgency: Urgency | None = None
    due_date: datetime | None = None


class QuotationRequestRead(TrackedRecordRead):
    customer_name: str
    telephone_number: str
    email_address: str | None
    quote_description: str
    urgency: Urgency


class CustomerInquiryCreate(BaseModel):
    customer_name: str = Field(min_length=1, max_length=255)
    telephone_number: str = Field(min_length=1, max_length=64)
    item_inquiry: str = Field(min_length=1)
    urgency: Urgency = "medium"
    due_date: datetime | None = None
    assigned_user_id: UUID | None = None


class CustomerInquiryUpdate(BaseModel):
    customer_name: str | None = Field(default=None, min_length=1, max_length=255)
    telephone_number: str | None = Field(default=None, min_length=1, max_length=64)
    item_inquiry: str | None = Field(default=None, min_length=1)
    urgency: Urgency | None = None
    due_date: datetime | None = None


class CustomerInquiryRead(TrackedRecordRead):
    customer_name: str
    telephone_number: str
    item_inquiry: str
    urgency: Urgency


class StatusTransitionRequest(BaseModel):
    status: str = Field(min_length=1, max_length=32)
    notes: str | None = None


class AssignRequest(BaseModel):
    assigned_user_id: UUID | None


class StatusHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    entity_type: str
    entity_id: UUID
    sequence: int
    from_status: str | None
    to_status: str
    changed_by_id: UUID
    changed_at: datetime
    notes: str | None


class TaskLogRead(BaseModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    action: str
    description: str
    metadata: dict[str, Any]
    created_at: datetime


class TaskCommentCreate(BaseModel):
    comment: str = Field(min_length=1, max_length=4000)


class CallLogCreate(BaseModel):
    customer_name: str = Field(min_length=1, max_length=255)
    phone_number: str = Field(min_length=1, max_length=64)
    call_type: CallType
    call_purpose: CallPurpose
    outcome: CallOutcome
    notes: str | None = None
    duration: str | None = Field(default=None, pattern=_DURATION_PATTERN)
    follow_up_date: datetime | None = None
    assigned_user_id: UUID | None = None


class CallLogUpdate(BaseModel):
    customer_name: str | None = Field(default=None, min_length=1, max_length=255)
    phone_number: str | None = Field(default=None, min_length=1, max_length=64)
    call_type: CallType | None = None
    call_purpose: CallPurpose | None = None
    outcome: CallOutcome | None = None
    notes: str | None = None
    duration: str | None = Field(default=None, pattern=_DURATION_PATTERN)
    follow_up_date: datetime | None = None
    assigned_user_id: UUID | None = None


class CallLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_name: str
    phone_number: str
    call_type: CallType
    call_purpose: CallPurpose
    outcome: CallOutcome
    notes: str | None
    duration: str | None
    follow_up_date: datetime | None
    assigned_user_id: UUID | None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime


class ChangeLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: str
    action: str
    entity_type: str
    entity_id: str
    description: str
    field_changed: str | None
    old_value: str | None
    new_value: str | None
    correlation_id: str | None
    created_at: datetime


class DeskSummaryRead(BaseModel):
    counts: dict[str, dict[str, int]]
    open_assigned_to_me: int
