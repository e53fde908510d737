from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

NotificationPriority = Literal["low", "medium", "high", "urgent"]


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    message: str
    entity_type: str | None
    entity_id: UUID | None
    priority: NotificationPriority
    is_read: bool
    created_at: datetime
    read_at: datetime | None


class NotificationSummary(BaseModel):
    total: int
    unread: int


class DispatchResult(BaseModel):
    delivered: int
    failed: int


class ReminderResult(BaseModel):
    created: int


class PurgeResult(BaseModel):
    deleted: int
