"""Status machines and the pure transition/assignment operations for desk records.

Nothing here talks to the database. Services persist the returned history
entry and assignment change together with the mutated record.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from types import MappingProxyType
from typing import Protocol

from app.core.errors import InvalidInput
from app.core.state_machine import StatusMachine
from app.platform.security.context import AuthContext
from app.platform.security.policies import ResourceAction, ensure_allowed


class WorkOrderStatus(StrEnum):
    RECEIVED = "received"
    IN_PROGRESS = "in_progress"
    TESTING = "testing"
    READY_FOR_PICKUP = "ready_for_pickup"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TicketStatus(StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuotationRequestStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class CustomerInquiryStatus(StrEnum):
    NEW = "new"
    CONTACTED = "contacted"
    FOLLOW_UP = "follow_up"
    COMPLETED = "completed"
    CLOSED = "closed"


_W = WorkOrderStatus
_T = TicketStatus
_K = TaskStatus
_Q = QuotationRequestStatus
_C = CustomerInquiryStatus

WORK_ORDER_MACHINE = StatusMachine.build(
    "work_order",
    _W.RECEIVED,
    {
        _W.RECEIVED: {_W.IN_PROGRESS, _W.CANCELLED},
        _W.IN_PROGRESS: {_W.TESTING, _W.CANCELLED},
        _W.TESTING: {_W.READY_FOR_PICKUP, _W.CANCELLED},
        _W.READY_FOR_PICKUP: {_W.COMPLETED, _W.CANCELLED},
    },
)

TICKET_MACHINE = StatusMachine.build(
    "ticket",
    _T.OPEN,
    {
        _T.OPEN: {_T.IN_PROGRESS, _T.CLOSED},
        _T.IN_PROGRESS: {_T.RESOLVED, _T.CLOSED},
        _T.RESOLVED: {_T.CLOSED, _T.IN_PROGRESS},
    },
)

TASK_MACHINE = StatusMachine.build(
    "task",
    _K.PENDING,
    {
        _K.PENDING: {_K.IN_PROGRESS, _K.COMPLETED, _K.CANCELLED},
        _K.IN_PROGRESS: {_K.COMPLETED, _K.CANCELLED},
    },
)

QUOTATION_REQUEST_MACHINE = StatusMachine.build(
    "quotation_request",
    _Q.PENDING,
    {
        _Q.PENDING: {_Q.IN_PROGRESS, _Q.DECLINED},
        _Q.IN_PROGRESS: {_Q.QUOTED, _Q.DECLINED},
        _Q.QUOTED: {_Q.ACCEPTED, _Q.DECLINED},
        _Q.ACCEPTED: {_Q.COMPLETED},
    },
)

CUSTOMER_INQUIRY_MACHINE = StatusMachine.build(
    "customer_inquiry",
    _C.NEW,
    {
        _C.NEW: {_C.CONTACTED, _C.CLOSED},
        _C.CONTACTED: {_C.FOLLOW_UP, _C.COMPLETED, _C.CLOSED},
        _C.FOLLOW_UP: {_C.CONTACTED, _C.COMPLETED, _C.CLOSED},
    },
)

MACHINES: Mapping[str, StatusMachine] = MappingProxyType(
    {
        machine.name: machine
        for machine in (
            WORK_ORDER_MACHINE,
            TICKET_MACHINE,
            TASK_MACHINE,
            QUOTATION_REQUEST_MACHINE,
            CUSTOMER_INQUIRY_MACHINE,
        )
    }
)


class TrackedRecord(Protocol):
    id: uuid.UUID
    status: str
    assigned_user_id: uuid.UUID | None
    updated_at: datetime
    completed_at: datetime | None


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    entity_type: str
    entity_id: uuid.UUID
    from_status: str | None
    to_status: str
    changed_by_id: str
    changed_at: datetime
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class AssignmentChange:
    entity_type: str
    entity_id: uuid.UUID
    from_user_id: uuid.UUID | None
    to_user_id: uuid.UUID | None
    assigned_by_id: str
    assigned_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_machine(variant: str) -> StatusMachine:
    try:
        return MACHINES[variant]
    except KeyError as exc:
        raise InvalidInput(f"unknown record type '{variant}'") from exc


def open_record(
    record: TrackedRecord,
    variant: str,
    actor: AuthContext,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> StatusHistoryEntry:
    """Put a new record in its initial status and return the creation entry."""

    machine = get_machine(variant)
    ensure_allowed(variant, ResourceAction.CREATE, actor)
    timestamp = now or _utcnow()
    record.status = machine.initial
    record.updated_at = timestamp
    record.completed_at = None
    return StatusHistoryEntry(
        entity_type=variant,
        entity_id=record.id,
        from_status=None,
        to_status=machine.initial,
        changed_by_id=actor.user_id,
        changed_at=timestamp,
        notes=notes,
    )


def transition(
    record: TrackedRecord,
    variant: str,
    new_status: str,
    actor: AuthContext,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> tuple[TrackedRecord, StatusHistoryEntry]:
    """Move a record along an edge of its status graph.

    Raises InvalidTransition or PermissionDenied before touching the record.
    """

    machine = get_machine(variant)
    ensure_allowed(variant, ResourceAction.TRANSITION, actor)
    current = record.status
    machine.ensure_transition(current, new_status)

    timestamp = now or _utcnow()
    record.status = new_status
    record.updated_at = timestamp
    if machine.is_terminal(new_status):
        record.completed_at = timestamp

    entry = StatusHistoryEntry(
        entity_type=variant,
        entity_id=record.id,
        from_status=current,
        to_status=new_status,
        changed_by_id=actor.user_id,
        changed_at=timestamp,
        notes=notes,
    )
    return record, entry


def assign(
    record: TrackedRecord,
    variant: str,
    user_id: uuid.UUID | None,
    actor: AuthContext,
    *,
    now: datetime | None = None,
) -> tuple[TrackedRecord, AssignmentChange]:
    get_machine(variant)
    ensure_allowed(variant, ResourceAction.ASSIGN, actor)

    timestamp = now or _utcnow()
    previous = record.assigned_user_id
    record.assigned_user_id = user_id
    record.updated_at = timestamp
    change = AssignmentChange(
        entity_type=variant,
        entity_id=record.id,
        from_user_id=previous,
        to_user_id=user_id,
        assigned_by_id=actor.user_id,
        assigned_at=timestamp,
    )
    return record, change
