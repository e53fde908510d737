from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app import events
from app.core.errors import DomainError, InvalidTransition, NotFound, to_http_exception
from app.desk import lifecycle
from app.desk.models import (
    DESK_MODELS,
    CallLog,
    CustomerInquiry,
    QuotationRequest,
    StatusHistory,
    Task,
    TaskLog,
    Ticket,
    WorkOrder,
)
from app.desk.schemas import (
    AssignRequest,
    CallLogCreate,
    CallLogRead,
    CallLogUpdate,
    CustomerInquiryRead,
    DeskSummaryRead,
    QuotationRequestRead,
    StatusHistoryRead,
    StatusTransitionRequest,
    TaskCommentCreate,
    TaskLogRead,
    TaskRead,
    TicketRead,
    TrackedRecordRead,
    WorkOrderRead,
)
from app.metrics import observe_status_transition, observe_transition_rejection
from app.notifications.service import entity_label, queue_assignment, queue_status_change
from app.otel import get_tracer
from app.platform.security.context import AuthContext
from app.platform.security.policies import ResourceAction, ensure_allowed, is_allowed
from app.services.audit import write_change_log

logger = logging.getLogger("app.lifecycle")
tracer = get_tracer("app.desk")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _authorize(resource: str, action: ResourceAction, ctx: AuthContext) -> None:
    try:
        ensure_allowed(resource, action, ctx)
    except DomainError as exc:
        raise to_http_exception(exc) from exc


class TrackedRecordService:
    """CRUD plus status transitions and assignment for one desk record type.

    Every mutation stages the record change, its history entry, the change
    log row and any notification intents, then commits them together. Domain
    events go out only after the commit.
    """

    variant = ""
    model: type[Any] = WorkOrder
    read_schema: type[TrackedRecordRead] = TrackedRecordRead

    def list_records(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        status_filter: str | None = None,
        assigned_user_id: uuid.UUID | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[TrackedRecordRead]:
        _authorize(self.variant, ResourceAction.READ, ctx)
        stmt = select(self.model)
        if status_filter is not None:
            stmt = stmt.where(self.model.status == status_filter)
        if assigned_user_id is not None:
            stmt = stmt.where(self.model.assigned_user_id == assigned_user_id)
        rows = session.scalars(stmt.order_by(self.model.created_at.desc()).offset(offset).limit(limit)).all()
        return [self.read_schema.model_validate(row) for row in rows]

    def get_record(self, session: Session, ctx: AuthContext, record_id: uuid.UUID) -> TrackedRecordRead:
        _authorize(self.variant, ResourceAction.READ, ctx)
        return self.read_schema.model_validate(self._get(session, record_id))

    def create_record(self, session: Session, ctx: AuthContext, dto: BaseModel) -> TrackedRecordRead:
        payload = dto.model_dump(mode="python")
        now = _utcnow()
        record = self.model(id=uuid.uuid4(), created_by_id=ctx.user_uuid, created_at=now, **payload)
        try:
            entry = lifecycle.open_record(record, self.variant, ctx, now=now)
        except DomainError as exc:
            raise to_http_exception(exc) from exc

        session.add(record)
        self._append_history(session, entry)
        write_change_log(
            session,
            ctx,
            entity_type=self.variant,
            entity_id=record.id,
            action="created",
            description=f"Created {entity_label(self.variant)} \"{record.display_title}\"",
        )
        queue_assignment(
            session,
            ctx,
            entity_type=self.variant,
            entity_id=record.id,
            entity_title=record.display_title,
            assignee_id=record.assigned_user_id,
        )
        self._on_created(session, ctx, record)
        session.commit()
        session.refresh(record)

        logger.info(
            "lifecycle.created",
            extra={"entity_type": self.variant, "entity_id": str(record.id), "to_status": record.status},
        )
        self._publish("desk.created", record)
        return self.read_schema.model_validate(record)

    def update_record(self, session: Session, ctx: AuthContext, record_id: uuid.UUID, dto: BaseModel) -> TrackedRecordRead:
        _authorize(self.variant, ResourceAction.UPDATE, ctx)
        record = self._get(session, record_id)
        changes = dto.model_dump(exclude_unset=True, mode="python")

        changed_fields: list[str] = []
        for field_name, value in changes.items():
            old_value = getattr(record, field_name)
            if old_value == value:
                continue
            setattr(record, field_name, value)
            changed_fields.append(field_name)
            write_change_log(
                session,
                ctx,
                entity_type=self.variant,
                entity_id=record.id,
                action="updated",
                description=f"Updated {field_name}",
                field_changed=field_name,
                old_value=old_value,
                new_value=value,
            )

        if not changed_fields:
            return self.read_schema.model_validate(record)

        record.updated_at = _utcnow()
        self._on_updated(session, ctx, record, changed_fields)
        session.commit()
        session.refresh(record)
        self._publish("desk.updated", record)
        return self.read_schema.model_validate(record)

    def transition_record(
        self,
        session: Session,
        ctx: AuthContext,
        record_id: uuid.UUID,
        dto: StatusTransitionRequest,
    ) -> TrackedRecordRead:
        record = self._get(session, record_id)
        with tracer.start_as_current_span("desk.transition") as span:
            span.set_attribute("desk.entity_type", self.variant)
            span.set_attribute("desk.entity_id", str(record.id))
            span.set_attribute("desk.to_status", dto.status)
            try:
                _, entry = lifecycle.transition(record, self.variant, dto.status, ctx, notes=dto.notes)
            except DomainError as exc:
                reason = "invalid_transition" if isinstance(exc, InvalidTransition) else "forbidden"
                observe_transition_rejection(self.variant, reason)
                logger.info(
                    "lifecycle.transition_rejected",
                    extra={
                        "entity_type": self.variant,
                        "entity_id": str(record.id),
                        "from_status": record.status,
                        "to_status": dto.status,
                        "error": str(exc),
                    },
                )
                raise to_http_exception(exc) from exc

            self._append_history(session, entry)
            write_change_log(
                session,
                ctx,
                entity_type=self.variant,
                entity_id=record.id,
                action="status_changed",
                description=f"Status changed from {entry.from_status} to {entry.to_status}",
                field_changed="status",
                old_value=entry.from_status,
                new_value=entry.to_status,
            )
            queue_status_change(
                session,
                entity_type=self.variant,
                entity_id=record.id,
                entity_title=record.display_title,
                from_status=entry.from_status,
                to_status=entry.to_status,
                recipients=[record.assigned_user_id, record.created_by_id],
            )
            self._on_transitioned(session, ctx, record, entry)
            session.commit()

        session.refresh(record)
        observe_status_transition(self.variant, entry.to_status)
        logger.info(
            "lifecycle.transitioned",
            extra={
                "entity_type": self.variant,
                "entity_id": str(record.id),
                "from_status": entry.from_status,
                "to_status": entry.to_status,
            },
        )
        self._publish("desk.status_changed", record, from_status=entry.from_status)
        return self.read_schema.model_validate(record)

    def assign_record(self, session: Session, ctx: AuthContext, record_id: uuid.UUID, dto: AssignRequest) -> TrackedRecordRead:
        record = self._get(session, record_id)
        previous = record.assigned_user_id
        try:
            _, change = lifecycle.assign(record, self.variant, dto.assigned_user_id, ctx)
        except DomainError as exc:
            raise to_http_exception(exc) from exc

        if previous == change.to_user_id:
            session.rollback()
            return self.read_schema.model_validate(self._get(session, record_id))

        write_change_log(
            session,
            ctx,
            entity_type=self.variant,
            entity_id=record.id,
            action="assigned",
            description="Assignment cleared" if change.to_user_id is None else f"Assigned to {change.to_user_id}",
            field_changed="assigned_user_id",
            old_value=change.from_user_id,
            new_value=change.to_user_id,
        )
        queue_assignment(
            session,
            ctx,
            entity_type=self.variant,
            entity_id=record.id,
            entity_title=record.display_title,
            assignee_id=change.to_user_id,
        )
        self._on_assigned(session, ctx, record, change)
        session.commit()
        session.refresh(record)

        logger.info(
            "lifecycle.assigned",
            extra={
                "entity_type": self.variant,
                "entity_id": str(record.id),
                "assigned_user_id": str(change.to_user_id) if change.to_user_id else None,
            },
        )
        self._publish("desk.assigned", record)
        return self.read_schema.model_validate(record)

    def delete_record(self, session: Session, ctx: AuthContext, record_id: uuid.UUID) -> None:
        _authorize(self.variant, ResourceAction.DELETE, ctx)
        record = self._get(session, record_id)
        write_change_log(
            session,
            ctx,
            entity_type=self.variant,
            entity_id=record.id,
            action="deleted",
            description=f"Deleted {entity_label(self.variant)} \"{record.display_title}\"",
        )
        session.delete(record)
        session.commit()

    def list_history(self, session: Session, ctx: AuthContext, record_id: uuid.UUID) -> list[StatusHistoryRead]:
        _authorize(self.variant, ResourceAction.READ, ctx)
        rows = session.scalars(
            select(StatusHistory)
            .where(StatusHistory.entity_type == self.variant, StatusHistory.entity_id == record_id)
            .order_by(StatusHistory.sequence.asc())
        ).all()
        if not rows and session.get(self.model, record_id) is None:
            raise to_http_exception(NotFound(f"{self.variant} not found"))
        return [StatusHistoryRead.model_validate(row) for row in rows]

    def _get(self, session: Session, record_id: uuid.UUID) -> Any:
        record = session.get(self.model, record_id)
        if record is None:
            raise to_http_exception(NotFound(f"{self.variant} not found"))
        return record

    def _append_history(self, session: Session, entry: lifecycle.StatusHistoryEntry) -> StatusHistory:
        existing = session.scalar(
            select(func.count())
            .select_from(StatusHistory)
            .where(StatusHistory.entity_type == entry.entity_type, StatusHistory.entity_id == entry.entity_id)
        )
        row = StatusHistory(
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            sequence=int(existing or 0) + 1,
            from_status=entry.from_status,
            to_status=entry.to_status,
            changed_by_id=uuid.UUID(entry.changed_by_id),
            changed_at=entry.changed_at,
            notes=entry.notes,
        )
        session.add(row)
        return row

    def _publish(self, event_type: str, record: Any, **extra: Any) -> None:
        events.publish(
            {
                "event_type": event_type,
                "entity_type": self.variant,
                "entity_id": str(record.id),
                "status": record.status,
                **extra,
            }
        )

    def _on_created(self, session: Session, ctx: AuthContext, record: Any) -> None:
        return None

    def _on_updated(self, session: Session, ctx: AuthContext, record: Any, changed_fields: list[str]) -> None:
        return None

    def _on_transitioned(
        self, session: Session, ctx: AuthContext, record: Any, entry: lifecycle.StatusHistoryEntry
    ) -> None:
        return None

    def _on_assigned(self, session: Session, ctx: AuthContext, record: Any, change: lifecycle.AssignmentChange) -> None:
        return None


class WorkOrderService(TrackedRecordService):
    variant = "work_order"
    model = WorkOrder
    read_schema = WorkOrderRead


class TicketService(TrackedRecordService):
    variant = "ticket"
    model = Ticket
    read_schema = TicketRead


class QuotationRequestService(TrackedRecordService):
    variant = "quotation_request"
    model = QuotationRequest
    read_schema = QuotationRequestRead


class CustomerInquiryService(TrackedRecordService):
    variant = "customer_inquiry"
    model = CustomerInquiry
    read_schema = CustomerInquiryRead


class TaskService(TrackedRecordService):
    """Tasks additionally keep an activity log of who did what."""

    variant = "task"
    model = Task
    read_schema = TaskRead

    def add_comment(self, session: Session, ctx: AuthContext, task_id: uuid.UUID, dto: TaskCommentCreate) -> TaskLogRead:
        _authorize(self.variant, ResourceAction.COMMENT, ctx)
        task = self._get(session, task_id)
        log = self._log(session, ctx, task, "commented", dto.comment, {"comment": dto.comment})
        task.updated_at = _utcnow()
        session.commit()
        session.refresh(log)
        return self._to_log_read(log)

    def list_logs(self, session: Session, ctx: AuthContext, task_id: uuid.UUID) -> list[TaskLogRead]:
        _authorize(self.variant, ResourceAction.READ, ctx)
        self._get(session, task_id)
        rows = session.scalars(
            select(TaskLog).where(TaskLog.task_id == task_id).order_by(TaskLog.created_at.asc())
        ).all()
        return [self._to_log_read(row) for row in rows]

    def _on_created(self, session: Session, ctx: AuthContext, record: Task) -> None:
        self._log(session, ctx, record, "created", f"Task \"{record.title}\" created", {"status": record.status})

    def _on_updated(self, session: Session, ctx: AuthContext, record: Task, changed_fields: list[str]) -> None:
        self._log(session, ctx, record, "updated", f"Updated {', '.join(changed_fields)}", {"fields": changed_fields})

    def _on_transitioned(self, session: Session, ctx: AuthContext, record: Task, entry: lifecycle.StatusHistoryEntry) -> None:
        action = "completed" if entry.to_status == lifecycle.TaskStatus.COMPLETED else "updated"
        self._log(
            session,
            ctx,
            record,
            action,
            f"Status changed from {entry.from_status} to {entry.to_status}",
            {"from_status": entry.from_status, "to_status": entry.to_status, "notes": entry.notes},
        )

    def _on_assigned(self, session: Session, ctx: AuthContext, record: Task, change: lifecycle.AssignmentChange) -> None:
        description = "Assignment cleared" if change.to_user_id is None else f"Assigned to {change.to_user_id}"
        self._log(
            session,
            ctx,
            record,
            "assigned",
            description,
            {
                "from_user_id": str(change.from_user_id) if change.from_user_id else None,
                "to_user_id": str(change.to_user_id) if change.to_user_id else None,
            },
        )

    @staticmethod
    def _log(
        session: Session,
        ctx: AuthContext,
        task: Task,
        action: str,
        description: str,
        metadata: dict[str, Any],
    ) -> TaskLog:
        log = TaskLog(
            task_id=task.id,
            user_id=ctx.user_uuid,
            action=action,
            description=description,
            log_metadata=metadata,
        )
        session.add(log)
        return log

    @staticmethod
    def _to_log_read(log: TaskLog) -> TaskLogRead:
        return TaskLogRead(
            id=log.id,
            task_id=log.task_id,
            user_id=log.user_id,
            action=log.action,
            description=log.description,
            metadata=log.log_metadata or {},
            created_at=log.created_at,
        )


@dataclass(slots=True)
class CallLogService:
    def list_calls(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        call_type: str | None = None,
        outcome: str | None = None,
        limit: int = 100,
    ) -> list[CallLogRead]:
        _authorize("call_log", ResourceAction.READ, ctx)
        stmt = select(CallLog)
        if call_type is not None:
            stmt = stmt.where(CallLog.call_type == call_type)
        if outcome is not None:
            stmt = stmt.where(CallLog.outcome == outcome)
        rows = session.scalars(stmt.order_by(CallLog.created_at.desc()).limit(limit)).all()
        return [CallLogRead.model_validate(row) for row in rows]

    def create_call(self, session: Session, ctx: AuthContext, dto: CallLogCreate) -> CallLogRead:
        _authorize("call_log", ResourceAction.CREATE, ctx)
        call = CallLog(id=uuid.uuid4(), created_by_id=ctx.user_uuid, **dto.model_dump(mode="python"))
        session.add(call)
        write_change_log(
            session,
            ctx,
            entity_type="call_log",
            entity_id=call.id,
            action="created",
            description=f"Logged {dto.call_type} call with {dto.customer_name}",
        )
        session.commit()
        session.refresh(call)
        return CallLogRead.model_validate(call)

    def update_call(self, session: Session, ctx: AuthContext, call_id: uuid.UUID, dto: CallLogUpdate) -> CallLogRead:
        _authorize("call_log", ResourceAction.UPDATE, ctx)
        call = self._get(session, call_id)
        changes = dto.model_dump(exclude_unset=True, mode="python")
        for field_name, value in changes.items():
            old_value = getattr(call, field_name)
            if old_value == value:
                continue
            setattr(call, field_name, value)
            write_change_log(
                session,
                ctx,
                entity_type="call_log",
                entity_id=call.id,
                action="updated",
                description=f"Updated {field_name}",
                field_changed=field_name,
                old_value=old_value,
                new_value=value,
            )
        call.updated_at = _utcnow()
        session.commit()
        session.refresh(call)
        return CallLogRead.model_validate(call)

    def delete_call(self, session: Session, ctx: AuthContext, call_id: uuid.UUID) -> None:
        _authorize("call_log", ResourceAction.DELETE, ctx)
        call = self._get(session, call_id)
        session.delete(call)
        session.commit()

    @staticmethod
    def _get(session: Session, call_id: uuid.UUID) -> CallLog:
        call = session.get(CallLog, call_id)
        if call is None:
            raise to_http_exception(NotFound("call log not found"))
        return call


def desk_summary(session: Session, ctx: AuthContext) -> DeskSummaryRead:
    counts: dict[str, dict[str, int]] = {}
    open_assigned = 0
    for variant, model in DESK_MODELS.items():
        if not is_allowed(variant, ResourceAction.READ, ctx):
            continue
        machine = lifecycle.get_machine(variant)
        per_status = {status_name: 0 for status_name in sorted(machine.statuses)}
        for status_name, total in session.execute(
            select(model.status, func.count()).group_by(model.status)
        ).all():
            per_status[status_name] = int(total)
        counts[variant] = per_status
        open_assigned += int(
            session.scalar(
                select(func.count())
                .select_from(model)
                .where(model.assigned_user_id == ctx.user_uuid, model.completed_at.is_(None))
            )
            or 0
        )
    return DeskSummaryRead(counts=counts, open_assigned_to_me=open_assigned)


work_order_service = WorkOrderService()
ticket_service = TicketService()
task_service = TaskService()
quotation_request_service = QuotationRequestService()
customer_inquiry_service = CustomerInquiryService()
call_log_service = CallLogService()

RECORD_SERVICES: dict[str, TrackedRecordService] = {
    service.variant: service
    for service in (
        work_order_service,
        ticket_service,
        task_service,
        quotation_request_service,
        customer_inquiry_service,
    )
}
