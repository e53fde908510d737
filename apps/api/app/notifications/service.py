from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import NotFound, to_http_exception
from app.desk.models import DUE_DATE_REMINDER_SOURCES
from app.metrics import observe_notification_delivery
from app.notifications.models import Notification, NotificationIntent
from app.notifications.schemas import DispatchResult, NotificationRead, NotificationSummary
from app.platform.security.context import AuthContext
from app.users.security import as_utc

logger = logging.getLogger("app.notifications")

STATUS_CHANGE = "status_change"
ASSIGNMENT = "assignment"
DUE_DATE = "due_date"

QUEUED = "Queued"
DELIVERED = "Delivered"
FAILED = "Failed"
MAX_DELIVERY_ATTEMPTS = 3

ENTITY_LABELS = {
    "work_order": "Work Order",
    "ticket": "Ticket",
    "task": "Task",
    "quotation_request": "Quotation Request",
    "customer_inquiry": "Customer Inquiry",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def entity_label(entity_type: str) -> str:
    return ENTITY_LABELS.get(entity_type, entity_type.replace("_", " ").title())


@dataclass(frozen=True, slots=True)
class RenderedNotification:
    title: str
    message: str
    priority: str


def render_intent(intent_type: str, entity_type: str, payload: dict[str, Any]) -> RenderedNotification:
    label = entity_label(entity_type)
    title = payload.get("entity_title") or label
    if intent_type == STATUS_CHANGE:
        return RenderedNotification(
            title=f"{label} Status Updated",
            message=f"\"{title}\" status changed from {payload.get('from_status')} to {payload.get('to_status')}",
            priority="medium",
        )
    if intent_type == ASSIGNMENT:
        return RenderedNotification(
            title=f"New {label} Assigned",
            message=f"{payload.get('assigned_by') or 'Someone'} assigned \"{title}\" to you",
            priority="medium",
        )
    if intent_type == DUE_DATE:
        if payload.get("overdue"):
            return RenderedNotification(
                title=f"{label} Overdue",
                message=f"\"{title}\" was due {payload.get('due_date')}",
                priority="urgent",
            )
        return RenderedNotification(
            title=f"{label} Due Soon",
            message=f"\"{title}\" is due {payload.get('due_date')}",
            priority="high",
        )
    raise ValueError(f"unknown notification intent type '{intent_type}'")


def _queue_intent(
    session: Session,
    *,
    intent_type: str,
    recipient_user_id: uuid.UUID,
    entity_type: str,
    entity_id: uuid.UUID,
    payload: dict[str, Any],
) -> NotificationIntent:
    intent = NotificationIntent(
        intent_type=intent_type,
        recipient_user_id=recipient_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        payload_json=json.dumps(payload, default=str),
        status=QUEUED,
    )
    session.add(intent)
    return intent


def queue_status_change(
    session: Session,
    *,
    entity_type: str,
    entity_id: uuid.UUID,
    entity_title: str,
    from_status: str | None,
    to_status: str,
    recipients: Iterable[uuid.UUID | None],
) -> list[NotificationIntent]:
    payload = {"entity_title": entity_title, "from_status": from_status, "to_status": to_status}
    seen: set[uuid.UUID] = set()
    intents: list[NotificationIntent] = []
    for recipient in recipients:
        if recipient is None or recipient in seen:
            continue
        seen.add(recipient)
        intents.append(
            _queue_intent(
                session,
                intent_type=STATUS_CHANGE,
                recipient_user_id=recipient,
                entity_type=entity_type,
                entity_id=entity_id,
                payload=payload,
            )
        )
    return intents


def queue_assignment(
    session: Session,
    ctx: AuthContext,
    *,
    entity_type: str,
    entity_id: uuid.UUID,
    entity_title: str,
    assignee_id: uuid.UUID | None,
) -> NotificationIntent | None:
    if assignee_id is None or str(assignee_id) == ctx.user_id:
        return None
    return _queue_intent(
        session,
        intent_type=ASSIGNMENT,
        recipient_user_id=assignee_id,
        entity_type=entity_type,
        entity_id=entity_id,
        payload={"entity_title": entity_title, "assigned_by": ctx.label},
    )


class NotificationSender(Protocol):
    def send(self, session: Session, intent: NotificationIntent, rendered: RenderedNotification) -> None:
        ...


class InAppNotificationSender:
    """Delivers an intent as an in-app notification row."""

    def send(self, session: Session, intent: NotificationIntent, rendered: RenderedNotification) -> None:
        session.add(
            Notification(
                user_id=intent.recipient_user_id,
                type=intent.intent_type,
                title=rendered.title,
                message=rendered.message,
                entity_type=intent.entity_type,
                entity_id=intent.entity_id,
                priority=rendered.priority,
                intent_id=intent.id,
            )
        )


@dataclass(slots=True)
class NotificationDispatcher:
    sender: NotificationSender = field(default_factory=InAppNotificationSender)

    def dispatch_pending(self, session: Session, *, limit: int = 100) -> DispatchResult:
        """Deliver queued intents one at a time.

        Each delivery commits on its own. A failure rolls back only that
        delivery, marks the intent failed and moves on.
        """

        intent_ids = session.scalars(
            select(NotificationIntent.id)
            .where(NotificationIntent.status == QUEUED)
            .order_by(NotificationIntent.created_at.asc())
            .limit(limit)
        ).all()

        delivered = 0
        failed = 0
        for intent_id in intent_ids:
            intent = session.get(NotificationIntent, intent_id)
            if intent is None or intent.status != QUEUED:
                continue
            intent_type = intent.intent_type
            try:
                payload = json.loads(intent.payload_json or "{}")
                rendered = render_intent(intent_type, intent.entity_type, payload)
                self.sender.send(session, intent, rendered)
                intent.status = DELIVERED
                intent.attempts += 1
                intent.processed_at = _utcnow()
                session.commit()
            except Exception as exc:
                session.rollback()
                logger.exception(
                    "notification.delivery_failed",
                    extra={"intent_id": str(intent_id), "error": str(exc)},
                )
                self._mark_failed(session, intent_id, exc)
                observe_notification_delivery(intent_type, "failed")
                failed += 1
                continue

            observe_notification_delivery(intent_type, "delivered")
            delivered += 1

        if delivered or failed:
            logger.info("notification.dispatched", extra={"count": delivered, "status": f"failed={failed}"})
        return DispatchResult(delivered=delivered, failed=failed)

    def requeue_failed(self, session: Session) -> int:
        result = session.execute(
            update(NotificationIntent)
            .where(NotificationIntent.status == FAILED, NotificationIntent.attempts < MAX_DELIVERY_ATTEMPTS)
            .values(status=QUEUED)
        )
        session.commit()
        return int(result.rowcount or 0)

    def create_due_date_reminders(self, session: Session, *, now: datetime | None = None) -> int:
        """Queue reminders for assigned records due within a day or already overdue."""

        current = now or _utcnow()
        horizon = current + timedelta(days=1)
        created = 0
        for entity_type, model, open_status in DUE_DATE_REMINDER_SOURCES:
            rows = session.scalars(
                select(model).where(
                    model.status == open_status,
                    model.due_date.is_not(None),
                    model.assigned_user_id.is_not(None),
                )
            ).all()
            for record in rows:
                due_at = as_utc(record.due_date)
                if due_at > horizon or self._reminded_recently(session, record.id, record.assigned_user_id, current):
                    continue
                _queue_intent(
                    session,
                    intent_type=DUE_DATE,
                    recipient_user_id=record.assigned_user_id,
                    entity_type=entity_type,
                    entity_id=record.id,
                    payload={
                        "entity_title": record.display_title,
                        "due_date": due_at.date().isoformat(),
                        "overdue": due_at < current,
                    },
                )
                created += 1
        session.commit()
        return created

    def purge_old_notifications(self, session: Session, *, now: datetime | None = None, retention_days: int | None = None) -> int:
        days = retention_days if retention_days is not None else get_settings().notification_retention_days
        cutoff = (now or _utcnow()) - timedelta(days=days)
        result = session.execute(delete(Notification).where(Notification.created_at < cutoff))
        session.execute(
            delete(NotificationIntent).where(
                NotificationIntent.status == DELIVERED,
                NotificationIntent.created_at < cutoff,
            )
        )
        session.commit()
        return int(result.rowcount or 0)

    def _mark_failed(self, session: Session, intent_id: uuid.UUID, exc: Exception) -> None:
        intent = session.get(NotificationIntent, intent_id)
        if intent is None:
            return
        intent.status = FAILED
        intent.attempts += 1
        intent.last_error = str(exc)[:500]
        intent.processed_at = _utcnow()
        session.commit()

    @staticmethod
    def _reminded_recently(session: Session, entity_id: uuid.UUID, user_id: uuid.UUID, now: datetime) -> bool:
        since = now - timedelta(days=1)
        existing = session.scalar(
            select(func.count())
            .select_from(NotificationIntent)
            .where(
                NotificationIntent.intent_type == DUE_DATE,
                NotificationIntent.entity_id == entity_id,
                NotificationIntent.recipient_user_id == user_id,
                NotificationIntent.created_at >= since,
            )
        )
        return bool(existing)


@dataclass(slots=True)
class NotificationService:
    def list_for_user(self, session: Session, ctx: AuthContext, *, unread_only: bool = False, limit: int = 50) -> list[NotificationRead]:
        stmt = select(Notification).where(Notification.user_id == ctx.user_uuid)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        rows = session.scalars(stmt.order_by(Notification.created_at.desc()).limit(limit)).all()
        return [NotificationRead.model_validate(row) for row in rows]

    def summary(self, session: Session, ctx: AuthContext) -> NotificationSummary:
        base = select(func.count()).select_from(Notification).where(Notification.user_id == ctx.user_uuid)
        total = session.scalar(base) or 0
        unread = session.scalar(base.where(Notification.is_read.is_(False))) or 0
        return NotificationSummary(total=int(total), unread=int(unread))

    def mark_read(self, session: Session, ctx: AuthContext, notification_id: uuid.UUID) -> NotificationRead:
        notification = self._get_owned(session, ctx, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = _utcnow()
            session.commit()
            session.refresh(notification)
        return NotificationRead.model_validate(notification)

    def mark_all_read(self, session: Session, ctx: AuthContext) -> int:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == ctx.user_uuid, Notification.is_read.is_(False))
            .values(is_read=True, read_at=_utcnow())
        )
        session.commit()
        return int(result.rowcount or 0)

    def delete(self, session: Session, ctx: AuthContext, notification_id: uuid.UUID) -> None:
        notification = self._get_owned(session, ctx, notification_id)
        session.delete(notification)
        session.commit()

    @staticmethod
    def _get_owned(session: Session, ctx: AuthContext, notification_id: uuid.UUID) -> Notification:
        notification = session.get(Notification, notification_id)
        if notification is None or notification.user_id != ctx.user_uuid:
            raise to_http_exception(NotFound("notification not found"))
        return notification


notification_dispatcher = NotificationDispatcher()
notification_service = NotificationService()
