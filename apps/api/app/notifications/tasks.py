from __future__ import annotations

import logging

from app.core.celery_app import celery_app
from app.core.database import SessionLocal
from app.notifications.service import notification_dispatcher
from app.users.service import user_service

logger = logging.getLogger("app.notifications")


@celery_app.task(name="app.notifications.deliver_pending")
def deliver_pending_notifications(limit: int = 100) -> dict[str, int]:
    with SessionLocal() as session:
        notification_dispatcher.requeue_failed(session)
        result = notification_dispatcher.dispatch_pending(session, limit=limit)
    return result.model_dump()


@celery_app.task(name="app.notifications.due_date_reminders")
def queue_due_date_reminders() -> int:
    with SessionLocal() as session:
        created = notification_dispatcher.create_due_date_reminders(session)
        if created:
            notification_dispatcher.dispatch_pending(session)
    logger.info("notification.reminders_queued", extra={"count": created})
    return created


@celery_app.task(name="app.notifications.purge_old")
def purge_old_notifications() -> int:
    with SessionLocal() as session:
        deleted = notification_dispatcher.purge_old_notifications(session)
    logger.info("notification.purged", extra={"count": deleted})
    return deleted


@celery_app.task(name="app.users.purge_expired_sessions")
def purge_expired_sessions() -> int:
    with SessionLocal() as session:
        return user_service.purge_expired_sessions(session)
