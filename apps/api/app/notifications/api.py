from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.core.rbac import require_administrator
from app.notifications.schemas import DispatchResult, NotificationRead, NotificationSummary, PurgeResult, ReminderResult
from app.notifications.service import notification_dispatcher, notification_service
from app.platform.security.context import AuthContext


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[NotificationRead]:
    return notification_service.list_for_user(db, ctx, unread_only=unread_only, limit=limit)


@router.get("/summary", response_model=NotificationSummary)
def get_summary(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> NotificationSummary:
    return notification_service.summary(db, ctx)


@router.post("/read-all", response_model=NotificationSummary)
def mark_all_read(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> NotificationSummary:
    notification_service.mark_all_read(db, ctx)
    return notification_service.summary(db, ctx)


@router.post("/dispatch", response_model=DispatchResult)
def dispatch_pending(
    db: Session = Depends(get_db),
    _: AuthContext = Depends(require_administrator),
) -> DispatchResult:
    return notification_dispatcher.dispatch_pending(db)


@router.post("/reminders", response_model=ReminderResult)
def create_reminders(
    db: Session = Depends(get_db),
    _: AuthContext = Depends(require_administrator),
) -> ReminderResult:
    return ReminderResult(created=notification_dispatcher.create_due_date_reminders(db))


@router.post("/purge", response_model=PurgeResult)
def purge_old(
    db: Session = Depends(get_db),
    _: AuthContext = Depends(require_administrator),
) -> PurgeResult:
    return PurgeResult(deleted=notification_dispatcher.purge_old_notifications(db))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> NotificationRead:
    return notification_service.mark_read(db, ctx, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> None:
    notification_service.delete(db, ctx, notification_id)
