from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.database import Base
from app.desk.schemas import StatusTransitionRequest, TaskCreate, TicketCreate, WorkOrderCreate
from app.desk.service import task_service, ticket_service, work_order_service
from app.notifications.models import Notification, NotificationIntent
from app.notifications.service import (
    ASSIGNMENT,
    DELIVERED,
    DUE_DATE,
    FAILED,
    MAX_DELIVERY_ATTEMPTS,
    QUEUED,
    STATUS_CHANGE,
    NotificationDispatcher,
    NotificationService,
    render_intent,
)
from app.platform.security.context import AuthContext


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def no_auto_dispatch(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("NOTIFICATIONS_AUTO_DISPATCH", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def clerk() -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role="user", display_name="Dana")


def _notification(user_id: uuid.UUID, *, created_at: datetime | None = None, title: str = "Hello") -> Notification:
    return Notification(
        user_id=user_id,
        type=STATUS_CHANGE,
        title=title,
        message="Something changed",
        created_at=created_at or datetime.now(timezone.utc),
    )


def test_render_intent_messages() -> None:
    status_change = render_intent(
        STATUS_CHANGE,
        "work_order",
        {"entity_title": "HP laptop", "from_status": "received", "to_status": "in_progress"},
    )
    assert status_change.title == "Work Order Status Updated"
    assert status_change.message == "\"HP laptop\" status changed from received to in_progress"

    assignment = render_intent(ASSIGNMENT, "ticket", {"entity_title": "Wifi", "assigned_by": "Dana"})
    assert assignment.message == "Dana assigned \"Wifi\" to you"

    overdue = render_intent(DUE_DATE, "task", {"entity_title": "Toner", "due_date": "2026-01-02", "overdue": True})
    assert overdue.priority == "urgent"
    assert overdue.title == "Task Overdue"

    with pytest.raises(ValueError):
        render_intent("carrier_pigeon", "task", {})


def test_failed_intents_are_requeued_until_attempts_run_out(db_session: Session) -> None:
    fresh = NotificationIntent(
        intent_type=STATUS_CHANGE,
        recipient_user_id=uuid.uuid4(),
        entity_type="ticket",
        entity_id=uuid.uuid4(),
        payload_json="{}",
        status=FAILED,
        attempts=1,
    )
    exhausted = NotificationIntent(
        intent_type=STATUS_CHANGE,
        recipient_user_id=uuid.uuid4(),
        entity_type="ticket",
        entity_id=uuid.uuid4(),
        payload_json="{}",
        status=FAILED,
        attempts=MAX_DELIVERY_ATTEMPTS,
    )
    db_session.add_all([fresh, exhausted])
    db_session.commit()

    dispatcher = NotificationDispatcher()
    assert dispatcher.requeue_failed(db_session) == 1

    db_session.refresh(fresh)
    db_session.refresh(exhausted)
    assert fresh.status == QUEUED
    assert exhausted.status == FAILED

    result = dispatcher.dispatch_pending(db_session)
    assert (result.delivered, result.failed) == (1, 0)
    db_session.refresh(fresh)
    assert fresh.status == DELIVERED
    assert fresh.attempts == 2


def test_malformed_payload_marks_intent_failed(db_session: Session) -> None:
    intent = NotificationIntent(
        intent_type="carrier_pigeon",
        recipient_user_id=uuid.uuid4(),
        entity_type="ticket",
        entity_id=uuid.uuid4(),
        payload_json="{}",
    )
    db_session.add(intent)
    db_session.commit()

    result = NotificationDispatcher().dispatch_pending(db_session)

    assert (result.delivered, result.failed) == (0, 1)
    db_session.refresh(intent)
    assert intent.status == FAILED
    assert intent.attempts == 1
    assert "carrier_pigeon" in (intent.last_error or "")


def test_due_date_reminders_for_assigned_open_records(db_session: Session, clerk: AuthContext) -> None:
    now = datetime.now(timezone.utc)
    assignee = uuid.uuid4()

    task_service.create_record(
        db_session,
        clerk,
        TaskCreate(title="Order toner", due_date=now + timedelta(hours=3), assigned_user_id=assignee),
    )
    ticket_service.create_record(
        db_session,
        clerk,
        TicketCreate(
            title="Server room AC",
            description="Temperature alarm",
            due_date=now - timedelta(days=2),
            assigned_user_id=assignee,
        ),
    )
    ticket_service.create_record(
        db_session,
        clerk,
        TicketCreate(title="Unowned", description="Nobody assigned", due_date=now - timedelta(days=1)),
    )
    far_off = work_order_service.create_record(
        db_session,
        clerk,
        WorkOrderCreate(
            customer_name="Ann",
            telephone="876-555-0000",
            item_description="Desktop",
            issue_description="Fan noise",
            due_date=now + timedelta(days=7),
            assigned_user_id=assignee,
        ),
    )
    work_order_service.transition_record(db_session, clerk, far_off.id, StatusTransitionRequest(status="in_progress"))

    dispatcher = NotificationDispatcher()
    assert dispatcher.create_due_date_reminders(db_session, now=now) == 2
    assert dispatcher.create_due_date_reminders(db_session, now=now) == 0

    dispatcher.dispatch_pending(db_session)
    reminders = db_session.scalars(select(Notification).where(Notification.type == DUE_DATE)).all()
    by_title = {row.title: row for row in reminders}
    assert set(by_title) == {"Task Due Soon", "Ticket Overdue"}
    assert by_title["Task Due Soon"].priority == "high"
    assert by_title["Ticket Overdue"].priority == "urgent"
    assert all(row.user_id == assignee for row in reminders)


def test_purge_removes_only_old_notifications(db_session: Session) -> None:
    user_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    db_session.add_all(
        [
            _notification(user_id, created_at=now - timedelta(days=45), title="old"),
            _notification(user_id, created_at=now - timedelta(days=2), title="recent"),
        ]
    )
    db_session.commit()

    assert NotificationDispatcher().purge_old_notifications(db_session, now=now, retention_days=30) == 1
    assert [row.title for row in db_session.scalars(select(Notification)).all()] == ["recent"]


def test_user_notification_inbox(db_session: Session, clerk: AuthContext) -> None:
    service = NotificationService()
    first = _notification(clerk.user_uuid, title="first")
    second = _notification(clerk.user_uuid, title="second")
    someone_else = _notification(uuid.uuid4(), title="not mine")
    db_session.add_all([first, second, someone_else])
    db_session.commit()

    summary = service.summary(db_session, clerk)
    assert (summary.total, summary.unread) == (2, 2)

    marked = service.mark_read(db_session, clerk, first.id)
    assert marked.is_read is True
    assert marked.read_at is not None
    assert [row.title for row in service.list_for_user(db_session, clerk, unread_only=True)] == ["second"]

    assert service.mark_all_read(db_session, clerk) == 1
    assert service.summary(db_session, clerk).unread == 0

    with pytest.raises(HTTPException) as exc_info:
        service.delete(db_session, clerk, someone_else.id)
    assert exc_info.value.status_code == 404

    service.delete(db_session, clerk, second.id)
    assert service.summary(db_session, clerk).total == 1
