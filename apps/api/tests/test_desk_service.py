from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import events
from app.core.config import get_settings
from app.core.database import Base
from app.desk.models import StatusHistory, WorkOrder
from app.desk.schemas import (
    AssignRequest,
    CallLogCreate,
    CallLogUpdate,
    CustomerInquiryCreate,
    StatusTransitionRequest,
    TaskCommentCreate,
    TaskCreate,
    TicketCreate,
    WorkOrderCreate,
    WorkOrderUpdate,
)
from app.desk.service import (
    call_log_service,
    customer_inquiry_service,
    desk_summary,
    task_service,
    ticket_service,
    work_order_service,
)
from app.models.audit import ChangeLog
from app.notifications.models import Notification, NotificationIntent
from app.notifications.service import DELIVERED, FAILED, QUEUED, NotificationDispatcher
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
def clear_events(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("NOTIFICATIONS_AUTO_DISPATCH", "false")
    get_settings.cache_clear()
    events.published_events.clear()
    yield
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def clerk() -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role="user", email="clerk@example.com")


@pytest.fixture()
def admin() -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role="administrator", email="admin@example.com")


def _work_order(**overrides: object) -> WorkOrderCreate:
    payload: dict[str, object] = {
        "customer_name": "Jane Brown",
        "telephone": "876-555-0101",
        "item_description": "HP laptop",
        "issue_description": "Does not power on",
    }
    payload.update(overrides)
    return WorkOrderCreate(**payload)


def test_create_work_order_opens_history_and_change_log(db_session: Session, clerk: AuthContext) -> None:
    created = work_order_service.create_record(db_session, clerk, _work_order())

    assert created.status == "received"
    assert created.created_by_id == clerk.user_uuid
    assert created.completed_at is None

    history = work_order_service.list_history(db_session, clerk, created.id)
    assert [(row.sequence, row.from_status, row.to_status) for row in history] == [(1, None, "received")]

    change = db_session.scalar(select(ChangeLog).where(ChangeLog.entity_id == str(created.id)))
    assert change is not None
    assert change.action == "created"
    assert change.actor_id == clerk.user_id

    assert events.published_events[-1]["event_type"] == "desk.created"
    assert events.published_events[-1]["entity_id"] == str(created.id)


def test_history_replays_to_current_status(db_session: Session, clerk: AuthContext) -> None:
    created = work_order_service.create_record(db_session, clerk, _work_order())
    for target in ("in_progress", "testing", "ready_for_pickup", "completed"):
        work_order_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status=target))

    record = work_order_service.get_record(db_session, clerk, created.id)
    history = work_order_service.list_history(db_session, clerk, created.id)

    assert [row.sequence for row in history] == list(range(1, len(history) + 1))
    assert history[-1].to_status == record.status == "completed"
    for previous, current in zip(history, history[1:]):
        assert current.from_status == previous.to_status
    assert record.completed_at is not None


def test_invalid_transition_is_rejected_without_side_effects(db_session: Session, clerk: AuthContext) -> None:
    created = ticket_service.create_record(
        db_session,
        clerk,
        TicketCreate(title="Printer offline", description="Front desk printer shows offline"),
    )
    before = ticket_service.get_record(db_session, clerk, created.id)

    with pytest.raises(HTTPException) as exc_info:
        ticket_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="resolved"))
    assert exc_info.value.status_code == 409

    after = ticket_service.get_record(db_session, clerk, created.id)
    assert after.status == before.status == "open"
    assert after.updated_at == before.updated_at
    assert len(ticket_service.list_history(db_session, clerk, created.id)) == 1


def test_transition_on_terminal_record_is_conflict(db_session: Session, clerk: AuthContext) -> None:
    created = work_order_service.create_record(db_session, clerk, _work_order())
    work_order_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="cancelled"))

    with pytest.raises(HTTPException) as exc_info:
        work_order_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="in_progress"))
    assert exc_info.value.status_code == 409


def test_customer_inquiry_assignment_requires_administrator(
    db_session: Session,
    clerk: AuthContext,
    admin: AuthContext,
) -> None:
    created = customer_inquiry_service.create_record(
        db_session,
        clerk,
        CustomerInquiryCreate(customer_name="Mark Lee", telephone_number="876-555-0199", item_inquiry="RTX 4070"),
    )
    assignee = uuid.uuid4()

    with pytest.raises(HTTPException) as exc_info:
        customer_inquiry_service.assign_record(db_session, clerk, created.id, AssignRequest(assigned_user_id=assignee))
    assert exc_info.value.status_code == 403
    assert customer_inquiry_service.get_record(db_session, clerk, created.id).assigned_user_id is None

    assigned = customer_inquiry_service.assign_record(db_session, admin, created.id, AssignRequest(assigned_user_id=assignee))
    assert assigned.assigned_user_id == assignee


def test_update_records_field_level_changes(db_session: Session, clerk: AuthContext) -> None:
    created = work_order_service.create_record(db_session, clerk, _work_order())

    updated = work_order_service.update_record(
        db_session,
        clerk,
        created.id,
        WorkOrderUpdate(urgency="urgent", customer_name="Jane Brown"),
    )

    assert updated.urgency == "urgent"
    rows = db_session.scalars(
        select(ChangeLog).where(ChangeLog.entity_id == str(created.id), ChangeLog.action == "updated")
    ).all()
    assert [(row.field_changed, row.old_value, row.new_value) for row in rows] == [("urgency", "medium", "urgent")]


def test_delete_is_administrator_only_and_keeps_history(
    db_session: Session,
    clerk: AuthContext,
    admin: AuthContext,
) -> None:
    created = work_order_service.create_record(db_session, clerk, _work_order())

    with pytest.raises(HTTPException) as exc_info:
        work_order_service.delete_record(db_session, clerk, created.id)
    assert exc_info.value.status_code == 403

    work_order_service.delete_record(db_session, admin, created.id)
    assert db_session.get(WorkOrder, created.id) is None
    assert db_session.scalar(select(StatusHistory).where(StatusHistory.entity_id == created.id)) is not None


def test_task_activity_log_and_comments(db_session: Session, clerk: AuthContext) -> None:
    created = task_service.create_record(db_session, clerk, TaskCreate(title="Restock toner", priority="high"))
    task_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="in_progress"))
    task_service.add_comment(db_session, clerk, created.id, TaskCommentCreate(comment="Supplier contacted"))
    task_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="completed"))

    logs = task_service.list_logs(db_session, clerk, created.id)
    assert sorted(log.action for log in logs) == ["commented", "completed", "created", "updated"]
    comment = next(log for log in logs if log.action == "commented")
    assert comment.metadata == {"comment": "Supplier contacted"}
    assert comment.user_id == clerk.user_uuid


def test_status_change_queues_notifications_for_assignee_and_creator(
    db_session: Session,
    clerk: AuthContext,
) -> None:
    technician = uuid.uuid4()
    created = work_order_service.create_record(db_session, clerk, _work_order(assigned_user_id=technician))

    assignment = db_session.scalars(select(NotificationIntent)).all()
    assert [(row.intent_type, row.recipient_user_id) for row in assignment] == [("assignment", technician)]

    work_order_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="in_progress"))

    status_intents = db_session.scalars(
        select(NotificationIntent).where(NotificationIntent.intent_type == "status_change")
    ).all()
    assert {row.recipient_user_id for row in status_intents} == {technician, clerk.user_uuid}
    assert all(row.status == QUEUED for row in status_intents)


def test_self_assignment_does_not_notify(db_session: Session, clerk: AuthContext) -> None:
    work_order_service.create_record(db_session, clerk, _work_order(assigned_user_id=clerk.user_uuid))
    assert db_session.scalars(select(NotificationIntent)).all() == []


def test_reassigning_same_user_is_a_no_op(db_session: Session, clerk: AuthContext) -> None:
    technician = uuid.uuid4()
    created = work_order_service.create_record(db_session, clerk, _work_order(assigned_user_id=technician))

    work_order_service.assign_record(db_session, clerk, created.id, AssignRequest(assigned_user_id=technician))

    assigned_rows = db_session.scalars(
        select(ChangeLog).where(ChangeLog.entity_id == str(created.id), ChangeLog.action == "assigned")
    ).all()
    assert assigned_rows == []


class ExplodingSender:
    def send(self, session, intent, rendered):  # type: ignore[no-untyped-def]
        raise RuntimeError("mail relay down")


def test_failed_delivery_does_not_undo_transition(db_session: Session, clerk: AuthContext) -> None:
    technician = uuid.uuid4()
    created = work_order_service.create_record(db_session, clerk, _work_order(assigned_user_id=technician))
    work_order_service.transition_record(db_session, clerk, created.id, StatusTransitionRequest(status="in_progress"))

    result = NotificationDispatcher(sender=ExplodingSender()).dispatch_pending(db_session)

    assert result.delivered == 0
    assert result.failed == 3
    assert work_order_service.get_record(db_session, clerk, created.id).status == "in_progress"
    intents = db_session.scalars(select(NotificationIntent)).all()
    assert {row.status for row in intents} == {FAILED}
    assert all(row.last_error == "mail relay down" for row in intents)
    assert db_session.scalars(select(Notification)).all() == []


def test_dispatch_delivers_in_app_notifications(db_session: Session, clerk: AuthContext) -> None:
    technician = uuid.uuid4()
    work_order_service.create_record(db_session, clerk, _work_order(assigned_user_id=technician))

    result = NotificationDispatcher().dispatch_pending(db_session)

    assert result.delivered == 1
    notification = db_session.scalar(select(Notification))
    assert notification is not None
    assert notification.user_id == technician
    assert notification.title == "New Work Order Assigned"
    assert db_session.scalar(select(NotificationIntent)).status == DELIVERED


def test_call_log_crud(db_session: Session, clerk: AuthContext, admin: AuthContext) -> None:
    created = call_log_service.create_call(
        db_session,
        clerk,
        CallLogCreate(
            customer_name="Kay Smith",
            phone_number="876-555-0142",
            call_type="incoming",
            call_purpose="quote",
            outcome="follow_up_needed",
            duration="4:35",
        ),
    )
    assert created.created_by_id == clerk.user_uuid

    updated = call_log_service.update_call(db_session, clerk, created.id, CallLogUpdate(outcome="resolved"))
    assert updated.outcome == "resolved"
    assert [row.id for row in call_log_service.list_calls(db_session, clerk, outcome="resolved")] == [created.id]
    assert call_log_service.list_calls(db_session, clerk, call_type="outgoing") == []

    with pytest.raises(HTTPException) as exc_info:
        call_log_service.delete_call(db_session, clerk, created.id)
    assert exc_info.value.status_code == 403
    call_log_service.delete_call(db_session, admin, created.id)
    assert call_log_service.list_calls(db_session, admin) == []


def test_desk_summary_counts_by_status(db_session: Session, clerk: AuthContext) -> None:
    mine = work_order_service.create_record(db_session, clerk, _work_order(assigned_user_id=clerk.user_uuid))
    work_order_service.create_record(db_session, clerk, _work_order())
    work_order_service.transition_record(db_session, clerk, mine.id, StatusTransitionRequest(status="in_progress"))
    ticket_service.create_record(
        db_session,
        clerk,
        TicketCreate(title="Wifi down", description="Back office", due_date=datetime(2026, 5, 1, tzinfo=timezone.utc)),
    )

    summary = desk_summary(db_session, clerk)

    assert summary.counts["work_order"]["received"] == 1
    assert summary.counts["work_order"]["in_progress"] == 1
    assert summary.counts["ticket"]["open"] == 1
    assert summary.counts["task"] == {status: 0 for status in ("cancelled", "completed", "in_progress", "pending")}
    assert summary.open_assigned_to_me == 1


def test_published_events_keep_only_the_most_recent_window() -> None:
    for index in range(events.PUBLISHED_EVENTS_LIMIT + 5):
        events.publish({"entity_id": str(index)})

    assert len(events.published_events) == events.PUBLISHED_EVENTS_LIMIT
    assert events.published_events[0]["entity_id"] == "5"
    assert events.published_events[-1]["entity_id"] == str(events.PUBLISHED_EVENTS_LIMIT + 4)
