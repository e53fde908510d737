from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.database import Base
from app.desk.schemas import WorkOrderCreate
from app.desk.service import work_order_service
from app.notifications import tasks
from app.notifications.models import Notification
from app.platform.security.context import AuthContext


@pytest.fixture()
def session_factory(monkeypatch: pytest.MonkeyPatch) -> Generator[sessionmaker[Session], None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(tasks, "SessionLocal", factory)
    monkeypatch.setenv("NOTIFICATIONS_AUTO_DISPATCH", "false")
    get_settings.cache_clear()
    yield factory
    get_settings.cache_clear()
    Base.metadata.drop_all(bind=engine)


def test_deliver_pending_task_flushes_the_outbox(session_factory: sessionmaker[Session]) -> None:
    clerk = AuthContext(user_id=str(uuid.uuid4()), role="user", display_name="Dana")
    technician_id = uuid.uuid4()
    with session_factory() as session:
        work_order_service.create_record(
            session,
            clerk,
            WorkOrderCreate(
                customer_name="Marcia Brown",
                telephone="876-555-0199",
                item_description="Dell Inspiron",
                issue_description="No display",
                assigned_user_id=technician_id,
            ),
        )

    assert tasks.deliver_pending_notifications() == {"delivered": 1, "failed": 0}
    assert tasks.deliver_pending_notifications() == {"delivered": 0, "failed": 0}

    with session_factory() as session:
        inbox = session.scalars(select(Notification).where(Notification.user_id == technician_id)).all()
    assert [row.title for row in inbox] == ["New Work Order Assigned"]


def test_purge_task_uses_retention_window(session_factory: sessionmaker[Session]) -> None:
    user_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    with session_factory() as session:
        session.add_all(
            [
                Notification(user_id=user_id, type="status_change", title="Old", message="old", created_at=now - timedelta(days=400)),
                Notification(user_id=user_id, type="status_change", title="New", message="new", created_at=now),
            ]
        )
        session.commit()

    assert tasks.purge_old_notifications() == 1
    assert tasks.queue_due_date_reminders() == 0
    assert tasks.purge_expired_sessions() == 0
