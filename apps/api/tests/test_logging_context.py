from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.context import reset_correlation_id, set_correlation_id
from app.core.auth import get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.logging import JsonLogFormatter
from app.main import app
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
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> AuthContext:
        return AuthContext(
            user_id=str(uuid.uuid4()),
            role="user",
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get(f"/api/work-orders/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/work-orders/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_lifecycle_logs_carry_entity_context(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    created = client.post(
        "/api/tasks",
        json={"title": "Label new stock"},
        headers={"X-Correlation-Id": "task-corr-1"},
    )
    assert created.status_code == 201
    task_id = created.json()["id"]

    rejected = client.post(
        f"/api/tasks/{task_id}/status",
        json={"status": "pending"},
        headers={"X-Correlation-Id": "task-corr-2"},
    )
    assert rejected.status_code == 409

    lifecycle_records = [record for record in caplog.records if record.name == "app.lifecycle"]
    assert any(
        record.getMessage() == "lifecycle.created"
        and getattr(record, "entity_id", None) == task_id
        and getattr(record, "correlation_id", None) == "task-corr-1"
        for record in lifecycle_records
    )
    assert any(
        record.getMessage() == "lifecycle.transition_rejected"
        and getattr(record, "from_status", None) == "pending"
        and getattr(record, "to_status", None) == "pending"
        and getattr(record, "correlation_id", None) == "task-corr-2"
        for record in lifecycle_records
    )


def test_json_formatter_emits_known_fields_only() -> None:
    token = set_correlation_id("fmt-1")
    try:
        record = logging.getLogger("app.test").makeRecord(
            "app.test",
            logging.INFO,
            __file__,
            1,
            "lifecycle.transitioned",
            (),
            None,
            extra={"entity_type": "ticket", "password": "hunter2", "error": "x" * 900},
        )
    finally:
        reset_correlation_id(token)

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "lifecycle.transitioned"
    assert payload["fields"]["entity_type"] == "ticket"
    assert "password" not in payload["fields"]
    assert len(payload["fields"]["error"]) == 500
