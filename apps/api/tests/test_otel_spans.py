from __future__ import annotations

import os
import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from app.core.auth import get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.otel import setup_inmemory_otel
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
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/tickets",
        json={"title": "Projector", "description": "Conference room projector flickers"},
        headers={"X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_transition_span_carries_record_attributes(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    created = client.post(
        "/api/work-orders",
        json={
            "customer_name": "Lee",
            "telephone": "876-555-0177",
            "item_description": "Tablet",
            "issue_description": "Battery swelling",
        },
    )
    assert created.status_code == 201
    record_id = created.json()["id"]

    moved = client.post(f"/api/work-orders/{record_id}/status", json={"status": "in_progress"})
    assert moved.status_code == 200

    transition_spans = [span for span in span_exporter.get_finished_spans() if span.name == "desk.transition"]
    assert transition_spans
    assert any(
        span.attributes.get("desk.entity_type") == "work_order"
        and span.attributes.get("desk.entity_id") == record_id
        and span.attributes.get("desk.to_status") == "in_progress"
        for span in transition_spans
    )


def test_local_quote_span_records_item_count(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/pricing/local/quote",
        json={
            "items": [
                {"description": "Keyboard", "cost": "15", "markup_percent": "40"},
                {"description": "Mouse", "cost": "8", "markup_percent": "40"},
            ]
        },
    )
    assert response.status_code == 200

    quote_spans = [span for span in span_exporter.get_finished_spans() if span.name == "pricing.quote_local"]
    assert quote_spans
    assert quote_spans[-1].attributes.get("pricing.item_count") == 2
