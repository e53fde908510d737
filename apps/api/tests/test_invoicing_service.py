from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.invoicing.schemas import (
    ClientCreate,
    ClientUpdate,
    CompanySettingsUpsert,
    ConvertQuotationRequest,
    InvoiceCreate,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    LineItemInput,
    QuotationCreate,
    QuotationStatusUpdate,
    QuotationUpdate,
)
from app.business.invoicing.service import InvoicingService, compute_totals
from app.core.database import Base
from app.models.audit import ChangeLog
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


@pytest.fixture()
def user_ctx() -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role="user", email="sales@shop.example")


@pytest.fixture()
def admin_ctx() -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role="administrator", email="owner@shop.example")


@pytest.fixture()
def service() -> InvoicingService:
    return InvoicingService()


@pytest.fixture()
def client_id(db_session: Session, user_ctx: AuthContext, service: InvoicingService) -> uuid.UUID:
    return service.create_client(db_session, user_ctx, ClientCreate(name="Acme Hardware", email="ap@acme.example")).id


def _items() -> list[LineItemInput]:
    return [
        LineItemInput(description="Laptop", quantity=Decimal("2"), unit_price=Decimal("1500")),
        LineItemInput(description="Mouse", quantity=Decimal("1"), unit_price=Decimal("499.99")),
    ]


def test_compute_totals_applies_discounts_then_gct() -> None:
    totals = compute_totals(
        _items(),
        discount_percentage=Decimal("10"),
        discount_amount=Decimal("49.99"),
        apply_gct=True,
        gct_rate_percent=Decimal("15"),
    )

    assert totals.subtotal == Decimal("3499.99")
    assert totals.gct_amount == Decimal("465.00")
    assert totals.total == Decimal("3565.00")
    assert totals.items[0]["line_total"] == "3000.00"


def test_compute_totals_never_goes_negative() -> None:
    totals = compute_totals(
        [LineItemInput(description="Cable", quantity=Decimal("1"), unit_price=Decimal("100"))],
        discount_percentage=Decimal("0"),
        discount_amount=Decimal("150"),
        apply_gct=True,
        gct_rate_percent=Decimal("15"),
    )
    assert totals.gct_amount == Decimal("0.00")
    assert totals.total == Decimal("0.00")


def test_compute_totals_without_gct() -> None:
    totals = compute_totals(
        _items(),
        discount_percentage=Decimal("0"),
        discount_amount=Decimal("0"),
        apply_gct=False,
        gct_rate_percent=Decimal("15"),
    )
    assert totals.gct_amount == Decimal("0.00")
    assert totals.total == totals.subtotal


def test_client_crud_and_delete_guard(
    db_session: Session,
    user_ctx: AuthContext,
    admin_ctx: AuthContext,
    service: InvoicingService,
    client_id: uuid.UUID,
) -> None:
    updated = service.update_client(db_session, user_ctx, client_id, ClientUpdate(phone="876-555-0110"))
    assert updated.phone == "876-555-0110"
    assert [row.id for row in service.list_clients(db_session, user_ctx, search="acme")] == [client_id]

    service.create_quotation(db_session, user_ctx, QuotationCreate(client_id=client_id, items=_items()))

    with pytest.raises(HTTPException) as denied:
        service.delete_client(db_session, user_ctx, client_id)
    assert denied.value.status_code == 403

    with pytest.raises(HTTPException) as in_use:
        service.delete_client(db_session, admin_ctx, client_id)
    assert in_use.value.status_code == 409


def test_company_settings_upsert_is_administrator_only(
    db_session: Session,
    user_ctx: AuthContext,
    admin_ctx: AuthContext,
    service: InvoicingService,
) -> None:
    with pytest.raises(HTTPException) as missing:
        service.get_company_settings(db_session, user_ctx)
    assert missing.value.status_code == 404

    payload = CompanySettingsUpsert(company_name="Shop Ltd", tax_registration_number="123-456-789")
    with pytest.raises(HTTPException) as denied:
        service.upsert_company_settings(db_session, user_ctx, payload)
    assert denied.value.status_code == 403

    first = service.upsert_company_settings(db_session, admin_ctx, payload)
    second = service.upsert_company_settings(
        db_session,
        admin_ctx,
        CompanySettingsUpsert(company_name="Shop Limited"),
    )
    assert second.id == first.id
    assert service.get_company_settings(db_session, user_ctx).company_name == "Shop Limited"


def test_document_numbers_increment(
    db_session: Session,
    user_ctx: AuthContext,
    service: InvoicingService,
    client_id: uuid.UUID,
) -> None:
    first = service.create_quotation(db_session, user_ctx, QuotationCreate(client_id=client_id, items=_items()))
    second = service.create_quotation(db_session, user_ctx, QuotationCreate(client_id=client_id, items=_items()))
    invoice = service.create_invoice(db_session, user_ctx, InvoiceCreate(client_id=client_id, items=_items()))

    assert (first.quotation_number, second.quotation_number) == ("QT-00001", "QT-00002")
    assert invoice.invoice_number == "INV-00001"


def test_quotation_for_unknown_client_is_not_found(
    db_session: Session,
    user_ctx: AuthContext,
    service: InvoicingService,
) -> None:
    with pytest.raises(HTTPException) as exc_info:
        service.create_quotation(db_session, user_ctx, QuotationCreate(client_id=uuid.uuid4(), items=_items()))
    assert exc_info.value.status_code == 404


def test_only_draft_quotations_are_editable(
    db_session: Session,
    user_ctx: AuthContext,
    service: InvoicingService,
    client_id: uuid.UUID,
) -> None:
    created = service.create_quotation(db_session, user_ctx, QuotationCreate(client_id=client_id, items=_items()))

    updated = service.update_quotation(db_session, user_ctx, created.id, QuotationUpdate(apply_gct=True))
    assert updated.gct_amount == Decimal("525.00")
    assert updated.total == Decimal("4024.99")

    service.set_quotation_status(db_session, user_ctx, created.id, QuotationStatusUpdate(status="sent"))
    with pytest.raises(HTTPException) as exc_info:
        service.update_quotation(db_session, user_ctx, created.id, QuotationUpdate(notes="late edit"))
    assert exc_info.value.status_code == 409


def test_quotation_status_graph(
    db_session: Session,
    user_ctx: AuthContext,
    service: InvoicingService,
    client_id: uuid.UUID,
) -> None:
    created = service.create_quotation(db_session, user_ctx, QuotationCreate(client_id=client_id, items=_items()))

    with pytest.raises(HTTPException) as skipped:
        service.set_quotation_status(db_session, user_ctx, created.id, QuotationStatusUpdate(status="accepted"))
    assert skipped.value.status_code == 409

    service.set_quotation_status(db_session, user_ctx, created.id, QuotationStatusUpdate(status="sent"))
    rejected = service.set_quotation_status(db_session, user_ctx, created.id, QuotationStatusUpdate(status="rejected"))
    assert rejected.status == "rejected"

    with pytest.raises(HTTPException) as terminal:
        service.set_quotation_status(db_session, user_ctx, created.id, QuotationStatusUpdate(status="sent"))
    assert terminal.value.status_code == 409


def test_convert_accepted_quotation_once(
    db_session: Session,
    user_ctx: AuthContext,
    service: InvoicingService,
    client_id: uuid.UUID,
) -> None:
    quotation = service.create_quotation(
        db_session,
        user_ctx,
        QuotationCreate(client_id=client_id, items=_items(), discount_percentage=Decimal("10"), apply_gct=True),
    )

    with pytest.raises(HTTPException) as not_accepted:
        service.convert_quotation(db_session, user_ctx, quotation.id, ConvertQuotationRequest())
    assert not_accepted.value.status_code == 409

    service.set_quotation_status(db_session, user_ctx, quotation.id, QuotationStatusUpdate(status="sent"))
    service.set_quotation_status(db_session, user_ctx, quotation.id, QuotationStatusUpdate(status="accepted"))

    invoice = service.convert_quotation(db_session, user_ctx, quotation.id, ConvertQuotationRequest())
    assert invoice.quotation_id == quotation.id
    assert invoice.status == "draft"
    assert invoice.total == service.get_quotation(db_session, user_ctx, quotation.id).total
    assert [item.description for item in invoice.items] == ["Laptop", "Mouse"]

    with pytest.raises(HTTPException) as twice:
        service.convert_quotation(db_session, user_ctx, quotation.id, ConvertQuotationRequest())
    assert twice.value.status_code == 409


def test_invoice_payment_sets_paid_at(
    db_session: Session,
    user_ctx: AuthContext,
    service: InvoicingService,
    client_id: uuid.UUID,
) -> None:
    invoice = service.create_invoice(db_session, user_ctx, InvoiceCreate(client_id=client_id, items=_items()))
    edited = service.update_invoice(
        db_session,
        user_ctx,
        invoice.id,
        InvoiceUpdate(items=[LineItemInput(description="Service call", quantity=Decimal("1"), unit_price=Decimal("80"))]),
    )
    assert edited.total == Decimal("80.00")

    service.set_invoice_status(db_session, user_ctx, invoice.id, InvoiceStatusUpdate(status="sent"))
    service.set_invoice_status(db_session, user_ctx, invoice.id, InvoiceStatusUpdate(status="overdue"))
    paid = service.set_invoice_status(db_session, user_ctx, invoice.id, InvoiceStatusUpdate(status="paid"))

    assert paid.status == "paid"
    assert paid.paid_at is not None
    assert [row.id for row in service.list_invoices(db_session, user_ctx, status_filter="paid")] == [invoice.id]

    with pytest.raises(HTTPException) as exc_info:
        service.set_invoice_status(db_session, user_ctx, invoice.id, InvoiceStatusUpdate(status="cancelled"))
    assert exc_info.value.status_code == 409

    status_changes = db_session.query(ChangeLog).filter(
        ChangeLog.entity_id == str(invoice.id),
        ChangeLog.action == "status_changed",
    ).count()
    assert status_changes == 3
