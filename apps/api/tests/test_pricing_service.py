from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import httpx
import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.pricing.marketplace import MarketplaceLookupClient
from app.business.pricing.models import PricingCategory
from app.business.pricing.schemas import (
    LocalQuoteRequest,
    MarketplaceLookupRequest,
    MarketplaceQuoteRequest,
    PricingCategoryCreate,
    PricingCategoryUpdate,
    PricingItemInput,
    SessionReviewRequest,
)
from app.business.pricing.seed import DEFAULT_CATEGORIES, PricingSeedHelper
from app.business.pricing.service import PricingService
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
    return AuthContext(user_id=str(uuid.uuid4()), role="user", email="clerk@example.com")


@pytest.fixture()
def admin_ctx() -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role="administrator", email="admin@example.com")


def _lookup_client(handler) -> MarketplaceLookupClient:  # type: ignore[no-untyped-def]
    return MarketplaceLookupClient("http://lookup.test", timeout=1.0, transport=httpx.MockTransport(handler))


def test_seed_inserts_default_categories_once(db_session: Session) -> None:
    helper = PricingSeedHelper()
    assert helper.ensure_default_categories(db_session) == len(DEFAULT_CATEGORIES)
    assert helper.ensure_default_categories(db_session) == 0

    laptops = db_session.scalar(select(PricingCategory).where(PricingCategory.name == "Laptops"))
    assert laptops is not None
    assert laptops.markup_percent == Decimal("25")


def test_category_crud_requires_admin_and_rejects_duplicates(
    db_session: Session,
    user_ctx: AuthContext,
    admin_ctx: AuthContext,
) -> None:
    service = PricingService()

    with pytest.raises(HTTPException) as denied:
        service.create_category(db_session, user_ctx, PricingCategoryCreate(name="Cables", markup_percent=Decimal("60")))
    assert denied.value.status_code == 403

    created = service.create_category(db_session, admin_ctx, PricingCategoryCreate(name="Cables", markup_percent=Decimal("60")))
    assert created.markup_percent == Decimal("60.00")

    with pytest.raises(HTTPException) as duplicate:
        service.create_category(db_session, admin_ctx, PricingCategoryCreate(name="Cables", markup_percent=Decimal("10")))
    assert duplicate.value.status_code == 409

    updated = service.update_category(db_session, admin_ctx, created.id, PricingCategoryUpdate(markup_percent=Decimal("70")))
    assert updated.markup_percent == Decimal("70.00")

    change = db_session.scalar(
        select(ChangeLog).where(ChangeLog.entity_id == str(created.id), ChangeLog.field_changed == "markup_percent")
    )
    assert change is not None
    assert change.old_value == "60.00"
    assert change.new_value == "70.00"

    assert [row.name for row in service.list_categories(db_session, user_ctx)] == ["Cables"]


def test_quote_local_uses_category_markup_and_defaults(db_session: Session, user_ctx: AuthContext) -> None:
    db_session.add(PricingCategory(name="Routers", markup_percent=Decimal("30")))
    db_session.commit()
    service = PricingService()

    quote = service.quote_local(
        db_session,
        user_ctx,
        LocalQuoteRequest(
            items=[
                PricingItemInput(description="AX1800 router", cost=Decimal("10"), category="routers"),
                PricingItemInput(description="Patch cable", cost=Decimal("2"), markup_percent=Decimal("100")),
            ]
        ),
    )

    assert quote.exchange_rate == Decimal("162")
    assert quote.tax_rate_percent == Decimal("15")
    assert quote.items[0].final_price == Decimal("2421.90")
    assert quote.items[1].final_price == Decimal("745.20")
    assert quote.total_value == Decimal("3167.10")


def test_quote_local_unknown_category_is_not_found(db_session: Session, user_ctx: AuthContext) -> None:
    service = PricingService()
    with pytest.raises(HTTPException) as exc_info:
        service.quote_local(
            db_session,
            user_ctx,
            LocalQuoteRequest(items=[PricingItemInput(description="Mystery", cost=Decimal("5"), category="Nope")]),
        )
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "unknown pricing category 'Nope'"


def test_update_missing_category_is_not_found(db_session: Session, admin_ctx: AuthContext) -> None:
    with pytest.raises(HTTPException) as exc_info:
        PricingService().update_category(db_session, admin_ctx, uuid.uuid4(), PricingCategoryUpdate(markup_percent=Decimal("10")))
    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "pricing category not found"


def test_local_session_review_flow(db_session: Session, user_ctx: AuthContext, admin_ctx: AuthContext) -> None:
    service = PricingService()
    request = LocalQuoteRequest(
        items=[PricingItemInput(description="Laptop", cost=Decimal("500"), markup_percent=Decimal("25"))],
        rounding_mode="up-1000",
        invoice_number="INT-1001",
    )

    created = service.create_local_session(db_session, user_ctx, request)
    assert created.status == "pending"
    assert created.items[0].final_price == Decimal("117000.00")

    with pytest.raises(HTTPException) as denied:
        service.review_local_session(db_session, user_ctx, created.id, SessionReviewRequest(status="approved"))
    assert denied.value.status_code == 403

    approved = service.review_local_session(db_session, admin_ctx, created.id, SessionReviewRequest(status="approved"))
    assert approved.status == "approved"
    assert approved.reviewed_by_id == admin_ctx.user_uuid

    with pytest.raises(HTTPException) as again:
        service.review_local_session(db_session, admin_ctx, created.id, SessionReviewRequest(status="rejected"))
    assert again.value.status_code == 409

    sent = service.mark_local_report_sent(db_session, user_ctx, created.id)
    assert sent.report_sent_at is not None
    assert [row.id for row in service.list_local_sessions(db_session, user_ctx, status_filter="approved")] == [created.id]


def test_marketplace_session_persists_breakdown(db_session: Session, user_ctx: AuthContext) -> None:
    service = PricingService()
    created = service.create_marketplace_session(
        db_session,
        user_ctx,
        MarketplaceQuoteRequest(list_price=Decimal("93.46"), product_name="Headset"),
    )

    assert created.markup_percent == Decimal("120")
    assert created.effective_cost == Decimal("100.0022")
    assert created.status == "pending"
    fetched = service.get_marketplace_session(db_session, user_ctx, created.id)
    assert fetched.final_price == created.final_price


def test_marketplace_override_out_of_range_is_rejected(db_session: Session, user_ctx: AuthContext) -> None:
    service = PricingService()
    with pytest.raises(HTTPException) as exc_info:
        service.quote_marketplace(
            db_session,
            user_ctx,
            MarketplaceQuoteRequest(list_price=Decimal("10"), markup_override=Decimal("900")),
        )
    assert exc_info.value.status_code == 422


def test_lookup_marketplace_prices_fetched_product(db_session: Session, user_ctx: AuthContext) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/products/B08N5WRWNW"
        return httpx.Response(200, json={"title": "Echo Dot", "price": "50.00", "currency": "USD"})

    service = PricingService(lookup_client=_lookup_client(handler))
    result = service.lookup_marketplace(
        db_session,
        user_ctx,
        MarketplaceLookupRequest(product_url="https://www.amazon.com/dp/B08N5WRWNW?th=1", save=True),
    )

    assert result.asin == "B08N5WRWNW"
    assert result.product_name == "Echo Dot"
    assert result.final_price == Decimal("15600.60")
    assert service.list_marketplace_sessions(db_session, user_ctx)[0].asin == "B08N5WRWNW"


def test_lookup_marketplace_maps_upstream_failures(db_session: Session, user_ctx: AuthContext) -> None:
    def missing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    def broken(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    url = "https://www.amazon.com/gp/product/B000000001"
    with pytest.raises(HTTPException) as not_found:
        PricingService(lookup_client=_lookup_client(missing)).lookup_marketplace(
            db_session, user_ctx, MarketplaceLookupRequest(product_url=url)
        )
    assert not_found.value.status_code == 404

    with pytest.raises(HTTPException) as bad_gateway:
        PricingService(lookup_client=_lookup_client(broken)).lookup_marketplace(
            db_session, user_ctx, MarketplaceLookupRequest(product_url=url)
        )
    assert bad_gateway.value.status_code == 502

    with pytest.raises(HTTPException) as no_asin:
        PricingService(lookup_client=_lookup_client(missing)).lookup_marketplace(
            db_session, user_ctx, MarketplaceLookupRequest(product_url="https://example.com/item")
        )
    assert no_asin.value.status_code == 422
