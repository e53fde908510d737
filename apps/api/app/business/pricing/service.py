from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.business.pricing import engine
from app.business.pricing.marketplace import MarketplaceLookupClient, MarketplaceLookupError
from app.business.pricing.models import MarketplacePricingSession, PricingCategory, PricingSession
from app.business.pricing.schemas import (
    LocalQuoteRead,
    LocalQuoteRequest,
    MarketplaceLookupRequest,
    MarketplaceQuoteRead,
    MarketplaceQuoteRequest,
    MarketplaceSessionRead,
    PricedItemRead,
    PricingCategoryCreate,
    PricingCategoryRead,
    PricingCategoryUpdate,
    PricingSessionRead,
    SessionReviewRequest,
)
from app.core.config import get_settings
from app.core.errors import DomainError, NotFound, to_http_exception
from app.core.state_machine import StatusMachine
from app.metrics import observe_pricing_quote
from app.otel import get_tracer
from app.platform.security.context import AuthContext
from app.platform.security.policies import ResourceAction, ensure_allowed
from app.services.audit import write_change_log

logger = logging.getLogger("app.pricing")
tracer = get_tracer("app.pricing")

CATEGORY_RESOURCE = "pricing.category"
SESSION_RESOURCE = "pricing.session"

REVIEW_MACHINE = StatusMachine.build(
    "pricing_session",
    "pending",
    {"pending": {"approved", "rejected"}},
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _q(value: Decimal, places: str = "0.01") -> Decimal:
    return Decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def _authorize(resource: str, action: ResourceAction, ctx: AuthContext) -> None:
    try:
        ensure_allowed(resource, action, ctx)
    except DomainError as exc:
        raise to_http_exception(exc) from exc


@dataclass(slots=True)
class PricingService:
    lookup_client: MarketplaceLookupClient = field(default_factory=MarketplaceLookupClient)

    def list_categories(self, session: Session, ctx: AuthContext) -> list[PricingCategoryRead]:
        _authorize(CATEGORY_RESOURCE, ResourceAction.READ, ctx)
        rows = session.scalars(select(PricingCategory).order_by(PricingCategory.name.asc())).all()
        return [PricingCategoryRead.model_validate(row) for row in rows]

    def create_category(self, session: Session, ctx: AuthContext, dto: PricingCategoryCreate) -> PricingCategoryRead:
        _authorize(CATEGORY_RESOURCE, ResourceAction.CREATE, ctx)
        category = PricingCategory(id=uuid.uuid4(), name=dto.name.strip(), markup_percent=_q(dto.markup_percent))
        session.add(category)
        write_change_log(
            session,
            ctx,
            entity_type="pricing_category",
            entity_id=category.id,
            action="created",
            description=f"Created category {category.name} at {category.markup_percent}%",
        )
        self._commit_category(session)
        session.refresh(category)
        return PricingCategoryRead.model_validate(category)

    def update_category(
        self,
        session: Session,
        ctx: AuthContext,
        category_id: uuid.UUID,
        dto: PricingCategoryUpdate,
    ) -> PricingCategoryRead:
        _authorize(CATEGORY_RESOURCE, ResourceAction.UPDATE, ctx)
        category = self._get_category(session, category_id)
        changes = dto.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "markup_percent" in changes:
            changes["markup_percent"] = _q(changes["markup_percent"])
        for field_name, value in changes.items():
            old_value = getattr(category, field_name)
            if old_value == value:
                continue
            setattr(category, field_name, value)
            write_change_log(
                session,
                ctx,
                entity_type="pricing_category",
                entity_id=category.id,
                action="updated",
                description=f"Updated {field_name} for category {category.name}",
                field_changed=field_name,
                old_value=old_value,
                new_value=value,
            )
        self._commit_category(session)
        session.refresh(category)
        return PricingCategoryRead.model_validate(category)

    def delete_category(self, session: Session, ctx: AuthContext, category_id: uuid.UUID) -> None:
        _authorize(CATEGORY_RESOURCE, ResourceAction.DELETE, ctx)
        category = self._get_category(session, category_id)
        write_change_log(
            session,
            ctx,
            entity_type="pricing_category",
            entity_id=category.id,
            action="deleted",
            description=f"Deleted category {category.name}",
        )
        session.delete(category)
        session.commit()

    def quote_local(self, session: Session, ctx: AuthContext, dto: LocalQuoteRequest) -> LocalQuoteRead:
        _authorize(SESSION_RESOURCE, ResourceAction.READ, ctx)
        settings = get_settings()
        exchange_rate = dto.exchange_rate if dto.exchange_rate is not None else settings.default_exchange_rate
        tax_rate = dto.tax_rate_percent if dto.tax_rate_percent is not None else settings.gct_rate_percent
        markups = self._category_markups(session)

        with tracer.start_as_current_span("pricing.quote_local") as span:
            span.set_attribute("pricing.item_count", len(dto.items))
            try:
                rounding_mode = engine.parse_rounding_mode(dto.rounding_mode or settings.pricing_rounding_mode)
                priced: list[PricedItemRead] = []
                for item in dto.items:
                    markup = item.markup_percent
                    if markup is None:
                        markup = markups.get((item.category or "").strip().lower())
                        if markup is None:
                            raise NotFound(f"unknown pricing category '{item.category}'")
                    breakdown = engine.local_distributor_price(
                        item.cost,
                        exchange_rate,
                        markup,
                        tax_rate_percent=tax_rate,
                        rounding_mode=rounding_mode,
                    )
                    priced.append(
                        PricedItemRead(
                            description=item.description,
                            cost=_q(breakdown.cost),
                            category=item.category,
                            markup_percent=_q(breakdown.markup_percent),
                            converted_cost=_q(breakdown.converted_cost),
                            cost_with_tax=_q(breakdown.cost_with_tax),
                            selling_price=_q(breakdown.selling_price),
                            final_price=_q(breakdown.final_price),
                        )
                    )
            except DomainError as exc:
                raise to_http_exception(exc) from exc

        observe_pricing_quote("local", len(priced))
        return LocalQuoteRead(
            exchange_rate=Decimal(exchange_rate),
            tax_rate_percent=Decimal(tax_rate),
            rounding_mode=rounding_mode,
            items=priced,
            total_value=_q(sum((item.final_price for item in priced), start=Decimal("0"))),
        )

    def create_local_session(self, session: Session, ctx: AuthContext, dto: LocalQuoteRequest) -> PricingSessionRead:
        _authorize(SESSION_RESOURCE, ResourceAction.CREATE, ctx)
        quote = self.quote_local(session, ctx, dto)
        row = PricingSession(
            id=uuid.uuid4(),
            invoice_number=dto.invoice_number,
            exchange_rate=quote.exchange_rate,
            tax_rate_percent=quote.tax_rate_percent,
            rounding_mode=quote.rounding_mode.value,
            items=[item.model_dump(mode="json") for item in quote.items],
            total_value=quote.total_value,
            status=REVIEW_MACHINE.initial,
            notes=dto.notes,
            created_by_id=ctx.user_uuid,
        )
        session.add(row)
        write_change_log(
            session,
            ctx,
            entity_type="pricing_session",
            entity_id=row.id,
            action="created",
            description=f"Priced {len(quote.items)} items totalling {quote.total_value}",
        )
        session.commit()
        session.refresh(row)
        logger.info(
            "pricing.session_created",
            extra={"session_kind": "local", "session_id": str(row.id), "item_count": len(quote.items)},
        )
        return self._to_session_read(row)

    def list_local_sessions(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        status_filter: str | None = None,
    ) -> list[PricingSessionRead]:
        _authorize(SESSION_RESOURCE, ResourceAction.READ, ctx)
        stmt = select(PricingSession)
        if status_filter is not None:
            stmt = stmt.where(PricingSession.status == status_filter)
        rows = session.scalars(stmt.order_by(PricingSession.created_at.desc())).all()
        return [self._to_session_read(row) for row in rows]

    def get_local_session(self, session: Session, ctx: AuthContext, session_id: uuid.UUID) -> PricingSessionRead:
        _authorize(SESSION_RESOURCE, ResourceAction.READ, ctx)
        return self._to_session_read(self._get(session, PricingSession, session_id))

    def review_local_session(
        self,
        session: Session,
        ctx: AuthContext,
        session_id: uuid.UUID,
        dto: SessionReviewRequest,
    ) -> PricingSessionRead:
        row = self._review(session, ctx, PricingSession, session_id, dto)
        return self._to_session_read(row)

    def mark_local_report_sent(self, session: Session, ctx: AuthContext, session_id: uuid.UUID) -> PricingSessionRead:
        row = self._mark_report_sent(session, ctx, PricingSession, session_id)
        return self._to_session_read(row)

    def quote_marketplace(self, session: Session, ctx: AuthContext, dto: MarketplaceQuoteRequest) -> MarketplaceQuoteRead:
        _authorize(SESSION_RESOURCE, ResourceAction.READ, ctx)
        return self._price_marketplace(
            list_price=dto.list_price,
            exchange_rate=dto.exchange_rate,
            tax_rate_percent=dto.tax_rate_percent,
            rounding_mode=dto.rounding_mode,
            markup_override=dto.markup_override,
            product_url=dto.product_url,
            product_name=dto.product_name,
        )

    def create_marketplace_session(
        self,
        session: Session,
        ctx: AuthContext,
        dto: MarketplaceQuoteRequest,
    ) -> MarketplaceSessionRead:
        _authorize(SESSION_RESOURCE, ResourceAction.CREATE, ctx)
        quote = self.quote_marketplace(session, ctx, dto)
        return self._persist_marketplace(session, ctx, quote, notes=dto.notes)

    def lookup_marketplace(
        self,
        session: Session,
        ctx: AuthContext,
        dto: MarketplaceLookupRequest,
    ) -> MarketplaceQuoteRead | MarketplaceSessionRead:
        _authorize(SESSION_RESOURCE, ResourceAction.CREATE if dto.save else ResourceAction.READ, ctx)
        try:
            product = self.lookup_client.lookup(dto.product_url)
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        except MarketplaceLookupError as exc:
            logger.warning("pricing.marketplace_lookup_failed", extra={"error": str(exc)})
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        if product is None:
            raise to_http_exception(NotFound("product not found or price unavailable"))

        quote = self._price_marketplace(
            list_price=product.price,
            exchange_rate=dto.exchange_rate,
            tax_rate_percent=dto.tax_rate_percent,
            rounding_mode=dto.rounding_mode,
            markup_override=dto.markup_override,
            product_url=dto.product_url,
            product_name=product.title,
            asin=product.asin,
        )
        if not dto.save:
            return quote
        return self._persist_marketplace(session, ctx, quote, notes=None)

    def list_marketplace_sessions(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        status_filter: str | None = None,
    ) -> list[MarketplaceSessionRead]:
        _authorize(SESSION_RESOURCE, ResourceAction.READ, ctx)
        stmt = select(MarketplacePricingSession)
        if status_filter is not None:
            stmt = stmt.where(MarketplacePricingSession.status == status_filter)
        rows = session.scalars(stmt.order_by(MarketplacePricingSession.created_at.desc())).all()
        return [MarketplaceSessionRead.model_validate(row) for row in rows]

    def get_marketplace_session(self, session: Session, ctx: AuthContext, session_id: uuid.UUID) -> MarketplaceSessionRead:
        _authorize(SESSION_RESOURCE, ResourceAction.READ, ctx)
        return MarketplaceSessionRead.model_validate(self._get(session, MarketplacePricingSession, session_id))

    def review_marketplace_session(
        self,
        session: Session,
        ctx: AuthContext,
        session_id: uuid.UUID,
        dto: SessionReviewRequest,
    ) -> MarketplaceSessionRead:
        row = self._review(session, ctx, MarketplacePricingSession, session_id, dto)
        return MarketplaceSessionRead.model_validate(row)

    def mark_marketplace_report_sent(
        self,
        session: Session,
        ctx: AuthContext,
        session_id: uuid.UUID,
    ) -> MarketplaceSessionRead:
        row = self._mark_report_sent(session, ctx, MarketplacePricingSession, session_id)
        return MarketplaceSessionRead.model_validate(row)

    def _price_marketplace(
        self,
        *,
        list_price: Decimal,
        exchange_rate: Decimal | None,
        tax_rate_percent: Decimal | None,
        rounding_mode: engine.RoundingMode | None,
        markup_override: Decimal | None,
        product_url: str | None,
        product_name: str | None,
        asin: str | None = None,
    ) -> MarketplaceQuoteRead:
        settings = get_settings()
        rate = exchange_rate if exchange_rate is not None else settings.default_exchange_rate
        tax = tax_rate_percent if tax_rate_percent is not None else Decimal("0")
        with tracer.start_as_current_span("pricing.quote_marketplace"):
            try:
                mode = engine.parse_rounding_mode(rounding_mode or settings.pricing_rounding_mode)
                breakdown = engine.marketplace_price(
                    list_price,
                    rate,
                    tax_rate_percent=tax,
                    rounding_mode=mode,
                    markup_override=markup_override,
                    surcharge_percent=settings.marketplace_surcharge_percent,
                    threshold=settings.marketplace_tier_threshold,
                    low_tier_markup=settings.marketplace_low_tier_markup_percent,
                    high_tier_markup=settings.marketplace_high_tier_markup_percent,
                )
            except DomainError as exc:
                raise to_http_exception(exc) from exc

        observe_pricing_quote("marketplace")
        return MarketplaceQuoteRead(
            product_url=product_url,
            asin=asin,
            product_name=product_name,
            list_price=_q(breakdown.list_price),
            surcharge_percent=breakdown.surcharge_percent,
            effective_cost=_q(breakdown.effective_cost, "0.0001"),
            markup_percent=breakdown.markup_percent,
            markup_overridden=breakdown.markup_overridden,
            selling_price_source=_q(breakdown.selling_price_source),
            exchange_rate=breakdown.price.exchange_rate,
            tax_rate_percent=breakdown.price.tax_rate_percent,
            rounding_mode=mode,
            final_price=_q(breakdown.final_price),
        )

    def _persist_marketplace(
        self,
        session: Session,
        ctx: AuthContext,
        quote: MarketplaceQuoteRead,
        *,
        notes: str | None,
    ) -> MarketplaceSessionRead:
        row = MarketplacePricingSession(
            id=uuid.uuid4(),
            product_url=quote.product_url,
            asin=quote.asin,
            product_name=quote.product_name,
            list_price=quote.list_price,
            surcharge_percent=quote.surcharge_percent,
            effective_cost=quote.effective_cost,
            markup_percent=quote.markup_percent,
            markup_overridden=quote.markup_overridden,
            selling_price_source=quote.selling_price_source,
            exchange_rate=quote.exchange_rate,
            tax_rate_percent=quote.tax_rate_percent,
            rounding_mode=quote.rounding_mode.value,
            final_price=quote.final_price,
            notes=notes,
            status=REVIEW_MACHINE.initial,
            created_by_id=ctx.user_uuid,
        )
        session.add(row)
        write_change_log(
            session,
            ctx,
            entity_type="marketplace_pricing_session",
            entity_id=row.id,
            action="created",
            description=f"Priced {quote.product_name or 'marketplace item'} at {quote.final_price}",
        )
        session.commit()
        session.refresh(row)
        logger.info("pricing.session_created", extra={"session_kind": "marketplace", "session_id": str(row.id)})
        return MarketplaceSessionRead.model_validate(row)

    def _review(
        self,
        session: Session,
        ctx: AuthContext,
        model: type[PricingSession] | type[MarketplacePricingSession],
        session_id: uuid.UUID,
        dto: SessionReviewRequest,
    ) -> PricingSession | MarketplacePricingSession:
        _authorize(SESSION_RESOURCE, ResourceAction.MANAGE, ctx)
        row = self._get(session, model, session_id)
        try:
            REVIEW_MACHINE.ensure_transition(row.status, dto.status)
        except DomainError as exc:
            raise to_http_exception(exc) from exc

        previous = row.status
        row.status = dto.status
        row.reviewed_by_id = ctx.user_uuid
        if dto.notes is not None:
            row.notes = dto.notes
        write_change_log(
            session,
            ctx,
            entity_type=model.__tablename__,
            entity_id=row.id,
            action="status_changed",
            description=f"Pricing session {dto.status}",
            field_changed="status",
            old_value=previous,
            new_value=dto.status,
        )
        session.commit()
        session.refresh(row)
        return row

    def _mark_report_sent(
        self,
        session: Session,
        ctx: AuthContext,
        model: type[PricingSession] | type[MarketplacePricingSession],
        session_id: uuid.UUID,
    ) -> PricingSession | MarketplacePricingSession:
        _authorize(SESSION_RESOURCE, ResourceAction.UPDATE, ctx)
        row = self._get(session, model, session_id)
        row.report_sent_at = _utcnow()
        session.commit()
        session.refresh(row)
        return row

    @staticmethod
    def _get(session: Session, model: type, session_id: uuid.UUID):  # type: ignore[no-untyped-def]
        row = session.get(model, session_id)
        if row is None:
            raise to_http_exception(NotFound("pricing session not found"))
        return row

    @staticmethod
    def _get_category(session: Session, category_id: uuid.UUID) -> PricingCategory:
        category = session.get(PricingCategory, category_id)
        if category is None:
            raise to_http_exception(NotFound("pricing category not found"))
        return category

    @staticmethod
    def _commit_category(session: Session) -> None:
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="pricing category already exists")

    @staticmethod
    def _category_markups(session: Session) -> dict[str, Decimal]:
        rows = session.execute(select(PricingCategory.name, PricingCategory.markup_percent)).all()
        return {str(name).strip().lower(): Decimal(markup) for name, markup in rows}

    @staticmethod
    def _to_session_read(row: PricingSession) -> PricingSessionRead:
        return PricingSessionRead(
            id=row.id,
            invoice_number=row.invoice_number,
            exchange_rate=row.exchange_rate,
            tax_rate_percent=row.tax_rate_percent,
            rounding_mode=engine.RoundingMode(row.rounding_mode),
            items=[PricedItemRead.model_validate(item) for item in row.items or []],
            total_value=row.total_value,
            status=row.status,
            notes=row.notes,
            created_by_id=row.created_by_id,
            reviewed_by_id=row.reviewed_by_id,
            report_sent_at=row.report_sent_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


pricing_service = PricingService()
