from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.business.pricing.schemas import (
    LocalQuoteRead,
    LocalQuoteRequest,
    MarketplaceLookupRequest,
    MarketplaceQuoteRead,
    MarketplaceQuoteRequest,
    MarketplaceSessionRead,
    PricingCategoryCreate,
    PricingCategoryRead,
    PricingCategoryUpdate,
    PricingSessionRead,
    SessionReviewRequest,
)
from app.business.pricing.service import pricing_service
from app.core.auth import get_current_user
from app.core.database import get_db
from app.platform.security.context import AuthContext


router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/categories", response_model=list[PricingCategoryRead])
def list_categories(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[PricingCategoryRead]:
    return pricing_service.list_categories(db, ctx)


@router.post("/categories", response_model=PricingCategoryRead, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: PricingCategoryCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> PricingCategoryRead:
    return pricing_service.create_category(db, ctx, payload)


@router.patch("/categories/{category_id}", response_model=PricingCategoryRead)
def update_category(
    category_id: uuid.UUID,
    payload: PricingCategoryUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> PricingCategoryRead:
    return pricing_service.update_category(db, ctx, category_id, payload)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> None:
    pricing_service.delete_category(db, ctx, category_id)


@router.post("/local/quote", response_model=LocalQuoteRead)
def quote_local(
    payload: LocalQuoteRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> LocalQuoteRead:
    return pricing_service.quote_local(db, ctx, payload)


@router.post("/local/sessions", response_model=PricingSessionRead, status_code=status.HTTP_201_CREATED)
def create_local_session(
    payload: LocalQuoteRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> PricingSessionRead:
    return pricing_service.create_local_session(db, ctx, payload)


@router.get("/local/sessions", response_model=list[PricingSessionRead])
def list_local_sessions(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[PricingSessionRead]:
    return pricing_service.list_local_sessions(db, ctx, status_filter=status_filter)


@router.get("/local/sessions/{session_id}", response_model=PricingSessionRead)
def get_local_session(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> PricingSessionRead:
    return pricing_service.get_local_session(db, ctx, session_id)


@router.post("/local/sessions/{session_id}/review", response_model=PricingSessionRead)
def review_local_session(
    session_id: uuid.UUID,
    payload: SessionReviewRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> PricingSessionRead:
    return pricing_service.review_local_session(db, ctx, session_id, payload)


@router.post("/local/sessions/{session_id}/report-sent", response_model=PricingSessionRead)
def mark_local_report_sent(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> PricingSessionRead:
    return pricing_service.mark_local_report_sent(db, ctx, session_id)


@router.post("/marketplace/quote", response_model=MarketplaceQuoteRead)
def quote_marketplace(
    payload: MarketplaceQuoteRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> MarketplaceQuoteRead:
    return pricing_service.quote_marketplace(db, ctx, payload)


@router.post("/marketplace/lookup", response_model=MarketplaceSessionRead | MarketplaceQuoteRead)
def lookup_marketplace(
    payload: MarketplaceLookupRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> MarketplaceSessionRead | MarketplaceQuoteRead:
    return pricing_service.lookup_marketplace(db, ctx, payload)


@router.post("/marketplace/sessions", response_model=MarketplaceSessionRead, status_code=status.HTTP_201_CREATED)
def create_marketplace_session(
    payload: MarketplaceQuoteRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> MarketplaceSessionRead:
    return pricing_service.create_marketplace_session(db, ctx, payload)


@router.get("/marketplace/sessions", response_model=list[MarketplaceSessionRead])
def list_marketplace_sessions(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[MarketplaceSessionRead]:
    return pricing_service.list_marketplace_sessions(db, ctx, status_filter=status_filter)


@router.get("/marketplace/sessions/{session_id}", response_model=MarketplaceSessionRead)
def get_marketplace_session(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> MarketplaceSessionRead:
    return pricing_service.get_marketplace_session(db, ctx, session_id)


@router.post("/marketplace/sessions/{session_id}/review", response_model=MarketplaceSessionRead)
def review_marketplace_session(
    session_id: uuid.UUID,
    payload: SessionReviewRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> MarketplaceSessionRead:
    return pricing_service.review_marketplace_session(db, ctx, session_id, payload)


@router.post("/marketplace/sessions/{session_id}/report-sent", response_model=MarketplaceSessionRead)
def mark_marketplace_report_sent(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> MarketplaceSessionRead:
    return pricing_service.mark_marketplace_report_sent(db, ctx, session_id)
