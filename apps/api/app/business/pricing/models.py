from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PricingCategory(Base):
    __tablename__ = "pricing_category"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    markup_percent: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class PricingSession(Base):
    """A priced distributor invoice awaiting approval."""

    __tablename__ = "pricing_session"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    tax_rate_percent: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    rounding_mode: Mapped[str] = mapped_column(String(32), nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    report_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_pricing_session_status", "status", "created_at"),)


class MarketplacePricingSession(Base):
    __tablename__ = "marketplace_pricing_session"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    asin: Mapped[str | None] = mapped_column(String(16), nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    list_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    surcharge_percent: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    effective_cost: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    markup_percent: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    markup_overridden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    selling_price_source: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    tax_rate_percent: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    rounding_mode: Mapped[str] = mapped_column(String(32), nullable=False)
    final_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    created_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    report_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_marketplace_pricing_session_status", "status", "created_at"),)
