from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.business.pricing.engine import RoundingMode

ReviewStatus = Literal["approved", "rejected"]


class PricingCategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    markup_percent: Decimal = Field(ge=Decimal("0"), le=Decimal("1000"))


class PricingCategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    markup_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("1000"))


class PricingCategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    markup_percent: Decimal
    created_at: datetime
    updated_at: datetime


class PricingItemInput(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    cost: Decimal
    category: str | None = None
    markup_percent: Decimal | None = None

    @model_validator(mode="after")
    def require_markup_source(self) -> PricingItemInput:
        if self.category is None and self.markup_percent is None:
            raise ValueError("either category or markup_percent is required")
        return self


class LocalQuoteRequest(BaseModel):
    items: list[PricingItemInput] = Field(min_length=1)
    exchange_rate: Decimal | None = None
    tax_rate_percent: Decimal | None = None
    rounding_mode: RoundingMode | None = None
    invoice_number: str | None = Field(default=None, max_length=64)
    notes: str | None = None


class PricedItemRead(BaseModel):
    description: str
    cost: Decimal
    category: str | None
    markup_percent: Decimal
    converted_cost: Decimal
    cost_with_tax: Decimal
    selling_price: Decimal
    final_price: Decimal


class LocalQuoteRead(BaseModel):
    exchange_rate: Decimal
    tax_rate_percent: Decimal
    rounding_mode: RoundingMode
    items: list[PricedItemRead]
    total_value: Decimal


class PricingSessionRead(LocalQuoteRead):
    id: UUID
    invoice_number: str | None
    status: str
    notes: str | None
    created_by_id: UUID
    reviewed_by_id: UUID | None
    report_sent_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SessionReviewRequest(BaseModel):
    status: ReviewStatus
    notes: str | None = None


class MarketplaceQuoteRequest(BaseModel):
    list_price: Decimal
    exchange_rate: Decimal | None = None
    tax_rate_percent: Decimal | None = None
    rounding_mode: RoundingMode | None = None
    markup_override: Decimal | None = None
    product_url: str | None = None
    product_name: str | None = Field(default=None, max_length=500)
    notes: str | None = None


class MarketplaceLookupRequest(BaseModel):
    product_url: str = Field(min_length=1)
    exchange_rate: Decimal | None = None
    tax_rate_percent: Decimal | None = None
    rounding_mode: RoundingMode | None = None
    markup_override: Decimal | None = None
    save: bool = False


class MarketplaceQuoteRead(BaseModel):
    product_url: str | None = None
    asin: str | None = None
    product_name: str | None = None
    list_price: Decimal
    surcharge_percent: Decimal
    effective_cost: Decimal
    markup_percent: Decimal
    markup_overridden: bool
    selling_price_source: Decimal
    exchange_rate: Decimal
    tax_rate_percent: Decimal
    rounding_mode: RoundingMode
    final_price: Decimal


class MarketplaceSessionRead(MarketplaceQuoteRead):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    notes: str | None
    created_by_id: UUID
    reviewed_by_id: UUID | None
    report_sent_at: datetime | None
    created_at: datetime
    updated_at: datetime
