from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

QuotationStatus = Literal["draft", "sent", "accepted", "rejected", "expired"]
InvoiceStatus = Literal["draft", "sent", "paid", "overdue", "cancelled"]


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    company: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    address: str | None = None
    notes: str | None = None


class ClientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    company: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    address: str | None = None
    notes: str | None = None


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    company: str | None
    email: str | None
    phone: str | None
    address: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class CompanySettingsUpsert(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    address: str | None = None
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    website: str | None = Field(default=None, max_length=255)
    tax_registration_number: str | None = Field(default=None, max_length=64)
    bank_details: str | None = None
    default_terms: str | None = None


class CompanySettingsRead(CompanySettingsUpsert):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    updated_at: datetime


class LineItemInput(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    quantity: Decimal = Field(gt=Decimal("0"))
    unit_price: Decimal = Field(ge=Decimal("0"))


class LineItemRead(LineItemInput):
    line_total: Decimal


class DocumentPricing(BaseModel):
    items: list[LineItemInput] = Field(min_length=1)
    discount_percentage: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    discount_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    apply_gct: bool = False
    notes: str | None = None
    terms: str | None = None


class QuotationCreate(DocumentPricing):
    client_id: UUID
    valid_until: date | None = None


class QuotationUpdate(BaseModel):
    items: list[LineItemInput] | None = Field(default=None, min_length=1)
    discount_percentage: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    discount_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    apply_gct: bool | None = None
    notes: str | None = None
    terms: str | None = None
    valid_until: date | None = None


class InvoiceCreate(DocumentPricing):
    client_id: UUID
    due_date: date | None = None


class InvoiceUpdate(BaseModel):
    items: list[LineItemInput] | None = Field(default=None, min_length=1)
    discount_percentage: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    discount_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    apply_gct: bool | None = None
    notes: str | None = None
    terms: str | None = None
    due_date: date | None = None


class DocumentRead(BaseModel):
    id: UUID
    client_id: UUID
    items: list[LineItemRead]
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    apply_gct: bool
    gct_rate_percent: Decimal
    gct_amount: Decimal
    total: Decimal
    notes: str | None
    terms: str | None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime


class QuotationRead(DocumentRead):
    model_config = ConfigDict(from_attributes=True)

    quotation_number: str
    status: QuotationStatus
    valid_until: date | None


class InvoiceRead(DocumentRead):
    model_config = ConfigDict(from_attributes=True)

    invoice_number: str
    quotation_id: UUID | None
    status: InvoiceStatus
    due_date: date | None
    paid_at: datetime | None


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class ConvertQuotationRequest(BaseModel):
    due_date: date | None = None
