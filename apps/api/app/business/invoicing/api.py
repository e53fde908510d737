from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.business.invoicing.schemas import (
    ClientCreate,
    ClientRead,
    ClientUpdate,
    CompanySettingsRead,
    CompanySettingsUpsert,
    ConvertQuotationRequest,
    InvoiceCreate,
    InvoiceRead,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    QuotationCreate,
    QuotationRead,
    QuotationStatusUpdate,
    QuotationUpdate,
)
from app.business.invoicing.service import invoicing_service
from app.core.auth import get_current_user
from app.core.database import get_db
from app.platform.security.context import AuthContext


clients_router = APIRouter(prefix="/clients", tags=["clients"])
company_settings_router = APIRouter(prefix="/company-settings", tags=["company-settings"])
quotations_router = APIRouter(prefix="/quotations", tags=["quotations"])
invoices_router = APIRouter(prefix="/invoices", tags=["invoices"])


@clients_router.get("", response_model=list[ClientRead])
def list_clients(
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[ClientRead]:
    return invoicing_service.list_clients(db, ctx, search=search)


@clients_router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> ClientRead:
    return invoicing_service.create_client(db, ctx, payload)


@clients_router.get("/{client_id}", response_model=ClientRead)
def get_client(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> ClientRead:
    return invoicing_service.get_client(db, ctx, client_id)


@clients_router.patch("/{client_id}", response_model=ClientRead)
def update_client(
    client_id: uuid.UUID,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> ClientRead:
    return invoicing_service.update_client(db, ctx, client_id, payload)


@clients_router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> None:
    invoicing_service.delete_client(db, ctx, client_id)


@company_settings_router.get("", response_model=CompanySettingsRead)
def get_company_settings(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> CompanySettingsRead:
    return invoicing_service.get_company_settings(db, ctx)


@company_settings_router.put("", response_model=CompanySettingsRead)
def upsert_company_settings(
    payload: CompanySettingsUpsert,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> CompanySettingsRead:
    return invoicing_service.upsert_company_settings(db, ctx, payload)


@quotations_router.get("", response_model=list[QuotationRead])
def list_quotations(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[QuotationRead]:
    return invoicing_service.list_quotations(db, ctx, status_filter=status_filter)


@quotations_router.post("", response_model=QuotationRead, status_code=status.HTTP_201_CREATED)
def create_quotation(
    payload: QuotationCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> QuotationRead:
    return invoicing_service.create_quotation(db, ctx, payload)


@quotations_router.get("/{quotation_id}", response_model=QuotationRead)
def get_quotation(
    quotation_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> QuotationRead:
    return invoicing_service.get_quotation(db, ctx, quotation_id)


@quotations_router.patch("/{quotation_id}", response_model=QuotationRead)
def update_quotation(
    quotation_id: uuid.UUID,
    payload: QuotationUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> QuotationRead:
    return invoicing_service.update_quotation(db, ctx, quotation_id, payload)


@quotations_router.post("/{quotation_id}/status", response_model=QuotationRead)
def set_quotation_status(
    quotation_id: uuid.UUID,
    payload: QuotationStatusUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> QuotationRead:
    return invoicing_service.set_quotation_status(db, ctx, quotation_id, payload)


@quotations_router.post("/{quotation_id}/convert", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def convert_quotation(
    quotation_id: uuid.UUID,
    payload: ConvertQuotationRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> InvoiceRead:
    return invoicing_service.convert_quotation(db, ctx, quotation_id, payload)


@invoices_router.get("", response_model=list[InvoiceRead])
def list_invoices(
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[InvoiceRead]:
    return invoicing_service.list_invoices(db, ctx, status_filter=status_filter)


@invoices_router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> InvoiceRead:
    return invoicing_service.create_invoice(db, ctx, payload)


@invoices_router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> InvoiceRead:
    return invoicing_service.get_invoice(db, ctx, invoice_id)


@invoices_router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(
    invoice_id: uuid.UUID,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> InvoiceRead:
    return invoicing_service.update_invoice(db, ctx, invoice_id, payload)


@invoices_router.post("/{invoice_id}/status", response_model=InvoiceRead)
def set_invoice_status(
    invoice_id: uuid.UUID,
    payload: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> InvoiceRead:
    return invoicing_service.set_invoice_status(db, ctx, invoice_id, payload)
