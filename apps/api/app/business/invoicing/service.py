from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.business.invoicing.models import Client, CompanySettings, Invoice, Quotation
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
    LineItemInput,
    QuotationCreate,
    QuotationRead,
    QuotationStatusUpdate,
    QuotationUpdate,
)
from app.core.config import get_settings
from app.core.errors import DomainError, NotFound, to_http_exception
from app.core.state_machine import StatusMachine
from app.platform.security.context import AuthContext
from app.platform.security.policies import ResourceAction, ensure_allowed
from app.services.audit import write_change_log

QUOTATION_MACHINE = StatusMachine.build(
    "quotation",
    "draft",
    {
        "draft": {"sent"},
        "sent": {"accepted", "rejected", "expired"},
    },
)

INVOICE_MACHINE = StatusMachine.build(
    "invoice",
    "draft",
    {
        "draft": {"sent", "cancelled"},
        "sent": {"paid", "overdue", "cancelled"},
        "overdue": {"paid", "cancelled"},
    },
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _authorize(resource: str, action: ResourceAction, ctx: AuthContext) -> None:
    try:
        ensure_allowed(resource, action, ctx)
    except DomainError as exc:
        raise to_http_exception(exc) from exc


@dataclass(frozen=True, slots=True)
class DocumentTotals:
    items: list[dict[str, Any]]
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    gct_rate_percent: Decimal
    gct_amount: Decimal
    total: Decimal


def compute_totals(
    items: list[LineItemInput],
    *,
    discount_percentage: Decimal,
    discount_amount: Decimal,
    apply_gct: bool,
    gct_rate_percent: Decimal,
) -> DocumentTotals:
    """Percentage discount first, then the fixed discount, then GCT on what is left."""

    lines = []
    subtotal = Decimal("0")
    for item in items:
        line_total = _q(item.quantity * item.unit_price)
        subtotal += line_total
        lines.append(
            {
                "description": item.description,
                "quantity": str(item.quantity),
                "unit_price": str(_q(item.unit_price)),
                "line_total": str(line_total),
            }
        )

    subtotal = _q(subtotal)
    after_percentage = subtotal - _q(subtotal * discount_percentage / Decimal("100"))
    discounted = max(Decimal("0"), after_percentage - discount_amount)
    gct_amount = _q(discounted * gct_rate_percent / Decimal("100")) if apply_gct else Decimal("0.00")
    return DocumentTotals(
        items=lines,
        subtotal=subtotal,
        discount_percentage=_q(discount_percentage),
        discount_amount=_q(discount_amount),
        gct_rate_percent=_q(gct_rate_percent),
        gct_amount=gct_amount,
        total=_q(discounted + gct_amount),
    )


@dataclass(slots=True)
class InvoicingService:
    def list_clients(self, session: Session, ctx: AuthContext, *, search: str | None = None) -> list[ClientRead]:
        _authorize("client", ResourceAction.READ, ctx)
        stmt = select(Client)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(Client.name.ilike(pattern) | Client.company.ilike(pattern) | Client.email.ilike(pattern))
        rows = session.scalars(stmt.order_by(Client.name.asc())).all()
        return [ClientRead.model_validate(row) for row in rows]

    def get_client(self, session: Session, ctx: AuthContext, client_id: uuid.UUID) -> ClientRead:
        _authorize("client", ResourceAction.READ, ctx)
        return ClientRead.model_validate(self._get(session, Client, client_id, "client"))

    def create_client(self, session: Session, ctx: AuthContext, dto: ClientCreate) -> ClientRead:
        _authorize("client", ResourceAction.CREATE, ctx)
        client = Client(id=uuid.uuid4(), created_by_id=ctx.user_uuid, **dto.model_dump(mode="python"))
        session.add(client)
        write_change_log(
            session,
            ctx,
            entity_type="client",
            entity_id=client.id,
            action="created",
            description=f"Created client {client.name}",
        )
        session.commit()
        session.refresh(client)
        return ClientRead.model_validate(client)

    def update_client(self, session: Session, ctx: AuthContext, client_id: uuid.UUID, dto: ClientUpdate) -> ClientRead:
        _authorize("client", ResourceAction.UPDATE, ctx)
        client = self._get(session, Client, client_id, "client")
        self._apply_changes(session, ctx, client, "client", dto.model_dump(exclude_unset=True, mode="python"))
        session.commit()
        session.refresh(client)
        return ClientRead.model_validate(client)

    def delete_client(self, session: Session, ctx: AuthContext, client_id: uuid.UUID) -> None:
        _authorize("client", ResourceAction.DELETE, ctx)
        client = self._get(session, Client, client_id, "client")
        quotations = session.scalar(select(func.count()).select_from(Quotation).where(Quotation.client_id == client.id))
        invoices = session.scalar(select(func.count()).select_from(Invoice).where(Invoice.client_id == client.id))
        if quotations or invoices:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="client has quotations or invoices")
        session.delete(client)
        session.commit()

    def get_company_settings(self, session: Session, ctx: AuthContext) -> CompanySettingsRead:
        _authorize("company_settings", ResourceAction.READ, ctx)
        settings_row = session.scalar(select(CompanySettings).limit(1))
        if settings_row is None:
            raise to_http_exception(NotFound("company settings not configured"))
        return CompanySettingsRead.model_validate(settings_row)

    def upsert_company_settings(self, session: Session, ctx: AuthContext, dto: CompanySettingsUpsert) -> CompanySettingsRead:
        _authorize("company_settings", ResourceAction.UPDATE, ctx)
        settings_row = session.scalar(select(CompanySettings).limit(1))
        payload = dto.model_dump(mode="python")
        if settings_row is None:
            settings_row = CompanySettings(id=uuid.uuid4(), **payload)
            session.add(settings_row)
        else:
            for field_name, value in payload.items():
                setattr(settings_row, field_name, value)
        write_change_log(
            session,
            ctx,
            entity_type="company_settings",
            entity_id=settings_row.id,
            action="updated",
            description="Updated company settings",
        )
        session.commit()
        session.refresh(settings_row)
        return CompanySettingsRead.model_validate(settings_row)

    def list_quotations(self, session: Session, ctx: AuthContext, *, status_filter: str | None = None) -> list[QuotationRead]:
        _authorize("quotation", ResourceAction.READ, ctx)
        stmt = select(Quotation)
        if status_filter is not None:
            stmt = stmt.where(Quotation.status == status_filter)
        rows = session.scalars(stmt.order_by(Quotation.created_at.desc())).all()
        return [QuotationRead.model_validate(row) for row in rows]

    def get_quotation(self, session: Session, ctx: AuthContext, quotation_id: uuid.UUID) -> QuotationRead:
        _authorize("quotation", ResourceAction.READ, ctx)
        return QuotationRead.model_validate(self._get(session, Quotation, quotation_id, "quotation"))

    def create_quotation(self, session: Session, ctx: AuthContext, dto: QuotationCreate) -> QuotationRead:
        _authorize("quotation", ResourceAction.CREATE, ctx)
        self._get(session, Client, dto.client_id, "client")
        totals = self._totals(dto.items, dto.discount_percentage, dto.discount_amount, dto.apply_gct)
        quotation = Quotation(
            id=uuid.uuid4(),
            quotation_number=self._next_number(session, Quotation.quotation_number, "QT"),
            client_id=dto.client_id,
            status=QUOTATION_MACHINE.initial,
            valid_until=dto.valid_until,
            apply_gct=dto.apply_gct,
            notes=dto.notes,
            terms=dto.terms,
            created_by_id=ctx.user_uuid,
            **self._totals_columns(totals),
        )
        session.add(quotation)
        write_change_log(
            session,
            ctx,
            entity_type="quotation",
            entity_id=quotation.id,
            action="created",
            description=f"Created quotation {quotation.quotation_number} for {totals.total}",
        )
        self._commit_document(session)
        session.refresh(quotation)
        return QuotationRead.model_validate(quotation)

    def update_quotation(
        self,
        session: Session,
        ctx: AuthContext,
        quotation_id: uuid.UUID,
        dto: QuotationUpdate,
    ) -> QuotationRead:
        _authorize("quotation", ResourceAction.UPDATE, ctx)
        quotation = self._get(session, Quotation, quotation_id, "quotation")
        self._update_document(session, ctx, quotation, "quotation", dto.model_dump(exclude_unset=True, mode="python"))
        session.commit()
        session.refresh(quotation)
        return QuotationRead.model_validate(quotation)

    def set_quotation_status(
        self,
        session: Session,
        ctx: AuthContext,
        quotation_id: uuid.UUID,
        dto: QuotationStatusUpdate,
    ) -> QuotationRead:
        _authorize("quotation", ResourceAction.TRANSITION, ctx)
        quotation = self._get(session, Quotation, quotation_id, "quotation")
        self._change_status(session, ctx, quotation, "quotation", QUOTATION_MACHINE, dto.status)
        session.commit()
        session.refresh(quotation)
        return QuotationRead.model_validate(quotation)

    def convert_quotation(
        self,
        session: Session,
        ctx: AuthContext,
        quotation_id: uuid.UUID,
        dto: ConvertQuotationRequest,
    ) -> InvoiceRead:
        _authorize("invoice", ResourceAction.CREATE, ctx)
        quotation = self._get(session, Quotation, quotation_id, "quotation")
        if quotation.status != "accepted":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="only accepted quotations can be invoiced")
        existing = session.scalar(select(Invoice.id).where(Invoice.quotation_id == quotation.id))
        if existing is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="quotation already invoiced")

        invoice = Invoice(
            id=uuid.uuid4(),
            invoice_number=self._next_number(session, Invoice.invoice_number, "INV"),
            client_id=quotation.client_id,
            quotation_id=quotation.id,
            status=INVOICE_MACHINE.initial,
            due_date=dto.due_date,
            items=list(quotation.items),
            subtotal=quotation.subtotal,
            discount_percentage=quotation.discount_percentage,
            discount_amount=quotation.discount_amount,
            apply_gct=quotation.apply_gct,
            gct_rate_percent=quotation.gct_rate_percent,
            gct_amount=quotation.gct_amount,
            total=quotation.total,
            notes=quotation.notes,
            terms=quotation.terms,
            created_by_id=ctx.user_uuid,
        )
        session.add(invoice)
        write_change_log(
            session,
            ctx,
            entity_type="invoice",
            entity_id=invoice.id,
            action="created",
            description=f"Created invoice {invoice.invoice_number} from quotation {quotation.quotation_number}",
        )
        self._commit_document(session)
        session.refresh(invoice)
        return InvoiceRead.model_validate(invoice)

    def list_invoices(self, session: Session, ctx: AuthContext, *, status_filter: str | None = None) -> list[InvoiceRead]:
        _authorize("invoice", ResourceAction.READ, ctx)
        stmt = select(Invoice)
        if status_filter is not None:
            stmt = stmt.where(Invoice.status == status_filter)
        rows = session.scalars(stmt.order_by(Invoice.created_at.desc())).all()
        return [InvoiceRead.model_validate(row) for row in rows]

    def get_invoice(self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID) -> InvoiceRead:
        _authorize("invoice", ResourceAction.READ, ctx)
        return InvoiceRead.model_validate(self._get(session, Invoice, invoice_id, "invoice"))

    def create_invoice(self, session: Session, ctx: AuthContext, dto: InvoiceCreate) -> InvoiceRead:
        _authorize("invoice", ResourceAction.CREATE, ctx)
        self._get(session, Client, dto.client_id, "client")
        totals = self._totals(dto.items, dto.discount_percentage, dto.discount_amount, dto.apply_gct)
        invoice = Invoice(
            id=uuid.uuid4(),
            invoice_number=self._next_number(session, Invoice.invoice_number, "INV"),
            client_id=dto.client_id,
            status=INVOICE_MACHINE.initial,
            due_date=dto.due_date,
            apply_gct=dto.apply_gct,
            notes=dto.notes,
            terms=dto.terms,
            created_by_id=ctx.user_uuid,
            **self._totals_columns(totals),
        )
        session.add(invoice)
        write_change_log(
            session,
            ctx,
            entity_type="invoice",
            entity_id=invoice.id,
            action="created",
            description=f"Created invoice {invoice.invoice_number} for {totals.total}",
        )
        self._commit_document(session)
        session.refresh(invoice)
        return InvoiceRead.model_validate(invoice)

    def update_invoice(self, session: Session, ctx: AuthContext, invoice_id: uuid.UUID, dto: InvoiceUpdate) -> InvoiceRead:
        _authorize("invoice", ResourceAction.UPDATE, ctx)
        invoice = self._get(session, Invoice, invoice_id, "invoice")
        self._update_document(session, ctx, invoice, "invoice", dto.model_dump(exclude_unset=True, mode="python"))
        session.commit()
        session.refresh(invoice)
        return InvoiceRead.model_validate(invoice)

    def set_invoice_status(
        self,
        session: Session,
        ctx: AuthContext,
        invoice_id: uuid.UUID,
        dto: InvoiceStatusUpdate,
    ) -> InvoiceRead:
        _authorize("invoice", ResourceAction.TRANSITION, ctx)
        invoice = self._get(session, Invoice, invoice_id, "invoice")
        self._change_status(session, ctx, invoice, "invoice", INVOICE_MACHINE, dto.status)
        if dto.status == "paid":
            invoice.paid_at = _utcnow()
        session.commit()
        session.refresh(invoice)
        return InvoiceRead.model_validate(invoice)

    def _update_document(
        self,
        session: Session,
        ctx: AuthContext,
        document: Quotation | Invoice,
        entity_type: str,
        changes: dict[str, Any],
    ) -> None:
        if document.status != "draft":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"only draft {entity_type}s can be edited")

        pricing_fields = {"items", "discount_percentage", "discount_amount", "apply_gct"}
        if pricing_fields & changes.keys():
            items = changes.get("items")
            line_items = (
                [LineItemInput.model_validate(item) for item in items]
                if items is not None
                else [LineItemInput.model_validate(item) for item in document.items]
            )
            apply_gct = changes.get("apply_gct", document.apply_gct)
            totals = self._totals(
                line_items,
                changes.get("discount_percentage", document.discount_percentage),
                changes.get("discount_amount", document.discount_amount),
                apply_gct,
            )
            previous_total = document.total
            for column, value in self._totals_columns(totals).items():
                setattr(document, column, value)
            document.apply_gct = apply_gct
            write_change_log(
                session,
                ctx,
                entity_type=entity_type,
                entity_id=document.id,
                action="updated",
                description="Recalculated totals",
                field_changed="total",
                old_value=previous_total,
                new_value=totals.total,
            )

        remaining = {key: value for key, value in changes.items() if key not in pricing_fields}
        self._apply_changes(session, ctx, document, entity_type, remaining)

    @staticmethod
    def _apply_changes(
        session: Session,
        ctx: AuthContext,
        row: Any,
        entity_type: str,
        changes: dict[str, Any],
    ) -> None:
        for field_name, value in changes.items():
            old_value = getattr(row, field_name)
            if old_value == value:
                continue
            setattr(row, field_name, value)
            write_change_log(
                session,
                ctx,
                entity_type=entity_type,
                entity_id=row.id,
                action="updated",
                description=f"Updated {field_name}",
                field_changed=field_name,
                old_value=old_value,
                new_value=value,
            )

    @staticmethod
    def _change_status(
        session: Session,
        ctx: AuthContext,
        document: Quotation | Invoice,
        entity_type: str,
        machine: StatusMachine,
        target: str,
    ) -> None:
        try:
            machine.ensure_transition(document.status, target)
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        previous = document.status
        document.status = target
        write_change_log(
            session,
            ctx,
            entity_type=entity_type,
            entity_id=document.id,
            action="status_changed",
            description=f"Status changed from {previous} to {target}",
            field_changed="status",
            old_value=previous,
            new_value=target,
        )

    @staticmethod
    def _totals(
        items: list[LineItemInput],
        discount_percentage: Decimal,
        discount_amount: Decimal,
        apply_gct: bool,
    ) -> DocumentTotals:
        return compute_totals(
            items,
            discount_percentage=Decimal(discount_percentage),
            discount_amount=Decimal(discount_amount),
            apply_gct=apply_gct,
            gct_rate_percent=get_settings().gct_rate_percent,
        )

    @staticmethod
    def _totals_columns(totals: DocumentTotals) -> dict[str, Any]:
        return {
            "items": totals.items,
            "subtotal": totals.subtotal,
            "discount_percentage": totals.discount_percentage,
            "discount_amount": totals.discount_amount,
            "gct_rate_percent": totals.gct_rate_percent,
            "gct_amount": totals.gct_amount,
            "total": totals.total,
        }

    @staticmethod
    def _next_number(session: Session, column: Any, prefix: str) -> str:
        latest = session.scalar(select(func.max(column)))
        counter = 0
        if latest:
            counter = int(str(latest).rsplit("-", 1)[-1])
        return f"{prefix}-{counter + 1:05d}"

    @staticmethod
    def _commit_document(session: Session) -> None:
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="document number already in use")

    @staticmethod
    def _get(session: Session, model: type, row_id: uuid.UUID, label: str) -> Any:
        row = session.get(model, row_id)
        if row is None:
            raise to_http_exception(NotFound(f"{label} not found"))
        return row


invoicing_service = InvoicingService()
