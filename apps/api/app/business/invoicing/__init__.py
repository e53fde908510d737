from app.business.invoicing.api import clients_router, company_settings_router, invoices_router, quotations_router
from app.business.invoicing.models import Client, CompanySettings, Invoice, Quotation
from app.business.invoicing.service import InvoicingService, compute_totals, invoicing_service

__all__ = [
    "clients_router",
    "company_settings_router",
    "invoices_router",
    "quotations_router",
    "Client",
    "CompanySettings",
    "Invoice",
    "Quotation",
    "InvoicingService",
    "compute_totals",
    "invoicing_service",
]
