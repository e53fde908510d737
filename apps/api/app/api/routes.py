from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.business.invoicing.api import clients_router, company_settings_router, invoices_router, quotations_router
from app.business.pricing.api import router as pricing_router
from app.core.config import get_settings
from app.core.rbac import require_administrator
from app.desk.api import (
    call_logs_router,
    customer_inquiries_router,
    quotation_requests_router,
    tasks_router,
    tickets_router,
    work_orders_router,
    router as desk_router,
)
from app.help.api import router as help_router
from app.metrics import generate_metrics_payload, metrics_content_type
from app.notifications.api import router as notifications_router
from app.platform.security.context import AuthContext
from app.users.api import auth_router, router as users_router

api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(work_orders_router)
api_router.include_router(tickets_router)
api_router.include_router(tasks_router)
api_router.include_router(quotation_requests_router)
api_router.include_router(customer_inquiries_router)
api_router.include_router(call_logs_router)
api_router.include_router(desk_router)
api_router.include_router(pricing_router)
api_router.include_router(clients_router)
api_router.include_router(company_settings_router)
api_router.include_router(quotations_router)
api_router.include_router(invoices_router)
api_router.include_router(notifications_router)
api_router.include_router(help_router)

router = APIRouter()
router.include_router(api_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(_: AuthContext = Depends(require_administrator)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
