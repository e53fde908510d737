import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.core.rbac import require_administrator
from app.desk.schemas import (
    AssignRequest,
    CallLogCreate,
    CallLogRead,
    CallLogUpdate,
    ChangeLogRead,
    CustomerInquiryCreate,
    CustomerInquiryRead,
    CustomerInquiryUpdate,
    DeskSummaryRead,
    QuotationRequestCreate,
    QuotationRequestRead,
    QuotationRequestUpdate,
    StatusHistoryRead,
    StatusTransitionRequest,
    TaskCommentCreate,
    TaskCreate,
    TaskLogRead,
    TaskRead,
    TaskUpdate,
    TicketCreate,
    TicketRead,
    TicketUpdate,
    WorkOrderCreate,
    WorkOrderRead,
    WorkOrderUpdate,
)
from app.desk.service import (
    TrackedRecordService,
    call_log_service,
    customer_inquiry_service,
    desk_summary,
    quotation_request_service,
    task_service,
    ticket_service,
    work_order_service,
)
from app.platform.security.context import AuthContext
from app.services.audit import list_change_log


def _build_record_router(
    prefix: str,
    tag: str,
    service: TrackedRecordService,
    create_schema: Any,
    update_schema: Any,
    read_schema: Any,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("", response_model=list[read_schema])
    def list_records(
        status_filter: str | None = Query(default=None, alias="status"),
        assigned_user_id: uuid.UUID | None = Query(default=None),
        limit: int = Query(default=100, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.list_records(
            db,
            ctx,
            status_filter=status_filter,
            assigned_user_id=assigned_user_id,
            limit=limit,
            offset=offset,
        )

    @router.post("", response_model=read_schema, status_code=status.HTTP_201_CREATED)
    def create_record(
        payload: create_schema,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.create_record(db, ctx, payload)

    @router.get("/{record_id}", response_model=read_schema)
    def get_record(
        record_id: uuid.UUID,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.get_record(db, ctx, record_id)

    @router.patch("/{record_id}", response_model=read_schema)
    def update_record(
        record_id: uuid.UUID,
        payload: update_schema,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.update_record(db, ctx, record_id, payload)

    @router.post("/{record_id}/status", response_model=read_schema)
    def transition_record(
        record_id: uuid.UUID,
        payload: StatusTransitionRequest,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.transition_record(db, ctx, record_id, payload)

    @router.post("/{record_id}/assign", response_model=read_schema)
    def assign_record(
        record_id: uuid.UUID,
        payload: AssignRequest,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.assign_record(db, ctx, record_id, payload)

    @router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_record(
        record_id: uuid.UUID,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ) -> None:
        service.delete_record(db, ctx, record_id)

    @router.get("/{record_id}/history", response_model=list[StatusHistoryRead])
    def list_history(
        record_id: uuid.UUID,
        db: Session = Depends(get_db),
        ctx: AuthContext = Depends(get_current_user),
    ):
        return service.list_history(db, ctx, record_id)

    return router


work_orders_router = _build_record_router(
    "/work-orders", "work-orders", work_order_service, WorkOrderCreate, WorkOrderUpdate, WorkOrderRead
)
tickets_router = _build_record_router("/tickets", "tickets", ticket_service, TicketCreate, TicketUpdate, TicketRead)
tasks_router = _build_record_router("/tasks", "tasks", task_service, TaskCreate, TaskUpdate, TaskRead)
quotation_requests_router = _build_record_router(
    "/quotation-requests",
    "quotation-requests",
    quotation_request_service,
    QuotationRequestCreate,
    QuotationRequestUpdate,
    QuotationRequestRead,
)
customer_inquiries_router = _build_record_router(
    "/customer-inquiries",
    "customer-inquiries",
    customer_inquiry_service,
    CustomerInquiryCreate,
    CustomerInquiryUpdate,
    CustomerInquiryRead,
)


@tasks_router.get("/{record_id}/logs", response_model=list[TaskLogRead])
def list_task_logs(
    record_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[TaskLogRead]:
    return task_service.list_logs(db, ctx, record_id)


@tasks_router.post("/{record_id}/comments", response_model=TaskLogRead, status_code=status.HTTP_201_CREATED)
def add_task_comment(
    record_id: uuid.UUID,
    payload: TaskCommentCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> TaskLogRead:
    return task_service.add_comment(db, ctx, record_id, payload)


call_logs_router = APIRouter(prefix="/call-logs", tags=["call-logs"])


@call_logs_router.get("", response_model=list[CallLogRead])
def list_call_logs(
    call_type: str | None = Query(default=None),
    outcome: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> list[CallLogRead]:
    return call_log_service.list_calls(db, ctx, call_type=call_type, outcome=outcome, limit=limit)


@call_logs_router.post("", response_model=CallLogRead, status_code=status.HTTP_201_CREATED)
def create_call_log(
    payload: CallLogCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> CallLogRead:
    return call_log_service.create_call(db, ctx, payload)


@call_logs_router.patch("/{call_id}", response_model=CallLogRead)
def update_call_log(
    call_id: uuid.UUID,
    payload: CallLogUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> CallLogRead:
    return call_log_service.update_call(db, ctx, call_id, payload)


@call_logs_router.delete("/{call_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_call_log(
    call_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> None:
    call_log_service.delete_call(db, ctx, call_id)


router = APIRouter(tags=["desk"])


@router.get("/desk/summary", response_model=DeskSummaryRead)
def get_desk_summary(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_current_user),
) -> DeskSummaryRead:
    return desk_summary(db, ctx)


@router.get("/change-log", response_model=list[ChangeLogRead])
def get_change_log(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AuthContext = Depends(require_administrator),
) -> list[ChangeLogRead]:
    rows = list_change_log(db, entity_type=entity_type, entity_id=entity_id, actor_id=actor_id, limit=limit)
    return [ChangeLogRead.model_validate(row) for row in rows]
