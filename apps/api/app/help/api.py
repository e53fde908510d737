from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.rbac import require_permission
from app.help.schemas import HelpResponse
from app.help.service import help_service
from app.platform.security.context import AuthContext
from app.platform.security.policies import ResourceAction


router = APIRouter(prefix="/help", tags=["help"])


@router.get("", response_model=HelpResponse)
def get_help(
    context: str = Query(min_length=1, max_length=200),
    element: str | None = Query(default=None, max_length=200),
    _: AuthContext = Depends(require_permission("help", ResourceAction.READ)),
) -> HelpResponse:
    return help_service.get_help(context, element)
