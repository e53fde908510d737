from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.context import get_correlation_id, set_actor_id
from app.core.database import get_db
from app.platform.security.context import AuthContext
from app.users.security import InvalidTokenError
from app.users.service import user_service


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> AuthContext:
    token = extract_bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = user_service.resolve_token(db, token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="invalid or expired token") from exc

    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = str(user.id)
    set_actor_id(str(user.id))

    return AuthContext(
        user_id=str(user.id),
        role=user.role,
        email=user.email,
        display_name=user.display_name,
        correlation_id=get_correlation_id(),
    )
