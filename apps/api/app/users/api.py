from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.auth import extract_bearer_token, get_current_user
from app.core.database import get_db
from app.core.rbac import require_administrator
from app.platform.security.context import AuthContext
from app.users.schemas import (
    LoginRequest,
    PasswordReset,
    RegisterRequest,
    TokenResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)
from app.users.service import user_service


auth_router = APIRouter(prefix="/auth", tags=["auth"])
router = APIRouter(prefix="/users", tags=["users"])


@auth_router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> UserRead:
    return user_service.register(db, payload)


@auth_router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    return user_service.login(db, payload)


@auth_router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    request: Request,
    db: Session = Depends(get_db),
    _: AuthContext = Depends(get_current_user),
) -> None:
    token = extract_bearer_token(request)
    if token is not None:
        user_service.logout(db, token)


@auth_router.get("/me", response_model=UserRead)
def me(db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)) -> UserRead:
    return user_service.get_user(db, user.user_uuid)


@router.get("", response_model=list[UserRead])
def list_users(db: Session = Depends(get_db), _: AuthContext = Depends(require_administrator)) -> list[UserRead]:
    return user_service.list_users(db)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_administrator),
) -> UserRead:
    return user_service.create_user(db, ctx, payload)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_administrator),
) -> UserRead:
    return user_service.update_user(db, ctx, user_id, payload)


@router.post("/{user_id}/reset-password", status_code=status.HTTP_204_NO_CONTENT)
def reset_password(
    user_id: uuid.UUID,
    payload: PasswordReset,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_administrator),
) -> None:
    user_service.reset_password(db, ctx, user_id, payload)
