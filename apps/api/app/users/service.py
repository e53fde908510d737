from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import NotFound, to_http_exception
from app.platform.security.context import AuthContext
from app.services.audit import write_change_log
from app.users.models import AuthSession, User
from app.users.schemas import (
    LoginRequest,
    PasswordReset,
    RegisterRequest,
    TokenResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)
from app.users.security import (
    InvalidTokenError,
    as_utc,
    decode_token,
    hash_password,
    issue_token,
    verify_password,
)

logger = logging.getLogger("app.auth")

_INVALID_CREDENTIALS = "invalid email or password"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class UserService:
    def register(self, session: Session, dto: RegisterRequest) -> UserRead:
        allowed_domains = {domain.strip().lower() for domain in get_settings().registration_allowed_domains if domain.strip()}
        domain = dto.email.rsplit("@", 1)[1]
        if allowed_domains and domain not in allowed_domains:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="registration is restricted to approved email domains",
            )
        user = self._insert_user(
            session,
            email=dto.email,
            password=dto.password,
            first_name=dto.first_name,
            last_name=dto.last_name,
            role="user",
            is_active=True,
        )
        logger.info("auth.registered", extra={"user_id": str(user.id)})
        return UserRead.model_validate(user)

    def login(self, session: Session, dto: LoginRequest) -> TokenResponse:
        user = session.scalar(select(User).where(User.email == dto.email))
        if user is None or not verify_password(dto.password, user.password_hash):
            logger.info("auth.login_failed")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_INVALID_CREDENTIALS)
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="account is inactive")

        token, expires_at = issue_token(user.id, user.role)
        session.add(AuthSession(user_id=user.id, token=token, expires_at=expires_at))
        session.commit()
        logger.info("auth.login", extra={"user_id": str(user.id)})
        return TokenResponse(access_token=token, expires_at=expires_at, user=UserRead.model_validate(user))

    def logout(self, session: Session, token: str) -> None:
        session.execute(delete(AuthSession).where(AuthSession.token == token))
        session.commit()

    def resolve_token(self, session: Session, token: str) -> User:
        """Return the active user behind a bearer token.

        The JWT must decode, its session row must still exist and be unexpired,
        and the user must be active. Any other outcome raises InvalidTokenError.
        """

        payload = decode_token(token)
        auth_session = session.scalar(select(AuthSession).where(AuthSession.token == token))
        if auth_session is None:
            raise InvalidTokenError("session not found")
        if as_utc(auth_session.expires_at) <= _utcnow():
            session.delete(auth_session)
            session.commit()
            raise InvalidTokenError("session expired")
        if str(auth_session.user_id) != str(payload["sub"]):
            raise InvalidTokenError("token subject does not match session")

        user = session.get(User, auth_session.user_id)
        if user is None or not user.is_active:
            raise InvalidTokenError("user is inactive")
        return user

    def purge_expired_sessions(self, session: Session) -> int:
        result = session.execute(delete(AuthSession).where(AuthSession.expires_at <= _utcnow()))
        session.commit()
        return int(result.rowcount or 0)

    def list_users(self, session: Session) -> list[UserRead]:
        rows = session.scalars(select(User).order_by(User.created_at.asc(), User.email.asc())).all()
        return [UserRead.model_validate(row) for row in rows]

    def get_user(self, session: Session, user_id: uuid.UUID) -> UserRead:
        return UserRead.model_validate(self._get_user(session, user_id))

    def create_user(self, session: Session, ctx: AuthContext, dto: UserCreate) -> UserRead:
        user = self._insert_user(
            session,
            email=dto.email,
            password=dto.password,
            first_name=dto.first_name,
            last_name=dto.last_name,
            role=dto.role,
            is_active=dto.is_active,
            ctx=ctx,
        )
        return UserRead.model_validate(user)

    def update_user(self, session: Session, ctx: AuthContext, user_id: uuid.UUID, dto: UserUpdate) -> UserRead:
        user = self._get_user(session, user_id)
        changes = dto.model_dump(exclude_unset=True)
        if str(user.id) == ctx.user_id and (changes.get("is_active") is False or changes.get("role") == "user"):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="administrators cannot demote or deactivate themselves")

        for field_name, value in changes.items():
            old_value = getattr(user, field_name)
            if old_value == value:
                continue
            setattr(user, field_name, value)
            write_change_log(
                session,
                ctx,
                entity_type="user",
                entity_id=user.id,
                action="updated",
                description=f"Updated {field_name} for {user.email}",
                field_changed=field_name,
                old_value=old_value,
                new_value=value,
            )
        if changes.get("is_active") is False:
            session.execute(delete(AuthSession).where(AuthSession.user_id == user.id))
        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def reset_password(self, session: Session, ctx: AuthContext, user_id: uuid.UUID, dto: PasswordReset) -> None:
        user = self._get_user(session, user_id)
        user.password_hash = hash_password(dto.new_password)
        session.execute(delete(AuthSession).where(AuthSession.user_id == user.id))
        write_change_log(
            session,
            ctx,
            entity_type="user",
            entity_id=user.id,
            action="password_reset",
            description=f"Reset password for {user.email}",
        )
        session.commit()

    def ensure_bootstrap_admin(self, session: Session, email: str, password: str) -> UserRead:
        normalized = email.strip().lower()
        existing = session.scalar(select(User).where(User.email == normalized))
        if existing is not None:
            return UserRead.model_validate(existing)
        user = self._insert_user(
            session,
            email=normalized,
            password=password,
            first_name="System",
            last_name="Administrator",
            role="administrator",
            is_active=True,
        )
        logger.info("auth.bootstrap_admin_created", extra={"user_id": str(user.id)})
        return UserRead.model_validate(user)

    def count_users(self, session: Session) -> int:
        return int(session.scalar(select(func.count()).select_from(User)) or 0)

    def _get_user(self, session: Session, user_id: uuid.UUID) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise to_http_exception(NotFound("user not found"))
        return user

    def _insert_user(
        self,
        session: Session,
        *,
        email: str,
        password: str,
        first_name: str | None,
        last_name: str | None,
        role: str,
        is_active: bool,
        ctx: AuthContext | None = None,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active,
        )
        session.add(user)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="a user with this email already exists")
        if ctx is not None:
            write_change_log(
                session,
                ctx,
                entity_type="user",
                entity_id=user.id,
                action="created",
                description=f"Created user {email} with role {role}",
            )
        session.commit()
        session.refresh(user)
        return user


user_service = UserService()
