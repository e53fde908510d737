from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.models.audit import ChangeLog
from app.platform.security.context import AuthContext


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def write_change_log(
    db: Session,
    ctx: AuthContext,
    *,
    entity_type: str,
    entity_id: uuid.UUID | str,
    action: str,
    description: str,
    field_changed: str | None = None,
    old_value: Any = None,
    new_value: Any = None,
    metadata: dict[str, Any] | None = None,
) -> ChangeLog:
    """Stage a change log row in the caller's transaction; the caller commits."""

    entry = ChangeLog(
        actor_id=ctx.user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        description=description,
        field_changed=field_changed,
        old_value=_stringify(old_value),
        new_value=_stringify(new_value),
        event_metadata=metadata or {},
        correlation_id=ctx.correlation_id or get_correlation_id(),
    )
    db.add(entry)
    return entry


def list_change_log(
    db: Session,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_id: str | None = None,
    limit: int = 100,
) -> list[ChangeLog]:
    stmt = select(ChangeLog)
    if entity_type is not None:
        stmt = stmt.where(ChangeLog.entity_type == entity_type)
    if entity_id is not None:
        stmt = stmt.where(ChangeLog.entity_id == entity_id)
    if actor_id is not None:
        stmt = stmt.where(ChangeLog.actor_id == actor_id)
    return list(db.scalars(stmt.order_by(ChangeLog.created_at.desc()).limit(limit)).all())
