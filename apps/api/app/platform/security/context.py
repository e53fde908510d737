from __future__ import annotations

import uuid
from dataclasses import dataclass, field


@dataclass(slots=True)
class AuthContext:
    """Authenticated actor as seen by services and policy evaluation."""

    user_id: str
    role: str = "user"
    email: str | None = None
    display_name: str | None = None
    correlation_id: str | None = None
    permissions: list[str] = field(default_factory=list)

    @property
    def user_uuid(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)

    @property
    def is_administrator(self) -> bool:
        return self.role == "administrator"

    @property
    def label(self) -> str:
        return self.display_name or self.email or self.user_id
