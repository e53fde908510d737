from __future__ import annotations

from enum import StrEnum
from threading import Lock
from typing import Protocol

from app.core.errors import PermissionDenied
from app.platform.security.context import AuthContext


class Role(StrEnum):
    ADMINISTRATOR = "administrator"
    USER = "user"


class ResourceAction(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    TRANSITION = "transition"
    ASSIGN = "assign"
    COMMENT = "comment"
    MANAGE = "manage"


DESK_VARIANTS = ("work_order", "ticket", "task", "quotation_request", "customer_inquiry")

_DESK_USER_ACTIONS = (
    ResourceAction.READ,
    ResourceAction.CREATE,
    ResourceAction.UPDATE,
    ResourceAction.TRANSITION,
    ResourceAction.ASSIGN,
    ResourceAction.COMMENT,
)

# Rows are (role, variant) -> granted actions; anything absent is denied.
_USER_GRANTS: set[str] = {
    f"{variant}.{action.value}"
    for variant in DESK_VARIANTS
    for action in _DESK_USER_ACTIONS
    if (variant, action) != ("customer_inquiry", ResourceAction.ASSIGN)
} | {
    "call_log.read",
    "call_log.create",
    "call_log.update",
    "pricing.category.read",
    "pricing.session.read",
    "pricing.session.create",
    "pricing.session.update",
    "client.read",
    "client.create",
    "client.update",
    "quotation.*",
    "invoice.*",
    "company_settings.read",
    "notification.*",
    "help.read",
}

DEFAULT_ROLE_GRANTS: dict[str, set[str]] = {
    Role.ADMINISTRATOR.value: {"*"},
    Role.USER.value: _USER_GRANTS,
}


class PolicyBackend(Protocol):
    """Pluggable capability table lookup."""

    def is_allowed(self, resource: str, action: ResourceAction, ctx: AuthContext) -> bool:
        ...


class InMemoryPolicyBackend:
    """Role + direct-permission grants with wildcard support."""

    def __init__(self, role_permissions: dict[str, set[str]] | None = None, *, default_allow: bool = False) -> None:
        self._role_permissions = DEFAULT_ROLE_GRANTS if role_permissions is None else role_permissions
        self._default_allow = default_allow

    def is_allowed(self, resource: str, action: ResourceAction, ctx: AuthContext) -> bool:
        if self._default_allow:
            return True
        required = f"{resource}.{ResourceAction(action).value}"
        grants = set(ctx.permissions) | self._role_permissions.get(ctx.role, set())
        return any(self._matches(grant, required) for grant in grants)

    @staticmethod
    def _matches(grant: str, required: str) -> bool:
        if grant in {"*", required}:
            return True
        if grant.endswith(".*"):
            return required.startswith(grant[:-1])
        return False


_POLICY_BACKEND: PolicyBackend = InMemoryPolicyBackend()
_POLICY_LOCK = Lock()


def get_policy_backend() -> PolicyBackend:
    """Get the active policy backend instance."""

    return _POLICY_BACKEND


def set_policy_backend(backend: PolicyBackend) -> None:
    """Set the active policy backend instance."""

    global _POLICY_BACKEND
    with _POLICY_LOCK:
        _POLICY_BACKEND = backend


def is_allowed(resource: str, action: ResourceAction, ctx: AuthContext) -> bool:
    return get_policy_backend().is_allowed(resource, action, ctx)


def ensure_allowed(resource: str, action: ResourceAction, ctx: AuthContext) -> None:
    if not is_allowed(resource, action, ctx):
        raise PermissionDenied(resource, ResourceAction(action).value, ctx.role)
