from app.platform.security.context import AuthContext
from app.platform.security.policies import (
    DEFAULT_ROLE_GRANTS,
    DESK_VARIANTS,
    InMemoryPolicyBackend,
    PolicyBackend,
    ResourceAction,
    Role,
    ensure_allowed,
    get_policy_backend,
    is_allowed,
    set_policy_backend,
)

__all__ = [
    "AuthContext",
    "DEFAULT_ROLE_GRANTS",
    "DESK_VARIANTS",
    "InMemoryPolicyBackend",
    "PolicyBackend",
    "ResourceAction",
    "Role",
    "ensure_allowed",
    "get_policy_backend",
    "is_allowed",
    "set_policy_backend",
]
