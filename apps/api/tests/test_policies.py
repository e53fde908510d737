from __future__ import annotations

import uuid

import pytest

from app.core.errors import PermissionDenied
from app.platform.security.context import AuthContext
from app.platform.security.policies import (
    DESK_VARIANTS,
    InMemoryPolicyBackend,
    ResourceAction,
    ensure_allowed,
    get_policy_backend,
    is_allowed,
    set_policy_backend,
)


def _ctx(role: str, permissions: list[str] | None = None) -> AuthContext:
    return AuthContext(user_id=str(uuid.uuid4()), role=role, permissions=permissions or [])


@pytest.mark.parametrize("variant", DESK_VARIANTS)
def test_users_work_desk_records_but_cannot_delete(variant: str) -> None:
    user = _ctx("user")
    for action in (ResourceAction.READ, ResourceAction.CREATE, ResourceAction.UPDATE, ResourceAction.TRANSITION):
        assert is_allowed(variant, action, user)
    assert not is_allowed(variant, ResourceAction.DELETE, user)


def test_inquiry_assignment_is_the_only_desk_assign_denied_to_users() -> None:
    user = _ctx("user")
    assert not is_allowed("customer_inquiry", ResourceAction.ASSIGN, user)
    for variant in DESK_VARIANTS:
        if variant != "customer_inquiry":
            assert is_allowed(variant, ResourceAction.ASSIGN, user)


def test_administrator_wildcard() -> None:
    admin = _ctx("administrator")
    assert is_allowed("customer_inquiry", ResourceAction.ASSIGN, admin)
    assert is_allowed("pricing.category", ResourceAction.MANAGE, admin)
    assert is_allowed("company_settings", ResourceAction.UPDATE, admin)


def test_prefix_grants_do_not_leak_into_similar_names() -> None:
    backend = InMemoryPolicyBackend({"user": {"quotation.*"}})
    user = _ctx("user")
    assert backend.is_allowed("quotation", ResourceAction.DELETE, user)
    assert not backend.is_allowed("quotation_request", ResourceAction.READ, user)


def test_direct_permissions_extend_role_grants() -> None:
    user = _ctx("user", permissions=["pricing.category.manage"])
    assert is_allowed("pricing.category", ResourceAction.MANAGE, user)
    assert not is_allowed("pricing.category", ResourceAction.MANAGE, _ctx("user"))


def test_unknown_role_is_denied_everything() -> None:
    with pytest.raises(PermissionDenied) as exc_info:
        ensure_allowed("ticket", ResourceAction.READ, _ctx("guest"))
    assert exc_info.value.role == "guest"
    assert exc_info.value.action == "read"


def test_policy_backend_can_be_swapped() -> None:
    original = get_policy_backend()
    set_policy_backend(InMemoryPolicyBackend(default_allow=True))
    try:
        assert is_allowed("ticket", ResourceAction.DELETE, _ctx("guest"))
    finally:
        set_policy_backend(original)
    assert not is_allowed("ticket", ResourceAction.DELETE, _ctx("guest"))
