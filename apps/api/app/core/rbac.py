from collections.abc import Callable

from fastapi import Depends, HTTPException, status

from app.core.auth import get_current_user
from app.platform.security.context import AuthContext
from app.platform.security.policies import ResourceAction, is_allowed


def require_permission(resource: str, action: ResourceAction) -> Callable[[AuthContext], AuthContext]:
    def checker(user: AuthContext = Depends(get_current_user)) -> AuthContext:
        if not is_allowed(resource, action, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {resource}.{action.value}",
            )
        return user

    return checker


def require_administrator(user: AuthContext = Depends(get_current_user)) -> AuthContext:
    if not user.is_administrator:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="administrator role required")
    return user
