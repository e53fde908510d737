from __future__ import annotations

from fastapi import HTTPException, status


class DomainError(Exception):
    """Base class for failures reported synchronously to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST


class InvalidInput(DomainError):
    """Raised when pricing or record parameters are malformed or out of range."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidTransition(DomainError):
    """Raised when a status change is not an edge of the record's state machine."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, variant: str, current: str | None, target: str) -> None:
        self.variant = variant
        self.current = current
        self.target = target
        super().__init__(f"invalid {variant} transition {current} -> {target}")


class PermissionDenied(DomainError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, resource: str, action: str, role: str | None = None) -> None:
        self.resource = resource
        self.action = action
        self.role = role
        super().__init__(f"Role '{role or 'anonymous'}' may not {action} {resource}")


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


def to_http_exception(exc: DomainError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))
