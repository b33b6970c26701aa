from dataclasses import dataclass
from enum import Enum

from fastapi import HTTPException, Request, status


class Role(str, Enum):
    OWNER = "OWNER"
    USER = "USER"


@dataclass
class Principal:
    id: int
    username: str
    role: Role
    organization_id: int | None
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    if principal.organization_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No organization assigned")
    return principal


def is_owner(principal: Principal) -> bool:
    return principal.role == Role.OWNER


def assert_report_scope(principal: Principal, requested_user_id: int | None) -> int | None:
    """Return the user id a report must be narrowed to for this principal."""
    if is_owner(principal):
        return requested_user_id
    if requested_user_id is not None and requested_user_id != principal.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal.id
