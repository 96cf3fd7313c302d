"""
Role based permission table and the request gate that consults it.

The role is read from the ``x-user-role`` header and trusted as sent.
"""

import logging
from collections.abc import Callable
from enum import StrEnum

from fastapi import Header, HTTPException, status

from sahaay.models import Role

logger = logging.getLogger(__name__)

ROLE_HEADER = "x-user-role"


class Permission(StrEnum):
    VIEW_SELF = "VIEW_SELF"
    VIEW_USERS = "VIEW_USERS"
    MANAGE_VOLUNTEERS = "MANAGE_VOLUNTEERS"
    UPDATE_VOLUNTEER_STATUS = "UPDATE_VOLUNTEER_STATUS"
    DISPATCH_RESOURCES = "DISPATCH_RESOURCES"
    RESOLVE_INCIDENTS = "RESOLVE_INCIDENTS"
    MANAGE_RESOURCES = "MANAGE_RESOURCES"


_RESPONDER_PERMISSIONS = frozenset(
    {
        Permission.VIEW_USERS,
        Permission.MANAGE_VOLUNTEERS,
        Permission.UPDATE_VOLUNTEER_STATUS,
        Permission.DISPATCH_RESOURCES,
        Permission.RESOLVE_INCIDENTS,
    }
)

ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    Role.CITIZEN: frozenset(),
    Role.VOLUNTEER: frozenset({Permission.VIEW_SELF}),
    Role.DONOR: frozenset({Permission.VIEW_SELF}),
    Role.COORDINATOR: _RESPONDER_PERMISSIONS,
    Role.AGENCY: _RESPONDER_PERMISSIONS | {Permission.MANAGE_RESOURCES},
}


def has_permission(role: str | None, permission: Permission) -> bool:
    """Check whether a role grants a permission. Unknown roles grant nothing."""
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def require_permission(permission: Permission) -> Callable[..., str]:
    """
    Build a FastAPI dependency that rejects requests whose role header
    does not grant ``permission``. Returns the role on success.
    """

    def gate(
        x_user_role: str | None = Header(default=None, alias=ROLE_HEADER),
    ) -> str:
        if not x_user_role:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Role not provided",
            )
        if not has_permission(x_user_role, permission):
            logger.info("Role %s denied %s", x_user_role, permission)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied",
            )
        return x_user_role

    return gate
