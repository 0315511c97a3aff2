"""Caller identity, supplied by the upstream auth gateway as request headers.

``require_admin`` is the one capability check; it is attached to the admin
router rather than repeated in each route.
"""

from fastapi import Depends, Header
from pydantic import BaseModel

ADMIN_ROLES = frozenset({"admin", "super_admin"})


class AuthenticationError(Exception):
    """No caller identity on the request."""


class AuthorizationError(Exception):
    """The caller lacks the capability the route requires."""


class Identity(BaseModel):
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def current_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    if not x_user_id:
        raise AuthenticationError("Authentication required")
    return Identity(user_id=x_user_id, role=x_user_role or "user")


def require_admin(identity: Identity = Depends(current_identity)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Access denied. Admin privileges required.")
    return identity
