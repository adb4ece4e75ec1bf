"""
Authentication boundary.

Authentication itself happens upstream (gateway or auth middleware), which
places the caller on `request.state.user` either as an `AuthenticatedUser`
or as a mapping with `id`, `role`, `name` and `linked_property_id`.
"""

import logging
from collections.abc import Mapping

from fastapi import Depends, HTTPException, Request, status

from rentpay.domains.payments.application.dto import AuthenticatedUser
from rentpay.domains.payments.domain.value_objects import UserRole

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request) -> AuthenticatedUser:
    """Return the authenticated caller or fail with 401."""
    user = getattr(request.state, "user", None)
    if isinstance(user, AuthenticatedUser):
        return user
    if isinstance(user, Mapping):
        try:
            return AuthenticatedUser(
                id=str(user["id"]),
                role=UserRole(user["role"]),
                name=user.get("name") or "",
                linked_property_id=user.get("linked_property_id"),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed user on request state: {e}")
            raise _unauthorized("Invalid authentication context") from e
    raise _unauthorized("Not authenticated")


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting a route to the given roles.

    Args:
        roles: Roles allowed to call the route
    """

    async def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:  # noqa: B008
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in roles)}",
            )
        return user

    return dependency
