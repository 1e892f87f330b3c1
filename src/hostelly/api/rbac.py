"""Role checks for console operators.

Provides:
- Role hierarchy: Student < Staff < Admin (profiles.role)
- require_role(): FastAPI dependency enforcing a minimum role

Reads need Staff, mutations need Admin.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException

from hostelly.api.auth import CurrentUser, get_current_user
from hostelly.infra.gateway import Gateway

# Role hierarchy: lower index = less privilege
ROLE_HIERARCHY = ["Student", "Staff", "Admin"]


@dataclass
class RoleContext:
    """Context returned by require_role."""

    user: CurrentUser
    role: str

    def gateway(self) -> Gateway:
        """Gateway acting as this operator (their RLS policies apply)."""
        return Gateway(access_token=self.user.access_token)


def _role_level(role: str) -> int:
    """Get numeric level for role (higher = more privilege)."""
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return -1


def require_role(min_role: str) -> Callable[..., RoleContext]:
    """Create a dependency that requires a minimum operator role.

    Usage:
        @router.get("/something")
        def endpoint(ctx: RoleContext = Depends(require_role("Staff"))):
            ...
    """
    min_level = _role_level(min_role)
    if min_level < 0:
        raise ValueError(f"Invalid role: {min_role}")

    def dependency(user: CurrentUser = Depends(get_current_user)) -> RoleContext:
        if _role_level(user.role) < min_level:
            raise HTTPException(status_code=403, detail="Insufficient role")

        return RoleContext(user=user, role=user.role)

    return dependency
