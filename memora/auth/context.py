"""
Auth context - the "who can do what" for each request.

This is the lightweight object passed to route handlers.
It contains everything needed to make authorization decisions.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException

from memora.auth.capabilities import Capability, PermissionConfig
from memora.auth.guards import can_do, has_global_capability, has_min_role
from memora.auth.membership import UserWithAccess, resolve_role
from memora.auth.roles import Role


@dataclass
class AuthContext:
    """
    Authorization context for a request.

    Usage in routes:
        def my_route(ctx: AuthContext = Depends(require("projects:view"))):
            print(f"User {ctx.user.id} in group {ctx.group_id}")
            if ctx.can("projects:edit"):
                # do something
    """

    user: UserWithAccess
    permissions: PermissionConfig
    token: str | None = None

    # What group (if the route has one)
    group_id: str | None = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def group_role(self) -> str | None:
        """Role in the current group, None outside a group or without membership."""
        if self.group_id is None:
            return None
        return resolve_role(self.user, self.group_id)

    def can(self, capability: Capability | str) -> bool:
        """
        Check a capability in the current group.

        Outside a group this falls back to the user's global role.
        """
        if self.group_id is None:
            return has_global_capability(self.user, capability, self.permissions)
        return can_do(self.user, self.group_id, capability, self.permissions)

    def has_min_role(self, role: Role | str) -> bool:
        if self.group_id is None:
            return False
        return has_min_role(self.user, self.group_id, role, self.permissions)

    def require(self, capability: Capability | str) -> None:
        """
        Raise 403 if the user lacks the capability.

        Usage:
            ctx.require("projects:edit")  # raises if not allowed
        """
        if not self.can(capability):
            value = capability.value if isinstance(capability, Capability) else capability
            raise HTTPException(status_code=403, detail=f"Permission denied: {value}")
