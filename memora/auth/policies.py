"""
Policies - the clean interface for route authorization.

Just use: `ctx: AuthContext = Depends(require("projects:create"))`

Design:
- `require()` returns a FastAPI dependency that resolves to AuthContext
- It resolves the user from the session cookie (401 if there is none)
- It takes group_id from the path and checks the capability there
- If denied, raises 403; handlers never see a user who may not act
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request

from memora.api.deps import get_permissions, get_session_service, get_session_token
from memora.auth.capabilities import Capability, PermissionConfig
from memora.auth.context import AuthContext
from memora.auth.membership import UserWithAccess
from memora.auth.roles import Role
from memora.auth.sessions import SessionService
from memora.integrations.sentry import set_user

# =============================================================================
# Session resolution
# =============================================================================


def get_current_user(
    token: str | None = Depends(get_session_token),
    sessions: SessionService = Depends(get_session_service),
) -> UserWithAccess:
    """
    The authenticated user, fully re-validated against the session table.

    The middleware only looked at the cookie; this is the real check.
    """
    user = sessions.get_current_user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    set_user(user.id)
    return user


# =============================================================================
# Policy - the core authorization type
# =============================================================================


class Policy:
    """
    A policy that can be checked.

    Policies are composable:
        require("projects:view")                      # Single capability
        require_any("projects:edit", "projects:archive")  # Any of these
        require_role(Role.MANAGER)                    # Minimum group role
        require_global("groups:create")               # Checked on global role
    """

    def __init__(
        self,
        capabilities: list[Capability | str] | None = None,
        require_all: bool = True,
        min_role: Role | None = None,
        global_scope: bool = False,
    ):
        self.capabilities = capabilities or []
        self.require_all_caps = require_all
        self.min_role = min_role
        self.global_scope = global_scope

    def check(self, ctx: AuthContext) -> tuple[bool, str | None]:
        """
        Check if context satisfies this policy.

        Returns: (allowed, error_message)
        """
        if not self.global_scope and (self.capabilities or self.min_role):
            if ctx.group_id is None:
                return False, "Group context required"
            if ctx.group_role is None:
                return False, "No access to this group"

        if self.min_role and not ctx.has_min_role(self.min_role):
            return False, f"Requires {self.min_role.value} role or higher"

        if self.capabilities:
            if self.require_all_caps:
                missing = [_name(c) for c in self.capabilities if not ctx.can(c)]
                if missing:
                    return False, f"Missing permissions: {missing}"
            elif not any(ctx.can(c) for c in self.capabilities):
                return False, f"Requires one of: {[_name(c) for c in self.capabilities]}"

        return True, None


def _name(capability: Capability | str) -> str:
    return capability.value if isinstance(capability, Capability) else capability


# =============================================================================
# Main Interface - the require() family
# =============================================================================


def require(*capabilities: Capability | str, min_role: Role | None = None) -> Callable:
    """
    Require capabilities in the group named by the `group_id` path parameter.

    Usage:
        @router.post("/groups/{group_id}/projects")
        def create_project(
            group_id: str,
            ctx: AuthContext = Depends(require(Capability.PROJECTS_CREATE)),
        ):
            ...
    """
    return _create_dependency(Policy(list(capabilities), require_all=True, min_role=min_role))


def require_any(*capabilities: Capability | str) -> Callable:
    """Require ANY of the listed capabilities."""
    return _create_dependency(Policy(list(capabilities), require_all=False))


def require_role(role: Role) -> Callable:
    """Require a minimum role in the current group."""
    return _create_dependency(Policy(min_role=role))


def require_global(*capabilities: Capability | str) -> Callable:
    """Require capabilities granted by the user's global role."""
    return _create_dependency(Policy(list(capabilities), global_scope=True))


def require_auth() -> Callable:
    """Just require a valid session, no specific capability."""
    return _create_dependency(Policy(global_scope=True))


# =============================================================================
# Internal: Create the FastAPI Dependency
# =============================================================================


def _create_dependency(policy: Policy) -> Callable:
    """Create a FastAPI dependency from a policy."""

    def dependency(
        request: Request,
        user: UserWithAccess = Depends(get_current_user),
        permissions: PermissionConfig = Depends(get_permissions),
        token: str | None = Depends(get_session_token),
    ) -> AuthContext:
        group_id = None if policy.global_scope else request.path_params.get("group_id")

        ctx = AuthContext(user=user, permissions=permissions, token=token, group_id=group_id)

        allowed, error = policy.check(ctx)
        if not allowed:
            raise HTTPException(status_code=403, detail=error)

        return ctx

    return dependency
