"""
Permission guards.

Pure, synchronous checks used before every mutating operation:

    if not can_do(user, group_id, Capability.PROJECTS_CREATE, config):
        raise HTTPException(status_code=403, ...)

A user without a membership in the group fails every check, whatever the
capability or threshold.
"""

from __future__ import annotations

from memora.auth.capabilities import Capability, PermissionConfig
from memora.auth.membership import UserWithAccess, resolve_role
from memora.auth.roles import Role, role_rank


def _config(config: PermissionConfig | None) -> PermissionConfig:
    if config is not None:
        return config
    from memora.config_loader import default_permission_config

    return default_permission_config()


def can_do(
    user: UserWithAccess,
    group_id: str,
    capability: Capability | str,
    config: PermissionConfig | None = None,
) -> bool:
    """Can the user perform `capability` in `group_id`?"""
    role = resolve_role(user, group_id)
    if role is None:
        return False
    return _config(config).has_capability(role, capability)


def has_min_role(
    user: UserWithAccess,
    group_id: str,
    minimum: Role | str,
    config: PermissionConfig | None = None,
) -> bool:
    """Does the user hold at least `minimum` in `group_id`?"""
    role = resolve_role(user, group_id)
    if role is None:
        return False
    threshold = role_rank(minimum)
    # An unknown threshold must not turn into "anyone with a membership".
    if threshold == 0:
        return False
    return role_rank(role) >= threshold


def is_owner_of_any(user: UserWithAccess) -> bool:
    """Is the user Owner of at least one group?"""
    return any(m.role == Role.OWNER.value for m in user.group_memberships)


def is_admin_or_above(user: UserWithAccess, group_id: str) -> bool:
    return has_min_role(user, group_id, Role.ADMIN)


def has_global_capability(
    user: UserWithAccess,
    capability: Capability | str,
    config: PermissionConfig | None = None,
) -> bool:
    """
    Check a capability against the user's global role.

    Used where no group exists yet: creating a group, registering a user,
    reading the platform-wide activity log.
    """
    return _config(config).has_capability(user.global_role, capability)
