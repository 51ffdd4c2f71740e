"""
Authorization system: roles, capabilities, guards.

Design principles:
1. Five ordered roles; a higher role holds every capability of a lower one
2. Roles are scoped to a group; the global role only gates global actions
3. Guards are pure functions over a UserWithAccess snapshot
4. Route handlers declare what they need with require(...) (memora.auth.policies)

Only the pure layer is re-exported here. Sessions, routes and the middleware
depend on storage and FastAPI and are imported from their own modules.
"""

from memora.auth.capabilities import Capability, PermissionConfig
from memora.auth.guards import (
    can_do,
    has_global_capability,
    has_min_role,
    is_admin_or_above,
    is_owner_of_any,
)
from memora.auth.membership import GroupMembership, UserWithAccess
from memora.auth.roles import ROLE_HIERARCHY, Role, is_role_at_least, role_rank

__all__ = [
    # Types
    "Role",
    "Capability",
    "PermissionConfig",
    "GroupMembership",
    "UserWithAccess",
    "ROLE_HIERARCHY",
    # Guards
    "can_do",
    "has_min_role",
    "is_owner_of_any",
    "is_admin_or_above",
    "has_global_capability",
    "is_role_at_least",
    "role_rank",
]
