"""
Group membership records and the role resolver.

Guards never see ORM objects. The store turns a user and their memberships
into a UserWithAccess record; everything here reads that record only.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from memora.auth.capabilities import PermissionConfig
from memora.auth.roles import Role, role_rank


@dataclass(frozen=True)
class GroupMembership:
    """A user's role inside one group."""

    group_id: str
    group_name: str
    role: str


@dataclass(frozen=True)
class UserWithAccess:
    """A user plus every group they belong to."""

    id: str
    email: str
    name: str = ""
    global_role: str = Role.COLLABORATOR.value
    group_memberships: tuple[GroupMembership, ...] = field(default_factory=tuple)


def resolve_role(user: UserWithAccess, group_id: str) -> str | None:
    """
    The user's role in `group_id`, or None if they are not a member.

    None means "no access to this group"; it is not the same as Guest.
    """
    for membership in user.group_memberships:
        if membership.group_id == group_id:
            return membership.role
    return None


def is_member_of_group(user: UserWithAccess, group_id: str) -> bool:
    return resolve_role(user, group_id) is not None


def groups_with_role(user: UserWithAccess, minimum: Role | str) -> list[GroupMembership]:
    """Memberships whose role meets `minimum`."""
    threshold = role_rank(minimum)
    if threshold == 0:
        return []
    return [m for m in user.group_memberships if role_rank(m.role) >= threshold]


def group_capabilities(
    user: UserWithAccess,
    group_id: str,
    config: PermissionConfig,
) -> frozenset:
    """Everything the user may do in a group (empty if not a member)."""
    role = resolve_role(user, group_id)
    if role is None:
        return frozenset()
    return config.capabilities_for(role)
