"""
Role hierarchy.

Roles are totally ordered. Threshold checks compare ranks; anything that is
not a known role ranks below Guest, so it can never satisfy a threshold.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """A rank, used both globally and inside a group."""

    GUEST = "Guest"
    COLLABORATOR = "Collaborator"
    MANAGER = "Manager"
    ADMIN = "Admin"
    OWNER = "Owner"


ROLE_HIERARCHY: dict[Role, int] = {
    Role.GUEST: 1,
    Role.COLLABORATOR: 2,
    Role.MANAGER: 3,
    Role.ADMIN: 4,
    Role.OWNER: 5,
}

ROLE_LABELS: dict[Role, str] = {
    Role.OWNER: "Propriétaire",
    Role.ADMIN: "Administrateur",
    Role.MANAGER: "Responsable",
    Role.COLLABORATOR: "Collaborateur",
    Role.GUEST: "Invité",
}

UNKNOWN_RANK = 0


def parse_role(value: Role | str | None) -> Role | None:
    """Return the Role for a token, or None if it is not a known role."""
    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def role_rank(value: Role | str | None) -> int:
    """Ordinal rank of a role; unknown roles rank lowest."""
    role = parse_role(value)
    if role is None:
        return UNKNOWN_RANK
    return ROLE_HIERARCHY[role]


def is_role_at_least(role: Role | str | None, minimum: Role | str) -> bool:
    """Check whether `role` meets or exceeds `minimum`."""
    if parse_role(role) is None or parse_role(minimum) is None:
        return False
    return role_rank(role) >= role_rank(minimum)


def roles_below(role: Role | str) -> list[Role]:
    """All roles at or below `role`, lowest first."""
    level = role_rank(role)
    return [r for r in sorted(ROLE_HIERARCHY, key=ROLE_HIERARCHY.get) if ROLE_HIERARCHY[r] <= level]
