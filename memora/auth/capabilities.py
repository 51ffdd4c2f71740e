"""
Capabilities and the role -> capability map.

This defines WHAT each role can do, not HOW we check it.
The actual checking happens in guards.py.

The map is an explicit value (PermissionConfig) handed to the guards. The
packaged defaults live in permissions.yaml and are loaded by
memora.config_loader.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from memora.auth.roles import ROLE_HIERARCHY, Role, parse_role


class Capability(str, Enum):
    """Fine-grained permissions, checked per group."""

    # Users
    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_EDIT = "users:edit"
    USERS_DELETE = "users:delete"

    # Groups
    GROUPS_VIEW = "groups:view"
    GROUPS_CREATE = "groups:create"
    GROUPS_EDIT = "groups:edit"
    GROUPS_DELETE = "groups:delete"

    # Projects
    PROJECTS_VIEW = "projects:view"
    PROJECTS_CREATE = "projects:create"
    PROJECTS_EDIT = "projects:edit"
    PROJECTS_DELETE = "projects:delete"
    PROJECTS_ARCHIVE = "projects:archive"
    PROJECTS_MANAGE_MEMBERS = "projects:manage_members"
    PROJECTS_VIEW_STATS = "projects:view_stats"
    PROJECTS_EXPORT = "projects:export"

    # Tasks
    TASKS_VIEW = "tasks:view"
    TASKS_CREATE = "tasks:create"
    TASKS_EDIT = "tasks:edit"
    TASKS_DELETE = "tasks:delete"
    TASKS_ASSIGN = "tasks:assign"
    TASKS_MANAGE_SUBTASKS = "tasks:manage_subtasks"
    TASKS_CHANGE_STATUS = "tasks:change_status"
    TASKS_CHANGE_PRIORITY = "tasks:change_priority"
    TASKS_VIEW_ALL = "tasks:view_all"
    TASKS_EXPORT = "tasks:export"

    # Meetings
    MEETINGS_VIEW = "meetings:view"
    MEETINGS_CREATE = "meetings:create"
    MEETINGS_EDIT = "meetings:edit"
    MEETINGS_DELETE = "meetings:delete"
    MEETINGS_MANAGE_ATTENDEES = "meetings:manage_attendees"
    MEETINGS_VIEW_NOTES = "meetings:view_notes"
    MEETINGS_EDIT_NOTES = "meetings:edit_notes"
    MEETINGS_EXPORT = "meetings:export"

    # Absences
    ABSENCES_VIEW = "absences:view"
    ABSENCES_CREATE = "absences:create"
    ABSENCES_APPROVE = "absences:approve"

    # Recruitment
    RECRUITMENT_VIEW = "recruitment:view"
    RECRUITMENT_CREATE = "recruitment:create"
    RECRUITMENT_EDIT = "recruitment:edit"

    # Training
    TRAINING_VIEW = "training:view"
    TRAINING_CREATE = "training:create"
    TRAINING_EDIT = "training:edit"

    # Stats / settings / admin
    STATS_VIEW = "stats:view"
    SETTINGS_VIEW = "settings:view"
    SETTINGS_EDIT = "settings:edit"
    ADMIN_PANEL = "admin:panel"


def parse_capability(value: Capability | str) -> Capability | None:
    """Return the Capability for a token, or None if unknown."""
    if isinstance(value, Capability):
        return value
    try:
        return Capability(value)
    except ValueError:
        return None


def _roles_in_order() -> list[Role]:
    return sorted(ROLE_HIERARCHY, key=ROLE_HIERARCHY.get)


# =============================================================================
# Capability Map
# =============================================================================


@dataclass(frozen=True)
class PermissionConfig:
    """
    Role -> capability sets.

    Every role holds all capabilities of every lower role. Building a config
    that breaks this raises ValueError; `from_grants` builds one that holds
    it by construction.
    """

    role_capabilities: Mapping[Role, frozenset[Capability]] = field(default_factory=dict)

    def __post_init__(self):
        roles = _roles_in_order()
        for lower, higher in zip(roles, roles[1:]):
            missing = self.capabilities_for(lower) - self.capabilities_for(higher)
            if missing:
                names = sorted(c.value for c in missing)
                raise ValueError(
                    f"Role {higher.value} lacks capabilities of {lower.value}: {names}"
                )

    @classmethod
    def from_grants(cls, grants: Mapping[Role, Iterable[Capability]]) -> PermissionConfig:
        """
        Build a config from per-role additions.

        Each role ends up with its own grants plus everything below it.
        """
        accumulated: set[Capability] = set()
        role_capabilities: dict[Role, frozenset[Capability]] = {}
        for role in _roles_in_order():
            accumulated.update(grants.get(role, ()))
            role_capabilities[role] = frozenset(accumulated)
        return cls(role_capabilities=role_capabilities)

    def capabilities_for(self, role: Role | str | None) -> frozenset[Capability]:
        """Capability set for a role; unknown roles get nothing."""
        parsed = parse_role(role)
        if parsed is None:
            return frozenset()
        return self.role_capabilities.get(parsed, frozenset())

    def has_capability(self, role: Role | str | None, capability: Capability | str) -> bool:
        """Check a role against a capability; unknown values fail closed."""
        parsed = parse_capability(capability)
        if parsed is None:
            return False
        return parsed in self.capabilities_for(role)
