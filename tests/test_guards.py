"""
Tests for the permission guards.

A user is only ever judged by their role in the group at hand.
"""

import pytest

from memora.auth.capabilities import Capability
from memora.auth.guards import (
    can_do,
    has_global_capability,
    has_min_role,
    is_admin_or_above,
    is_owner_of_any,
)
from memora.auth.membership import (
    GroupMembership,
    UserWithAccess,
    group_capabilities,
    groups_with_role,
    is_member_of_group,
    resolve_role,
)
from memora.auth.roles import Role


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def alice():
    """Manager of g1, Guest of g2, global Collaborator."""
    return UserWithAccess(
        id="user_alice",
        email="alice@memora.io",
        name="Alice Martin",
        global_role=Role.COLLABORATOR.value,
        group_memberships=(
            GroupMembership(group_id="g1", group_name="Atelier", role=Role.MANAGER.value),
            GroupMembership(group_id="g2", group_name="Bureau", role=Role.GUEST.value),
        ),
    )


@pytest.fixture
def loner():
    """A user with no memberships at all."""
    return UserWithAccess(id="user_bob", email="bob@memora.io", global_role=Role.OWNER.value)


# =============================================================================
# Membership Tests
# =============================================================================


class TestMembership:
    def test_resolve_role(self, alice):
        assert resolve_role(alice, "g1") == "Manager"
        assert resolve_role(alice, "g2") == "Guest"
        assert resolve_role(alice, "g3") is None

    def test_is_member_of_group(self, alice):
        assert is_member_of_group(alice, "g1")
        assert not is_member_of_group(alice, "g3")

    def test_groups_with_role(self, alice):
        assert [m.group_id for m in groups_with_role(alice, Role.COLLABORATOR)] == ["g1"]
        assert len(groups_with_role(alice, Role.GUEST)) == 2
        assert groups_with_role(alice, "Superuser") == []

    def test_group_capabilities(self, alice, permissions):
        assert Capability.PROJECTS_CREATE in group_capabilities(alice, "g1", permissions)
        assert Capability.PROJECTS_CREATE not in group_capabilities(alice, "g2", permissions)
        assert group_capabilities(alice, "g3", permissions) == frozenset()


# =============================================================================
# Guard Tests
# =============================================================================


class TestCanDo:
    def test_role_is_scoped_to_the_group(self, alice, permissions):
        assert can_do(alice, "g1", Capability.PROJECTS_CREATE, permissions)
        assert not can_do(alice, "g2", Capability.PROJECTS_CREATE, permissions)

    def test_capability_above_role_is_denied(self, alice, permissions):
        assert not can_do(alice, "g1", Capability.GROUPS_DELETE, permissions)

    def test_non_member_is_denied_everything(self, loner, permissions):
        for capability in Capability:
            assert not can_do(loner, "g1", capability, permissions)

    def test_unknown_capability_is_denied(self, alice, permissions):
        assert not can_do(alice, "g1", "projects:teleport", permissions)

    def test_defaults_to_packaged_map(self, alice):
        assert can_do(alice, "g1", "projects:create")

    def test_unknown_membership_role_grants_nothing(self, permissions):
        user = UserWithAccess(
            id="u",
            email="u@memora.io",
            group_memberships=(GroupMembership("g1", "Atelier", "Superuser"),),
        )
        assert not can_do(user, "g1", Capability.GROUPS_VIEW, permissions)


class TestHasMinRole:
    def test_thresholds(self, alice):
        assert has_min_role(alice, "g1", Role.MANAGER)
        assert has_min_role(alice, "g1", Role.GUEST)
        assert not has_min_role(alice, "g1", Role.ADMIN)
        assert not has_min_role(alice, "g2", Role.COLLABORATOR)

    def test_non_member_fails_every_threshold(self, loner):
        for role in Role:
            assert not has_min_role(loner, "g1", role)

    def test_unknown_threshold_fails(self, alice):
        assert not has_min_role(alice, "g1", "Superuser")

    def test_is_admin_or_above(self, alice):
        assert not is_admin_or_above(alice, "g1")
        owner = UserWithAccess(
            id="o",
            email="o@memora.io",
            group_memberships=(GroupMembership("g1", "Atelier", Role.OWNER.value),),
        )
        assert is_admin_or_above(owner, "g1")
        assert is_owner_of_any(owner)
        assert not is_owner_of_any(alice)


class TestGlobalCapability:
    def test_global_role_is_used(self, alice, loner, permissions):
        assert not has_global_capability(alice, Capability.GROUPS_CREATE, permissions)
        assert has_global_capability(loner, Capability.GROUPS_CREATE, permissions)

    def test_global_role_does_not_leak_into_groups(self, loner, permissions):
        # Global Owner, but no membership in g1
        assert not can_do(loner, "g1", Capability.GROUPS_VIEW, permissions)


ORDERED_ROLES = [Role.GUEST, Role.COLLABORATOR, Role.MANAGER, Role.ADMIN, Role.OWNER]


@pytest.mark.parametrize(
    "lower,higher",
    [(lo, hi) for i, lo in enumerate(ORDERED_ROLES) for hi in ORDERED_ROLES[i + 1:]],
)
def test_thresholds_follow_rank(lower, higher):
    def member(role):
        return UserWithAccess(
            id="u",
            email="u@memora.io",
            group_memberships=(GroupMembership("g", "G", role.value),),
        )

    assert has_min_role(member(higher), "g", lower)
    assert not has_min_role(member(lower), "g", higher)
