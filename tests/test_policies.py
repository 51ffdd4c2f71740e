"""Tests for Policy checks and the AuthContext handed to route handlers."""

import pytest
from fastapi import Depends, HTTPException

from memora.auth.capabilities import Capability
from memora.auth.context import AuthContext
from memora.auth.membership import GroupMembership, UserWithAccess
from memora.auth.policies import Policy, require_any, require_role
from memora.auth.roles import Role


@pytest.fixture
def user():
    """Collaborator of g1, global Admin."""
    return UserWithAccess(
        id="user_1",
        email="u@memora.io",
        global_role=Role.ADMIN.value,
        group_memberships=(GroupMembership("g1", "Atelier", Role.COLLABORATOR.value),),
    )


def _ctx(user, permissions, group_id=None):
    return AuthContext(user=user, permissions=permissions, group_id=group_id)


class TestPolicy:
    def test_group_capability(self, user, permissions):
        policy = Policy([Capability.TASKS_CREATE])
        assert policy.check(_ctx(user, permissions, "g1")) == (True, None)

    def test_missing_capability(self, user, permissions):
        allowed, error = Policy([Capability.PROJECTS_CREATE]).check(_ctx(user, permissions, "g1"))
        assert not allowed
        assert "projects:create" in error

    def test_any_of(self, user, permissions):
        policy = Policy([Capability.PROJECTS_CREATE, Capability.TASKS_EDIT], require_all=False)
        assert policy.check(_ctx(user, permissions, "g1"))[0]

    def test_min_role(self, user, permissions):
        assert Policy(min_role=Role.COLLABORATOR).check(_ctx(user, permissions, "g1"))[0]
        allowed, error = Policy(min_role=Role.MANAGER).check(_ctx(user, permissions, "g1"))
        assert not allowed
        assert error == "Requires Manager role or higher"

    def test_group_required(self, user, permissions):
        assert Policy([Capability.TASKS_VIEW]).check(_ctx(user, permissions)) == (
            False,
            "Group context required",
        )
        assert Policy([Capability.TASKS_VIEW]).check(_ctx(user, permissions, "g9")) == (
            False,
            "No access to this group",
        )

    def test_global_scope_uses_global_role(self, user, permissions):
        policy = Policy([Capability.ADMIN_PANEL], global_scope=True)
        assert policy.check(_ctx(user, permissions)) == (True, None)


class TestAuthContext:
    def test_group_role(self, user, permissions):
        assert _ctx(user, permissions, "g1").group_role == "Collaborator"
        assert _ctx(user, permissions, "g9").group_role is None
        assert _ctx(user, permissions).group_role is None

    def test_can_falls_back_to_global_role(self, user, permissions):
        assert _ctx(user, permissions).can(Capability.USERS_CREATE)
        assert not _ctx(user, permissions, "g1").can(Capability.USERS_CREATE)

    def test_require_raises_403(self, user, permissions):
        ctx = _ctx(user, permissions, "g1")
        ctx.require(Capability.TASKS_EDIT)

        with pytest.raises(HTTPException) as exc_info:
            ctx.require("projects:delete")
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Permission denied: projects:delete"

    def test_has_min_role_outside_group(self, user, permissions):
        assert not _ctx(user, permissions).has_min_role(Role.GUEST)


# =============================================================================
# Dependencies mounted on a route
# =============================================================================


class TestDependencies:
    @pytest.fixture
    def group_id(self, app, create_account, app_groups, login):
        """Mount two extra gated routes; log in a Collaborator of the group."""

        @app.get("/api/groups/{group_id}/managers-only")
        async def managers_only(group_id: str, ctx: AuthContext = Depends(require_role(Role.MANAGER))):
            return {"role": ctx.group_role}

        @app.get("/api/groups/{group_id}/edit-or-tasks")
        async def edit_or_tasks(
            group_id: str,
            ctx: AuthContext = Depends(require_any(Capability.PROJECTS_EDIT, Capability.TASKS_EDIT)),
        ):
            return {"ok": True}

        member = create_account("member@memora.io")
        group = app_groups.create("Atelier", owner_id=member.id)
        app_groups.update_member_role(group.id, member.id, Role.COLLABORATOR)
        login("member@memora.io")
        return group.id

    def test_require_role_denies_lower_role(self, client, group_id):
        response = client.get(f"/api/groups/{group_id}/managers-only")
        assert response.status_code == 403

    def test_require_any_allows_one_match(self, client, group_id):
        response = client.get(f"/api/groups/{group_id}/edit-or-tasks")
        assert response.status_code == 200
