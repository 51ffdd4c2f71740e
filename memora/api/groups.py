"""
Group and membership endpoints.

Every group-scoped route is gated by a policy on the `group_id` path
parameter, so handlers only run for members holding the capability.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from memora.api.deps import get_group_service, get_store
from memora.auth.capabilities import Capability
from memora.auth.context import AuthContext
from memora.auth.policies import require, require_auth, require_global
from memora.auth.roles import Role, is_role_at_least, role_rank
from memora.services.groups import GroupService, MembershipExistsError
from memora.storage.models import Group, GroupMember, GroupStatus
from memora.storage.sql import SqlAuthStore

router = APIRouter(prefix="/api/groups", tags=["groups"])


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateGroupRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str | None = None
    logo_url: str | None = None


class UpdateGroupRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = None
    logo_url: str | None = None
    status: GroupStatus | None = None


class GroupResponse(BaseModel):
    id: str
    name: str
    description: str | None
    logo_url: str | None
    status: str
    created_at: datetime | None

    @classmethod
    def from_model(cls, group: Group) -> GroupResponse:
        return cls(
            id=group.id,
            name=group.name,
            description=group.description,
            logo_url=group.logo_url,
            status=group.status,
            created_at=group.created_at,
        )


class GroupListResponse(BaseModel):
    items: list[GroupResponse]
    total: int
    page: int
    page_size: int


class AddMemberRequest(BaseModel):
    user_id: str
    role: Role = Role.COLLABORATOR


class UpdateMemberRequest(BaseModel):
    role: Role


class MemberResponse(BaseModel):
    user_id: str
    group_id: str
    role: str
    joined_at: datetime | None

    @classmethod
    def from_model(cls, member: GroupMember) -> MemberResponse:
        return cls(
            user_id=member.user_id,
            group_id=member.group_id,
            role=member.role,
            joined_at=member.joined_at,
        )


def _check_assignable(ctx: AuthContext, role: Role) -> None:
    """Nobody hands out a role above their own."""
    if not is_role_at_least(ctx.group_role, role):
        raise HTTPException(status_code=403, detail=f"Cannot assign role {role.value}")


def _check_manageable(ctx: AuthContext, member: GroupMember) -> None:
    """Nobody changes or removes a member who outranks them."""
    if role_rank(member.role) > role_rank(ctx.group_role):
        raise HTTPException(status_code=403, detail=f"Cannot manage a member with role {member.role}")


def _check_keeps_owner(groups: GroupService, member: GroupMember, new_role: Role | None = None) -> None:
    """A group always keeps at least one Owner."""
    if member.role != Role.OWNER.value or new_role == Role.OWNER:
        return
    if groups.member_count(member.group_id, Role.OWNER) <= 1:
        raise HTTPException(status_code=409, detail="A group must keep at least one Owner")


# =============================================================================
# Groups
# =============================================================================


@router.get("", response_model=GroupListResponse)
def list_groups(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(require_auth()),
    groups: GroupService = Depends(get_group_service),
):
    """Groups the caller belongs to."""
    items, total = groups.list_for_user(ctx.user_id, page, page_size)
    return GroupListResponse(
        items=[GroupResponse.from_model(g) for g in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=GroupResponse, status_code=201)
def create_group(
    data: CreateGroupRequest,
    ctx: AuthContext = Depends(require_global(Capability.GROUPS_CREATE)),
    groups: GroupService = Depends(get_group_service),
):
    group = groups.create(data.name, ctx.user_id, data.description, data.logo_url)
    return GroupResponse.from_model(group)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(
    group_id: str,
    ctx: AuthContext = Depends(require(Capability.GROUPS_VIEW)),
    groups: GroupService = Depends(get_group_service),
):
    group = groups.get_by_id(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return GroupResponse.from_model(group)


@router.patch("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: str,
    data: UpdateGroupRequest,
    ctx: AuthContext = Depends(require(Capability.GROUPS_EDIT)),
    groups: GroupService = Depends(get_group_service),
):
    fields = data.model_dump(exclude_none=True)
    if "status" in fields:
        fields["status"] = fields["status"].value
    group = groups.update(group_id, performed_by=ctx.user_id, **fields)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return GroupResponse.from_model(group)


@router.delete("/{group_id}", status_code=204)
def delete_group(
    group_id: str,
    ctx: AuthContext = Depends(require(Capability.GROUPS_DELETE)),
    groups: GroupService = Depends(get_group_service),
):
    if not groups.delete(group_id, performed_by=ctx.user_id):
        raise HTTPException(status_code=404, detail="Group not found")


# =============================================================================
# Members
# =============================================================================


@router.get("/{group_id}/members", response_model=list[MemberResponse])
def list_members(
    group_id: str,
    ctx: AuthContext = Depends(require(Capability.GROUPS_VIEW)),
    groups: GroupService = Depends(get_group_service),
):
    group = groups.get_by_id(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return [MemberResponse.from_model(m) for m in group.members]


@router.post("/{group_id}/members", response_model=MemberResponse, status_code=201)
def add_member(
    group_id: str,
    data: AddMemberRequest,
    ctx: AuthContext = Depends(require(Capability.USERS_EDIT)),
    groups: GroupService = Depends(get_group_service),
    store: SqlAuthStore = Depends(get_store),
):
    """Add an existing user to the group. 409 if they already belong to it."""
    _check_assignable(ctx, data.role)
    if store.get_user_by_id(data.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        member = groups.add_member(group_id, data.user_id, data.role, performed_by=ctx.user_id)
    except MembershipExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return MemberResponse.from_model(member)


@router.patch("/{group_id}/members/{user_id}", response_model=MemberResponse)
def update_member(
    group_id: str,
    user_id: str,
    data: UpdateMemberRequest,
    ctx: AuthContext = Depends(require(Capability.USERS_EDIT)),
    groups: GroupService = Depends(get_group_service),
):
    member = groups.get_member(group_id, user_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")
    _check_assignable(ctx, data.role)
    _check_manageable(ctx, member)
    _check_keeps_owner(groups, member, data.role)

    member = groups.update_member_role(group_id, user_id, data.role, performed_by=ctx.user_id)
    return MemberResponse.from_model(member)


@router.delete("/{group_id}/members/{user_id}", status_code=204)
def remove_member(
    group_id: str,
    user_id: str,
    ctx: AuthContext = Depends(require(Capability.USERS_EDIT)),
    groups: GroupService = Depends(get_group_service),
):
    member = groups.get_member(group_id, user_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")
    _check_manageable(ctx, member)
    _check_keeps_owner(groups, member)

    groups.remove_member(group_id, user_id, performed_by=ctx.user_id)
