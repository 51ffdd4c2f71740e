"""
Group CRUD and membership management.

Services do not check permissions; routes call the guards first.
"""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from memora.auth.roles import Role
from memora.services.activity import ActivityLogService
from memora.storage.models import Group, GroupMember, LogAction


class MembershipExistsError(ValueError):
    """The user already belongs to the group."""


class GroupService:
    """Groups and their members."""

    def __init__(self, db: Session, activity: ActivityLogService | None = None):
        self.db = db
        self.activity = activity or ActivityLogService(db)

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def get_by_id(self, group_id: str) -> Group | None:
        return self.db.get(Group, group_id)

    def list_for_user(self, user_id: str, page: int = 1, page_size: int = 20) -> tuple[list[Group], int]:
        """Groups the user belongs to, newest first, plus the total count."""
        base = select(Group).join(GroupMember).where(GroupMember.user_id == user_id)
        total = self.db.scalar(select(func.count()).select_from(base.subquery())) or 0
        stmt = base.order_by(Group.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        return list(self.db.scalars(stmt)), total

    def create(
        self,
        name: str,
        owner_id: str,
        description: str | None = None,
        logo_url: str | None = None,
    ) -> Group:
        """Create a group; its creator becomes Owner."""
        group = Group(name=name, description=description, logo_url=logo_url)
        self.db.add(group)
        self.db.flush()
        self.db.add(GroupMember(group_id=group.id, user_id=owner_id, role=Role.OWNER.value))
        self.db.commit()

        self.activity.log(LogAction.CREATE, "group", group.id, owner_id)
        return group

    def update(self, group_id: str, performed_by: str | None = None, **fields) -> Group | None:
        group = self.db.get(Group, group_id)
        if group is None:
            return None
        for name in ("name", "description", "logo_url", "status"):
            if name in fields and fields[name] is not None:
                setattr(group, name, fields[name])
        self.db.commit()

        self.activity.log(LogAction.UPDATE, "group", group_id, performed_by)
        return group

    def delete(self, group_id: str, performed_by: str | None = None) -> bool:
        group = self.db.get(Group, group_id)
        if group is None:
            return False
        self.db.delete(group)
        self.db.commit()

        self.activity.log(LogAction.DELETE, "group", group_id, performed_by)
        return True

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def get_member(self, group_id: str, user_id: str) -> GroupMember | None:
        stmt = select(GroupMember).where(
            GroupMember.group_id == group_id, GroupMember.user_id == user_id
        )
        return self.db.scalars(stmt).first()

    def add_member(
        self,
        group_id: str,
        user_id: str,
        role: Role,
        performed_by: str | None = None,
    ) -> GroupMember:
        """Add a member. Raises MembershipExistsError on a duplicate."""
        member = GroupMember(group_id=group_id, user_id=user_id, role=role.value)
        self.db.add(member)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise MembershipExistsError(f"User {user_id} is already a member of {group_id}")

        self.activity.log(LogAction.CREATE, "group_member", group_id, performed_by, f"user:{user_id}")
        return member

    def update_member_role(
        self,
        group_id: str,
        user_id: str,
        role: Role,
        performed_by: str | None = None,
    ) -> GroupMember | None:
        member = self.get_member(group_id, user_id)
        if member is None:
            return None
        member.role = role.value
        self.db.commit()

        self.activity.log(
            LogAction.UPDATE, "group_member", group_id, performed_by, f"user:{user_id},role:{role.value}"
        )
        return member

    def remove_member(self, group_id: str, user_id: str, performed_by: str | None = None) -> bool:
        result = self.db.execute(
            delete(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        )
        self.db.commit()
        if not result.rowcount:
            return False

        self.activity.log(LogAction.DELETE, "group_member", group_id, performed_by, f"user:{user_id}")
        return True

    def member_count(self, group_id: str, role: Role | None = None) -> int:
        """Members of the group, optionally only those holding `role`."""
        stmt = select(func.count()).select_from(GroupMember).where(GroupMember.group_id == group_id)
        if role is not None:
            stmt = stmt.where(GroupMember.role == role.value)
        return self.db.scalar(stmt) or 0
