"""
SQLAlchemy implementation of the auth store.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as OrmSession
from sqlalchemy.orm import selectinload

from memora.auth.membership import GroupMembership, UserWithAccess
from memora.auth.roles import Role
from memora.storage.base import AuthStore
from memora.storage.models import GroupMember, Session, User

# Columns update_user is allowed to touch
USER_FIELDS = {
    "first_name",
    "last_name",
    "password_hash",
    "role",
    "status",
    "a2f_secret",
    "a2f_enabled",
}


class SqlAuthStore(AuthStore):
    """AuthStore backed by an ORM session."""

    def __init__(self, db: OrmSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def get_user_by_id(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        return self.db.scalars(stmt).first()

    def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str = "",
        last_name: str = "",
        role: str | None = None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role or Role.COLLABORATOR.value,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValueError("Email already registered")
        return user

    def update_user(self, user_id: str, **fields) -> User | None:
        unknown = set(fields) - USER_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")

        user = self.db.get(User, user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        self.db.commit()
        return user

    def get_user_with_access(self, user_id: str) -> UserWithAccess | None:
        stmt = (
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.memberships).selectinload(GroupMember.group))
            .execution_options(populate_existing=True)
        )
        user = self.db.scalars(stmt).first()
        if user is None:
            return None
        return to_user_with_access(user)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def create_session(self, user_id: str, token: str, expires_at: datetime) -> Session:
        record = Session(user_id=user_id, token=token, expires_at=expires_at)
        self.db.add(record)
        self.db.commit()
        return record

    def get_session_by_token(self, token: str) -> Session | None:
        return self.db.scalars(select(Session).where(Session.token == token)).first()

    def delete_session(self, session_id: str) -> bool:
        result = self.db.execute(delete(Session).where(Session.id == session_id))
        self.db.commit()
        return result.rowcount > 0

    def delete_sessions_by_token(self, token: str) -> int:
        result = self.db.execute(delete(Session).where(Session.token == token))
        self.db.commit()
        return result.rowcount


def to_user_with_access(user: User) -> UserWithAccess:
    """Convert an ORM user (memberships loaded) to the guard record."""
    return UserWithAccess(
        id=user.id,
        email=user.email,
        name=user.display_name,
        global_role=user.role,
        group_memberships=tuple(
            GroupMembership(group_id=m.group_id, group_name=m.group.name, role=m.role)
            for m in user.memberships
        ),
    )
