"""
Authentication service: credentials, registration, password changes, logout.
"""

from __future__ import annotations

import logging

from memora.auth.password import hash_password, verify_password
from memora.auth.roles import Role
from memora.auth.sessions import SessionService
from memora.services.activity import ActivityLogService
from memora.storage.base import AuthStore
from memora.storage.models import LogAction, User, UserStatus

logger = logging.getLogger(__name__)


class AuthService:
    """Credential checks and account-level operations."""

    def __init__(
        self,
        store: AuthStore,
        sessions: SessionService,
        activity: ActivityLogService,
    ):
        self.store = store
        self.sessions = sessions
        self.activity = activity

    def authenticate_user(self, email: str, password: str) -> User | None:
        """The user if the credentials match an active account, else None."""
        user = self.store.get_user_by_email(email)
        if user is None:
            logger.warning("Login attempt for unknown email")
            return None

        if user.status != UserStatus.ACTIVE.value:
            logger.warning("Login attempt for inactive user %s", user.id)
            return None

        if not verify_password(password, user.password_hash):
            logger.warning("Invalid password for user %s", user.id)
            return None

        return user

    def start_session(self, user: User) -> str:
        """Open a session for a fully authenticated user and record the login."""
        token = self.sessions.create_session(user.id, user.email, user.role)
        self.activity.log(LogAction.LOGIN, "user", user.id, user.id)
        return token

    def register_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Role = Role.COLLABORATOR,
        performed_by: str | None = None,
    ) -> User:
        """
        Create an account.

        Raises:
            ValueError: Email already registered, or password too long
        """
        password_hash = hash_password(password, self.sessions.settings.bcrypt_rounds)
        user = self.store.create_user(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role.value,
        )
        self.activity.log(LogAction.CREATE, "user", user.id, performed_by)
        return user

    def change_password(self, user_id: str, current_password: str, new_password: str) -> bool:
        """Replace the password after checking the current one."""
        user = self.store.get_user_by_id(user_id)
        if user is None:
            return False

        if not verify_password(current_password, user.password_hash):
            return False

        new_hash = hash_password(new_password, self.sessions.settings.bcrypt_rounds)
        self.store.update_user(user_id, password_hash=new_hash)
        self.activity.log(LogAction.UPDATE, "user", user_id, user_id, "password_changed")
        return True

    def logout(self, token: str | None, user_id: str | None = None) -> None:
        """Record the logout (if the user is known) and destroy the session."""
        if user_id:
            self.activity.log(LogAction.LOGOUT, "user", user_id, user_id)
        self.sessions.delete_session(token)
