"""
Storage abstraction for the auth core.

The permission, session and two-factor services only talk to this narrow
interface. The SQL implementation lives in memora.storage.sql; tests run it
against in-memory SQLite.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from memora.auth.membership import UserWithAccess
from memora.storage.models import Session, User


class AuthStore(ABC):
    """
    Record-level access to users, memberships and sessions.

    Every write is committed on its own; callers never hold a transaction
    open across calls. Infrastructure errors propagate unchanged.
    """

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> User | None:
        """Get user by ID."""
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> User | None:
        """Get user by email (case-insensitive)."""
        pass

    @abstractmethod
    def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str = "",
        last_name: str = "",
        role: str | None = None,
    ) -> User:
        """Create a user. Raises ValueError if the email is taken."""
        pass

    @abstractmethod
    def update_user(self, user_id: str, **fields) -> User | None:
        """Partial update of a user; None if the user does not exist."""
        pass

    @abstractmethod
    def get_user_with_access(self, user_id: str) -> UserWithAccess | None:
        """The user and their group memberships, as a plain record."""
        pass

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_session(self, user_id: str, token: str, expires_at: datetime) -> Session:
        pass

    @abstractmethod
    def get_session_by_token(self, token: str) -> Session | None:
        pass

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        pass

    @abstractmethod
    def delete_sessions_by_token(self, token: str) -> int:
        """Delete every row holding `token`; returns the count removed."""
        pass
