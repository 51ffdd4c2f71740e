"""
Session lifecycle.

A session is a signed token stored in the `memora-session` cookie AND
persisted as a row. Both must agree for the session to count: a token that
verifies but has no row (logged out) or an expired row is rejected, and the
expired row is removed on the way.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import Response

from memora.auth.jwt import TokenPayload, sign_token, verify_token
from memora.auth.membership import UserWithAccess
from memora.config import Settings, get_settings
from memora.core.utils import as_utc, utc_now
from memora.storage.base import AuthStore
from memora.storage.models import UserStatus

logger = logging.getLogger(__name__)


class SessionService:
    """
    Create, resolve and destroy sessions.

    Lookup failures (bad signature, expired, revoked) return None.
    Database errors propagate.
    """

    def __init__(self, store: AuthStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    def create_session(self, user_id: str, email: str, role: str) -> str:
        """Issue a token and persist a matching session row."""
        token = sign_token(user_id, email, role, self.settings)
        expires_at = utc_now() + timedelta(days=self.settings.session_duration_days)
        self.store.create_session(user_id, token, expires_at)
        logger.info("Session created for user %s", user_id)
        return token

    def get_session(self, token: str | None) -> TokenPayload | None:
        """Resolve a token to its payload if it is signed, stored and unexpired."""
        payload = verify_token(token, self.settings)
        if payload is None:
            return None

        record = self.store.get_session_by_token(token)
        if record is None:
            return None

        if as_utc(record.expires_at) < utc_now():
            self.store.delete_session(record.id)
            logger.info("Removed expired session for user %s", record.user_id)
            return None

        return payload

    def delete_session(self, token: str | None) -> None:
        """Remove every row for this token. Safe to call repeatedly."""
        if not token:
            return
        removed = self.store.delete_sessions_by_token(token)
        if removed:
            logger.info("Deleted %d session row(s)", removed)

    def get_current_user(self, token: str | None) -> UserWithAccess | None:
        """The session's user with memberships, if the user is still active."""
        payload = self.get_session(token)
        if payload is None:
            return None

        user = self.store.get_user_by_id(payload.user_id)
        if user is None or user.status != UserStatus.ACTIVE.value:
            return None
        return self.store.get_user_with_access(user.id)


# =============================================================================
# Cookie transport
# =============================================================================


def attach_session_cookie(response: Response, token: str, settings: Settings | None = None) -> None:
    """Set the HTTP-only session cookie on a response."""
    settings = settings or get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
