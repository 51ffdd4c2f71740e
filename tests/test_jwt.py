"""Tests for session and two-factor challenge tokens."""

from datetime import timedelta

import jwt as pyjwt
import pytest

from memora.auth.jwt import (
    TokenExpiredError,
    TokenInvalidError,
    create_a2f_challenge,
    decode_token,
    sign_token,
    verify_a2f_challenge,
    verify_token,
)
from memora.core.utils import utc_now


class TestSessionTokens:
    def test_sign_and_verify(self, settings):
        token = sign_token("user_1", "a@memora.io", "Manager", settings)

        payload = verify_token(token, settings)

        assert payload is not None
        assert payload.user_id == "user_1"
        assert payload.email == "a@memora.io"
        assert payload.role == "Manager"
        assert payload.type == "session"
        assert payload.exp - payload.iat == timedelta(days=settings.session_duration_days)

    def test_tokens_are_unique(self, settings):
        first = sign_token("user_1", "a@memora.io", "Manager", settings)
        second = sign_token("user_1", "a@memora.io", "Manager", settings)
        assert first != second

    def test_wrong_secret_is_rejected(self, settings):
        token = sign_token("user_1", "a@memora.io", "Manager", settings)
        other = settings.model_copy(update={"jwt_secret_key": "another-secret-key-long-enough-for-hs256"})

        assert verify_token(token, other) is None
        with pytest.raises(TokenInvalidError):
            decode_token(token, other)

    def test_expired_token(self, settings):
        now = utc_now()
        token = pyjwt.encode(
            {
                "sub": "user_1",
                "email": "a@memora.io",
                "role": "Guest",
                "type": "session",
                "iat": now - timedelta(days=8),
                "exp": now - timedelta(days=1),
            },
            settings.jwt_secret_key,
            algorithm="HS256",
        )

        with pytest.raises(TokenExpiredError):
            decode_token(token, settings)
        assert verify_token(token, settings) is None

    def test_garbage_and_missing_tokens(self, settings):
        assert verify_token("not.a.jwt", settings) is None
        assert verify_token("", settings) is None
        assert verify_token(None, settings) is None


class TestChallengeTokens:
    def test_round_trip(self, settings):
        token = create_a2f_challenge("user_1", settings)
        assert verify_a2f_challenge(token, settings) == "user_1"

    def test_challenge_is_not_a_session(self, settings):
        token = create_a2f_challenge("user_1", settings)
        assert verify_token(token, settings) is None

    def test_session_is_not_a_challenge(self, settings):
        token = sign_token("user_1", "a@memora.io", "Guest", settings)
        assert verify_a2f_challenge(token, settings) is None

    def test_challenge_expires(self, settings):
        expired = settings.model_copy(update={"a2f_challenge_expire_minutes": -1})
        token = create_a2f_challenge("user_1", expired)
        assert verify_a2f_challenge(token, settings) is None
