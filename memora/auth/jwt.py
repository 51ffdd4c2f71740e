# =============================================================================
# JWT Session Tokens
# =============================================================================
#
# This module provides:
#   - Session token signing (7-day expiry by default)
#   - Two-factor challenge tokens (issued between password and TOTP steps)
#   - Token validation
#
# Tokens never carry password hashes or TOTP secrets.
#
# =============================================================================

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel

from memora.config import Settings, get_settings
from memora.core.utils import generate_id, utc_now

SESSION_TOKEN = "session"
A2F_CHALLENGE_TOKEN = "a2f_challenge"


# =============================================================================
# Models
# =============================================================================


class TokenPayload(BaseModel):
    """Decoded session token claims."""

    user_id: str
    email: str
    role: str
    type: str
    exp: datetime
    iat: datetime
    jti: str  # unique per token, so two logins never share a token value


# =============================================================================
# Errors
# =============================================================================


class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


# =============================================================================
# Token Creation
# =============================================================================


def _encode(claims: dict, settings: Settings) -> str:
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def sign_token(
    user_id: str,
    email: str,
    role: str,
    settings: Settings | None = None,
) -> str:
    """Sign a session token valid for `session_duration_days`."""
    settings = settings or get_settings()
    now = utc_now()

    claims = {
        "sub": user_id,
        "email": email,
        "role": role,
        "type": SESSION_TOKEN,
        "iat": now,
        "exp": now + timedelta(days=settings.session_duration_days),
        "jti": generate_id("tok"),
    }
    return _encode(claims, settings)


def create_a2f_challenge(user_id: str, settings: Settings | None = None) -> str:
    """
    Short-lived token proving the password step succeeded.

    It is exchanged, together with a TOTP code, for a real session.
    """
    settings = settings or get_settings()
    now = utc_now()

    claims = {
        "sub": user_id,
        "type": A2F_CHALLENGE_TOKEN,
        "iat": now,
        "exp": now + timedelta(minutes=settings.a2f_challenge_expire_minutes),
        "jti": generate_id("chl"),
    }
    return _encode(claims, settings)


# =============================================================================
# Token Validation
# =============================================================================


def _decode_claims(token: str, expected_type: str, settings: Settings) -> dict:
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")

    if claims.get("type") != expected_type:
        raise TokenInvalidError(f"Expected {expected_type} token, got {claims.get('type')}")
    return claims


def decode_token(token: str, settings: Settings | None = None) -> TokenPayload:
    """
    Decode and validate a session token.

    Raises:
        TokenExpiredError: Token has expired
        TokenInvalidError: Token is invalid
    """
    settings = settings or get_settings()
    claims = _decode_claims(token, SESSION_TOKEN, settings)

    try:
        return TokenPayload(
            user_id=claims["sub"],
            email=claims["email"],
            role=claims["role"],
            type=claims["type"],
            exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            jti=claims.get("jti", ""),
        )
    except KeyError as e:
        raise TokenInvalidError(f"Missing claim: {e}")


def verify_token(token: str | None, settings: Settings | None = None) -> TokenPayload | None:
    """Decode a session token, returning None instead of raising."""
    if not token:
        return None
    try:
        return decode_token(token, settings)
    except TokenError:
        return None


def verify_a2f_challenge(token: str | None, settings: Settings | None = None) -> str | None:
    """Return the user_id carried by a valid challenge token, else None."""
    if not token:
        return None
    try:
        claims = _decode_claims(token, A2F_CHALLENGE_TOKEN, settings or get_settings())
    except TokenError:
        return None
    return claims["sub"]
