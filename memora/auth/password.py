"""Password hashing utilities using bcrypt."""

from __future__ import annotations

import bcrypt

from memora.config import get_settings

# bcrypt only reads the first 72 bytes; longer input is refused outright.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password
        rounds: Cost factor; defaults to the `bcrypt_rounds` setting

    Returns:
        Bcrypt hash string

    Raises:
        ValueError: If the password is longer than bcrypt accepts
    """
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if rounds is None:
        rounds = get_settings().bcrypt_rounds
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash.

    Args:
        plain_password: Plain text password to check
        hashed_password: Bcrypt hash to check against

    Returns:
        True if password matches hash
    """
    if not plain_password or not hashed_password:
        return False
    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash (bad salt or prefix)
        return False
