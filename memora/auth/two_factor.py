"""
Two-factor authentication (TOTP).

Per-user state lives in two columns:

    Disabled             a2f_secret = None, a2f_enabled = False
    PendingVerification  a2f_secret set,    a2f_enabled = False
    Enabled              a2f_secret set,    a2f_enabled = True

generate -> PendingVerification, enable(code) -> Enabled,
disable -> Disabled (from any state, no code needed).
"""

from __future__ import annotations

import base64
import io
import logging
import re
from dataclasses import dataclass

import pyotp
import qrcode

from memora.config import Settings, get_settings
from memora.storage.base import AuthStore

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^\d{6}$")


@dataclass(frozen=True)
class A2FProvisioning:
    """What the user needs to register the secret in an authenticator app."""

    secret: str
    otpauth_url: str
    qr_code_url: str  # data:image/png;base64,...


def render_qr_data_url(uri: str) -> str:
    """Render a URI as a PNG QR code, returned as a data URL."""
    image = qrcode.make(uri)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def normalize_code(code: str | None) -> str | None:
    """Strip whitespace; None if the result is not a 6-digit code."""
    if not code:
        return None
    cleaned = re.sub(r"\s+", "", code)
    if not CODE_PATTERN.match(cleaned):
        return None
    return cleaned


class TwoFactorService:
    """TOTP secret provisioning and code checks."""

    def __init__(self, store: AuthStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    def _check(self, code: str | None, secret: str) -> bool:
        cleaned = normalize_code(code)
        if cleaned is None:
            return False
        return pyotp.TOTP(secret).verify(cleaned, valid_window=self.settings.a2f_valid_window)

    def generate_a2f_secret(self, user_id: str, email: str) -> A2FProvisioning:
        """
        Store a fresh secret (not yet enabled) and build its QR code.

        Calling this again replaces the pending secret; the last write wins.
        """
        secret = pyotp.random_base32()
        if self.store.update_user(user_id, a2f_secret=secret) is None:
            raise LookupError(f"User not found: {user_id}")

        otpauth_url = pyotp.TOTP(secret).provisioning_uri(
            name=email,
            issuer_name=self.settings.a2f_issuer,
        )
        logger.info("Generated two-factor secret for user %s", user_id)
        return A2FProvisioning(
            secret=secret,
            otpauth_url=otpauth_url,
            qr_code_url=render_qr_data_url(otpauth_url),
        )

    def enable_a2f(self, user_id: str, code: str | None) -> bool:
        """Confirm the pending secret with a code and switch two-factor on."""
        user = self.store.get_user_by_id(user_id)
        if user is None or not user.a2f_secret:
            return False

        if not self._check(code, user.a2f_secret):
            logger.warning("Rejected two-factor activation code for user %s", user_id)
            return False

        self.store.update_user(user_id, a2f_enabled=True)
        logger.info("Two-factor enabled for user %s", user_id)
        return True

    def verify_a2f_code(self, user_id: str, code: str | None) -> bool:
        """Check a login-time code. Never passes while two-factor is off."""
        user = self.store.get_user_by_id(user_id)
        if user is None or not user.a2f_secret or not user.a2f_enabled:
            return False
        return self._check(code, user.a2f_secret)

    def disable_a2f(self, user_id: str) -> None:
        """Clear the flag and the secret unconditionally."""
        self.store.update_user(user_id, a2f_enabled=False, a2f_secret=None)
        logger.info("Two-factor disabled for user %s", user_id)
