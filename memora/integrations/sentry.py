# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   Set SENTRY_DSN=https://...@sentry.io/... in the environment or .env
#
# Usage:
#   init_sentry() is called from the app lifespan (memora/api/app.py).
#   With no DSN configured every helper here is a no-op apart from logging.
#
# =============================================================================

from __future__ import annotations

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from memora.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Never forwarded: they carry session tokens
SENSITIVE_HEADERS = ("authorization", "cookie", "set-cookie")

# Expected client errors, not worth an event
IGNORED_STATUS_CODES = (401, 403, 404, 409, 422)

IGNORED_TRANSACTIONS = ("/health", "/healthz", "/ready")


def init_sentry(settings: Settings | None = None) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    settings = settings or get_settings()

    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=_filter_events,
        before_send_transaction=_filter_transactions,
    )

    logger.info("Sentry initialized for %s", settings.environment)
    return True


def _filter_events(event: dict, hint: dict) -> dict | None:
    """Drop expected HTTP errors and scrub credentials from requests."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, HTTPException) and exc_value.status_code in IGNORED_STATUS_CODES:
            return None

    headers = event.get("request", {}).get("headers")
    if headers:
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"

    return event


def _filter_transactions(event: dict, hint: dict) -> dict | None:
    if event.get("transaction", "") in IGNORED_TRANSACTIONS:
        return None
    return event


def capture_exception(error: Exception, **context) -> str | None:
    """
    Capture an exception to Sentry.

    Returns the event ID if captured, None otherwise.
    """
    if not sentry_sdk.get_client().is_active():
        logger.exception("Error (Sentry disabled)", exc_info=error)
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(error)


def set_user(user_id: str) -> None:
    """Attach the authenticated user id to error reports (no email: no PII)."""
    if sentry_sdk.get_client().is_active():
        sentry_sdk.set_user({"id": user_id})
