"""
Request authorization middleware.

Gate in front of every non-public route:

- No session cookie: API paths get 401, page paths are redirected to
  /login?redirect=<path>.
- Cookie present: the token's signature and expiry are checked here (no
  database access). A forged or expired token is treated like a missing
  one and the cookie is cleared.
- Anything else passes through. Handlers still re-validate the token against
  the session table (memora.auth.policies.get_current_user), which is what
  catches logged-out tokens.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from memora.auth.jwt import verify_token
from memora.auth.sessions import clear_session_cookie
from memora.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Pages reachable without a session
PUBLIC_ROUTES = ("/login", "/a2f", "/onboarding")

# API endpoints reachable without a session
PUBLIC_API_ROUTES = (
    "/api/auth/login",
    "/api/auth/a2f/verify",
    "/api/auth/logout",
    "/health",
    "/docs",
    "/openapi.json",
)

# Public pages that bounce already-authenticated users to the hub
REDIRECT_IF_AUTH = ("/login",)

LOGIN_PATH = "/login"
HOME_PATH = "/hub/default"


def _matches(path: str, prefixes: Iterable[str]) -> bool:
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in prefixes)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Reject requests without a usable session cookie before any handler runs."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings | None = None,
        public_routes: Iterable[str] = PUBLIC_ROUTES,
        public_api_routes: Iterable[str] = PUBLIC_API_ROUTES,
    ):
        super().__init__(app)
        self.settings = settings or get_settings()
        self.public_routes = tuple(public_routes)
        self.public_api_routes = tuple(public_api_routes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        token = request.cookies.get(self.settings.session_cookie_name)

        if _matches(path, self.public_api_routes):
            return await call_next(request)

        if _matches(path, self.public_routes):
            if token and _matches(path, REDIRECT_IF_AUTH) and verify_token(token, self.settings):
                return RedirectResponse(HOME_PATH, status_code=307)
            return await call_next(request)

        if not token:
            return self._reject(path, clear_cookie=False)

        if verify_token(token, self.settings) is None:
            logger.info("Rejected invalid or expired session token on %s", path)
            return self._reject(path, clear_cookie=True)

        return await call_next(request)

    def _reject(self, path: str, clear_cookie: bool) -> Response:
        if path.startswith("/api/"):
            response: Response = JSONResponse({"detail": "Not authenticated"}, status_code=401)
        else:
            query = urlencode({"redirect": path})
            response = RedirectResponse(f"{LOGIN_PATH}?{query}", status_code=307)

        if clear_cookie:
            clear_session_cookie(response, self.settings)
        return response
