# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/auth/login        - Check credentials, open a session (or a 2FA challenge)
#   POST /api/auth/a2f/verify   - Exchange challenge + TOTP code for a session
#   POST /api/auth/logout       - Close the current session
#   GET  /api/auth/me           - Current user and memberships
#   POST /api/auth/register     - Create an account (users:create)
#   POST /api/auth/password     - Change own password
#
# Two-factor management (authenticated):
#   POST /api/auth/a2f/setup    - Generate secret + QR code
#   POST /api/auth/a2f/enable   - Confirm secret with a code
#   POST /api/auth/a2f/disable  - Turn two-factor off
#
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr, Field, field_validator

from memora.api.deps import (
    get_app_settings,
    get_auth_service,
    get_session_token,
    get_store,
    get_two_factor_service,
)
from memora.auth.capabilities import Capability
from memora.auth.context import AuthContext
from memora.auth.jwt import create_a2f_challenge, verify_a2f_challenge
from memora.auth.membership import UserWithAccess
from memora.auth.password import MAX_PASSWORD_BYTES
from memora.auth.policies import get_current_user, require_auth, require_global
from memora.auth.roles import Role, is_role_at_least
from memora.auth.service import AuthService
from memora.auth.sessions import attach_session_cookie, clear_session_cookie
from memora.auth.two_factor import TwoFactorService
from memora.config import Settings
from memora.storage.models import UserStatus
from memora.storage.sql import SqlAuthStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    require_a2f: bool
    challenge_token: str | None = None
    user_id: str | None = None


class A2FCodeRequest(BaseModel):
    code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class A2FVerifyRequest(A2FCodeRequest):
    challenge_token: str


class A2FSetupResponse(BaseModel):
    secret: str
    otpauth_url: str
    qr_code_url: str


def _check_password_bytes(value: str) -> str:
    """Reject passwords longer than bcrypt's 72-byte input."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=MAX_PASSWORD_BYTES)
    first_name: str = Field(min_length=2, max_length=100)
    last_name: str = Field(min_length=2, max_length=100)
    role: Role = Role.COLLABORATOR

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=MAX_PASSWORD_BYTES)
    confirm_password: str = Field(min_length=8, max_length=MAX_PASSWORD_BYTES)

    @field_validator("new_password", "confirm_password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password_bytes(v)


class MembershipResponse(BaseModel):
    group_id: str
    group_name: str
    role: str


class UserResponse(BaseModel):
    """User data returned to client (no sensitive fields)."""
    id: str
    email: str
    name: str
    role: str
    a2f_enabled: bool = False
    memberships: list[MembershipResponse] = []


class MessageResponse(BaseModel):
    message: str


def _user_response(user: UserWithAccess, a2f_enabled: bool) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.global_role,
        a2f_enabled=a2f_enabled,
        memberships=[
            MembershipResponse(group_id=m.group_id, group_name=m.group_name, role=m.role)
            for m in user.group_memberships
        ],
    )


# =============================================================================
# Public Endpoints
# =============================================================================


@router.post("/login", response_model=LoginResponse)
def login(
    data: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Check credentials.

    Without two-factor the session cookie is set immediately. With two-factor
    enabled no session exists yet: the client gets a short-lived challenge
    token to submit with the TOTP code to /a2f/verify.
    """
    user = auth.authenticate_user(data.email, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.a2f_enabled:
        return LoginResponse(
            require_a2f=True,
            challenge_token=create_a2f_challenge(user.id, settings),
        )

    token = auth.start_session(user)
    attach_session_cookie(response, token, settings)
    return LoginResponse(require_a2f=False, user_id=user.id)


@router.post("/a2f/verify", response_model=LoginResponse)
def verify_a2f(
    data: A2FVerifyRequest,
    response: Response,
    store: SqlAuthStore = Depends(get_store),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """Second login step: challenge token + TOTP code -> session."""
    user_id = verify_a2f_challenge(data.challenge_token, settings)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired challenge")

    user = store.get_user_by_id(user_id)
    if user is None or user.status != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=401, detail="Invalid or expired challenge")

    if not two_factor.verify_a2f_code(user_id, data.code):
        logger.warning("Invalid two-factor code at login for user %s", user_id)
        raise HTTPException(status_code=401, detail="Invalid verification code")

    token = auth.start_session(user)
    attach_session_cookie(response, token, settings)
    return LoginResponse(require_a2f=False, user_id=user.id)


# =============================================================================
# Session Endpoints
# =============================================================================


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    token: str | None = Depends(get_session_token),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """Close the current session. Safe to call without one."""
    payload = auth.sessions.get_session(token)
    auth.logout(token, payload.user_id if payload else None)
    clear_session_cookie(response, settings)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
def me(
    user: UserWithAccess = Depends(get_current_user),
    store: SqlAuthStore = Depends(get_store),
):
    """Get the current authenticated user."""
    record = store.get_user_by_id(user.id)
    return _user_response(user, bool(record and record.a2f_enabled))


@router.post("/register", response_model=UserResponse, status_code=201)
def register(
    data: RegisterRequest,
    ctx: AuthContext = Depends(require_global(Capability.USERS_CREATE)),
    auth: AuthService = Depends(get_auth_service),
    store: SqlAuthStore = Depends(get_store),
):
    """Create an account (global users:create capability required)."""
    if not is_role_at_least(ctx.user.global_role, data.role):
        raise HTTPException(status_code=403, detail=f"Cannot assign role {data.role.value}")

    try:
        created = auth.register_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            performed_by=ctx.user_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return _user_response(store.get_user_with_access(created.id), a2f_enabled=False)


@router.post("/password", response_model=MessageResponse)
def change_password(
    data: ChangePasswordRequest,
    ctx: AuthContext = Depends(require_auth()),
    auth: AuthService = Depends(get_auth_service),
):
    """Change own password."""
    if data.new_password != data.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if not auth.change_password(ctx.user_id, data.current_password, data.new_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    return MessageResponse(message="Password changed")


# =============================================================================
# Two-Factor Management
# =============================================================================


@router.post("/a2f/setup", response_model=A2FSetupResponse)
def setup_a2f(
    ctx: AuthContext = Depends(require_auth()),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    """Generate a new secret. Two-factor stays off until /a2f/enable."""
    provisioning = two_factor.generate_a2f_secret(ctx.user_id, ctx.user.email)
    return A2FSetupResponse(
        secret=provisioning.secret,
        otpauth_url=provisioning.otpauth_url,
        qr_code_url=provisioning.qr_code_url,
    )


@router.post("/a2f/enable", response_model=MessageResponse)
def enable_a2f(
    data: A2FCodeRequest,
    ctx: AuthContext = Depends(require_auth()),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    """Confirm the pending secret with a code from the authenticator app."""
    if not two_factor.enable_a2f(ctx.user_id, data.code):
        raise HTTPException(status_code=400, detail="Invalid verification code")
    return MessageResponse(message="Two-factor authentication enabled")


@router.post("/a2f/disable", response_model=MessageResponse)
def disable_a2f(
    ctx: AuthContext = Depends(require_auth()),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    """Turn two-factor off and discard the secret."""
    two_factor.disable_a2f(ctx.user_id)
    return MessageResponse(message="Two-factor authentication disabled")
