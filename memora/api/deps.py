"""
FastAPI dependencies shared by every router.

Everything hangs off app.state (settings, database, permissions) so that
create_app() can be called with explicit settings in tests.
"""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from memora.auth.capabilities import PermissionConfig
from memora.auth.service import AuthService
from memora.auth.sessions import SessionService
from memora.auth.two_factor import TwoFactorService
from memora.config import Settings
from memora.services.activity import ActivityLogService
from memora.services.groups import GroupService
from memora.services.projects import ProjectService
from memora.services.tasks import TaskService
from memora.storage.sql import SqlAuthStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_permissions(request: Request) -> PermissionConfig:
    return request.app.state.permissions


def get_db(request: Request) -> Iterator[Session]:
    """One ORM session per request."""
    with request.app.state.database.session() as session:
        yield session


def get_session_token(request: Request) -> str | None:
    """The raw session cookie, if any."""
    settings: Settings = request.app.state.settings
    return request.cookies.get(settings.session_cookie_name)


def get_store(db: Session = Depends(get_db)) -> SqlAuthStore:
    return SqlAuthStore(db)


def get_activity_service(db: Session = Depends(get_db)) -> ActivityLogService:
    return ActivityLogService(db)


def get_session_service(
    store: SqlAuthStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> SessionService:
    return SessionService(store, settings)


def get_two_factor_service(
    store: SqlAuthStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> TwoFactorService:
    return TwoFactorService(store, settings)


def get_auth_service(
    store: SqlAuthStore = Depends(get_store),
    sessions: SessionService = Depends(get_session_service),
    activity: ActivityLogService = Depends(get_activity_service),
) -> AuthService:
    return AuthService(store, sessions, activity)


def get_group_service(
    db: Session = Depends(get_db),
    activity: ActivityLogService = Depends(get_activity_service),
) -> GroupService:
    return GroupService(db, activity)


def get_project_service(
    db: Session = Depends(get_db),
    activity: ActivityLogService = Depends(get_activity_service),
) -> ProjectService:
    return ProjectService(db, activity)


def get_task_service(
    db: Session = Depends(get_db),
    activity: ActivityLogService = Depends(get_activity_service),
) -> TaskService:
    return TaskService(db, activity)
