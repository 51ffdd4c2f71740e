"""
FastAPI application for Memora Hub.

create_app() builds a fully wired app from explicit settings, which is what
the tests use; memora.main holds the instance uvicorn serves.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from memora.api import groups, logs, projects, tasks
from memora.auth import routes as auth_routes
from memora.auth.middleware import SessionGateMiddleware
from memora.config import Settings, configure_logging, get_settings
from memora.config_loader import load_permission_config
from memora.integrations.sentry import capture_exception, init_sentry
from memora.services.activity import ActivityLogService
from memora.storage.database import Database

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings: Settings = app.state.settings

    configure_logging(settings)
    if init_sentry(settings):
        logger.info("Sentry error tracking enabled")

    logger.info("Memora API starting in %s mode", settings.environment)

    yield

    app.state.database.dispose()
    logger.info("Memora API shutting down")


def _record_error(app: FastAPI, exc: Exception, path: str) -> None:
    """Persist an unhandled error in the activity log."""
    with app.state.database.session() as db:
        ActivityLogService(db).log_error("api", exc, path=path)


# =============================================================================
# App Setup
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Memora Hub API",
        description="Authentication, sessions and group-scoped authorization",
        version="0.1.0",
        lifespan=lifespan,
    )

    # State is set here, not in lifespan, so the app works without startup
    database = Database(settings.database_url, echo=settings.debug)
    database.create_all()
    app.state.settings = settings
    app.state.database = database
    app.state.permissions = load_permission_config(settings.permissions_file or None)

    # Last added runs first: CORS answers preflights before the session gate
    app.add_middleware(SessionGateMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_routes.router)
    app.include_router(groups.router)
    app.include_router(projects.router)
    app.include_router(tasks.router)
    app.include_router(logs.router)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        capture_exception(exc, path=request.url.path)
        try:
            await run_in_threadpool(_record_error, app, exc, request.url.path)
        except SQLAlchemyError:
            logger.exception("Could not record error in the activity log")
        return JSONResponse({"detail": "Internal server error"}, status_code=500)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app

