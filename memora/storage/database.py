"""
Database engine and session factory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from memora.storage.models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the engine and hands out ORM sessions.

    Usage:
        db = Database("sqlite:///./memora.db")
        db.create_all()
        with db.session() as session:
            ...
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: Engine = self._create_engine(url, echo)
        self.session_factory = sessionmaker(
            bind=self.engine, expire_on_commit=False, autoflush=False
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if not url.startswith("sqlite"):
            return create_engine(url, echo=echo, pool_pre_ping=True)

        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live in a single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    def create_all(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ready (%s)", self.engine.url.render_as_string(hide_password=True))

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session and always close it."""
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
