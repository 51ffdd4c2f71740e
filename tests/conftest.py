"""
Shared fixtures: an in-memory database, a wired app and user factories.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from memora.api.app import create_app
from memora.auth.password import hash_password
from memora.auth.roles import Role
from memora.config import Settings
from memora.config_loader import default_permission_config
from memora.services.activity import ActivityLogService
from memora.services.groups import GroupService
from memora.storage.database import Database
from memora.storage.sql import SqlAuthStore

PASSWORD = "correct-horse-battery"


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture
def settings():
    """Fast, isolated settings: in-memory database and cheap bcrypt."""
    return Settings(
        environment="test",
        debug=False,
        database_url="sqlite://",
        jwt_secret_key="test-secret-key-long-enough-for-hs256",
        bcrypt_rounds=4,
    )


@pytest.fixture
def password():
    """Plain-text password shared by every factory-made account."""
    return PASSWORD


@pytest.fixture
def permissions():
    """The packaged capability map."""
    return default_permission_config()


@pytest.fixture
def database(settings):
    """Standalone database for service-level tests."""
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    with database.session() as session:
        yield session


@pytest.fixture
def store(db_session):
    return SqlAuthStore(db_session)


@pytest.fixture
def make_user(store):
    """Factory: create a user with the shared test password."""

    def _make(email: str = "alice@memora.io", role: Role = Role.COLLABORATOR, **fields):
        user = store.create_user(
            email=email,
            password_hash=hash_password(PASSWORD, rounds=4),
            first_name=fields.pop("first_name", "Alice"),
            last_name=fields.pop("last_name", "Martin"),
            role=role.value,
        )
        if fields:
            store.update_user(user.id, **fields)
        return user

    return _make


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def app(settings):
    application = create_app(settings)
    yield application
    application.state.database.dispose()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def app_store(app):
    """Store bound to the app's own database, for seeding HTTP tests."""
    with app.state.database.session() as session:
        yield SqlAuthStore(session)


@pytest.fixture
def app_groups(app):
    with app.state.database.session() as session:
        yield GroupService(session, ActivityLogService(session))


@pytest.fixture
def create_account(app_store):
    """Factory: an account in the app's database."""

    def _create(email: str, role: Role = Role.COLLABORATOR, **fields):
        user = app_store.create_user(
            email=email,
            password_hash=hash_password(PASSWORD, rounds=4),
            first_name="Test",
            last_name="User",
            role=role.value,
        )
        if fields:
            app_store.update_user(user.id, **fields)
        return user

    return _create


@pytest.fixture
def login(client):
    """Log a client in; the session cookie stays on the client."""

    def _login(email: str, password: str = PASSWORD):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response

    return _login
