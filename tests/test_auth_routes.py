"""
Tests for the /api/auth endpoints.

Login, two-factor challenge, logout, registration and password changes,
exercised end to end through the app.
"""

import pyotp
import pytest

from memora.auth.roles import Role
from memora.services.activity import ActivityLogService


@pytest.fixture
def alice(create_account):
    return create_account("alice@memora.io", Role.COLLABORATOR)


@pytest.fixture
def admin(create_account):
    return create_account("admin@memora.io", Role.ADMIN)


def _enable_two_factor(client) -> str:
    """Run setup + enable for the logged-in client; returns the secret."""
    secret = client.post("/api/auth/a2f/setup").json()["secret"]
    response = client.post("/api/auth/a2f/enable", json={"code": pyotp.TOTP(secret).now()})
    assert response.status_code == 200
    return secret


def _login_count(app, user_id: str) -> int:
    with app.state.database.session() as db:
        entries = ActivityLogService(db).get_by_user(user_id)
    return sum(1 for e in entries if e.action == "LOGIN")


# =============================================================================
# Login / Logout
# =============================================================================


class TestLogin:
    def test_login_sets_session_cookie(self, client, alice, password):
        response = client.post(
            "/api/auth/login", json={"email": "alice@memora.io", "password": password}
        )

        assert response.status_code == 200
        assert response.json() == {"require_a2f": False, "challenge_token": None, "user_id": alice.id}
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("memora-session=")
        assert "HttpOnly" in cookie

    def test_email_is_case_insensitive(self, client, alice, password):
        response = client.post(
            "/api/auth/login", json={"email": "Alice@Memora.io", "password": password}
        )
        assert response.status_code == 200

    def test_wrong_password(self, client, alice):
        response = client.post(
            "/api/auth/login", json={"email": "alice@memora.io", "password": "nope-nope"}
        )
        assert response.status_code == 401
        assert "set-cookie" not in response.headers

    def test_inactive_user_cannot_log_in(self, client, create_account, password):
        create_account("gone@memora.io", status="inactive")
        response = client.post(
            "/api/auth/login", json={"email": "gone@memora.io", "password": password}
        )
        assert response.status_code == 401

    def test_invalid_email_is_a_validation_error(self, client):
        response = client.post("/api/auth/login", json={"email": "not-an-email", "password": "x"})
        assert response.status_code == 422

    def test_login_is_recorded(self, client, alice, admin, login):
        login("alice@memora.io")
        login("admin@memora.io")

        logs = client.get("/api/logs", params={"user_id": alice.id}).json()
        assert [entry["action"] for entry in logs] == ["LOGIN"]


class TestLogout:
    def test_logout_revokes_session(self, client, alice, login):
        login("alice@memora.io")
        token = client.cookies.get("memora-session")

        response = client.post("/api/auth/logout")
        assert response.status_code == 200

        # The old token still verifies, but its row is gone
        client.cookies.set("memora-session", token)
        assert client.get("/api/auth/me").status_code == 401

    def test_logout_is_idempotent(self, client, alice, login):
        login("alice@memora.io")

        assert client.post("/api/auth/logout").status_code == 200
        assert client.post("/api/auth/logout").status_code == 200

    def test_logout_without_session(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert "Max-Age=0" in response.headers["set-cookie"]


class TestMe:
    def test_me_returns_user_and_memberships(self, client, alice, login, app_groups):
        group = app_groups.create("Atelier", owner_id=alice.id)
        login("alice@memora.io")

        body = client.get("/api/auth/me").json()

        assert body["id"] == alice.id
        assert body["email"] == "alice@memora.io"
        assert body["role"] == "Collaborator"
        assert body["a2f_enabled"] is False
        assert body["memberships"] == [
            {"group_id": group.id, "group_name": "Atelier", "role": "Owner"}
        ]
        assert "password_hash" not in body

    def test_me_without_session(self, client):
        assert client.get("/api/auth/me").status_code == 401


# =============================================================================
# Two-Factor Login
# =============================================================================


class TestTwoFactorLogin:
    def test_full_flow(self, client, alice, login, password):
        login("alice@memora.io")
        secret = _enable_two_factor(client)
        client.post("/api/auth/logout")
        client.cookies.clear()

        # Password step: challenge only, no session
        response = client.post(
            "/api/auth/login", json={"email": "alice@memora.io", "password": password}
        )
        body = response.json()
        assert body["require_a2f"] is True
        assert body["challenge_token"]
        assert "set-cookie" not in response.headers
        assert client.get("/api/auth/me").status_code == 401

        # Code step: session issued
        response = client.post(
            "/api/auth/a2f/verify",
            json={"challenge_token": body["challenge_token"], "code": pyotp.TOTP(secret).now()},
        )
        assert response.status_code == 200
        assert client.get("/api/auth/me").json()["a2f_enabled"] is True

    def test_wrong_code_is_rejected(self, client, alice, login, password):
        login("alice@memora.io")
        secret = _enable_two_factor(client)
        client.cookies.clear()

        challenge = client.post(
            "/api/auth/login", json={"email": "alice@memora.io", "password": password}
        ).json()["challenge_token"]
        wrong = "000000" if pyotp.TOTP(secret).now() != "000000" else "111111"

        response = client.post(
            "/api/auth/a2f/verify", json={"challenge_token": challenge, "code": wrong}
        )
        assert response.status_code == 401
        assert "set-cookie" not in response.headers

    def test_bad_challenge_is_rejected(self, client):
        response = client.post(
            "/api/auth/a2f/verify", json={"challenge_token": "forged", "code": "123456"}
        )
        assert response.status_code == 401

    def test_enable_with_wrong_code(self, client, alice, login):
        login("alice@memora.io")
        secret = client.post("/api/auth/a2f/setup").json()["secret"]
        wrong = "000000" if pyotp.TOTP(secret).now() != "000000" else "111111"

        response = client.post("/api/auth/a2f/enable", json={"code": wrong})

        assert response.status_code == 400
        assert client.get("/api/auth/me").json()["a2f_enabled"] is False

    def test_disable(self, client, alice, login, password):
        login("alice@memora.io")
        _enable_two_factor(client)

        assert client.post("/api/auth/a2f/disable").status_code == 200

        client.cookies.clear()
        response = client.post(
            "/api/auth/login", json={"email": "alice@memora.io", "password": password}
        )
        assert response.json()["require_a2f"] is False

    def test_only_completed_logins_are_recorded(self, app, client, alice, login, password):
        login("alice@memora.io")
        secret = _enable_two_factor(client)
        client.cookies.clear()

        challenge = client.post(
            "/api/auth/login", json={"email": "alice@memora.io", "password": password}
        ).json()["challenge_token"]
        assert _login_count(app, alice.id) == 1

        client.post(
            "/api/auth/a2f/verify",
            json={"challenge_token": challenge, "code": pyotp.TOTP(secret).now()},
        )
        assert _login_count(app, alice.id) == 2


# =============================================================================
# Registration / Password
# =============================================================================


class TestRegister:
    payload = {
        "email": "new@memora.io",
        "password": "a-long-password",
        "first_name": "Nadia",
        "last_name": "Roux",
    }

    def test_admin_can_register(self, client, admin, login):
        login("admin@memora.io")

        response = client.post("/api/auth/register", json=self.payload)

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "new@memora.io"
        assert body["role"] == "Collaborator"
        assert body["name"] == "Nadia Roux"

    def test_new_account_can_log_in(self, client, admin, login):
        login("admin@memora.io")
        client.post("/api/auth/register", json=self.payload)
        client.cookies.clear()

        response = client.post(
            "/api/auth/login", json={"email": "new@memora.io", "password": "a-long-password"}
        )
        assert response.status_code == 200

    def test_duplicate_email(self, client, admin, login):
        login("admin@memora.io")
        client.post("/api/auth/register", json=self.payload)

        response = client.post("/api/auth/register", json=self.payload)

        assert response.status_code == 409

    def test_collaborator_cannot_register(self, client, alice, login):
        login("alice@memora.io")

        response = client.post("/api/auth/register", json=self.payload)

        assert response.status_code == 403

    def test_short_password(self, client, admin, login):
        login("admin@memora.io")

        response = client.post("/api/auth/register", json={**self.payload, "password": "short"})

        assert response.status_code == 422

    def test_admin_cannot_register_owner(self, client, admin, login):
        login("admin@memora.io")

        response = client.post("/api/auth/register", json={**self.payload, "role": "Owner"})

        assert response.status_code == 403
        assert response.json()["detail"] == "Cannot assign role Owner"

    def test_admin_can_register_peer(self, client, admin, login):
        login("admin@memora.io")

        response = client.post("/api/auth/register", json={**self.payload, "role": "Admin"})

        assert response.status_code == 201
        assert response.json()["role"] == "Admin"

    def test_password_over_72_bytes(self, client, admin, login):
        login("admin@memora.io")

        # 40 characters, 80 bytes
        response = client.post("/api/auth/register", json={**self.payload, "password": "é" * 40})

        assert response.status_code == 422


class TestChangePassword:
    def test_change_password(self, client, alice, login, password):
        login("alice@memora.io")

        response = client.post(
            "/api/auth/password",
            json={
                "current_password": password,
                "new_password": "brand-new-password",
                "confirm_password": "brand-new-password",
            },
        )
        assert response.status_code == 200

        client.cookies.clear()
        login("alice@memora.io", "brand-new-password")

    def test_wrong_current_password(self, client, alice, login):
        login("alice@memora.io")

        response = client.post(
            "/api/auth/password",
            json={
                "current_password": "not-my-password",
                "new_password": "brand-new-password",
                "confirm_password": "brand-new-password",
            },
        )
        assert response.status_code == 400

    def test_confirmation_mismatch(self, client, alice, login, password):
        login("alice@memora.io")

        response = client.post(
            "/api/auth/password",
            json={
                "current_password": password,
                "new_password": "brand-new-password",
                "confirm_password": "other-new-password",
            },
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Passwords do not match"

    def test_new_password_over_72_bytes(self, client, alice, login, password):
        login("alice@memora.io")
        long_password = "é" * 40

        response = client.post(
            "/api/auth/password",
            json={
                "current_password": password,
                "new_password": long_password,
                "confirm_password": long_password,
            },
        )
        assert response.status_code == 422
