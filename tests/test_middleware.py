"""
Tests for the session gate in front of every route.

The gate only looks at the cookie; revocation is checked by the handlers.
"""

from memora.auth.jwt import create_a2f_challenge, sign_token
from memora.auth.roles import Role


class TestPublicRoutes:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_openapi_is_public(self, client):
        assert client.get("/openapi.json").status_code == 200

    def test_login_endpoint_is_public(self, client):
        response = client.post(
            "/api/auth/login", json={"email": "nobody@memora.io", "password": "whatever"}
        )
        # Reached the handler: bad credentials, not "no session"
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_public_pages_pass_through(self, client):
        # Page routes are served by the frontend; the gate lets them through
        for path in ("/login", "/a2f", "/onboarding/step-1"):
            response = client.get(path, follow_redirects=False)
            assert response.status_code == 404

    def test_prefix_match_is_segment_aware(self, client):
        response = client.get("/loginsomething", follow_redirects=False)
        assert response.status_code == 307


class TestMissingCookie:
    def test_api_gets_401(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json() == {"detail": "Not authenticated"}

    def test_page_redirects_to_login(self, client):
        response = client.get("/hub/default", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/login?redirect=%2Fhub%2Fdefault"


class TestInvalidCookie:
    def test_forged_token_is_rejected_and_cleared(self, client):
        client.cookies.set("memora-session", "forged.token.value")

        response = client.get("/api/groups")

        assert response.status_code == 401
        assert "memora-session=" in response.headers["set-cookie"]
        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_challenge_token_is_not_a_session(self, client, settings):
        client.cookies.set("memora-session", create_a2f_challenge("user_x", settings))

        response = client.get("/hub/projects", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"].startswith("/login?redirect=")

    def test_signed_but_revoked_token_is_caught_by_handler(self, client, settings):
        # Valid signature, no session row: the gate passes it, the handler does not
        client.cookies.set("memora-session", sign_token("user_x", "x@memora.io", "Owner", settings))

        response = client.get("/api/auth/me")

        assert response.status_code == 401


class TestAuthenticatedRedirect:
    def test_login_page_redirects_to_hub(self, client, create_account, login):
        create_account("alice@memora.io", Role.COLLABORATOR)
        login("alice@memora.io")

        response = client.get("/login", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/hub/default"

    def test_other_public_pages_do_not_redirect(self, client, create_account, login):
        create_account("alice@memora.io", Role.COLLABORATOR)
        login("alice@memora.io")

        assert client.get("/onboarding", follow_redirects=False).status_code == 404
