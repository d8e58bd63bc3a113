"""
Tests for the /api/auth endpoints and the admin gate.

Tests cover:
- Successful login sets a session cookie
- Invalid credentials (401) without user-existence leakage
- Malformed login bodies (400)
- Logout destroys the session; old token is rejected afterwards
- Status endpoint
"""

import pytest

from tests.conftest import ADMIN_PASSWORD, ADMIN_USERNAME, SESSION_COOKIE


ADMIN_ENDPOINTS = [
    ("get", "/api/admin/contacts"),
    ("post", "/api/admin/contacts/1/read"),
    ("delete", "/api/admin/contacts/1"),
    ("get", "/api/admin/content"),
    ("patch", "/api/admin/content/1"),
    ("get", "/api/admin/statistics"),
    ("get", "/api/auth/status"),
    ("post", "/api/auth/logout"),
]


class TestLogin:

    def test_login_success(self, client):
        """Valid credentials return success and set an HttpOnly session cookie."""
        response = client.post(
            "/api/auth/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert SESSION_COOKIE in response.cookies
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert ADMIN_PASSWORD not in response.text

    def test_wrong_password_and_unknown_user_look_the_same(self, client):
        """Unknown user and wrong password both return the same 401 body."""
        wrong_password = client.post(
            "/api/auth/login",
            json={"username": ADMIN_USERNAME, "password": "wrong"},
        )
        unknown_user = client.post(
            "/api/auth/login",
            json={"username": "nosuchuser", "password": "whatever"},
        )

        assert wrong_password.status_code == 401
        assert unknown_user.status_code == 401
        assert wrong_password.json() == unknown_user.json() == {"detail": "Invalid credentials"}
        assert SESSION_COOKIE not in wrong_password.cookies

    def test_username_is_case_sensitive(self, client):
        response = client.post(
            "/api/auth/login",
            json={"username": ADMIN_USERNAME.upper(), "password": ADMIN_PASSWORD},
        )

        assert response.status_code == 401

    @pytest.mark.parametrize("body", [
        {"username": ADMIN_USERNAME},
        {"password": ADMIN_PASSWORD},
        {"username": "", "password": ADMIN_PASSWORD},
        {"username": ADMIN_USERNAME, "password": ""},
        {"username": 42, "password": ADMIN_PASSWORD},
        [ADMIN_USERNAME, ADMIN_PASSWORD],
    ])
    def test_malformed_body(self, client, body):
        """Missing, empty or mistyped fields return 400."""
        response = client.post("/api/auth/login", json=body)

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid login data"}

    def test_invalid_json(self, client):
        response = client.post(
            "/api/auth/login",
            content="not valid json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400


class TestAuthGate:

    @pytest.mark.parametrize("method,path", ADMIN_ENDPOINTS)
    def test_admin_endpoints_require_session(self, client, method, path):
        """Every guarded endpoint returns 401 without a session."""
        response = getattr(client, method)(path)

        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    def test_forged_cookie_rejected(self, client):
        client.cookies.set(SESSION_COOKIE, "forged-token")

        response = client.get("/api/auth/status")

        assert response.status_code == 401

    def test_status_when_logged_in(self, admin_client):
        response = admin_client.get("/api/auth/status")

        assert response.status_code == 200
        assert response.json() == {"authenticated": True}

    def test_unauthorized_request_has_no_side_effects(self, client, admin_client):
        """A rejected delete leaves the message in place."""
        created = client.post(
            "/api/contact",
            json={"name": "Jane", "email": "jane@example.com", "message": "Please call me back"},
        ).json()
        token = admin_client.cookies.get(SESSION_COOKIE)

        client.cookies.clear()
        response = client.delete(f"/api/admin/contacts/{created['id']}")
        assert response.status_code == 401

        client.cookies.set(SESSION_COOKIE, token)
        contacts = client.get("/api/admin/contacts").json()
        assert [c["id"] for c in contacts] == [created["id"]]


class TestLogout:

    def test_logout_success(self, admin_client):
        response = admin_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}

    def test_old_token_rejected_after_logout(self, admin_client):
        """After logout the previous session token no longer opens admin endpoints."""
        old_token = admin_client.cookies.get(SESSION_COOKIE)
        assert admin_client.post("/api/auth/logout").status_code == 200

        admin_client.cookies.clear()
        admin_client.cookies.set(SESSION_COOKIE, old_token)

        for method, path in ADMIN_ENDPOINTS:
            response = getattr(admin_client, method)(path)
            assert response.status_code == 401, path

    def test_logout_twice_fails(self, admin_client):
        assert admin_client.post("/api/auth/logout").status_code == 200
        assert admin_client.post("/api/auth/logout").status_code == 401

    def test_relogin_replaces_session(self, admin_client):
        """Logging in again invalidates the session the client held before."""
        old_token = admin_client.cookies.get(SESSION_COOKIE)

        response = admin_client.post(
            "/api/auth/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 200
        new_token = admin_client.cookies.get(SESSION_COOKIE)
        assert new_token != old_token

        admin_client.cookies.clear()
        admin_client.cookies.set(SESSION_COOKIE, old_token)
        assert admin_client.get("/api/auth/status").status_code == 401
