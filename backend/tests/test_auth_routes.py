"""
Authentication tests.

Verifies:
- Login issues a bearer token; bad credentials are a 401, not a 5xx
- Protected endpoints return 401 without a valid token
- Logout revokes the token
"""

import pytest

from conftest import TEST_PASSWORD, auth_headers_for, get_auth_token


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_success(self, client, user):
        resp = client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
        assert resp.status_code == 200

        body = resp.get_json()
        assert len(body["token"]) == 64
        assert body["user"]["email"] == "owner@optimaster.test"
        assert "password_hash" not in body["user"]
        assert body["session"]["expires_at"].endswith("Z")

    def test_login_email_is_case_insensitive(self, client, user):
        assert get_auth_token(client, "Owner@OptiMaster.test", TEST_PASSWORD)

    def test_wrong_password(self, client, user):
        resp = client.post("/api/auth/login", json={"email": user.email, "password": "nope"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid email or password"

    def test_unknown_email(self, client, user):
        resp = client.post("/api/auth/login", json={"email": "ghost@optimaster.test", "password": TEST_PASSWORD})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid email or password"

    @pytest.mark.parametrize("body", [{}, {"email": "owner@optimaster.test"}, {"password": "x"}])
    def test_missing_fields(self, client, body):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, user, db_session):
        user.is_active = False
        db_session.commit()

        resp = client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
        assert resp.status_code == 401


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/suppliers"),
            ("POST", "/api/suppliers"),
            ("GET", "/api/suppliers/1"),
            ("PUT", "/api/suppliers/1"),
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory"),
            ("GET", "/api/inventory/1"),
            ("PATCH", "/api/inventory/1/stock"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales/INV-1"),
            ("PATCH", "/api/sales/INV-1/status"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, user):
        resp = client.get("/api/inventory", headers=auth_headers_for("not-a-real-token"))
        assert resp.status_code == 401


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================


class TestSessionLifecycle:

    def test_me(self, client, auth_headers):
        resp = client.get("/api/auth/me", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["name"] == "Shop Owner"

    def test_logout_revokes_token(self, client, auth_headers):
        resp = client.post("/api/auth/logout", headers=auth_headers)
        assert resp.status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers)
        assert resp.status_code == 401

        resp = client.post("/api/auth/logout", headers=auth_headers)
        assert resp.status_code == 401

    def test_logout_without_token(self, client):
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 401

    def test_sessions_are_independent(self, client, user):
        first = get_auth_token(client, user.email, TEST_PASSWORD)
        second = get_auth_token(client, user.email, TEST_PASSWORD)
        assert first != second

        client.post("/api/auth/logout", headers=auth_headers_for(first))
        assert client.get("/api/auth/me", headers=auth_headers_for(second)).status_code == 200
