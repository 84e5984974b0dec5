"""Tests for admin login, sessions and logout."""

from portfolio.core.config import settings
from portfolio.core.security import create_access_token


def login(client, email="admin@example.com", password="admin-password"):
    return client.post("/api/admin/login", json={"email": email, "password": password})


class TestLogin:

    def test_login_returns_token_and_sets_cookie(self, client, admin_user):
        response = login(client)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tokenType"] == "bearer"
        assert data["user"] == {"id": admin_user.id, "email": "admin@example.com", "name": "Admin", "role": "ADMIN"}
        assert settings.SESSION_COOKIE_NAME in response.cookies

    def test_email_is_case_insensitive(self, client, admin_user):
        assert login(client, email="  ADMIN@example.com").status_code == 200

    def test_wrong_password(self, client, admin_user):
        response = login(client, password="nope")
        assert response.status_code == 401
        assert response.json() == {
            "success": False, "error": "Incorrect email or password", "code": "UNAUTHORIZED",
        }

    def test_missing_fields(self, client):
        response = client.post("/api/admin/login", json={"email": "admin@example.com"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: password"


class TestSession:

    def test_cookie_session(self, client, admin_user):
        login(client)
        response = client.get("/api/admin/session")
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "admin@example.com"

    def test_bearer_session(self, client, admin_headers):
        assert client.get("/api/admin/session", headers=admin_headers).status_code == 200

    def test_no_token(self, client):
        response = client.get("/api/admin/session")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.get("/api/admin/session", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_unknown_user(self, client, db):
        token = create_access_token({"sub": "missing-user"})
        response = client.get("/api/admin/session", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_non_admin_is_forbidden_on_admin_routes(self, client, user_headers):
        assert client.get("/api/admin/session", headers=user_headers).status_code == 200
        response = client.get("/api/admin/contacts", headers=user_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Admin privileges required"


class TestLogout:

    def test_logout_revokes_token(self, client, admin_user):
        token = login(client).json()["data"]["accessToken"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.post("/api/admin/logout", headers=headers)
        assert response.status_code == 200
        assert client.get("/api/admin/session", headers=headers).status_code == 401

    def test_logout_clears_cookie(self, client, admin_user):
        login(client)
        client.post("/api/admin/logout")
        assert client.get("/api/admin/session").status_code == 401

    def test_logout_without_session(self, client, db):
        assert client.post("/api/admin/logout").json() == {"success": True, "message": "Logged out"}
