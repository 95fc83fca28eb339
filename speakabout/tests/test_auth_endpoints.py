"""
Integration tests for the admin authentication endpoints and the admin guard.
"""

import pytest
from fastapi import status
from httpx import AsyncClient

from speakabout.core.security import create_session_token


class TestAdminLogin:
    """POST /api/auth/login"""

    @pytest.mark.asyncio
    async def test_login_success_sets_cookies(self, async_client: AsyncClient, admin_credentials: dict):
        response = await async_client.post("/api/auth/login", json=admin_credentials)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["user"] == {"email": admin_credentials["email"], "name": "Admin User", "role": "admin"}
        assert len(data["sessionToken"]) > 20

        assert response.cookies.get("adminLoggedIn") == "true"
        assert response.cookies.get("adminSessionToken") == data["sessionToken"]
        set_cookie = ",".join(response.headers.get_list("set-cookie"))
        assert "HttpOnly" in set_cookie
        assert "SameSite=lax" in set_cookie
        assert "Max-Age=86400" in set_cookie

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, async_client: AsyncClient, admin_credentials: dict):
        body = {**admin_credentials, "email": admin_credentials["email"].upper()}
        response = await async_client.post("/api/auth/login", json=body)
        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_wrong_password(self, async_client: AsyncClient, admin_credentials: dict):
        body = {**admin_credentials, "password": "Wrong-Pass-1"}
        response = await async_client.post("/api/auth/login", json=body)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "error": "Invalid credentials"}
        assert "adminSessionToken" not in response.cookies

    @pytest.mark.asyncio
    async def test_wrong_email(self, async_client: AsyncClient, admin_credentials: dict):
        body = {**admin_credentials, "email": "someone@else.example"}
        response = await async_client.post("/api/auth/login", json=body)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"email": "ops@speakabout.ai"}, {"password": "x"}, {"email": "", "password": ""}])
    async def test_missing_fields(self, async_client: AsyncClient, body: dict):
        response = await async_client.post("/api/auth/login", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Email and password are required"

    @pytest.mark.asyncio
    async def test_malformed_json(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"success": False, "error": "Invalid request format"}

    @pytest.mark.asyncio
    async def test_malformed_attempts_count_toward_limit(self, async_client: AsyncClient):
        for _ in range(5):
            response = await async_client.post(
                "/api/auth/login",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )
            assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await async_client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["error"] == "Too many login attempts. Please try again later."

    @pytest.mark.asyncio
    async def test_unconfigured_credentials(self, async_client: AsyncClient, admin_credentials: dict, monkeypatch):
        monkeypatch.delenv("ADMIN_PASSWORD_HASH")
        response = await async_client.post("/api/auth/login", json=admin_credentials)

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["error"] == "Authentication service unavailable"

    @pytest.mark.asyncio
    async def test_missing_jwt_secret(self, async_client: AsyncClient, admin_credentials: dict, monkeypatch):
        monkeypatch.delenv("JWT_SECRET")
        response = await async_client.post("/api/auth/login", json=admin_credentials)

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["error"] == "Authentication service configuration error"

    @pytest.mark.asyncio
    async def test_sixth_attempt_is_rate_limited(self, async_client: AsyncClient, admin_credentials: dict):
        bad = {**admin_credentials, "password": "Wrong-Pass-1"}
        for _ in range(5):
            response = await async_client.post("/api/auth/login", json=bad)
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

        # Even correct credentials are refused once the window is exhausted
        response = await async_client.post("/api/auth/login", json=admin_credentials)

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Too many login attempts. Please try again later."
        assert 0 < data["retryAfter"] <= 15 * 60
        assert response.headers["Retry-After"] == str(data["retryAfter"])

    @pytest.mark.asyncio
    async def test_rate_limit_is_per_client(self, async_client: AsyncClient, admin_credentials: dict):
        bad = {**admin_credentials, "password": "Wrong-Pass-1"}
        for _ in range(6):
            await async_client.post("/api/auth/login", json=bad, headers={"X-Forwarded-For": "198.51.100.1"})

        response = await async_client.post(
            "/api/auth/login", json=admin_credentials, headers={"X-Forwarded-For": "198.51.100.2"}
        )
        assert response.status_code == status.HTTP_200_OK


class TestSessionEndpoints:
    """POST /api/auth/logout, GET /api/auth/verify, POST /api/auth/refresh"""

    @pytest.mark.asyncio
    async def test_logout_clears_cookies(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/auth/logout")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["success"] is True
        set_cookie = ",".join(response.headers.get_list("set-cookie"))
        assert "adminLoggedIn=" in set_cookie
        assert "adminSessionToken=" in set_cookie
        assert "Max-Age=0" in set_cookie

    @pytest.mark.asyncio
    async def test_logout_without_session_still_succeeds(self, async_client: AsyncClient):
        response = await async_client.post("/api/auth/logout")
        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_verify_with_cookie(self, admin_client: AsyncClient, admin_credentials: dict):
        response = await admin_client.get("/api/auth/verify")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["user"] == {"email": admin_credentials["email"], "role": "admin"}
        assert data["expiresAt"]

    @pytest.mark.asyncio
    async def test_verify_with_bearer(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.get("/api/auth/verify", headers=admin_headers)
        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_refresh_issues_new_cookies(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.post("/api/auth/refresh", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["sessionToken"]
        assert data["expiresAt"]
        assert response.cookies.get("adminSessionToken") == data["sessionToken"]
        assert response.cookies.get("adminLoggedIn") == "true"

    @pytest.mark.asyncio
    async def test_login_then_verify_flow(self, async_client: AsyncClient, admin_credentials: dict):
        login = await async_client.post("/api/auth/login", json=admin_credentials)
        assert login.status_code == status.HTTP_200_OK

        # The client keeps the cookies set by the login response
        response = await async_client.get("/api/auth/verify")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["email"] == admin_credentials["email"]


class TestAdminGuard:
    """require_admin, exercised through GET /api/auth/verify"""

    @pytest.mark.asyncio
    async def test_no_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/auth/verify")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "NO_TOKEN"
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_cookie_without_logged_in_flag_is_ignored(self, async_client: AsyncClient, admin_token: str):
        async_client.cookies.set("adminSessionToken", admin_token)
        response = await async_client.get("/api/auth/verify")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "NO_TOKEN"

    @pytest.mark.asyncio
    async def test_session_alias_cookie(self, async_client: AsyncClient, admin_token: str):
        async_client.cookies.set("adminLoggedIn", "true")
        async_client.cookies.set("session", admin_token)
        response = await async_client.get("/api/auth/verify")
        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_invalid_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/auth/verify", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_non_admin_role_is_rejected(self, async_client: AsyncClient):
        token = create_session_token("viewer@speakabout.ai", role="viewer")
        response = await async_client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "INVALID_TOKEN"
