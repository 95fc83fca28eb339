"""
Auth Services - Admin authentication logic

A single back-office operator is configured through ADMIN_EMAIL and
ADMIN_PASSWORD_HASH. Sessions are stateless signed tokens carried either
as a Bearer header or as the adminSessionToken cookie paired with the
adminLoggedIn flag cookie.
"""

import asyncio
import logging
from typing import Optional

from fastapi import HTTPException, Request, Response, status

from speakabout.core.environment import env_config, get_admin_credentials, get_login_delay_seconds
from speakabout.core.security import (
    ADMIN_LOGGED_IN_COOKIE,
    ADMIN_SESSION_COOKIE,
    ADMIN_SESSION_COOKIE_ALIASES,
    SESSION_EXPIRE_HOURS,
    create_session_token,
    decode_session_token,
    verify_password,
)

logger = logging.getLogger(__name__)

SESSION_COOKIE_MAX_AGE = SESSION_EXPIRE_HOURS * 60 * 60


class AuthService:
    """Authentication service for the back-office operator."""

    # ================== Credential Check ==================

    async def authenticate_admin(self, email: str, password: str) -> Optional[dict]:
        """
        Check operator credentials.

        Args:
            email: Submitted email (compared case-insensitively)
            password: Submitted password

        Returns:
            Operator dict if valid, None otherwise

        Raises:
            ConfigurationError: If the operator credentials are not configured
        """
        admin_email, admin_password_hash = get_admin_credentials()

        # Fixed delay before every credential check
        delay = get_login_delay_seconds()
        if delay:
            await asyncio.sleep(delay)

        if email.lower() != admin_email.lower() or not verify_password(password, admin_password_hash):
            logger.warning("Failed admin login attempt")
            return None

        return {"email": admin_email, "name": "Admin User", "role": "admin"}

    def issue_session_token(self, email: str) -> str:
        """Create a signed admin session token."""
        return create_session_token(email, role="admin")

    # ================== Cookies ==================

    def set_session_cookies(self, response: Response, token: str) -> None:
        """Set the session token and logged-in flag cookies."""
        secure = bool(env_config.get("secure_cookies", True))
        for key, value in ((ADMIN_LOGGED_IN_COOKIE, "true"), (ADMIN_SESSION_COOKIE, token)):
            response.set_cookie(
                key=key,
                value=value,
                httponly=True,
                secure=secure,
                samesite="lax",
                max_age=SESSION_COOKIE_MAX_AGE,
            )

    def clear_session_cookies(self, response: Response) -> None:
        for key in (ADMIN_LOGGED_IN_COOKIE, *ADMIN_SESSION_COOKIE_ALIASES):
            response.delete_cookie(key)

    # ================== Token Extraction ==================

    def extract_token(self, request: Request) -> Optional[str]:
        """
        Find the session token on a request.

        A Bearer header is used as-is. Cookie tokens count only together
        with the adminLoggedIn=true flag cookie.
        """
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
            return token or None

        if request.cookies.get(ADMIN_LOGGED_IN_COOKIE) != "true":
            return None

        for name in ADMIN_SESSION_COOKIE_ALIASES:
            token = request.cookies.get(name)
            if token:
                return token
        return None

    def validate_admin_token(self, token: str) -> Optional[dict]:
        """Return the token's claims if it verifies and carries the admin role."""
        payload = decode_session_token(token)
        if not payload or payload.get("role") != "admin":
            return None
        return payload


# Global auth service instance
auth_service = AuthService()


# ================== FastAPI Dependencies ==================

async def require_admin(request: Request) -> dict:
    """
    Dependency: reject the request with 401 unless it carries a valid admin session.

    Returns:
        The verified token claims
    """
    token = auth_service.extract_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Authentication required", "code": "NO_TOKEN"},
        )

    claims = auth_service.validate_admin_token(token)
    if not claims:
        logger.info("Rejected invalid admin token on %s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid or expired token", "code": "INVALID_TOKEN"},
        )

    return claims
