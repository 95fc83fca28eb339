"""
Auth Routers - Admin authentication API endpoints

Provides endpoints for:
- POST /api/auth/login - Operator login (rate limited per client)
- POST /api/auth/logout - Clear session cookies
- GET /api/auth/verify - Check the current session
- POST /api/auth/refresh - Re-issue the session token
"""

import logging
from datetime import datetime as dt
from datetime import timezone as tz

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from speakabout.auth.auth_models import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminUser,
    LogoutResponse,
    RefreshResponse,
    SessionClaims,
    VerifyResponse,
)
from speakabout.auth.auth_services import auth_service, require_admin
from speakabout.core.environment import ConfigurationError
from speakabout.core.rate_limit import check_rate_limit, get_client_identifier
from speakabout.core.request_body import json_body
from speakabout.core.security import get_session_expiry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

LOGIN_MAX_ATTEMPTS = 5
LOGIN_WINDOW_MS = 15 * 60 * 1000


@router.post("/login", response_model=AdminLoginResponse)
async def login(request: Request, response: Response) -> AdminLoginResponse:
    """
    Log the operator in.
    Sets the adminLoggedIn and adminSessionToken cookies and returns the token.
    Every attempt counts toward the limit, including malformed bodies.
    """
    client_id = get_client_identifier(request)
    rate_limit = check_rate_limit(request, f"login:{client_id}", LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_MS)
    if not rate_limit.success:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Too many login attempts. Please try again later.",
                "retryAfter": rate_limit.retry_after(),
            },
            headers={"Retry-After": str(rate_limit.retry_after())},
        )

    body = await json_body(AdminLoginRequest)(request)

    if not body.email or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    try:
        admin = await auth_service.authenticate_admin(body.email, body.password)
    except ConfigurationError as e:
        logger.error("Admin credentials not configured: %s", e.variable)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )

    if not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    try:
        token = auth_service.issue_session_token(admin["email"])
    except ConfigurationError:
        logger.error("Session token creation failed: JWT_SECRET is not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service configuration error",
        )

    auth_service.set_session_cookies(response, token)
    logger.info("Admin login succeeded")

    return AdminLoginResponse(user=AdminUser(**admin), sessionToken=token)


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    """Clear the session cookies. The token itself expires on its own."""
    auth_service.clear_session_cookies(response)
    return LogoutResponse()


@router.get("/verify", response_model=VerifyResponse)
async def verify(claims: dict = Depends(require_admin)) -> VerifyResponse:
    """Return the identity carried by the current session."""
    expires_at = None
    if claims.get("exp"):
        expires_at = dt.fromtimestamp(claims["exp"], tz=tz.utc)
    return VerifyResponse(
        user=SessionClaims(email=claims.get("email", ""), role=claims["role"]),
        expiresAt=expires_at,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(response: Response, claims: dict = Depends(require_admin)) -> RefreshResponse:
    """Issue a fresh token for a still-valid session and re-set the cookies."""
    token = auth_service.issue_session_token(claims.get("email", ""))
    auth_service.set_session_cookies(response, token)
    return RefreshResponse(sessionToken=token, expiresAt=get_session_expiry())
