"""
Auth Models - Pydantic schemas for admin authentication
"""

from datetime import datetime as dt
from typing import Optional

from pydantic import BaseModel


# ================== Request Models ==================

class AdminLoginRequest(BaseModel):
    """Admin login request body. Presence is checked by the handler."""
    email: Optional[str] = None
    password: Optional[str] = None


# ================== Response Models ==================

class AdminUser(BaseModel):
    """Operator identity returned to the dashboard."""
    email: str
    name: str = "Admin User"
    role: str = "admin"


class AdminLoginResponse(BaseModel):
    success: bool = True
    user: AdminUser
    sessionToken: str


class SessionClaims(BaseModel):
    email: str
    role: str


class VerifyResponse(BaseModel):
    success: bool = True
    user: SessionClaims
    expiresAt: Optional[dt] = None


class RefreshResponse(BaseModel):
    success: bool = True
    sessionToken: str
    expiresAt: dt


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logged out successfully"
