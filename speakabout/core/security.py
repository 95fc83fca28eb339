"""
Shared Security Utilities

This module provides common security functions used across the application:
- Password hashing, verification and strength validation
- Secure random token generation
- Admin session token (JWT) utilities
"""

import hashlib
import logging
import re
import secrets
from datetime import datetime as dt
from datetime import timedelta as td
from datetime import timezone as tz
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from speakabout.core.environment import get_jwt_secret

logger = logging.getLogger(__name__)

# Password hashing configuration
PBKDF2_ALGORITHM = "sha512"
PBKDF2_ITERATIONS = 100000
PBKDF2_KEY_LENGTH = 64
SALT_BYTES = 16

# Password policy
MIN_PASSWORD_LENGTH = 8

# JWT configuration
JWT_ALGORITHM = "HS256"
SESSION_EXPIRE_HOURS = 24

# Cookie names
ADMIN_SESSION_COOKIE = "adminSessionToken"
ADMIN_SESSION_COOKIE_ALIASES = (ADMIN_SESSION_COOKIE, "session")
ADMIN_LOGGED_IN_COOKIE = "adminLoggedIn"


# ================== Password Utilities ==================


def _derive(password: str, salt: str) -> str:
    key = hashlib.pbkdf2_hmac(
        PBKDF2_ALGORITHM,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
        dklen=PBKDF2_KEY_LENGTH,
    )
    return key.hex()


def hash_password(password: str) -> str:
    """
    Hash a password with a fresh random salt.

    Returns:
        Credential string of the form "salt:hash" (both hex encoded)
    """
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}:{_derive(password, salt)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """
    Verify a candidate password against a stored "salt:hash" credential.

    Never raises: malformed credentials and internal failures verify as False.
    """
    try:
        salt, expected = stored_hash.split(":")
        if not salt or not expected:
            return False
        return secrets.compare_digest(_derive(password, salt), expected)
    except Exception:
        logger.warning("Password verification failed on malformed credential")
        return False


class PasswordValidation(BaseModel):
    """Outcome of a password strength check."""
    valid: bool
    message: str = ""


def validate_password(password: str) -> PasswordValidation:
    """
    Check a password against the strength policy.

    Rules, checked in order: minimum length, a lowercase letter,
    an uppercase letter, a digit.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return PasswordValidation(
            valid=False,
            message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )
    if not re.search(r"[a-z]", password):
        return PasswordValidation(valid=False, message="Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        return PasswordValidation(valid=False, message="Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        return PasswordValidation(valid=False, message="Password must contain at least one number")
    return PasswordValidation(valid=True)


# ================== Token Utilities ==================


def generate_secure_token() -> str:
    """Generate a cryptographically secure url-safe token."""
    return secrets.token_urlsafe(32)


def generate_session_id() -> str:
    """Generate an analytics correlation id for the session_id cookie."""
    return secrets.token_hex(16)


# ================== JWT Session Tokens ==================


def create_session_token(email: str, role: str = "admin", expires_hours: Optional[int] = None) -> str:
    """
    Create a signed session token.

    Args:
        email: Operator email to embed as a claim
        role: Role claim (admin routes require "admin")
        expires_hours: Optional custom lifetime in hours

    Returns:
        Encoded JWT string

    Raises:
        ConfigurationError: If JWT_SECRET is not set
    """
    now = dt.now(tz.utc)
    payload = {
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + td(hours=expires_hours or SESSION_EXPIRE_HOURS),
    }
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> Optional[dict]:
    """
    Decode and validate a session token.

    Returns:
        Decoded claims, or None if the token is invalid, expired,
        or the signing secret is unavailable
    """
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    except Exception:
        logger.exception("Session token verification failed")
        return None


def get_session_expiry() -> dt:
    """Get session expiry datetime for a token issued now."""
    return dt.now(tz.utc) + td(hours=SESSION_EXPIRE_HOURS)
