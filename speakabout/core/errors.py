"""
Error handling.

Every error leaves the API as {"success": false, "error": "..."} with an
appropriate status code. Raw exception text is attached as "details" only
when the environment's expose_error_details flag is on (never in prod).
"""

import logging
from typing import Any

import asyncpg
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from speakabout.core.environment import ConfigurationError, env_config

logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, headers: Any = None, **extra: Any) -> JSONResponse:
    """Build the standard error body."""
    body = {"success": False, "error": error}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _details(exc: Exception) -> dict:
    if env_config.get("expose_error_details"):
        return {"details": str(exc) or exc.__class__.__name__}
    return {}


# ================== Handlers ==================


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTPException -> standard body; dict details are merged in."""
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        extra = dict(exc.detail)
        error = extra.pop("error", "Request failed")
        return error_response(exc.status_code, error, headers=headers, **extra)
    return error_response(exc.status_code, str(exc.detail), headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request validation -> 400 naming the first offending field."""
    errors = exc.errors()
    if not errors:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid value")
    # Unparseable or absent body
    if first.get("type") == "json_invalid" or (not field and tuple(first.get("loc", ())) == ("body",)):
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request format")
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        f"{field}: {message}" if field else message,
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.info("Route rate limit exceeded on %s: %s", request.url.path, exc.detail)
    return error_response(status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}")


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Missing configuration on %s: %s", request.url.path, exc.variable)
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Service configuration error")


async def database_error_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    if isinstance(exc, asyncpg.exceptions.UndefinedTableError):
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Database table not found. Please run the migrations.",
            **_details(exc),
        )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error", **_details(exc))


async def catch_unhandled_errors(request: Request, call_next):
    """Middleware: anything not handled above becomes a 500."""
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            **_details(exc),
        )


def register_error_handlers(app: FastAPI) -> None:
    """Install all handlers on the application."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(asyncpg.PostgresError, database_error_handler)
    app.middleware("http")(catch_unhandled_errors)
