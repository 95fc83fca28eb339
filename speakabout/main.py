"""
FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from scalar_fastapi import get_scalar_api_reference

from speakabout.core.db_manager import close_database, init_database
from speakabout.core.environment import env_config
from speakabout.core.errors import register_error_handlers
from speakabout.core.logging_config import configure_logging
from speakabout.core.rate_limit import RateLimiter, build_rate_limit_store, limiter
from speakabout.core.security import generate_session_id

from speakabout.auth.auth_routers import router as auth_router
from speakabout.cron.cron_routers import router as cron_router
from speakabout.deals.deal_routers import router as deal_router

SESSION_COOKIE = "session_id"
SESSION_COOKIE_MAX_AGE = 30 * 60

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await init_database()
    logger.info("Speakabout API started (environment=%s)", env_config.environment.value)
    yield
    # Shutdown
    await close_database()


app = FastAPI(
    title="Speakabout Back-Office API",
    description="Lead capture, CRM pipeline and admin sessions for the speaker bureau",
    version="1.0.0",
    lifespan=lifespan,
)

# Route decorator limits (slowapi) and the explicit fixed-window limiter
app.state.limiter = limiter
app.state.rate_limiter = RateLimiter(build_rate_limit_store())

register_error_handlers(app)


@app.middleware("http")
async def ensure_session_cookie(request: Request, call_next):
    """Give API callers a short-lived session_id cookie for analytics correlation."""
    response = await call_next(request)
    if request.url.path.startswith("/api/") and SESSION_COOKIE not in request.cookies:
        response.set_cookie(
            SESSION_COOKIE,
            generate_session_id(),
            max_age=SESSION_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=env_config.get("secure_cookies", True),
        )
    return response


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=env_config.get("cors_origins", ["*"]),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(deal_router)
app.include_router(cron_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": env_config.environment.value}


# Scalar API Documentation
@app.get("/scalar", include_in_schema=False)
async def scalar_html():
    """
    Scalar API Documentation endpoint.
    Access at: http://localhost:8000/scalar
    """
    return get_scalar_api_reference(
        openapi_url=app.openapi_url,
        title=app.title + " - Scalar API Documentation",
    )


if __name__ == "__main__":
    uvicorn.run(
        "speakabout.main:app",
        host="0.0.0.0",
        port=8000,
        reload=env_config.get("debug", False),
        log_level="info",
    )
