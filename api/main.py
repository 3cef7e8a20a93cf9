"""
api/main.py -- FastAPI application entry point for authgate.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan builds the long-lived components (user store, rate limiter, auth
service) on startup and tears them down on shutdown. Nothing is ambient
module state; routes reach them through request.app.state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import RateLimiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings
from core.errors import AuthError, AuthGateError, FatalError, RateLimitError

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build and tear down application-level components.

    Startup order matters: the auth service wraps the store, so the store
    comes first. Shutdown releases them in reverse.
    """
    settings = get_settings()
    logger.info("authgate API starting up (environment=%s)", settings.environment)
    app.state.user_store = UserStore(settings.database_url)
    app.state.rate_limiter = RateLimiter.from_settings(settings)
    logger.info(
        "Rate limiter initialized (%d requests / %ds, %s)",
        settings.auth_rate_limit_requests,
        settings.auth_rate_limit_window_seconds,
        settings.rate_limit_strategy,
    )
    app.state.auth_service = AuthService(app.state.user_store, timeout_seconds=settings.repository_timeout_seconds)

    yield

    app.state.rate_limiter.close()
    app.state.user_store.close()
    logger.info("authgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authgate API",
    description="User registration, password login and bearer-token verification.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body has the same shape: {"error": "<message>"}. Messages come
# from core.errors and are safe to show; underlying exceptions are logged
# server-side and never included in the response.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(AuthGateError)
async def auth_gate_error_handler(request: Request, exc: AuthGateError) -> JSONResponse:
    """Render a taxonomy error with its status code and client-safe message.

    RateLimitError adds Retry-After (seconds). AuthError adds
    WWW-Authenticate so clients know a Bearer token is expected.
    """
    if isinstance(exc, FatalError):
        logger.error(
            "Internal failure on %s %s",
            request.method,
            request.url.path,
            exc_info=exc.__cause__ or exc,
        )
    response = _error(exc.status_code, exc.message)
    if isinstance(exc, RateLimitError):
        response.headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, AuthError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the body is not JSON or has the wrong types."""
    return _error(400, "Invalid request body.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework errors (404, 405, ...) in the standard error envelope."""
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, FatalError.default_message)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly here (not in a router) so it is always reachable. Not
# rate-limited -- load balancer checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, environment and database reachability.

    The ping runs in a worker thread under repository_timeout_seconds; a slow
    or failing database reports "error" instead of holding the response.
    """
    settings = get_settings()
    database = "ok"
    try:
        await asyncio.wait_for(
            asyncio.to_thread(request.app.state.user_store.ping),
            timeout=settings.repository_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("Health check: database ping timed out after %ss", settings.repository_timeout_seconds)
        database = "error"
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        database = "error"
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=settings.environment,
        version=VERSION,
        components={"app": "ok", "database": database},
    )
