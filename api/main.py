"""
api/main.py -- FastAPI application entry point for PrefTrack.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- browser client origin, credentials (cookies) allowed
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. log_requests          -- method, path, status, latency, client IP

Lifespan builds every long-lived object once -- stores, SessionIssuer,
LockoutGuard, AuthService, AccessGate -- from a single Settings value and
parks them on app.state. Route handlers only ever read app.state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.students import router as students_router
from api.routes.v1.teachers import router as teachers_router
from auth.errors import AuthError
from auth.gate import AccessGate
from auth.lockout import LockoutGuard
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import SessionIssuer
from core.config import Settings, get_settings
from prefs.store import PreferenceStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("preftrack.api")

# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------


def init_app_state(app: FastAPI, settings: Settings) -> None:
    """Construct the auth core and stores from settings and attach them to app.state.

    Order matters: both stores must exist before AuthService and AccessGate,
    which receive the credential store through their constructors.
    """
    app.state.settings = settings
    app.state.credential_store = CredentialStore(settings.database_url)
    app.state.preference_store = PreferenceStore(settings.database_url)

    issuer = SessionIssuer(settings.secret_key, expire_seconds=settings.token_expire_seconds)
    guard = LockoutGuard(
        max_attempts=settings.max_login_attempts,
        lockout_duration=timedelta(minutes=settings.lockout_minutes),
    )
    app.state.auth_service = AuthService(
        app.state.credential_store,
        issuer,
        guard,
        bcrypt_rounds=settings.bcrypt_rounds,
        max_username_length=settings.max_username_length,
    )
    app.state.access_gate = AccessGate(issuer, app.state.credential_store)


def close_app_state(app: FastAPI) -> None:
    app.state.preference_store.close()
    app.state.credential_store.close()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. A bad SECRET_KEY fails here, before the first request.
    """
    logger.info("PrefTrack API starting up")
    settings = get_settings()
    init_app_state(app, settings)
    logger.info(
        "Auth initialized (users=%d, max_login_attempts=%d, lockout_minutes=%d, token_expire_seconds=%d)",
        app.state.credential_store.count_users(),
        settings.max_login_attempts,
        settings.lockout_minutes,
        settings.token_expire_seconds,
    )

    yield

    close_app_state(app)
    logger.info("PrefTrack API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="PrefTrack API",
    description="Student preferences and teacher roster, behind cookie-based sessions.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,  # the session travels in a cookie
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(students_router, prefix="/api/v1", tags=["Students"])
app.include_router(teachers_router, prefix="/api/v1", tags=["Teachers"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope
# {status: "fail"|"error", code, message} so clients parse errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    status = "fail" if status_code < 500 else "error"
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(status=status, code=code, message=message, detail=detail).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render core errors. The message is already client-safe.

    Server-side details (username, IP, reason) were logged where the error
    was raised; internal errors get a traceback here as well.
    """
    if exc.status_code >= 500:
        logger.error("Internal auth error on %s %s: %r", request.method, request.url.path, exc)
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(status=exc.status, code=exc.code, message=exc.message).model_dump(),
    )
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Plain def: SlowAPIMiddleware calls this handler directly and returns its
    result without awaiting it.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(
        429,
        "rate_limited",
        "Too many requests from this IP, please try again later.",
        detail=str(exc.detail),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body and path validation failures are client-correctable input errors: 400."""
    return _error(400, "invalid_input", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException, including routing 404/405, in the error envelope.

    Routes raise HTTPException with detail={"code", "message"}.
    """
    if isinstance(exc.detail, dict):
        return _error(
            exc.status_code,
            exc.detail.get("code", f"http_{exc.status_code}"),
            exc.detail.get("message", ""),
        )
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors, storage failures included.

    The raw exception is logged, never returned. The client receives only a
    generic message. Nothing is retried.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancers must always reach it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database = "ok"
    try:
        request.app.state.credential_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(version=__version__, components={"app": "ok", "database": database})
