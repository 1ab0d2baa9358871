"""
api/routes/v1/auth.py -- Registration, login and session endpoints.

Routes:
  POST     /api/v1/auth/register         -- create student account; sets session cookie; 201
  POST     /api/v1/auth/login            -- password login; sets session cookie
  GET|POST /api/v1/auth/logout           -- overwrite cookie with the logged-out sentinel
  POST     /api/v1/auth/change-password  -- requires auth; clears session cookie on success
  GET      /api/v1/auth/me               -- current identity (requires auth)

Security:
  [H2] POST /register and POST /login are rate-limited per IP (AUTH_RATE_LIMIT).
  [C1] AuthService.login() does timing equalization and lockout -- use it, never inline.
  [M5] Cache-Control: no-store on responses carrying a token.

Register, login and change-password are plain `def` handlers: FastAPI runs
them in its threadpool, so bcrypt never blocks the event loop.

AuthError subclasses raised by the service propagate to the AuthError
handler in api/main.py, which renders {status, code, message}.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    UserOut,
)
from auth.dependencies import client_ip, get_current_identity
from auth.models import AuthResult, Identity
from auth.service import AuthService
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import Settings

# Auth policy:
# - POST     /auth/register:        public -- rate limited
# - POST     /auth/login:           public -- rate limited
# - GET|POST /auth/logout:          public -- clearing a cookie needs no prior auth
# - POST     /auth/change-password: requires auth (get_current_identity)
# - GET      /auth/me:              requires auth (get_current_identity)
router = APIRouter()


def _user_out(identity: Identity) -> UserOut:
    return UserOut(id=identity.id, username=identity.username, role=identity.role.value)


def _session_response(result: AuthResult, status_code: int, settings: Settings) -> JSONResponse:
    """Build the success body and attach the session cookie."""
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            token=result.token,
            expires_at=result.expires_at.isoformat(),
            user=_user_out(result.identity),
        ).model_dump(),
    )
    set_auth_cookie(resp, result.token, max_age=settings.token_expire_seconds, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_RATE_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a student account and log it in.

    The role is always student. Teacher accounts are provisioned with the
    admin CLI (main.py create-user --role teacher).
    """
    service: AuthService = request.app.state.auth_service
    result = service.register(body.username or "", body.password or "", client_ip=client_ip(request))
    return _session_response(result, 201, request.app.state.settings)


@limiter.limit(AUTH_RATE_LIMIT)  # [H2]
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set the session cookie.

    Unknown username and wrong password return the same 401 body. A locked
    account returns 401 with the retry time, whatever the password.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.username or "", body.password or "", client_ip=client_ip(request))
    return _session_response(result, 200, request.app.state.settings)


@router.api_route("/auth/logout", methods=["GET", "POST"], response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """End the session on this device. Stateless: nothing server-side changes."""
    resp = JSONResponse(content=MessageResponse(message="User logged out successfully").model_dump())
    clear_auth_cookie(resp, secure=request.app.state.settings.secure_cookies)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    """Change the caller's password and clear their session cookie.

    Other sessions already issued for this account stay valid until they
    expire; the cookie on this device is the only one revoked.
    """
    service: AuthService = request.app.state.auth_service
    service.change_password(
        identity.id,
        body.current_password or "",
        body.new_password or "",
        body.confirm_new_password or "",
        client_ip=client_ip(request),
    )
    resp = JSONResponse(
        content=MessageResponse(
            message="Password changed successfully. Please log in again with your new password."
        ).model_dump()
    )
    clear_auth_cookie(resp, secure=request.app.state.settings.secure_cookies)
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return the identity attached to the current session."""
    return MeResponse(user=_user_out(identity))
