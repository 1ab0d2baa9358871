"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from, in priority order:
  1. The "access_token" cookie -- set by POST /auth/login and /auth/register.
  2. Authorization: Bearer <token> header -- non-browser clients.

get_current_identity() resolves the token through the AccessGate stored on
app.state and raises Unauthenticated (401) on failure.
require_roles(*roles) builds a dependency that additionally raises
Forbidden (403) unless the identity's role is one of roles.

Both raise AuthError subclasses rather than HTTPException; the AuthError
handler in api/main.py renders them.

Layer rule: no imports from api/, core/, or prefs/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.gate import AccessGate
from auth.models import Identity, Role
from auth.tokens import SESSION_COOKIE


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def extract_token(request: Request) -> str | None:
    """Return the session token from the cookie or Bearer header, if any."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def get_current_identity(request: Request) -> Identity:
    """Require a valid session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    gate: AccessGate = request.app.state.access_gate
    identity = gate.authenticate(extract_token(request), client_ip=client_ip(request))
    request.state.identity = identity
    return identity


def require_roles(*roles: Role) -> Callable[[Request], Identity]:
    """Build a dependency admitting only identities whose role is in roles.

    Use as a FastAPI dependency:
        @router.get("/dashboard")
        def route(identity: Identity = Depends(require_roles(Role.teacher))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> Identity:
        identity = get_current_identity(request)
        gate: AccessGate = request.app.state.access_gate
        return gate.authorize(identity, allowed, client_ip=client_ip(request))

    return dependency
