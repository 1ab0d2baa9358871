"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in prefs/models.py -- dataclasses own domain shape; the store, guard and
service do the work.

Layer rule: no imports from api/, core/, or prefs/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles.

    There is no hierarchy: a teacher is not implicitly a student. Unknown
    values raise ValueError at the two entry points that build a Role from
    untrusted text -- row mapping in auth/store.py and token verification in
    auth/tokens.py.
    """

    student = "student"
    teacher = "teacher"


@dataclass
class UserAccount:
    """A persisted user record, including credential and lockout state.

    password_hash never leaves auth/store.py and auth/service.py. Anything
    handed to a route handler is an Identity, which has no hash field.

    lockout_until is a tz-aware UTC datetime. A value in the past means the
    same thing as None; it is cleared on the next successful login rather
    than by a background job.
    """

    username: str
    password_hash: str
    role: Role
    id: int | None = None
    failed_login_attempts: int = 0
    lockout_until: datetime | None = None
    created_at: str | None = None

    def to_identity(self) -> Identity:
        return Identity(id=self.id, username=self.username, role=self.role)


@dataclass(frozen=True)
class Identity:
    """The authenticated principal attached to a request."""

    id: int
    username: str
    role: Role

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role.value}


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    user_id: int
    username: str
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class AuthResult:
    """Returned by AuthService.register() and AuthService.login()."""

    token: str
    expires_at: datetime
    identity: Identity
