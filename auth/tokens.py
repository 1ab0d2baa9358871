"""
auth/tokens.py -- Session tokens, password hashing, and the session cookie.

Security design decisions:
  Sessions: python-jose with HS256. Tokens are signed with SECRET_KEY and
       carry user_id, username (sub), role, iat and exp. The server keeps no
       session table, so a token stays valid until exp. Verification raises
       TokenExpired or TokenMalformed; AccessGate turns both into a 401.

  Passwords: bcrypt directly (no passlib wrapper). The cost factor is a
       startup setting (BCRYPT_ROUNDS) and trades brute-force resistance
       against login latency. bcrypt only looks at the first 72 bytes of the
       input; AuthService rejects longer passwords before they get here.

  SECRET_KEY: SessionIssuer receives it through its constructor. The value
       is validated once by core.config.Settings at startup; this module never
       reads configuration on its own.

Layer rule: no imports from api/, core/, or prefs/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import IssuedToken, Role, SessionClaims

logger = logging.getLogger("preftrack.auth")

_ALGORITHM = "HS256"

# Cookie carrying the session token. Logout overwrites it with the sentinel.
SESSION_COOKIE = "access_token"
LOGGED_OUT = "loggedout"
_LOGGED_OUT_MAX_AGE = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash or an
    over-long input counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


class TokenVerificationError(Exception):
    reason = "malformed"


class TokenMalformed(TokenVerificationError):
    """Unparseable token, bad signature, or missing/unknown claims."""

    reason = "malformed"


class TokenExpired(TokenVerificationError):
    reason = "expired"


class SessionIssuer:
    """Mints and verifies signed session tokens.

    Usage:
        issuer = SessionIssuer(settings.secret_key, settings.token_expire_seconds)
        issued = issuer.issue(user_id=1, username="alice", role=Role.student)
        claims = issuer.verify(issued.token)
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            # Settings already refuses to start without a key; this guards
            # direct construction (CLI, tests).
            raise ValueError("SessionIssuer requires a signing secret")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    def issue(self, user_id: int, username: str, role: Role) -> IssuedToken:
        issued_at = self._clock()
        expires_at = issued_at + timedelta(seconds=self.expire_seconds)
        payload = {
            "sub": username,
            "user_id": user_id,
            "role": Role(role).value,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> SessionClaims:
        """Decode and check a token. Raises TokenExpired or TokenMalformed.

        jose checks the signature and claim presence; exp is compared against
        the issuer's clock here so issue() and verify() share one notion of now.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={
                    "verify_exp": False,
                    "require_exp": True,
                    "require_iat": True,
                    "require_sub": True,
                },
            )
        except JWTError as exc:
            raise TokenMalformed(str(exc)) from exc

        exp = payload["exp"]
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise TokenMalformed("exp claim is not an integer timestamp")
        if exp < self._clock().timestamp():
            raise TokenExpired("token has expired")

        user_id = payload.get("user_id")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise TokenMalformed("user_id claim missing or not an integer")
        try:
            role = Role(payload.get("role"))
        except ValueError as exc:
            raise TokenMalformed(f"unknown role claim {payload.get('role')!r}") from exc

        return SessionClaims(
            user_id=user_id,
            username=payload["sub"],
            role=role,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true (production).
    max_age: matches the token lifetime so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response, secure: bool) -> None:
    """Overwrite the session cookie with the logged-out sentinel.

    This is the only revocation mechanism: the token itself stays valid
    until exp, so this only ends the session on the device that holds it.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=LOGGED_OUT,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=_LOGGED_OUT_MAX_AGE,
    )
