"""
auth/errors.py -- Exception taxonomy for the credential and session core.

Every error the core raises on purpose derives from AuthError and carries
the HTTP status, a machine-readable code and a client-safe message. The API
layer has a single exception handler for AuthError (api/main.py); nothing in
auth/ imports fastapi to raise HTTPException directly, except the thin
dependency wrappers in auth/dependencies.py.

Categories:
  input     (400)  -- client-correctable, message safe to show verbatim.
  auth      (401/403) -- deliberately uninformative toward attackers. The
                    detail (username, source IP, reason) goes to the
                    preftrack.auth logger, never into the message.
  conflict  (409)  -- username existence is not treated as sensitive.
  internal  (500)  -- generic message, full detail in logs.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all errors raised by the auth package."""

    status_code: int = 500
    code: str = "internal_error"
    status: str = "error"  # "fail" for client errors, "error" for server errors
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Input errors (400)
# ---------------------------------------------------------------------------


class InvalidInput(AuthError):
    status_code = 400
    code = "invalid_input"
    status = "fail"
    default_message = "Invalid input."


class WeakPassword(AuthError):
    """Raised with the message of the first password policy rule violated."""

    status_code = 400
    code = "weak_password"
    status = "fail"


class PasswordMismatch(AuthError):
    status_code = 400
    code = "password_mismatch"
    status = "fail"
    default_message = "New password and confirm password do not match."


class SamePassword(AuthError):
    status_code = 400
    code = "same_password"
    status = "fail"
    default_message = "New password cannot be the same as the current password."


# ---------------------------------------------------------------------------
# Conflict (409)
# ---------------------------------------------------------------------------


class DuplicateUsername(AuthError):
    status_code = 409
    code = "duplicate_username"
    status = "fail"
    default_message = "Username already exists."


# ---------------------------------------------------------------------------
# Authentication / authorization (401 / 403)
# ---------------------------------------------------------------------------


class InvalidCredentials(AuthError):
    """Same message for an unknown username and a wrong password."""

    status_code = 401
    code = "invalid_credentials"
    status = "fail"
    default_message = "Incorrect username or password."


class LockedOut(AuthError):
    status_code = 401
    code = "locked_out"
    status = "fail"

    def __init__(self, retry_after_minutes: int) -> None:
        self.retry_after_minutes = retry_after_minutes
        super().__init__(
            f"Too many failed login attempts. Please try again in {retry_after_minutes} minutes."
        )


class WrongCurrentPassword(AuthError):
    status_code = 401
    code = "wrong_current_password"
    status = "fail"
    default_message = "Incorrect current password."


class Unauthenticated(AuthError):
    """No usable session.

    reason is one of "missing", "malformed", "expired", "user_gone". It only
    picks the message and the log line; every reason is handled the same way.
    """

    status_code = 401
    code = "unauthenticated"
    status = "fail"

    _MESSAGES = {
        "missing": "You are not logged in! Please log in to get access.",
        "malformed": "Invalid token. Please log in again.",
        "expired": "Your token has expired! Please log in again.",
        "user_gone": "The user belonging to this token does no longer exist.",
    }

    def __init__(self, reason: str = "missing") -> None:
        self.reason = reason
        super().__init__(self._MESSAGES.get(reason, "Authentication failed. Please log in again."))


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    status = "fail"
    default_message = "You do not have permission to perform this action."


# ---------------------------------------------------------------------------
# Internal (500)
# ---------------------------------------------------------------------------


class UserVanished(AuthError):
    """An authenticated principal has no account row during a password change."""

    code = "internal_error"
    default_message = "Internal server error during password change."
