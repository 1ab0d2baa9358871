"""
auth/service.py -- Register, login and change-password orchestration.

AuthService is the only component that sequences PasswordPolicy,
LockoutGuard, CredentialStore and SessionIssuer. Route handlers call it and
translate AuthError subclasses into HTTP responses (api/main.py).

Security design decisions:
  [C1] Timing equalization. login() runs bcrypt against a dummy hash when the
       username does not exist, so response time does not reveal whether an
       account exists. Unknown user and wrong password raise the same
       InvalidCredentials message; only the log line differs.

  [C2] Locked accounts never reach bcrypt. check_admission() runs before the
       password compare, so a locked account answers LockedOut whether or not
       the password is right and leaks nothing about it.

  [C3] The methods are synchronous and CPU-bound while bcrypt runs. Routes
       call them from sync handlers, which FastAPI dispatches to its worker
       threadpool; no lock is held around the hash computation.

Layer rule: no imports from api/, core/, or prefs/. Configuration arrives
through the constructor.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from auth.errors import (
    DuplicateUsername,
    InvalidCredentials,
    InvalidInput,
    LockedOut,
    PasswordMismatch,
    SamePassword,
    UserVanished,
    WeakPassword,
    WrongCurrentPassword,
)
from auth.lockout import Locked, LockoutGuard
from auth.models import AuthResult, Role, UserAccount
from auth.policy import PasswordPolicy
from auth.store import CredentialStore
from auth.tokens import SessionIssuer, hash_password, verify_password

logger = logging.getLogger("preftrack.auth")

# bcrypt ignores everything past 72 bytes; newer releases refuse it outright.
MAX_PASSWORD_BYTES = 72

_DEFAULT_ROLE = Role.student


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Credential workflows over an explicit set of collaborators.

    Usage:
        service = AuthService(store, issuer, LockoutGuard(), bcrypt_rounds=12)
        result = service.register("alice", "Str0ng!Pass")
        result = service.login("alice", "Str0ng!Pass", client_ip="10.0.0.5")
    """

    def __init__(
        self,
        store: CredentialStore,
        issuer: SessionIssuer,
        guard: LockoutGuard,
        policy: PasswordPolicy | None = None,
        bcrypt_rounds: int = 12,
        max_username_length: int = 50,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.guard = guard
        self.policy = policy or PasswordPolicy()
        self.bcrypt_rounds = bcrypt_rounds
        self.max_username_length = max_username_length
        self._clock = clock
        # [C1] Computed once per service so the first unknown-user login is
        # not measurably faster than later ones.
        self._dummy_hash = hash_password("preftrack_timing_dummy", rounds=bcrypt_rounds)

    # ------------------------------------------------------------------
    # register
    # ------------------------------------------------------------------

    def register(self, username: str, password: str, client_ip: str | None = None) -> AuthResult:
        """Create a student account and open a session for it.

        Raises InvalidInput, WeakPassword or DuplicateUsername.
        """
        if not username or not password:
            raise InvalidInput("Username and password are required.")
        if len(username) > self.max_username_length:
            raise InvalidInput(f"Username cannot exceed {self.max_username_length} characters.")
        self._check_password_length(password)

        violation = self.policy.validate(password)
        if violation is not None:
            raise WeakPassword(violation.message)

        password_hash = hash_password(password, rounds=self.bcrypt_rounds)
        try:
            account = self.store.create(username, password_hash, _DEFAULT_ROLE)
        except DuplicateUsername:
            logger.warning(
                "SECURITY: Registration failed - Username already exists: %s from IP: %s", username, client_ip
            )
            raise

        logger.info("SECURITY: User registered: %s (ID: %s) from IP: %s", username, account.id, client_ip)
        return self._open_session(account)

    # ------------------------------------------------------------------
    # login
    # ------------------------------------------------------------------

    def login(self, username: str, password: str, client_ip: str | None = None) -> AuthResult:
        """Check credentials and lockout state, then open a session.

        Raises InvalidInput, InvalidCredentials or LockedOut.
        """
        if not username or not password:
            logger.warning("SECURITY: Login failed - Missing credentials from IP: %s", client_ip)
            raise InvalidInput("Please provide username and password.")

        account = self.store.find_by_username(username)
        if account is None:
            verify_password(password, self._dummy_hash)  # [C1]
            logger.warning("SECURITY: Login failed - User not found: %s from IP: %s", username, client_ip)
            raise InvalidCredentials()

        now = self._clock()
        admission = self.guard.check_admission(account, now)
        if isinstance(admission, Locked):  # [C2]
            logger.warning(
                "SECURITY: Login failed - Account locked out: %s from IP: %s. Lockout ends at %s.",
                username,
                client_ip,
                account.lockout_until.isoformat(),
            )
            raise LockedOut(admission.retry_after_minutes)

        if not verify_password(password, account.password_hash):
            failure = self.guard.on_failure(account, now)
            self.store.record_failed_attempt(account.id, failure.attempts, failure.lockout_until)
            if failure.lockout_until is not None:
                logger.warning(
                    "SECURITY: Login failed - User locked out: %s from IP: %s after %d attempts. Lockout until %s",
                    username,
                    client_ip,
                    failure.attempts,
                    failure.lockout_until.isoformat(),
                )
            else:
                logger.warning(
                    "SECURITY: Login failed - Incorrect password for user: %s from IP: %s. Failed attempts: %d",
                    username,
                    client_ip,
                    failure.attempts,
                )
            raise InvalidCredentials()

        if self.guard.on_success(account):
            self.store.reset_failure_state(account.id)
            logger.info(
                "SECURITY: User logged in successfully: %s (ID: %s) from IP: %s. Failed attempts reset.",
                username,
                account.id,
                client_ip,
            )
        else:
            logger.info(
                "SECURITY: User logged in successfully: %s (ID: %s) from IP: %s.", username, account.id, client_ip
            )
        return self._open_session(account)

    # ------------------------------------------------------------------
    # change_password
    # ------------------------------------------------------------------

    def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        confirm_new_password: str,
        client_ip: str | None = None,
    ) -> None:
        """Replace the password of an already-authenticated user.

        The caller is responsible for clearing the session cookie afterwards.
        Other sessions for the same account stay valid until they expire;
        there is no server-side revocation list.

        Raises InvalidInput, PasswordMismatch, WeakPassword, UserVanished,
        WrongCurrentPassword or SamePassword.
        """
        if not current_password or not new_password or not confirm_new_password:
            raise InvalidInput("Please provide current password, new password, and confirm password.")
        if new_password != confirm_new_password:
            raise PasswordMismatch()
        self._check_password_length(new_password)

        violation = self.policy.validate(new_password)
        if violation is not None:
            raise WeakPassword(violation.message)

        account = self.store.find_by_id(user_id)
        if account is None:
            logger.error(
                "SECURITY: Password change failed - User with ID %s not found during password change from IP: %s.",
                user_id,
                client_ip,
            )
            raise UserVanished()

        if not verify_password(current_password, account.password_hash):
            logger.warning(
                "SECURITY: Password change failed - Incorrect current password for user %s (ID: %s) from IP: %s.",
                account.username,
                user_id,
                client_ip,
            )
            raise WrongCurrentPassword()

        if verify_password(new_password, account.password_hash):
            logger.warning(
                "SECURITY: Password change failed - New password is same as current for user %s (ID: %s) from IP: %s.",
                account.username,
                user_id,
                client_ip,
            )
            raise SamePassword()

        self.store.update_password_hash(user_id, hash_password(new_password, rounds=self.bcrypt_rounds))
        logger.info(
            "SECURITY: Password changed successfully for user %s (ID: %s) from IP: %s.",
            account.username,
            user_id,
            client_ip,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_password_length(password: str) -> None:
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidInput(f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes.")

    def _open_session(self, account: UserAccount) -> AuthResult:
        issued = self.issuer.issue(account.id, account.username, account.role)
        return AuthResult(token=issued.token, expires_at=issued.expires_at, identity=account.to_identity())
