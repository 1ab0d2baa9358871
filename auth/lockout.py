"""
auth/lockout.py -- Brute-force lockout decisions.

LockoutGuard is pure: it reads a loaded UserAccount and a caller-supplied
"now" and returns decisions. It never writes. AuthService is the only place
that sequences a guard decision with a CredentialStore write, which keeps the
lockout policy independent of how failure state is persisted.

Two concurrent failed logins for the same account may both read the same
attempt count and both write count+1. That loses one increment. Lockout is
advisory hardening, so last-writer-wins is accepted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from auth.models import UserAccount

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCKOUT_DURATION = timedelta(minutes=15)


@dataclass(frozen=True)
class Admitted:
    pass


@dataclass(frozen=True)
class Locked:
    retry_after_minutes: int


@dataclass(frozen=True)
class FailureState:
    """What the store should persist after a failed attempt.

    lockout_until is None when this failure did not trigger a lockout.
    """

    attempts: int
    lockout_until: datetime | None


class LockoutGuard:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        lockout_duration: timedelta = DEFAULT_LOCKOUT_DURATION,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration

    def check_admission(self, account: UserAccount, now: datetime) -> Admitted | Locked:
        """Refuse the attempt while a lockout is in the future.

        retry_after_minutes is rounded up, so a lockout with 10 seconds left
        reports 1 minute rather than 0.
        """
        if account.lockout_until is not None and account.lockout_until > now:
            remaining = (account.lockout_until - now).total_seconds()
            return Locked(retry_after_minutes=math.ceil(remaining / 60))
        return Admitted()

    def on_failure(self, account: UserAccount, now: datetime) -> FailureState:
        attempts = account.failed_login_attempts + 1
        lockout_until = now + self.lockout_duration if attempts >= self.max_attempts else None
        return FailureState(attempts=attempts, lockout_until=lockout_until)

    def on_success(self, account: UserAccount) -> bool:
        """Return True when the stored failure state needs resetting.

        An expired lockout still counts: this is where it gets cleared.
        """
        return account.failed_login_attempts > 0 or account.lockout_until is not None
