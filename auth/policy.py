"""
auth/policy.py -- Password strength rules.

Rules run in a fixed order and the first failure wins, so a given password
always produces the same message. The browser client runs an identical copy
of these rules for instant feedback; the server copy here is the one that
counts. Change both together.

Layer rule: stdlib only.
"""

from __future__ import annotations

import re
from enum import Enum

# Fixed symbol set: !@#$%^&*()_+-=[]{};':"\|,.<>/?
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"[0-9]")

MIN_PASSWORD_LENGTH = 8


class PolicyViolation(Enum):
    """One member per rule, in evaluation order. value is the user-facing message."""

    too_short = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
    missing_uppercase = "Password must contain at least one uppercase letter."
    missing_lowercase = "Password must contain at least one lowercase letter."
    missing_digit = "Password must contain at least one number."
    missing_special = "Password must contain at least one special character (!@#$%^&*()...)."

    @property
    def message(self) -> str:
        return self.value


class PasswordPolicy:
    """Stateless validator. A single shared instance is fine."""

    def validate(self, password: str) -> PolicyViolation | None:
        """Return the first violated rule, or None if the password is acceptable."""
        if len(password) < MIN_PASSWORD_LENGTH:
            return PolicyViolation.too_short
        if not _UPPER_RE.search(password):
            return PolicyViolation.missing_uppercase
        if not _LOWER_RE.search(password):
            return PolicyViolation.missing_lowercase
        if not _DIGIT_RE.search(password):
            return PolicyViolation.missing_digit
        if not _SPECIAL_RE.search(password):
            return PolicyViolation.missing_special
        return None


def check_password_policy(password: str) -> str | None:
    """Return the violation message for password, or None. Convenience for the CLI."""
    violation = PasswordPolicy().validate(password)
    return violation.message if violation else None
