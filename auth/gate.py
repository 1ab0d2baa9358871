"""
auth/gate.py -- Session verification and role gating.

AccessGate turns a raw session token into an Identity, or refuses. It is
framework-agnostic; auth/dependencies.py adapts it to FastAPI's Depends().

Every refusal is Unauthenticated (401) or Forbidden (403). The reason on an
Unauthenticated error (missing / malformed / expired / user_gone) selects a
message and a log line; callers handle all reasons identically.

Layer rule: no imports from api/, core/, or prefs/.
"""

from __future__ import annotations

import logging
from collections.abc import Collection

from auth.errors import Forbidden, Unauthenticated
from auth.models import Identity, Role
from auth.store import CredentialStore
from auth.tokens import LOGGED_OUT, SessionIssuer, TokenVerificationError

logger = logging.getLogger("preftrack.auth")


class AccessGate:
    def __init__(self, issuer: SessionIssuer, store: CredentialStore) -> None:
        self.issuer = issuer
        self.store = store

    def authenticate(self, token: str | None, client_ip: str | None = None) -> Identity:
        """Verify token and confirm its principal still exists.

        The returned Identity comes from the stored account, not from the
        token claims, so a role stored on the account is authoritative.
        """
        if not token or token == LOGGED_OUT:
            logger.warning("SECURITY: Authentication failed - No token provided or logged out. IP: %s", client_ip)
            raise Unauthenticated("missing")

        try:
            claims = self.issuer.verify(token)
        except TokenVerificationError as exc:
            logger.warning(
                "SECURITY: Authentication failed - Token verification error: %s - %s. IP: %s",
                exc.reason,
                exc,
                client_ip,
            )
            raise Unauthenticated(exc.reason) from exc

        account = self.store.find_by_id(claims.user_id)
        if account is None:
            logger.warning(
                "SECURITY: Authentication failed - User from token not found. Token ID: %s, IP: %s",
                claims.user_id,
                client_ip,
            )
            raise Unauthenticated("user_gone")

        return account.to_identity()

    def authorize(
        self, identity: Identity, allowed_roles: Collection[Role], client_ip: str | None = None
    ) -> Identity:
        """Plain set membership. No role implies another."""
        if identity.role not in allowed_roles:
            logger.warning(
                "SECURITY: Authorization failed - User %s (ID: %s) with role '%s' attempted to access "
                "restricted route. Allowed roles: %s. IP: %s",
                identity.username,
                identity.id,
                identity.role.value,
                ", ".join(sorted(Role(r).value for r in allowed_roles)),
                client_ip,
            )
            raise Forbidden()
        return identity
