"""
tests/conftest.py -- Shared test fixtures for PrefTrack tests.

This module provides:
  - _db_url(): named shared-memory SQLite URI for one test module
  - _patch_lifespan(): runs init_app_state() against a test database
  - api_client: TestClient plus ready-made student and teacher tokens
  - credential_store / service: unit-test objects on a private in-memory DB

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool, and because
CredentialStore and PreferenceStore hold separate engines that must see the
same users table. Plain :memory: DBs are per-connection and would present a
blank schema to each of them.

Environment variables must be set before any api/auth/core import:
  DEBUG=true           -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4      -- keeps hashing fast; the cost factor is not under test
  AUTH_RATE_LIMIT      -- high enough that the suite never trips the limiter
  ALLOWED_HOSTS        -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# CRITICAL: Set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, close_app_state, init_app_state
from auth.lockout import LockoutGuard
from auth.models import Role
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import SessionIssuer, hash_password
from core.config import Settings, get_settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
STRONG_PASSWORD = "Str0ng!Pass"


class FakeClock:
    """Settable clock for lockout tests. Starts at the real current time."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _db_url(db_suffix: str) -> str:
    """Named shared-memory SQLite URI, unique per test module via db_suffix."""
    return f"sqlite:///file:test_preftrack_{db_suffix}?mode=memory&cache=shared&uri=true"


def _test_settings(db_suffix: str) -> Settings:
    return get_settings().model_copy(update={"database_url": _db_url(db_suffix)})


def _patch_lifespan(settings: Settings):
    """Return an async context manager that replaces the real lifespan.

    Uses the real init_app_state() so tests exercise the production wiring,
    pointed at an isolated test database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_app_state(app, settings)
        yield
        close_app_state(app)

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, student_token, teacher_token) for API integration tests.

    Accounts "stuart" (student) and "mrsmith" (teacher), both with password
    STRONG_PASSWORD, are created directly in the store once the lifespan has
    run. The tokens are for use in Authorization: Bearer headers.
    """
    settings = _test_settings(request.module.__name__.rsplit(".", 1)[-1])
    app.router.lifespan_context = _patch_lifespan(settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        store: CredentialStore = app.state.credential_store
        issuer: SessionIssuer = app.state.auth_service.issuer
        pw_hash = hash_password(STRONG_PASSWORD, rounds=4)
        student = store.create("stuart", pw_hash, Role.student)
        teacher = store.create("mrsmith", pw_hash, Role.teacher)
        student_token = issuer.issue(student.id, student.username, student.role).token
        teacher_token = issuer.issue(teacher.id, teacher.username, teacher.role).token
        yield client, student_token, teacher_token


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def credential_store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock: FakeClock) -> SessionIssuer:
    return SessionIssuer(TEST_SECRET, expire_seconds=3600, clock=clock)


@pytest.fixture
def service(credential_store: CredentialStore, issuer: SessionIssuer, clock: FakeClock) -> AuthService:
    """AuthService with the default lockout policy (5 attempts, 15 minutes) and a fake clock."""
    return AuthService(credential_store, issuer, LockoutGuard(), bcrypt_rounds=4, clock=clock)
