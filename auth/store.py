"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as prefs/store.py).
CredentialStore is the repository; _row_to_account is the mapper.
Service, gate and route code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Username uniqueness is enforced by the UNIQUE constraint on users.username.
  create() does not read before it inserts -- two concurrent registrations
  for the same name race on the INSERT, the database lets exactly one win,
  and the loser's IntegrityError becomes DuplicateUsername.

  Failure counters are written last-writer-wins. No row locking: lockout is
  advisory hardening, not a correctness-critical counter.

Timestamps are stored as ISO 8601 text (UTC) and mapped to tz-aware
datetimes on the way out.

Layer rule: no imports from api/ or prefs/. From core/ only core.db.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUsername
from auth.models import Role, UserAccount
from core.db import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("role", String(20), nullable=False, server_default="student"),
    Column("failed_login_attempts", Integer, nullable=False, server_default="0"),
    Column("lockout_until", String(32)),  # ISO 8601 UTC, NULL = not locked
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for UserAccount records.

    Usage:
        store = CredentialStore("sqlite:///preftrack.db")
        account = store.create("alice", hash_password("Str0ng!Pass"), Role.student)
        store.find_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create(self, username: str, password_hash: str, role: Role) -> UserAccount:
        """Insert a new account and return it with its assigned id.

        Raises DuplicateUsername if the UNIQUE constraint on username fires.
        """
        created_at = _now_iso()
        role = Role(role)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    users.insert().values(
                        username=username,
                        password=password_hash,
                        role=role.value,
                        failed_login_attempts=0,
                        lockout_until=None,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateUsername() from exc
        return UserAccount(
            id=result.inserted_primary_key[0],
            username=username,
            password_hash=password_hash,
            role=role,
            created_at=created_at,
        )

    def find_by_username(self, username: str) -> UserAccount | None:
        """Exact, case-sensitive lookup. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.username == username)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, user_id: int) -> UserAccount | None:
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self) -> list[UserAccount]:
        """All accounts ordered by username. Used by the admin CLI."""
        with self.engine.connect() as conn:
            rows = conn.execute(users.select().order_by(users.c.username)).fetchall()
        return [_row_to_account(r) for r in rows]

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Failure state
    # ------------------------------------------------------------------

    def record_failed_attempt(self, user_id: int, attempts: int, lockout_until: datetime | None) -> None:
        """Persist a new failure count, and a lockout if one was triggered.

        A None lockout_until leaves the stored value alone rather than
        clearing it; only a successful login or password change clears it.
        """
        values: dict = {"failed_login_attempts": attempts}
        if lockout_until is not None:
            values["lockout_until"] = _to_iso(lockout_until)
        with self.engine.connect() as conn:
            conn.execute(users.update().where(users.c.id == user_id).values(**values))
            conn.commit()

    def reset_failure_state(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                users.update().where(users.c.id == user_id).values(failed_login_attempts=0, lockout_until=None)
            )
            conn.commit()

    def update_password_hash(self, user_id: int, new_hash: str) -> None:
        """Replace the password hash and reset failure state in one UPDATE."""
        with self.engine.connect() as conn:
            conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(password=new_hash, failed_login_attempts=0, lockout_until=None)
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> UserAccount:
    # Role() raises ValueError for a value outside the closed set; a row like
    # that is a data problem and must not produce an authenticated identity.
    return UserAccount(
        id=row.id,
        username=row.username,
        password_hash=row.password,
        role=Role(row.role),
        failed_login_attempts=row.failed_login_attempts or 0,
        lockout_until=_from_iso(row.lockout_until),
        created_at=row.created_at,
    )
