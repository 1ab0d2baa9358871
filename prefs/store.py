"""
prefs/store.py -- SQLAlchemy Core persistence for student preferences.

Pattern: Repository + Data Mapper (same as auth/store.py).
PreferenceStore is the repository; _row_to_preferences / _row_to_summary
are the mappers.

The preferences table lives in the same database as the users table owned
by auth/store.py. The teacher roster is a LEFT JOIN against users; that
query is written as bound-parameter SQL text so this package does not need
auth/'s Table object.

favorite_subjects is stored as a JSON array in a TEXT column. A value that
does not decode to a list is treated as an empty list and logged; one bad
row never breaks the dashboard.

Layer rule: no imports from api/ or auth/. From core/ only core.db.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine

from core.db import make_engine
from prefs.models import StudentPreferences, StudentSummary

logger = logging.getLogger("preftrack.prefs")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_preferences = Table(
    "student_preferences",
    _metadata,
    Column("user_id", Integer, primary_key=True),  # one row per student; users.id
    Column("favorite_subjects", Text, nullable=False, server_default="[]"),  # JSON array
    Column("dreams", Text, nullable=False, server_default=""),
    Column("dream_job", String(100), nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_ROSTER_SQL = text(
    """
    SELECT
        u.id AS user_id,
        u.username,
        sp.favorite_subjects,
        sp.dreams,
        sp.dream_job,
        sp.created_at AS preferences_created_at,
        sp.updated_at AS preferences_updated_at
    FROM users u
    LEFT JOIN student_preferences sp ON u.id = sp.user_id
    WHERE u.role = :role
    ORDER BY u.username
    """
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _decode_subjects(raw: Optional[str], user_id: int) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Could not parse favorite_subjects for user %s: %r", user_id, raw)
        return []
    if not isinstance(value, list):
        logger.warning("favorite_subjects for user %s is not a list: %r", user_id, raw)
        return []
    return [str(v) for v in value]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PreferenceStore:
    """Repository for StudentPreferences and the teacher roster.

    Usage:
        store = PreferenceStore("sqlite:///preftrack.db")
        store.upsert(1, ["Math", "Art"], "Travel the world", "Architect")
        prefs = store.get(1)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def get(self, user_id: int) -> Optional[StudentPreferences]:
        """Return saved preferences, or None if the student has not saved any yet."""
        with self.engine.connect() as conn:
            row = conn.execute(_preferences.select().where(_preferences.c.user_id == user_id)).fetchone()
        return _row_to_preferences(row) if row is not None else None

    def upsert(self, user_id: int, favorite_subjects: list[str], dreams: str, dream_job: str) -> StudentPreferences:
        """Create or replace a student's preferences and return the stored record.

        created_at is kept from the first insert; updated_at moves on every call.
        """
        now = _now_iso()
        subjects_json = json.dumps(list(favorite_subjects))
        stmt = sqlite_insert(_preferences).values(
            user_id=user_id,
            favorite_subjects=subjects_json,
            dreams=dreams,
            dream_job=dream_job,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_preferences.c.user_id],
            set_={
                "favorite_subjects": stmt.excluded.favorite_subjects,
                "dreams": stmt.excluded.dreams,
                "dream_job": stmt.excluded.dream_job,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self.engine.connect() as conn:
            conn.execute(stmt)
            conn.commit()
            row = conn.execute(_preferences.select().where(_preferences.c.user_id == user_id)).fetchone()
        return _row_to_preferences(row)

    def list_students(self, role: str = "student") -> list[StudentSummary]:
        """Every account with the given role, with preferences if saved."""
        with self.engine.connect() as conn:
            rows = conn.execute(_ROSTER_SQL, {"role": role}).fetchall()
        return [_row_to_summary(r) for r in rows]

    def get_user_role(self, user_id: int) -> Optional[str]:
        """Return the stored role string for a user id, or None if no such user."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT role FROM users WHERE id = :id"), {"id": user_id}).scalar()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_preferences(row) -> StudentPreferences:
    return StudentPreferences(
        user_id=row.user_id,
        favorite_subjects=_decode_subjects(row.favorite_subjects, row.user_id),
        dreams=row.dreams or "",
        dream_job=row.dream_job or "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_summary(row) -> StudentSummary:
    return StudentSummary(
        user_id=row.user_id,
        username=row.username,
        favorite_subjects=_decode_subjects(row.favorite_subjects, row.user_id),
        dreams=row.dreams,
        dream_job=row.dream_job,
        preferences_created_at=row.preferences_created_at,
        preferences_updated_at=row.preferences_updated_at,
    )
