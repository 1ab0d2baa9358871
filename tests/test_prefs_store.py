"""Unit tests for prefs/store.py -- PreferenceStore.

Covers:
- get() returns None before the first save
- upsert() inserts, then replaces while keeping created_at
- list_students() is a LEFT JOIN: students without preferences are included,
  teachers are not
- Corrupt favorite_subjects JSON degrades to an empty list
"""

import pytest
from sqlalchemy import text

from auth.models import Role
from auth.store import CredentialStore
from prefs.store import PreferenceStore


@pytest.fixture
def stores(tmp_path):
    """CredentialStore and PreferenceStore sharing one SQLite file.

    The credential store is created first: it owns the users table that the
    roster query joins against.
    """
    url = f"sqlite:///{tmp_path / 'prefs.db'}"
    creds = CredentialStore(url)
    prefs = PreferenceStore(url)
    yield creds, prefs
    prefs.close()
    creds.close()


def test_get_before_save(stores):
    creds, prefs = stores
    uid = creds.create("alice", "h", Role.student).id
    assert prefs.get(uid) is None


def test_upsert_inserts_then_replaces(stores):
    creds, prefs = stores
    uid = creds.create("alice", "h", Role.student).id

    first = prefs.upsert(uid, ["Math", "Art"], "Travel", "Architect")
    assert first.favorite_subjects == ["Math", "Art"]
    assert first.created_at is not None
    assert first.created_at == first.updated_at

    second = prefs.upsert(uid, ["Biology"], "", "Doctor")
    assert second.favorite_subjects == ["Biology"]
    assert second.dreams == ""
    assert second.dream_job == "Doctor"
    assert second.created_at == first.created_at
    assert second.updated_at >= first.updated_at

    assert prefs.get(uid) == second


def test_list_students_left_join(stores):
    creds, prefs = stores
    bob = creds.create("bob", "h", Role.student).id
    creds.create("alice", "h", Role.student)
    creds.create("mrsmith", "h", Role.teacher)
    prefs.upsert(bob, ["Music"], "Tour", "Drummer")

    roster = prefs.list_students()
    assert [s.username for s in roster] == ["alice", "bob"]

    alice_row, bob_row = roster
    assert alice_row.favorite_subjects == []
    assert alice_row.dreams is None
    assert alice_row.preferences_created_at is None
    assert bob_row.favorite_subjects == ["Music"]
    assert bob_row.dream_job == "Drummer"


def test_get_user_role(stores):
    creds, prefs = stores
    teacher = creds.create("mrsmith", "h", Role.teacher).id
    assert prefs.get_user_role(teacher) == "teacher"
    assert prefs.get_user_role(12345) is None


@pytest.mark.parametrize("raw", ["not json", '{"a": 1}', '"Math"'])
def test_corrupt_subjects_degrade_to_empty(stores, raw):
    creds, prefs = stores
    uid = creds.create("alice", "h", Role.student).id
    prefs.upsert(uid, ["Math"], "", "")
    with prefs.engine.connect() as conn:
        conn.execute(
            text("UPDATE student_preferences SET favorite_subjects = :raw WHERE user_id = :id"),
            {"raw": raw, "id": uid},
        )
        conn.commit()
    assert prefs.get(uid).favorite_subjects == []
    assert prefs.list_students()[0].favorite_subjects == []
