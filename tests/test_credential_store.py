"""Unit tests for auth/store.py -- CredentialStore.

Covers:
- create / find_by_username / find_by_id round trip, case-sensitive lookup
- DuplicateUsername on the UNIQUE constraint, including concurrent inserts
- record_failed_attempt leaves a stored lockout alone when passed None
- reset_failure_state / update_password_hash clear the failure state
- Rows with a role outside the closed set are refused at mapping time
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from auth.errors import DuplicateUsername
from auth.models import Role
from auth.store import CredentialStore

LOCKOUT = datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)


def test_create_and_find(credential_store):
    created = credential_store.create("alice", "$2b$04$hash", Role.student)
    assert created.id is not None
    assert created.failed_login_attempts == 0
    assert created.lockout_until is None

    by_name = credential_store.find_by_username("alice")
    by_id = credential_store.find_by_id(created.id)
    assert by_name == by_id
    assert by_name.username == "alice"
    assert by_name.password_hash == "$2b$04$hash"
    assert by_name.role is Role.student
    assert by_name.created_at is not None


def test_lookup_is_case_sensitive(credential_store):
    credential_store.create("alice", "h", Role.student)
    assert credential_store.find_by_username("Alice") is None
    # A differently-cased name is a different account.
    assert credential_store.create("Alice", "h", Role.student).username == "Alice"


def test_missing_user(credential_store):
    assert credential_store.find_by_username("nobody") is None
    assert credential_store.find_by_id(999) is None


def test_duplicate_username(credential_store):
    credential_store.create("alice", "h1", Role.student)
    with pytest.raises(DuplicateUsername):
        credential_store.create("alice", "h2", Role.teacher)
    assert credential_store.count_users() == 1
    assert credential_store.find_by_username("alice").password_hash == "h1"


def test_concurrent_duplicate_registration_creates_one_account(tmp_path):
    """Eight threads insert the same username at once; exactly one wins."""
    store = CredentialStore(f"sqlite:///{tmp_path / 'race.db'}")
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    lock = threading.Lock()

    def register():
        barrier.wait()
        try:
            store.create("alice", "h", Role.student)
            result = "created"
        except DuplicateUsername:
            result = "duplicate"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=register) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["created"] + ["duplicate"] * 7
    assert store.count_users() == 1
    store.close()


def test_record_failed_attempt(credential_store):
    uid = credential_store.create("alice", "h", Role.student).id

    credential_store.record_failed_attempt(uid, 4, None)
    account = credential_store.find_by_id(uid)
    assert account.failed_login_attempts == 4
    assert account.lockout_until is None

    credential_store.record_failed_attempt(uid, 5, LOCKOUT)
    account = credential_store.find_by_id(uid)
    assert account.failed_login_attempts == 5
    assert account.lockout_until == LOCKOUT


def test_failed_attempt_without_lockout_keeps_stored_lockout(credential_store):
    uid = credential_store.create("alice", "h", Role.student).id
    credential_store.record_failed_attempt(uid, 5, LOCKOUT)
    credential_store.record_failed_attempt(uid, 6, None)
    account = credential_store.find_by_id(uid)
    assert account.failed_login_attempts == 6
    assert account.lockout_until == LOCKOUT


def test_naive_lockout_is_stored_as_utc(credential_store):
    uid = credential_store.create("alice", "h", Role.student).id
    credential_store.record_failed_attempt(uid, 5, datetime(2024, 5, 1, 10, 15))
    assert credential_store.find_by_id(uid).lockout_until == LOCKOUT


def test_reset_failure_state(credential_store):
    uid = credential_store.create("alice", "h", Role.student).id
    credential_store.record_failed_attempt(uid, 5, LOCKOUT)
    credential_store.reset_failure_state(uid)
    account = credential_store.find_by_id(uid)
    assert account.failed_login_attempts == 0
    assert account.lockout_until is None


def test_update_password_hash_resets_failure_state(credential_store):
    uid = credential_store.create("alice", "old", Role.student).id
    credential_store.record_failed_attempt(uid, 3, LOCKOUT + timedelta(days=1))
    credential_store.update_password_hash(uid, "new")
    account = credential_store.find_by_id(uid)
    assert account.password_hash == "new"
    assert account.failed_login_attempts == 0
    assert account.lockout_until is None


def test_list_accounts_orders_by_username(credential_store):
    for name in ("carol", "alice", "bob"):
        credential_store.create(name, "h", Role.student)
    assert [a.username for a in credential_store.list_accounts()] == ["alice", "bob", "carol"]
    assert credential_store.count_users() == 3


def test_unknown_stored_role_is_refused(credential_store):
    uid = credential_store.create("mallory", "h", Role.student).id
    with credential_store.engine.connect() as conn:
        conn.execute(text("UPDATE users SET role = 'admin' WHERE id = :id"), {"id": uid})
        conn.commit()
    with pytest.raises(ValueError):
        credential_store.find_by_id(uid)


def test_ping(credential_store):
    assert credential_store.ping() is True
