"""Unit tests for auth/tokens.py -- SessionIssuer and password hashing.

Covers:
- issue() / verify() carry user_id, username and role
- Expired tokens raise TokenExpired; tampered or foreign tokens TokenMalformed
- Claims outside the closed role set are malformed
- hash_password / verify_password, including malformed stored hashes
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Role
from auth.tokens import (
    SessionIssuer,
    TokenExpired,
    TokenMalformed,
    hash_password,
    verify_password,
)

SECRET = "unit-test-secret-key-with-32-plus-characters"


def _issuer(**kwargs) -> SessionIssuer:
    return SessionIssuer(SECRET, **kwargs)


class TestSessionIssuer:
    def test_empty_secret_is_rejected(self):
        with pytest.raises(ValueError):
            SessionIssuer("")

    def test_issue_then_verify(self):
        issuer = _issuer()
        issued = issuer.issue(7, "alice", Role.student)
        claims = issuer.verify(issued.token)
        assert claims.user_id == 7
        assert claims.username == "alice"
        assert claims.role is Role.student
        assert claims.expires_at == issued.expires_at.replace(microsecond=0)

    def test_expiry_is_issue_time_plus_lifetime(self):
        fixed = datetime(2030, 1, 1, tzinfo=timezone.utc)
        issued = _issuer(expire_seconds=600, clock=lambda: fixed).issue(1, "bob", Role.teacher)
        assert issued.expires_at == fixed + timedelta(seconds=600)

    def test_expired_token(self):
        two_hours_ago = datetime.now(timezone.utc) - timedelta(hours=2)
        token = _issuer(clock=lambda: two_hours_ago).issue(1, "alice", Role.student).token
        with pytest.raises(TokenExpired) as exc_info:
            _issuer().verify(token)
        assert exc_info.value.reason == "expired"

    def test_expiry_follows_injected_clock(self, issuer, clock):
        token = issuer.issue(1, "alice", Role.student).token
        clock.advance(timedelta(seconds=3599))
        assert issuer.verify(token).username == "alice"

        clock.advance(timedelta(seconds=2))
        with pytest.raises(TokenExpired):
            issuer.verify(token)

    def test_future_clock_does_not_accept_stale_token(self):
        """A token that the wall clock would still accept is expired for a later clock."""
        token = _issuer(expire_seconds=60).issue(1, "alice", Role.student).token
        later = datetime.now(timezone.utc) + timedelta(minutes=5)
        with pytest.raises(TokenExpired):
            _issuer(clock=lambda: later).verify(token)

    def test_non_integer_exp_claim(self):
        token = jwt.encode(
            {"sub": "eve", "user_id": 1, "role": "student", "iat": 1, "exp": "tomorrow"},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenMalformed):
            _issuer().verify(token)

    def test_tampered_token(self):
        token = _issuer().issue(1, "alice", Role.student).token
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(TokenMalformed) as exc_info:
            _issuer().verify(tampered)
        assert exc_info.value.reason == "malformed"

    def test_token_signed_with_another_secret(self):
        token = SessionIssuer("another-secret-key-with-32-plus-characters").issue(1, "a", Role.student).token
        with pytest.raises(TokenMalformed):
            _issuer().verify(token)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c"])
    def test_garbage(self, garbage):
        with pytest.raises(TokenMalformed):
            _issuer().verify(garbage)

    def test_unknown_role_claim(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "eve", "user_id": 1, "role": "admin", "iat": now, "exp": now + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenMalformed):
            _issuer().verify(token)

    @pytest.mark.parametrize("user_id", ["1", None, True, 1.5])
    def test_non_integer_user_id_claim(self, user_id):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "eve", "user_id": user_id, "role": "student", "iat": now, "exp": now + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenMalformed):
            _issuer().verify(token)

    def test_missing_exp_claim(self):
        token = jwt.encode(
            {"sub": "eve", "user_id": 1, "role": "student", "iat": datetime.now(timezone.utc)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenMalformed):
            _issuer().verify(token)


class TestPasswordHashing:
    def test_hash_is_salted(self):
        a = hash_password("Str0ng!Pass", rounds=4)
        b = hash_password("Str0ng!Pass", rounds=4)
        assert a != b
        assert verify_password("Str0ng!Pass", a)
        assert verify_password("Str0ng!Pass", b)

    def test_wrong_password(self):
        assert not verify_password("Wr0ng!Pass", hash_password("Str0ng!Pass", rounds=4))

    def test_rounds_are_encoded_in_hash(self):
        assert hash_password("Str0ng!Pass", rounds=5).startswith("$2b$05$")

    def test_malformed_stored_hash_is_a_mismatch(self):
        assert verify_password("Str0ng!Pass", "not-a-bcrypt-hash") is False
