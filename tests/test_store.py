"""Unit tests for auth/store.py -- UserStore persistence rules.

Covers:
- create() assigns id/created_at and enforces UNIQUE(email)
- otp/otp_expires pairing is checked with and without full validation
- update_by_id() / save() / delete_by_id() return values
- consume_otp() clears a code exactly once and respects the deadline
- session records: create, lookup, expiry, delete
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.errors import ValidationError
from auth.models import User
from auth.store import UserStore

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _pending_user(email: str = "ann@example.com") -> User:
    return User(
        name="Ann",
        email=email,
        hashed_password="$2b$12$hash",
        otp="123456",
        otp_expires=NOW + timedelta(minutes=10),
    )


@pytest.fixture
def pending(store: UserStore) -> User:
    return store.create(_pending_user())


class TestCreate:
    def test_assigns_id_and_created_at(self, pending):
        assert pending.id is not None
        assert pending.created_at

    def test_round_trips_aware_expiry(self, store, pending):
        stored = store.find_by_id(pending.id)
        assert stored.otp_expires == NOW + timedelta(minutes=10)
        assert stored.otp_expires.tzinfo is not None

    def test_duplicate_email_raises_integrity_error(self, store, pending):
        with pytest.raises(IntegrityError):
            store.create(_pending_user())

    def test_requires_name(self, store):
        user = _pending_user()
        user.name = ""
        with pytest.raises(ValidationError):
            store.create(user)

    def test_rejects_unpaired_otp(self, store):
        user = _pending_user()
        user.otp_expires = None
        with pytest.raises(ValidationError):
            store.create(user)


class TestFind:
    def test_find_by_email_exact(self, store, pending):
        assert store.find_by_email("ann@example.com").id == pending.id
        assert store.find_by_email("ANN@example.com") is None

    def test_find_missing(self, store):
        assert store.find_by_id(12345) is None
        assert store.find_by_email("nobody@example.com") is None


class TestUpdateAndSave:
    def test_update_by_id_returns_updated_user(self, store, pending):
        updated = store.update_by_id(pending.id, {"name": "Annie"})
        assert updated.name == "Annie"
        assert store.find_by_id(pending.id).name == "Annie"

    def test_update_unknown_user(self, store):
        assert store.update_by_id(999, {"name": "Ghost"}) is None

    def test_update_rejects_immutable_fields(self, store, pending):
        with pytest.raises(ValueError):
            store.update_by_id(pending.id, {"email": "new@example.com"})

    def test_update_full_validation(self, store, pending):
        with pytest.raises(ValidationError):
            store.update_by_id(pending.id, {"name": ""})
        assert store.find_by_id(pending.id).name == "Ann"

    def test_save_without_validation_skips_required_fields(self, store, pending):
        pending.name = ""
        pending.otp = "654321"
        store.save(pending, validate=False)
        stored = store.find_by_id(pending.id)
        assert stored.otp == "654321"
        assert stored.name == ""

    def test_save_without_validation_still_checks_otp_pairing(self, store, pending):
        pending.otp = None
        with pytest.raises(ValidationError):
            store.save(pending, validate=False)

    def test_save_clears_both_otp_fields(self, store, pending):
        pending.otp = None
        pending.otp_expires = None
        store.save(pending, validate=False)
        stored = store.find_by_id(pending.id)
        assert stored.otp is None and stored.otp_expires is None

    def test_save_requires_id(self, store):
        with pytest.raises(ValueError):
            store.save(_pending_user())


class TestConsumeOtp:
    def test_consumes_once(self, store, pending):
        assert store.consume_otp(pending.id, "123456", NOW) is True
        assert store.consume_otp(pending.id, "123456", NOW) is False
        stored = store.find_by_id(pending.id)
        assert stored.otp is None and stored.otp_expires is None

    def test_wrong_code_leaves_state(self, store, pending):
        assert store.consume_otp(pending.id, "000000", NOW) is False
        assert store.find_by_id(pending.id).otp == "123456"

    def test_expired_code(self, store, pending):
        assert store.consume_otp(pending.id, "123456", NOW + timedelta(minutes=10)) is False
        assert store.find_by_id(pending.id).otp == "123456"


class TestDelete:
    def test_delete_returns_removed_user(self, store, pending):
        removed = store.delete_by_id(pending.id)
        assert removed.email == "ann@example.com"
        assert store.find_by_id(pending.id) is None

    def test_delete_missing(self, store):
        assert store.delete_by_id(999) is None


class TestSessions:
    def test_create_and_get(self, store, pending):
        session = store.create_session(pending.id, "Ann", 3600, NOW)
        found = store.get_session(session.id, NOW + timedelta(minutes=5))
        assert found.user_id == pending.id
        assert found.name == "Ann"
        assert found.expires_at == NOW + timedelta(hours=1)

    def test_session_ids_are_unique(self, store, pending):
        a = store.create_session(pending.id, "Ann", 3600, NOW)
        b = store.create_session(pending.id, "Ann", 3600, NOW)
        assert a.id != b.id

    def test_expired_session_not_returned(self, store, pending):
        session = store.create_session(pending.id, "Ann", 3600, NOW)
        assert store.get_session(session.id, NOW + timedelta(hours=1)) is None

    def test_delete_session(self, store, pending):
        session = store.create_session(pending.id, "Ann", 3600, NOW)
        assert store.delete_session(session.id) is True
        assert store.delete_session(session.id) is False
        assert store.get_session(session.id, NOW) is None

    def test_deleting_user_removes_sessions(self, store, pending):
        session = store.create_session(pending.id, "Ann", 3600, NOW)
        store.delete_by_id(pending.id)
        assert store.get_session(session.id, NOW) is None
