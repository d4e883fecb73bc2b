"""
tests/test_user_store.py -- Tests for auth/store.py (UserStore).

Each test gets a fresh in-memory SQLite database via the `store` fixture.
"""

from __future__ import annotations

import dataclasses
from datetime import timedelta

import pytest

from auth.errors import DuplicateIdentifier, StoreConflict
from auth.models import IdentifierKind, UserCredential
from auth.store import UserStore
from tests.conftest import T0


def _new(email="Alice@X.com", username="Alice", **kw) -> UserCredential:
    return UserCredential(email=email, username=username, password_hash="$2b$04$hash", **kw)


# ---------------------------------------------------------------------------
# create / find
# ---------------------------------------------------------------------------


class TestCreateAndFind:
    def test_create_assigns_id_and_normalizes(self, store: UserStore):
        record = store.create(_new(email="  Alice@X.com ", username="ALICE"))
        assert record.id
        assert record.email == "alice@x.com"
        assert record.username == "alice"
        assert record.version == 1
        assert record.created_at is not None

    def test_create_keeps_given_created_at(self, store: UserStore):
        record = store.create(_new(created_at=T0))
        assert store.find_by_id(record.id).created_at == T0

    def test_find_by_email_or_username_case_insensitive(self, store: UserStore):
        created = store.create(_new())
        for ident in ("alice@x.com", "ALICE@X.COM", "alice", " Alice "):
            found = store.find_by_identifier(ident)
            assert found is not None, ident
            assert found.id == created.id

    def test_find_unknown_returns_none(self, store: UserStore):
        store.create(_new())
        assert store.find_by_identifier("bob") is None
        assert store.find_by_id("no-such-id") is None

    def test_exists_by_identifier_checks_one_column(self, store: UserStore):
        store.create(_new())
        assert store.exists_by_identifier(IdentifierKind.EMAIL, "ALICE@x.com")
        assert store.exists_by_identifier(IdentifierKind.USERNAME, "alice")
        assert not store.exists_by_identifier(IdentifierKind.EMAIL, "alice")
        assert not store.exists_by_identifier(IdentifierKind.USERNAME, "alice@x.com")

    def test_round_trip_preserves_fields(self, store: UserStore):
        record = store.create(_new(created_at=T0))
        updated = dataclasses.replace(
            record,
            failed_attempts=3,
            locked_until=T0 + timedelta(hours=2),
            password_changed_at=T0 - timedelta(seconds=1),
            last_login=T0,
            is_active=False,
            current_refresh_token="refresh.token.value",
        )
        store.save(updated)
        loaded = store.find_by_id(record.id)
        assert loaded.failed_attempts == 3
        assert loaded.locked_until == T0 + timedelta(hours=2)
        assert loaded.password_changed_at == T0 - timedelta(seconds=1)
        assert loaded.last_login == T0
        assert loaded.is_active is False
        assert loaded.current_refresh_token == "refresh.token.value"
        assert loaded.locked_until.tzinfo is not None


# ---------------------------------------------------------------------------
# Uniqueness
# ---------------------------------------------------------------------------


class TestUniqueness:
    def test_duplicate_email_rejected(self, store: UserStore):
        store.create(_new())
        with pytest.raises(DuplicateIdentifier):
            store.create(_new(email="ALICE@x.com", username="other"))

    def test_duplicate_username_rejected(self, store: UserStore):
        store.create(_new())
        with pytest.raises(DuplicateIdentifier):
            store.create(_new(email="other@x.com", username="alice"))


# ---------------------------------------------------------------------------
# Optimistic concurrency
# ---------------------------------------------------------------------------


class TestSave:
    def test_save_bumps_version(self, store: UserStore):
        record = store.create(_new())
        saved = store.save(dataclasses.replace(record, failed_attempts=1))
        assert saved.version == record.version + 1
        assert store.find_by_id(record.id).version == saved.version

    def test_stale_version_conflicts(self, store: UserStore):
        record = store.create(_new())
        store.save(dataclasses.replace(record, failed_attempts=1))
        with pytest.raises(StoreConflict):
            store.save(dataclasses.replace(record, failed_attempts=2))
        assert store.find_by_id(record.id).failed_attempts == 1

    def test_save_of_missing_row_conflicts(self, store: UserStore):
        with pytest.raises(StoreConflict):
            store.save(dataclasses.replace(_new(), id="ghost", version=1))
