"""Unit tests for auth/store.py -- UserStore persistence.

Covers:
- create_user() assigns an opaque id and timestamps, canonicalizes email
- Case-insensitive lookup and uniqueness (IntegrityError on duplicates)
- update_user() whitelist, bool conversion, updated_at stamping, missing id
- update_last_login() stamps a timestamp
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore


def _user(email: str = "jo@example.com") -> User:
    return User(email=email, first_name="Jo", last_name="Do", password_hash="$2b$04$" + "x" * 53)


class TestCreate:
    def test_assigns_id_and_timestamps(self, store: UserStore) -> None:
        created = store.create_user(_user())
        assert created.id and len(created.id) == 32
        assert created.created_at is not None
        assert created.updated_at == created.created_at
        assert created.last_login is None
        assert created.is_active is True
        assert created.is_email_verified is False

    def test_email_stored_lowercased(self, store: UserStore) -> None:
        created = store.create_user(_user("Jo@Example.COM"))
        assert created.email == "jo@example.com"

    def test_ids_are_unique(self, store: UserStore) -> None:
        a = store.create_user(_user("a@example.com"))
        b = store.create_user(_user("b@example.com"))
        assert a.id != b.id

    def test_duplicate_email_raises_integrity_error(self, store: UserStore) -> None:
        store.create_user(_user("dup@example.com"))
        with pytest.raises(IntegrityError):
            store.create_user(_user("dup@example.com"))

    def test_duplicate_differs_only_in_case(self, store: UserStore) -> None:
        store.create_user(_user("dup@example.com"))
        with pytest.raises(IntegrityError):
            store.create_user(_user("DUP@Example.com"))


class TestLookup:
    def test_get_by_email_is_case_insensitive(self, store: UserStore) -> None:
        created = store.create_user(_user())
        found = store.get_by_email("  JO@example.com ")
        assert found is not None
        assert found.id == created.id

    def test_get_by_email_missing(self, store: UserStore) -> None:
        assert store.get_by_email("nobody@example.com") is None

    def test_get_by_id(self, store: UserStore) -> None:
        created = store.create_user(_user())
        assert store.get_by_id(created.id) == created

    def test_get_by_id_missing(self, store: UserStore) -> None:
        assert store.get_by_id("0" * 32) is None


class TestUpdate:
    def test_updates_fields_and_stamps_updated_at(self, store: UserStore) -> None:
        created = store.create_user(_user())
        updated = store.update_user(created.id, first_name="Joanna", is_active=False)
        assert updated is not None
        assert updated.first_name == "Joanna"
        assert updated.is_active is False
        assert updated.updated_at >= created.updated_at
        assert updated.created_at == created.created_at

    def test_unknown_field_rejected(self, store: UserStore) -> None:
        created = store.create_user(_user())
        with pytest.raises(ValueError, match="Unknown user fields"):
            store.update_user(created.id, created_at="1970-01-01T00:00:00+00:00")

    def test_missing_user_returns_none(self, store: UserStore) -> None:
        assert store.update_user("0" * 32, first_name="X") is None

    def test_update_last_login(self, store: UserStore) -> None:
        created = store.create_user(_user())
        updated = store.update_last_login(created.id)
        assert updated is not None
        assert updated.last_login is not None
        assert updated.last_login >= created.created_at

    def test_ping(self, store: UserStore) -> None:
        store.ping()


def test_repr_hides_password_hash(store: UserStore) -> None:
    created = store.create_user(_user())
    assert "password_hash" not in repr(created)
    assert created.password_hash not in repr(created)
