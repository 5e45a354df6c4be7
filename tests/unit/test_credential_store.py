"""Tests for SqlCredentialStore delegation to UserRepository."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from accounts.services.credential_store import (
    DuplicateEmailError,
    SqlCredentialStore,
)

_REPO = "accounts.services.credential_store.UserRepository"


@pytest.fixture
def db() -> MagicMock:
    return MagicMock()


class TestSqlCredentialStore:
    """SqlCredentialStore locks rows on lookup and surfaces missing users."""

    async def test_find_by_email_locks_row(self, db):
        user = MagicMock()
        with patch(f"{_REPO}.get_by_email", new_callable=AsyncMock) as get:
            get.return_value = user

            result = await SqlCredentialStore(db).find_by_email("jean@example.com")

        assert result is user
        get.assert_awaited_once_with(db, "jean@example.com", for_update=True)

    async def test_find_by_magic_link_token(self, db):
        with patch(
            f"{_REPO}.get_by_magic_link_token", new_callable=AsyncMock
        ) as get:
            get.return_value = None

            result = await SqlCredentialStore(db).find_by_magic_link_token("tok")

        assert result is None
        get.assert_awaited_once_with(db, "tok")

    async def test_find_by_reset_password_token(self, db):
        user = MagicMock()
        with patch(
            f"{_REPO}.get_by_reset_password_token", new_callable=AsyncMock
        ) as get:
            get.return_value = user

            result = await SqlCredentialStore(db).find_by_reset_password_token("tok")

        assert result is user
        get.assert_awaited_once_with(db, "tok")

    async def test_create_forwards_fields(self, db):
        with patch(f"{_REPO}.create", new_callable=AsyncMock) as create:
            await SqlCredentialStore(db).create(
                email="jean@example.com", encrypted_password="hash"
            )

        create.assert_awaited_once_with(
            db, email="jean@example.com", encrypted_password="hash"
        )

    async def test_create_duplicate_email_raises_duplicate_email_error(self, db):
        integrity_error = IntegrityError(
            "INSERT INTO users", {}, Exception("users_email_key")
        )
        with (
            patch(
                f"{_REPO}.create",
                new_callable=AsyncMock,
                side_effect=integrity_error,
            ),
            pytest.raises(DuplicateEmailError) as exc_info,
        ):
            await SqlCredentialStore(db).create(email="jean@example.com")

        assert exc_info.value.__cause__ is integrity_error

    async def test_update_returns_user(self, db):
        user_id = uuid.uuid4()
        user = MagicMock()
        with patch(f"{_REPO}.update", new_callable=AsyncMock) as update:
            update.return_value = user

            result = await SqlCredentialStore(db).update(user_id, job="Professeur")

        assert result is user
        update.assert_awaited_once_with(db, user_id, job="Professeur")

    async def test_update_missing_user_raises_lookup_error(self, db):
        with (
            patch(f"{_REPO}.update", new_callable=AsyncMock, return_value=None),
            pytest.raises(LookupError),
        ):
            await SqlCredentialStore(db).update(uuid.uuid4(), job="Professeur")
