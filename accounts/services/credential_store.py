"""Credential Store contract consumed by the lifecycle manager.

The manager only needs five operations: three lookups, create and a partial
update. Lookups return None when nothing matches, never raise.
SqlCredentialStore adapts UserRepository to that contract for one request's
AsyncSession.
"""

import uuid
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.models.user import User
from accounts.repositories.user_repository import FieldValue, UserRepository


class DuplicateEmailError(Exception):
    """create() lost a race: another account with this email now exists."""


class CredentialStore(Protocol):
    """Durable user records keyed by email and by pending token.

    create() raises DuplicateEmailError when the email is already taken,
    including by a concurrent request that committed after the caller's
    find_by_email() returned None.
    """

    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_magic_link_token(self, token: str) -> User | None: ...

    async def find_by_reset_password_token(self, token: str) -> User | None: ...

    async def create(self, *, email: str, **fields: FieldValue) -> User: ...

    async def update(self, user_id: uuid.UUID, **fields: FieldValue) -> User: ...


class SqlCredentialStore:
    """CredentialStore backed by PostgreSQL through UserRepository.

    Every lookup locks the matching row, so the caller's read-modify-write
    is atomic for the lifetime of the session's transaction. A missing row
    cannot be locked; concurrent creations are caught by the unique index
    on users.email instead.

    Args:
        db: Request-scoped async session. The caller commits.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_email(self, email: str) -> User | None:
        return await UserRepository.get_by_email(self._db, email, for_update=True)

    async def find_by_magic_link_token(self, token: str) -> User | None:
        return await UserRepository.get_by_magic_link_token(self._db, token)

    async def find_by_reset_password_token(self, token: str) -> User | None:
        return await UserRepository.get_by_reset_password_token(self._db, token)

    async def create(self, *, email: str, **fields: FieldValue) -> User:
        """Insert a new user row.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        try:
            return await UserRepository.create(self._db, email=email, **fields)
        except IntegrityError as exc:
            raise DuplicateEmailError(email) from exc

    async def update(self, user_id: uuid.UUID, **fields: FieldValue) -> User:
        """Merge fields into the user row.

        Raises:
            LookupError: If the user vanished between read and update.
        """
        user = await UserRepository.update(self._db, user_id, **fields)
        if user is None:
            msg = f"User {user_id} does not exist"
            raise LookupError(msg)
        return user
