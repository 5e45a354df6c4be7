"""Repository for User CRUD operations.

Provides database access for the users table. Lookups used by the lifecycle
manager lock the returned row (SELECT ... FOR UPDATE) so that the read and
the following update observe the same snapshot within the caller's
transaction.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.models.user import User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'email', 'created_at', or 'updated_at'.
# - id: primary key, immutable
# - email: unique identity key
# - created_at/updated_at: server-managed timestamps
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "encrypted_password",
        "email_verified",
        "email_verified_at",
        "verify_email_token",
        "verify_email_sent_at",
        "magic_link_token",
        "magic_link_sent_at",
        "reset_password_token",
        "reset_password_sent_at",
        "sign_in_count",
        "last_sign_in_at",
        "given_name",
        "family_name",
        "phone_number",
        "job",
    }
)

# Fields accepted by create() in addition to email.
_CREATABLE_FIELDS: frozenset[str] = frozenset(
    {"encrypted_password", "last_sign_in_at"}
)

FieldValue = str | datetime | bool | int | None


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static, no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_email(
        db: AsyncSession, email: str, *, for_update: bool = False
    ) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.
            for_update: Lock the row until the transaction ends.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_magic_link_token(db: AsyncSession, token: str) -> User | None:
        """Fetch and lock the user holding a magic link token.

        Args:
            db: Async database session.
            token: Exact token value.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.magic_link_token == token).with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_reset_password_token(
        db: AsyncSession, token: str
    ) -> User | None:
        """Fetch and lock the user holding a reset password token.

        Args:
            db: Async database session.
            token: Exact token value.

        Returns:
            User if found, None otherwise.
        """
        stmt = (
            select(User).where(User.reset_password_token == token).with_for_update()
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        **kwargs: FieldValue,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            **kwargs: Optional encrypted_password / last_sign_in_at.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            ValueError: If an unknown field name is passed.
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        unknown = set(kwargs) - _CREATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = User(email=email.strip().lower(), **kwargs)
        # Savepoint: a duplicate email rolls back this insert only, the
        # request transaction stays usable.
        async with db.begin_nested():
            db.add(user)
            await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: FieldValue,
    ) -> User | None:
        """Merge the supplied fields into a user row.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError. All fields are written by a single flush.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user
