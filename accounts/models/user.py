"""User model - the only entity owned by the account core.

Each single-use token is stored as a (token, sent_at) column pair. Both
columns are written together and cleared together.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from accounts.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """User account and its pending token operations.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored lower-cased.
        encrypted_password: bcrypt hash. NULL for magic-link-only accounts.
        email_verified: Whether mailbox ownership is currently proven.
        email_verified_at: When it was last proven. Only meaningful while
            email_verified is true.
        verify_email_token: Pending email verification PIN.
        verify_email_sent_at: When the verification PIN was issued.
        magic_link_token: Pending passwordless sign-in token.
        magic_link_sent_at: When the magic link was issued.
        reset_password_token: Pending password reset token.
        reset_password_sent_at: When the reset link was issued.
        sign_in_count: Number of successful password sign-ins.
        last_sign_in_at: Most recent successful authentication.
        given_name: Profile first name.
        family_name: Profile last name.
        phone_number: Profile phone number.
        job: Profile job title.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    encrypted_password: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    email_verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    verify_email_token: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    verify_email_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Unique so that lookup by exact token value is an index hit
    magic_link_token: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    magic_link_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    reset_password_token: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    reset_password_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    sign_in_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    last_sign_in_at: Mapped[datetime | None] = mapped_column(nullable=True)

    given_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    family_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    job: Mapped[str | None] = mapped_column(String(255), nullable=True)
