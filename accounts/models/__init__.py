"""SQLAlchemy ORM models.

    from accounts.models import Base, User
"""

from accounts.models.base import Base, TimestampMixin
from accounts.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
]
