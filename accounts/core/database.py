"""Async database engine and request-scoped sessions.

Each request gets one AsyncSession and one transaction. Credential store
lookups lock the rows they return (SELECT ... FOR UPDATE), so the lock is
held until get_db() commits or rolls back.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from accounts.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=settings.database_pool_size,
    pool_pre_ping=True,
)

# Rows stay readable after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session whose transaction spans the whole request.

    Commits when the endpoint returns. Any exception, AccountError
    included, rolls back so a rejected operation leaves no partial write.
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
