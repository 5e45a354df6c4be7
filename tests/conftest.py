"""Shared fixtures.

Lifecycle tests run against an in-memory CredentialStore and a recording
NotificationSink, with a controllable clock. Repository tests need
PostgreSQL and are skipped automatically when it is not reachable.
"""

import socket
import uuid
from collections.abc import AsyncGenerator, Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from accounts.core.config import settings
from accounts.models.base import Base
from accounts.models.user import User
from accounts.services.credential_store import DuplicateEmailError
from accounts.services.deliverability import EmailSafety
from accounts.services.lifecycle import CredentialLifecycleManager, LifecycleConfig

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

# Low cost factor for fast tests
_BCRYPT_ROUNDS = 4

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on its configured port, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available."""
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available. Start database with: docker compose up -d"
        )


# =============================================================================
# Fakes
# =============================================================================


class InMemoryCredentialStore:
    """CredentialStore keeping users in a dict keyed by id."""

    def __init__(self) -> None:
        self.users: dict[uuid.UUID, User] = {}
        self.update_calls: list[dict] = []

    def _find(self, predicate: Callable[[User], bool]) -> User | None:
        return next((user for user in self.users.values() if predicate(user)), None)

    async def find_by_email(self, email: str) -> User | None:
        normalized = email.strip().lower()
        return self._find(lambda user: user.email == normalized)

    async def find_by_magic_link_token(self, token: str) -> User | None:
        return self._find(lambda user: user.magic_link_token == token)

    async def find_by_reset_password_token(self, token: str) -> User | None:
        return self._find(lambda user: user.reset_password_token == token)

    async def create(self, *, email: str, **fields) -> User:
        normalized = email.strip().lower()
        if self._find(lambda user: user.email == normalized) is not None:
            raise DuplicateEmailError(normalized)
        user = User(
            id=uuid.uuid4(),
            email=normalized,
            email_verified=False,
            sign_in_count=0,
            **fields,
        )
        self.users[user.id] = user
        return user

    async def update(self, user_id: uuid.UUID, **fields) -> User:
        user = self.users[user_id]
        self.update_calls.append(fields)
        for name, value in fields.items():
            setattr(user, name, value)
        return user


@dataclass
class RecordingMailer:
    """NotificationSink remembering every email instead of sending it."""

    sent: list[dict] = field(default_factory=list)

    async def send_mail(self, *, to, subject, template, params) -> None:
        self.sent.append(
            {"to": to, "subject": subject, "template": template, "params": params}
        )


class FailingMailer:
    """NotificationSink whose transport is down."""

    async def send_mail(self, *, to, subject, template, params) -> None:  # noqa: ARG002
        raise ConnectionError("mail transport unavailable")


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fast_bcrypt() -> Iterator[None]:
    """Use the minimum bcrypt cost factor in tests."""
    original = settings.bcrypt_rounds
    settings.bcrypt_rounds = _BCRYPT_ROUNDS
    yield
    settings.bcrypt_rounds = original


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Yields:
        None (autouse fixture).
    """
    from accounts.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def lifecycle_config() -> LifecycleConfig:
    return LifecycleConfig(
        verify_email_token_minutes=60,
        magic_link_token_minutes=60,
        reset_password_token_minutes=60,
        email_verification_renewal_minutes=3 * 30 * 24 * 60,
    )


@pytest.fixture
def breach_check() -> AsyncMock:
    """Breach corpus that knows no password."""
    return AsyncMock(return_value=False)


@pytest.fixture
def deliverability_check() -> AsyncMock:
    """Deliverability service accepting every address."""
    return AsyncMock(return_value=EmailSafety(is_email_safe_to_send=True))


@pytest.fixture
def manager(
    store, mailer, lifecycle_config, breach_check, deliverability_check, clock
) -> CredentialLifecycleManager:
    return CredentialLifecycleManager(
        store,
        mailer,
        lifecycle_config,
        breach_check=breach_check,
        deliverability_check=deliverability_check,
        clock=clock,
    )


@pytest.fixture
def failing_mailer() -> FailingMailer:
    return FailingMailer()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()
