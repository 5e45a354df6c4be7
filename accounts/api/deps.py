"""Shared dependencies for API endpoints.

One lifecycle manager per request, bound to the request session. Tests swap
it through app.dependency_overrides.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.core.auth import JWT_AUDIENCE
from accounts.core.config import settings
from accounts.core.database import get_db
from accounts.core.email import BrevoMailer
from accounts.core.errors import UnauthorizedError
from accounts.services.credential_store import SqlCredentialStore
from accounts.services.lifecycle import CredentialLifecycleManager, LifecycleConfig


@dataclass(frozen=True)
class SessionUser:
    """Identity carried by the session cookie."""

    id: uuid.UUID
    email: str


def get_session_user(request: Request) -> SessionUser:
    """Get the signed-in user from the session cookie.

    Validation steps:
    1. Read JWT from cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss claims
    4. Extract sub as UUID and the email claim

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        SessionUser of the current authenticated user.

    Raises:
        UnauthorizedError: 401 for any auth failure. The message stays
            generic, it never says why the cookie was rejected.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError()

    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=settings.auth_issuer,
        )
        return SessionUser(id=uuid.UUID(payload["sub"]), email=payload["email"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
        raise UnauthorizedError() from exc


def get_lifecycle_manager(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CredentialLifecycleManager:
    """Build a lifecycle manager bound to the request's session."""
    return CredentialLifecycleManager(
        SqlCredentialStore(db),
        BrevoMailer(),
        LifecycleConfig.from_settings(settings),
    )


CurrentUser = Annotated[SessionUser, Depends(get_session_user)]
LifecycleManager = Annotated[
    CredentialLifecycleManager, Depends(get_lifecycle_manager)
]
