"""Session helpers for JWT creation and cookie management.

Shared utilities used by the sign-in endpoints once the lifecycle manager
has authenticated a user:
- create_jwt / set_auth_cookie: JWT issuance for successful auth
- clear_auth_cookie: sign-out
"""

from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Response

from accounts.core.config import settings

# Default JWT expiration: 1 hour
_DEFAULT_EXPIRATION = timedelta(hours=1)

JWT_AUDIENCE = "account-core"


def create_jwt(
    *,
    user_id: str,
    email: str,
    secret: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT with standard claims.

    Args:
        user_id: User UUID string for the sub claim.
        email: Account email, needed by the email verification endpoints.
        secret: HMAC signing secret.
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "email": email,
        "aud": JWT_AUDIENCE,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or _DEFAULT_EXPIRATION),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly JWT cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: JWT token string.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(_DEFAULT_EXPIRATION.total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Delete the JWT cookie.

    Cookie attributes must match set_auth_cookie() for browser to delete.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )
