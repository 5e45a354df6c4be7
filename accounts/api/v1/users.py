"""Account endpoints.

JSON surface over CredentialLifecycleManager. Sign-in endpoints issue the
session cookie; email verification and profile endpoints require it.

Endpoints:
- POST /users/start-sign-in: does the account exist (sign-in or sign-up)?
- POST /users/sign-in: email + password
- POST /users/sign-up: create account with password
- POST /users/sign-out: clear session cookie
- POST /users/send-email-verification: email a verification PIN
- POST /users/verify-email: consume verification PIN
- POST /users/email-verification-status: periodic re-verification
- POST /users/magic-link: email a magic link (creates account on first use)
- POST /users/sign-in-with-magic-link: consume magic link
- POST /users/reset-password: email a password reset link
- POST /users/change-password: consume reset link with a new password
- PUT /users/personal-informations: update profile fields
"""

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from accounts.api.deps import CurrentUser, LifecycleManager
from accounts.core.auth import clear_auth_cookie, create_jwt, set_auth_cookie
from accounts.core.config import settings
from accounts.core.rate_limiting import limiter
from accounts.core.responses import DataResponse
from accounts.models.user import User

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class EmailRequest(BaseModel):
    """Request body carrying only an email."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class CredentialsRequest(BaseModel):
    """Request body for sign-in and sign-up."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class SendEmailVerificationRequest(BaseModel):
    """Request body for POST /users/send-email-verification."""

    model_config = ConfigDict(extra="forbid")

    check_before_send: bool = False


class VerifyEmailRequest(BaseModel):
    """Request body for POST /users/verify-email."""

    model_config = ConfigDict(extra="forbid")

    verify_email_token: str = Field(max_length=64)


class MagicLinkSignInRequest(BaseModel):
    """Request body for POST /users/sign-in-with-magic-link."""

    model_config = ConfigDict(extra="forbid")

    magic_link_token: str = Field(max_length=256)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /users/change-password."""

    model_config = ConfigDict(extra="forbid")

    reset_password_token: str = Field(max_length=256)
    password: str = Field(min_length=1, max_length=128)


class PersonalInformationsRequest(BaseModel):
    """Request body for PUT /users/personal-informations."""

    model_config = ConfigDict(extra="forbid")

    given_name: str | None = Field(None, max_length=255)
    family_name: str | None = Field(None, max_length=255)
    phone_number: str | None = Field(None, max_length=50)
    job: str | None = Field(None, max_length=255)


# ===================================================================
# Helpers
# ===================================================================


def _user_to_response(user: User) -> dict:
    """Build standard user response payload."""
    return {
        "id": str(user.id),
        "email": user.email,
        "email_verified": user.email_verified,
        "has_password": user.encrypted_password is not None,
        "given_name": user.given_name,
        "family_name": user.family_name,
        "phone_number": user.phone_number,
        "job": user.job,
    }


def _start_session(response: Response, user: User) -> None:
    token = create_jwt(
        user_id=str(user.id),
        email=user.email,
        secret=settings.auth_secret.get_secret_value(),
    )
    set_auth_cookie(response, token)


def _link_base() -> str:
    # Never derived from the request: the Host header is client-controlled
    return settings.frontend_url.rstrip("/")


# ===================================================================
# Sign-in / sign-up
# ===================================================================


@router.post("/start-sign-in")
@limiter.limit(lambda: settings.rate_limit_sign_in)
async def start_sign_in(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Tell the client whether to show the sign-in or the sign-up form."""
    started = await manager.start_login(body.email)
    return DataResponse(
        data={"email": started.email, "user_exists": started.user_exists}
    )


@router.post("/sign-in")
@limiter.limit(lambda: settings.rate_limit_sign_in)
async def sign_in(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: CredentialsRequest,
    response: Response,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Verify email + password and issue the session cookie."""
    user = await manager.login(body.email, body.password)
    _start_session(response, user)
    return DataResponse(data=_user_to_response(user))


@router.post("/sign-up", status_code=201)
@limiter.limit(lambda: settings.rate_limit_sign_in)
async def sign_up(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: CredentialsRequest,
    response: Response,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Create an account and issue the session cookie."""
    user = await manager.signup(body.email, body.password)
    _start_session(response, user)
    return DataResponse(data=_user_to_response(user))


@router.post("/sign-out")
async def sign_out(response: Response) -> DataResponse[dict]:
    """Clear the session cookie."""
    clear_auth_cookie(response)
    return DataResponse(data={"message": "Signed out"})


# ===================================================================
# Email verification
# ===================================================================


@router.post("/send-email-verification")
@limiter.limit(lambda: settings.rate_limit_email)
async def send_email_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SendEmailVerificationRequest,
    current_user: CurrentUser,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Email a verification PIN to the signed-in account."""
    sent = await manager.send_email_address_verification_email(
        current_user.email, check_before_send=body.check_before_send
    )
    return DataResponse(data={"email_sent": sent})


@router.post("/verify-email")
@limiter.limit(lambda: settings.rate_limit_sign_in)
async def verify_email(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyEmailRequest,
    current_user: CurrentUser,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Consume the verification PIN of the signed-in account."""
    user = await manager.verify_email(current_user.email, body.verify_email_token)
    return DataResponse(data=_user_to_response(user))


@router.post("/email-verification-status")
async def email_verification_status(
    current_user: CurrentUser,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Revoke a stale verification and send a new PIN when needed."""
    status = await manager.update_email_address_verification_status(
        current_user.email
    )
    if status.needs_email_verification_renewal:
        await manager.send_email_address_verification_email(
            current_user.email, check_before_send=True
        )
    return DataResponse(
        data={
            "email_verified": status.user.email_verified,
            "needs_email_verification_renewal": (
                status.needs_email_verification_renewal
            ),
        }
    )


# ===================================================================
# Magic link
# ===================================================================


@router.post("/magic-link")
@limiter.limit(lambda: settings.rate_limit_email)
async def request_magic_link(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Email a magic link, creating the account on first use."""
    await manager.send_magic_link_email(body.email, _link_base())
    return DataResponse(data={"message": "A sign-in link has been sent"})


@router.post("/sign-in-with-magic-link")
@limiter.limit(lambda: settings.rate_limit_sign_in)
async def sign_in_with_magic_link(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: MagicLinkSignInRequest,
    response: Response,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Consume a magic link and issue the session cookie."""
    user = await manager.login_with_magic_link(body.magic_link_token)
    _start_session(response, user)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"
    return DataResponse(data=_user_to_response(user))


# ===================================================================
# Password reset
# ===================================================================


@router.post("/reset-password")
@limiter.limit(lambda: settings.rate_limit_email)
async def reset_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Email a reset link. Same response whether or not the account exists."""
    await manager.send_reset_password_email(body.email, _link_base())
    return DataResponse(
        data={"message": "If an account exists, a reset link has been sent"}
    )


@router.post("/change-password")
@limiter.limit(lambda: settings.rate_limit_sign_in)
async def change_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ChangePasswordRequest,
    response: Response,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Consume a reset link and set the new password."""
    await manager.change_password(body.reset_password_token, body.password)
    response.headers["Referrer-Policy"] = "no-referrer"
    return DataResponse(data={"message": "Password updated"})


# ===================================================================
# Profile
# ===================================================================


@router.put("/personal-informations")
async def update_personal_informations(
    body: PersonalInformationsRequest,
    current_user: CurrentUser,
    manager: LifecycleManager,
) -> DataResponse[dict]:
    """Overwrite the profile fields of the signed-in account."""
    user = await manager.update_personal_informations(
        current_user.id,
        given_name=body.given_name,
        family_name=body.family_name,
        phone_number=body.phone_number,
        job=body.job,
    )
    return DataResponse(data=_user_to_response(user))
