"""Credential lifecycle: sign-up, sign-in and the three single-use tokens.

Every token family (verify-email, magic-link, reset-password) follows the
same state machine:

    absent -> pending -> consumed
                      -> expired (re-issue overwrites)

Issuing stamps ``<token>`` and ``<token>_sent_at`` together. Consuming
clears both in the same update as the state change it authorizes, which is
what makes each token single-use.

Every operation reads one user row, runs its policy checks, writes that
row at most once (creation aside) and sends at most one email. Policy
failures raise AccountError before anything is written.
"""

import logging
import secrets
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urlencode

from accounts.core.config import Settings
from accounts.core.email import NotificationSink, format_pin_token
from accounts.core.errors import AccountError, AccountErrorKind
from accounts.models.user import User
from accounts.services.credential_store import CredentialStore, DuplicateEmailError
from accounts.services.deliverability import (
    EmailSafety,
    get_did_you_mean_suggestion,
    is_email_safe_to_send_transactional,
)
from accounts.services.expiration import is_expired
from accounts.services.password_policy import (
    has_password_been_pwned,
    hash_password,
    is_password_secure,
    validate_password,
)
from accounts.services.tokens import generate_pin_token, generate_token

logger = logging.getLogger(__name__)

BreachCheck = Callable[[str], Awaitable[bool]]
DeliverabilityCheck = Callable[[str], Awaitable[EmailSafety]]


@dataclass(frozen=True)
class LifecycleConfig:
    """Token lifetimes, in minutes.

    Attributes:
        verify_email_token_minutes: Validity of an email verification PIN.
        magic_link_token_minutes: Validity of a magic link.
        reset_password_token_minutes: Validity of a password reset link.
        email_verification_renewal_minutes: How long a verified address
            stays verified before ownership must be proven again.
    """

    verify_email_token_minutes: int = 60
    magic_link_token_minutes: int = 60
    reset_password_token_minutes: int = 60
    email_verification_renewal_minutes: int = 3 * 30 * 24 * 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "LifecycleConfig":
        return cls(
            verify_email_token_minutes=(
                settings.verify_email_token_expiration_duration_in_minutes
            ),
            magic_link_token_minutes=(
                settings.magic_link_token_expiration_duration_in_minutes
            ),
            reset_password_token_minutes=(
                settings.reset_password_token_expiration_duration_in_minutes
            ),
            email_verification_renewal_minutes=(
                settings.max_duration_between_two_email_address_verification_in_minutes
            ),
        )


@dataclass(frozen=True)
class LoginProbe:
    """Result of start_login().

    Attributes:
        email: Normalized email address.
        user_exists: True to continue with sign-in, False with sign-up.
    """

    email: str
    user_exists: bool


@dataclass(frozen=True)
class VerificationStatus:
    """Result of update_email_address_verification_status().

    Attributes:
        user: Current user row.
        needs_email_verification_renewal: True when the verified flag was
            just revoked and a new verification email should be sent.
    """

    user: User
    needs_email_verification_renewal: bool


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialLifecycleManager:
    """Orchestrates the account lifecycle over a CredentialStore.

    Args:
        store: Request-scoped credential store.
        mailer: Notification sink for transactional emails.
        config: Token lifetimes.
        breach_check: Async password breach lookup.
        deliverability_check: Async email deliverability lookup.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        store: CredentialStore,
        mailer: NotificationSink,
        config: LifecycleConfig,
        *,
        breach_check: BreachCheck = has_password_been_pwned,
        deliverability_check: DeliverabilityCheck = is_email_safe_to_send_transactional,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._store = store
        self._mailer = mailer
        self._config = config
        self._breach_check = breach_check
        self._deliverability_check = deliverability_check
        self._clock = clock

    # ===================================================================
    # Helpers
    # ===================================================================

    async def _check_new_password(self, password: str, email: str) -> str:
        """Run the password policy and return the bcrypt hash.

        Raises:
            AccountError: WEAK_PASSWORD or LEAKED_PASSWORD.
        """
        if not is_password_secure(password, email):
            raise AccountError(AccountErrorKind.WEAK_PASSWORD)

        if await self._breach_check(password):
            raise AccountError(AccountErrorKind.LEAKED_PASSWORD)

        return hash_password(password)

    async def _notify(
        self, *, to: str, subject: str, template: str, params: dict[str, str]
    ) -> None:
        # Issued tokens stay valid when delivery fails; the user can ask again.
        try:
            await self._mailer.send_mail(
                to=[to], subject=subject, template=template, params=params
            )
        except Exception:
            logger.exception("Notification sink rejected %s email", template)

    async def _create_passwordless_user(self, email: str) -> User:
        try:
            return await self._store.create(email=email, last_sign_in_at=self._clock())
        except DuplicateEmailError:
            # A concurrent request created it first
            user = await self._store.find_by_email(email)
            if user is None:
                raise
            return user

    def _is_pending(self, sent_at: datetime | None, duration_minutes: int) -> bool:
        return sent_at is not None and not is_expired(
            sent_at, duration_minutes, now=self._clock()
        )

    # ===================================================================
    # Sign-in and sign-up
    # ===================================================================

    async def start_login(self, email: str) -> LoginProbe:
        """Tell the caller whether to continue with sign-in or sign-up.

        Unknown addresses go through the deliverability check first so a
        mistyped address is caught before an account is created for it.

        Raises:
            AccountError: INVALID_EMAIL, with did_you_mean when a
                correction is available.
        """
        email = _normalize_email(email)
        if await self._store.find_by_email(email) is not None:
            return LoginProbe(email=email, user_exists=True)

        safety = await self._deliverability_check(email)
        if not safety.is_email_safe_to_send:
            did_you_mean = safety.did_you_mean or get_did_you_mean_suggestion(email)
            raise AccountError(AccountErrorKind.INVALID_EMAIL, did_you_mean=did_you_mean)

        return LoginProbe(email=email, user_exists=False)

    async def login(self, email: str, password: str) -> User:
        """Authenticate with email and password.

        Security: unknown account, account without password and wrong
        password all raise the same error after one bcrypt comparison.

        Raises:
            AccountError: INVALID_CREDENTIALS.
        """
        user = await self._store.find_by_email(_normalize_email(email))
        password_hash = user.encrypted_password if user is not None else None

        if not validate_password(password, password_hash) or user is None:
            raise AccountError(AccountErrorKind.INVALID_CREDENTIALS)

        return await self._store.update(
            user.id,
            sign_in_count=user.sign_in_count + 1,
            last_sign_in_at=self._clock(),
        )

    async def signup(self, email: str, password: str) -> User:
        """Create an account protected by a password.

        Raises:
            AccountError: EMAIL_UNAVAILABLE, WEAK_PASSWORD or LEAKED_PASSWORD.
        """
        email = _normalize_email(email)
        if await self._store.find_by_email(email) is not None:
            raise AccountError(AccountErrorKind.EMAIL_UNAVAILABLE)

        encrypted_password = await self._check_new_password(password, email)

        try:
            return await self._store.create(
                email=email,
                encrypted_password=encrypted_password,
                last_sign_in_at=self._clock(),
            )
        except DuplicateEmailError as exc:
            raise AccountError(AccountErrorKind.EMAIL_UNAVAILABLE) from exc

    # ===================================================================
    # Email verification
    # ===================================================================

    async def send_email_address_verification_email(
        self, email: str, *, check_before_send: bool = False
    ) -> bool:
        """Issue a verification PIN and email it.

        Args:
            email: Account email.
            check_before_send: Refuse to re-issue while the previous PIN
                is still valid (prevents email spam on page reloads).

        Returns:
            True if an email was sent, False if a valid PIN is pending and
            check_before_send was requested.

        Raises:
            AccountError: USER_NOT_FOUND or EMAIL_VERIFIED_ALREADY.
        """
        user = await self._store.find_by_email(_normalize_email(email))
        if user is None:
            raise AccountError(AccountErrorKind.USER_NOT_FOUND)

        if user.email_verified:
            raise AccountError(AccountErrorKind.EMAIL_VERIFIED_ALREADY)

        if check_before_send and self._is_pending(
            user.verify_email_sent_at, self._config.verify_email_token_minutes
        ):
            return False

        verify_email_token = generate_pin_token()
        await self._store.update(
            user.id,
            verify_email_token=verify_email_token,
            verify_email_sent_at=self._clock(),
        )

        await self._notify(
            to=user.email,
            subject="Vérification de votre adresse email",
            template="verify-email",
            params={
                "verify_email_token": format_pin_token(verify_email_token),
                "expires_in_minutes": str(self._config.verify_email_token_minutes),
            },
        )
        return True

    async def verify_email(self, email: str, token: str) -> User:
        """Consume a verification PIN for the given account.

        Whitespace in the presented token is ignored so the display-formatted
        code can be pasted as is.

        Raises:
            AccountError: USER_NOT_FOUND, or INVALID_TOKEN when nothing is
                pending, the PIN does not match, or it expired.
        """
        user = await self._store.find_by_email(_normalize_email(email))
        if user is None:
            raise AccountError(AccountErrorKind.USER_NOT_FOUND)

        presented = "".join(token.split())
        stored = user.verify_email_token
        if (
            not presented
            or stored is None
            or user.verify_email_sent_at is None
            or not secrets.compare_digest(stored.encode(), presented.encode())
        ):
            raise AccountError(AccountErrorKind.INVALID_TOKEN)

        if is_expired(
            user.verify_email_sent_at,
            self._config.verify_email_token_minutes,
            now=self._clock(),
        ):
            raise AccountError(AccountErrorKind.INVALID_TOKEN)

        now = self._clock()
        return await self._store.update(
            user.id,
            email_verified=True,
            email_verified_at=now,
            verify_email_token=None,
            verify_email_sent_at=None,
        )

    async def update_email_address_verification_status(
        self, email: str
    ) -> VerificationStatus:
        """Revoke a verification older than the renewal window.

        Mailbox ownership must be proven again periodically. When the window
        has passed, email_verified flips to false (email_verified_at is kept
        for audit) and the caller is told to send a new verification email.

        Raises:
            AccountError: USER_NOT_FOUND.
        """
        user = await self._store.find_by_email(_normalize_email(email))
        if user is None:
            raise AccountError(AccountErrorKind.USER_NOT_FOUND)

        if user.email_verified and not self._is_pending(
            user.email_verified_at, self._config.email_verification_renewal_minutes
        ):
            updated_user = await self._store.update(user.id, email_verified=False)
            return VerificationStatus(
                user=updated_user, needs_email_verification_renewal=True
            )

        return VerificationStatus(user=user, needs_email_verification_renewal=False)

    # ===================================================================
    # Magic link
    # ===================================================================

    async def send_magic_link_email(self, email: str, host: str) -> bool:
        """Issue a magic link, creating the account on first use.

        Args:
            email: Account email.
            host: Base URL the link points to, without trailing slash.

        Returns:
            True once the link has been issued.
        """
        email = _normalize_email(email)
        user = await self._store.find_by_email(email)
        if user is None:
            user = await self._create_passwordless_user(email)

        magic_link_token = generate_token()
        await self._store.update(
            user.id,
            magic_link_token=magic_link_token,
            magic_link_sent_at=self._clock(),
        )

        query = urlencode({"magic_link_token": magic_link_token})
        await self._notify(
            to=user.email,
            subject="Lien de connexion à MonComptePro",
            template="magic-link",
            params={
                "magic_link": f"{host}/users/sign-in-with-magic-link?{query}",
                "expires_in_minutes": str(self._config.magic_link_token_minutes),
            },
        )
        return True

    async def login_with_magic_link(self, token: str) -> User:
        """Consume a magic link token.

        A successful magic link sign-in also proves mailbox ownership.

        Raises:
            AccountError: INVALID_MAGIC_LINK for an empty, unknown or
                expired token.
        """
        # An empty token would match every account with nothing pending
        if not token:
            raise AccountError(AccountErrorKind.INVALID_MAGIC_LINK)

        user = await self._store.find_by_magic_link_token(token)
        if user is None or user.magic_link_token != token:
            raise AccountError(AccountErrorKind.INVALID_MAGIC_LINK)

        if user.magic_link_sent_at is None or is_expired(
            user.magic_link_sent_at,
            self._config.magic_link_token_minutes,
            now=self._clock(),
        ):
            raise AccountError(AccountErrorKind.INVALID_MAGIC_LINK)

        now = self._clock()
        return await self._store.update(
            user.id,
            email_verified=True,
            email_verified_at=now,
            magic_link_token=None,
            magic_link_sent_at=None,
            last_sign_in_at=now,
        )

    # ===================================================================
    # Password reset
    # ===================================================================

    async def send_reset_password_email(self, email: str, host: str) -> bool:
        """Issue a password reset link.

        Security: returns True for unknown addresses too, without sending
        anything, so the response does not reveal whether an account exists.
        """
        user = await self._store.find_by_email(_normalize_email(email))
        if user is None:
            return True

        reset_password_token = generate_token()
        await self._store.update(
            user.id,
            reset_password_token=reset_password_token,
            reset_password_sent_at=self._clock(),
        )

        query = urlencode({"reset_password_token": reset_password_token})
        await self._notify(
            to=user.email,
            subject="Instructions pour la réinitialisation du mot de passe",
            template="reset-password",
            params={
                "reset_password_link": f"{host}/users/change-password?{query}",
                "expires_in_minutes": str(self._config.reset_password_token_minutes),
            },
        )
        return True

    async def change_password(self, token: str, password: str) -> User:
        """Consume a reset token and store a new password.

        Completing a reset also proves mailbox ownership.

        Raises:
            AccountError: INVALID_TOKEN for an empty, unknown or expired
                token; WEAK_PASSWORD or LEAKED_PASSWORD for a rejected
                password (the token then stays pending).
        """
        # An empty token would match every account with nothing pending
        if not token:
            raise AccountError(AccountErrorKind.INVALID_TOKEN)

        user = await self._store.find_by_reset_password_token(token)
        if user is None or user.reset_password_token != token:
            raise AccountError(AccountErrorKind.INVALID_TOKEN)

        if user.reset_password_sent_at is None or is_expired(
            user.reset_password_sent_at,
            self._config.reset_password_token_minutes,
            now=self._clock(),
        ):
            raise AccountError(AccountErrorKind.INVALID_TOKEN)

        encrypted_password = await self._check_new_password(password, user.email)

        now = self._clock()
        return await self._store.update(
            user.id,
            encrypted_password=encrypted_password,
            email_verified=True,
            email_verified_at=now,
            reset_password_token=None,
            reset_password_sent_at=None,
        )

    # ===================================================================
    # Profile
    # ===================================================================

    async def update_personal_informations(
        self,
        user_id: uuid.UUID,
        *,
        given_name: str | None,
        family_name: str | None,
        phone_number: str | None,
        job: str | None,
    ) -> User:
        """Overwrite the profile fields of an account."""
        return await self._store.update(
            user_id,
            given_name=given_name,
            family_name=family_name,
            phone_number=phone_number,
            job=job,
        )
