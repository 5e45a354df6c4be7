"""Tests for the verify-email token family.

send_email_address_verification_email(), verify_email() and
update_email_address_verification_status().
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from accounts.core.errors import AccountError, AccountErrorKind
from accounts.services.tokens import PIN_TOKEN_LENGTH

_EMAIL = "jean@example.com"
_GENERATE_PIN = "accounts.services.lifecycle.generate_pin_token"


def _assert_pair_consistent(user) -> None:
    assert (user.verify_email_token is None) == (user.verify_email_sent_at is None)


class TestSendEmailAddressVerificationEmail:
    """Tests for send_email_address_verification_email()."""

    async def test_issues_pin_and_sends_formatted_code(
        self, manager, store, mailer, clock
    ):
        """Stored PIN is raw digits; the email shows it grouped by three."""
        user = await store.create(email=_EMAIL)

        with patch(_GENERATE_PIN, return_value="1234567890"):
            sent = await manager.send_email_address_verification_email(_EMAIL)

        assert sent is True
        assert user.verify_email_token == "1234567890"
        assert user.verify_email_sent_at == clock.now
        assert len(mailer.sent) == 1
        assert mailer.sent[0]["to"] == [_EMAIL]
        assert mailer.sent[0]["template"] == "verify-email"
        assert mailer.sent[0]["params"]["verify_email_token"] == "123 456 789 0"

    async def test_generated_pin_is_numeric(self, manager, store):
        """Real generator stores a numeric code of the expected length."""
        user = await store.create(email=_EMAIL)

        await manager.send_email_address_verification_email(_EMAIL)

        assert user.verify_email_token.isdigit()
        assert len(user.verify_email_token) == PIN_TOKEN_LENGTH
        _assert_pair_consistent(user)

    async def test_unknown_user_raises_user_not_found(self, manager):
        with pytest.raises(AccountError) as exc_info:
            await manager.send_email_address_verification_email(_EMAIL)

        assert exc_info.value.kind is AccountErrorKind.USER_NOT_FOUND

    async def test_verified_user_raises_email_verified_already(
        self, manager, store, mailer
    ):
        user = await store.create(email=_EMAIL)
        user.email_verified = True

        with pytest.raises(AccountError) as exc_info:
            await manager.send_email_address_verification_email(_EMAIL)

        assert exc_info.value.kind is AccountErrorKind.EMAIL_VERIFIED_ALREADY
        assert mailer.sent == []

    async def test_check_before_send_keeps_pending_pin(
        self, manager, store, mailer, clock
    ):
        """Pending, unexpired PIN is not replaced and no email goes out."""
        user = await store.create(email=_EMAIL)
        with patch(_GENERATE_PIN, return_value="1111111111"):
            await manager.send_email_address_verification_email(_EMAIL)
        issued_at = user.verify_email_sent_at
        clock.advance(minutes=30)

        with patch(_GENERATE_PIN, return_value="2222222222"):
            sent = await manager.send_email_address_verification_email(
                _EMAIL, check_before_send=True
            )

        assert sent is False
        assert user.verify_email_token == "1111111111"
        assert user.verify_email_sent_at == issued_at
        assert len(mailer.sent) == 1

    async def test_check_before_send_at_exact_expiry_keeps_pin(
        self, manager, store, clock
    ):
        """The boundary minute still counts as valid."""
        user = await store.create(email=_EMAIL)
        with patch(_GENERATE_PIN, return_value="1111111111"):
            await manager.send_email_address_verification_email(_EMAIL)
        clock.advance(minutes=60)

        sent = await manager.send_email_address_verification_email(
            _EMAIL, check_before_send=True
        )

        assert sent is False
        assert user.verify_email_token == "1111111111"

    async def test_check_before_send_after_expiry_overwrites(
        self, manager, store, mailer, clock
    ):
        """Once the PIN expired, a new one is issued."""
        user = await store.create(email=_EMAIL)
        with patch(_GENERATE_PIN, return_value="1111111111"):
            await manager.send_email_address_verification_email(_EMAIL)
        clock.advance(minutes=60, seconds=1)

        with patch(_GENERATE_PIN, return_value="2222222222"):
            sent = await manager.send_email_address_verification_email(
                _EMAIL, check_before_send=True
            )

        assert sent is True
        assert user.verify_email_token == "2222222222"
        assert user.verify_email_sent_at == clock.now
        assert len(mailer.sent) == 2

    async def test_check_before_send_without_pending_pin_sends(
        self, manager, store, mailer
    ):
        await store.create(email=_EMAIL)

        sent = await manager.send_email_address_verification_email(
            _EMAIL, check_before_send=True
        )

        assert sent is True
        assert len(mailer.sent) == 1

    async def test_reissue_without_check_invalidates_previous_pin(
        self, manager, store
    ):
        user = await store.create(email=_EMAIL)
        with patch(_GENERATE_PIN, return_value="1111111111"):
            await manager.send_email_address_verification_email(_EMAIL)
        with patch(_GENERATE_PIN, return_value="2222222222"):
            await manager.send_email_address_verification_email(_EMAIL)

        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email(_EMAIL, "1111111111")

        assert exc_info.value.kind is AccountErrorKind.INVALID_TOKEN
        assert user.verify_email_token == "2222222222"

    async def test_mail_failure_keeps_issued_pin(
        self, store, failing_mailer, lifecycle_config, clock
    ):
        """A rejected send is logged; the PIN stays usable."""
        from accounts.services.lifecycle import CredentialLifecycleManager

        manager = CredentialLifecycleManager(
            store, failing_mailer, lifecycle_config, clock=clock
        )
        user = await store.create(email=_EMAIL)

        sent = await manager.send_email_address_verification_email(_EMAIL)

        assert sent is True
        assert user.verify_email_token is not None
        assert user.verify_email_sent_at == clock.now


class TestVerifyEmail:
    """Tests for verify_email()."""

    @pytest.fixture
    async def pending_user(self, manager, store):
        user = await store.create(email=_EMAIL)
        with patch(_GENERATE_PIN, return_value="1234567890"):
            await manager.send_email_address_verification_email(_EMAIL)
        return user

    async def test_valid_pin_verifies_and_clears_pair(
        self, manager, pending_user, clock
    ):
        clock.advance(minutes=10)

        user = await manager.verify_email(_EMAIL, "1234567890")

        assert user is pending_user
        assert user.email_verified is True
        assert user.email_verified_at == clock.now
        assert user.verify_email_token is None
        assert user.verify_email_sent_at is None

    async def test_display_formatted_pin_is_accepted(self, manager, pending_user):
        user = await manager.verify_email(_EMAIL, " 123 456 789 0 ")

        assert user.email_verified is True

    async def test_pin_is_single_use(self, manager, pending_user):  # noqa: ARG002
        await manager.verify_email(_EMAIL, "1234567890")

        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email(_EMAIL, "1234567890")

        assert exc_info.value.kind is AccountErrorKind.INVALID_TOKEN

    async def test_wrong_pin_keeps_pending_pair(self, manager, pending_user):
        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email(_EMAIL, "0000000000")

        assert exc_info.value.kind is AccountErrorKind.INVALID_TOKEN
        assert pending_user.verify_email_token == "1234567890"
        assert pending_user.email_verified is False
        _assert_pair_consistent(pending_user)

    async def test_pin_scoped_to_its_email(self, manager, store, pending_user):  # noqa: ARG002
        """Another account cannot consume the PIN."""
        await store.create(email="other@example.com")

        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email("other@example.com", "1234567890")

        assert exc_info.value.kind is AccountErrorKind.INVALID_TOKEN

    async def test_expired_pin_raises_invalid_token(
        self, manager, pending_user, clock
    ):
        clock.advance(minutes=61)

        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email(_EMAIL, "1234567890")

        assert exc_info.value.kind is AccountErrorKind.INVALID_TOKEN
        assert pending_user.email_verified is False

    async def test_nothing_pending_rejects_empty_token(self, manager, store):
        await store.create(email=_EMAIL)

        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email(_EMAIL, "")

        assert exc_info.value.kind is AccountErrorKind.INVALID_TOKEN

    async def test_unknown_user_raises_user_not_found(self, manager):
        with pytest.raises(AccountError) as exc_info:
            await manager.verify_email(_EMAIL, "1234567890")

        assert exc_info.value.kind is AccountErrorKind.USER_NOT_FOUND


class TestUpdateEmailAddressVerificationStatus:
    """Tests for update_email_address_verification_status()."""

    async def test_recent_verification_is_kept(self, manager, store, clock):
        user = await store.create(email=_EMAIL)
        user.email_verified = True
        user.email_verified_at = clock.now - timedelta(days=30)

        status = await manager.update_email_address_verification_status(_EMAIL)

        assert status.needs_email_verification_renewal is False
        assert status.user.email_verified is True
        assert store.update_calls == []

    async def test_stale_verification_is_revoked(
        self, manager, store, clock, lifecycle_config
    ):
        """Past the renewal window the flag flips; the timestamp stays."""
        verified_at = clock.now - timedelta(
            minutes=lifecycle_config.email_verification_renewal_minutes + 1
        )
        user = await store.create(email=_EMAIL)
        user.email_verified = True
        user.email_verified_at = verified_at

        status = await manager.update_email_address_verification_status(_EMAIL)

        assert status.needs_email_verification_renewal is True
        assert status.user.email_verified is False
        assert status.user.email_verified_at == verified_at

    async def test_revoked_account_can_request_new_pin(self, manager, store, clock):
        """After revocation the verify-email flow is open again."""
        user = await store.create(email=_EMAIL)
        user.email_verified = True
        user.email_verified_at = clock.now - timedelta(days=365)

        await manager.update_email_address_verification_status(_EMAIL)
        sent = await manager.send_email_address_verification_email(
            _EMAIL, check_before_send=True
        )

        assert sent is True

    async def test_unverified_user_needs_no_renewal(self, manager, store):
        await store.create(email=_EMAIL)

        status = await manager.update_email_address_verification_status(_EMAIL)

        assert status.needs_email_verification_renewal is False

    async def test_unknown_user_raises_user_not_found(self, manager):
        with pytest.raises(AccountError) as exc_info:
            await manager.update_email_address_verification_status(_EMAIL)

        assert exc_info.value.kind is AccountErrorKind.USER_NOT_FOUND
