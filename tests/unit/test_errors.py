"""Tests for API error classes."""

import pytest

from accounts.core.errors import (
    AccountError,
    AccountErrorKind,
    APIError,
    InternalError,
    UnauthorizedError,
    ValidationError,
)


class TestAccountError:
    """Tests for AccountError and its closed set of kinds."""

    def test_every_kind_has_status_and_message(self):
        for kind in AccountErrorKind:
            err = AccountError(kind)

            assert err.kind is kind
            assert err.code == kind.value
            assert 400 <= err.status_code < 500
            assert err.message

    @pytest.mark.parametrize(
        ("kind", "status_code"),
        [
            (AccountErrorKind.INVALID_CREDENTIALS, 401),
            (AccountErrorKind.EMAIL_UNAVAILABLE, 409),
            (AccountErrorKind.WEAK_PASSWORD, 422),
            (AccountErrorKind.LEAKED_PASSWORD, 422),
            (AccountErrorKind.INVALID_EMAIL, 400),
            (AccountErrorKind.USER_NOT_FOUND, 404),
            (AccountErrorKind.INVALID_TOKEN, 400),
            (AccountErrorKind.INVALID_MAGIC_LINK, 400),
            (AccountErrorKind.EMAIL_VERIFIED_ALREADY, 409),
        ],
    )
    def test_status_codes(self, kind, status_code):
        assert AccountError(kind).status_code == status_code

    def test_is_an_api_error(self):
        assert isinstance(AccountError(AccountErrorKind.USER_NOT_FOUND), APIError)

    def test_did_you_mean_goes_into_details(self):
        err = AccountError(AccountErrorKind.INVALID_EMAIL, did_you_mean="a@gmail.com")

        assert err.did_you_mean == "a@gmail.com"
        assert err.details == [{"did_you_mean": "a@gmail.com"}]

    def test_no_suggestion_means_no_details(self):
        err = AccountError(AccountErrorKind.INVALID_EMAIL)

        assert err.did_you_mean is None
        assert err.details is None

    def test_credential_message_does_not_reveal_which_part_failed(self):
        message = AccountError(AccountErrorKind.INVALID_CREDENTIALS).message

        assert message == "Invalid email or password"

    def test_repr_names_the_kind(self):
        assert repr(AccountError(AccountErrorKind.INVALID_TOKEN)) == (
            "AccountError(INVALID_TOKEN)"
        )


class TestGenericErrors:
    """Tests for the generic APIError subclasses."""

    def test_validation_error(self):
        err = ValidationError("Bad input", details=[{"field": "email"}])

        assert err.code == "VALIDATION_ERROR"
        assert err.status_code == 400
        assert err.details == [{"field": "email"}]

    def test_unauthorized_error_default_message(self):
        err = UnauthorizedError()

        assert err.status_code == 401
        assert err.message == "Authentication required"

    def test_internal_error(self):
        err = InternalError()

        assert err.code == "INTERNAL_ERROR"
        assert err.status_code == 500
        assert str(err) == "An unexpected error occurred"
