"""API error classes.

Every APIError is rendered as the standard error envelope by the handler
in accounts.main.

Account lifecycle failures are a single AccountError carrying a closed
AccountErrorKind. Callers branch on ``err.kind`` (``match err.kind: ...``)
rather than on the exception class.
"""

from enum import Enum


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid auth credentials provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class AccountErrorKind(Enum):
    """Every way an account lifecycle operation can fail.

    The value doubles as the machine-readable API error code.
    """

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_UNAVAILABLE = "EMAIL_UNAVAILABLE"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    LEAKED_PASSWORD = "LEAKED_PASSWORD"
    INVALID_EMAIL = "INVALID_EMAIL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_MAGIC_LINK = "INVALID_MAGIC_LINK"
    EMAIL_VERIFIED_ALREADY = "EMAIL_VERIFIED_ALREADY"


# (status_code, default message) per kind.
# Security: INVALID_CREDENTIALS and INVALID_TOKEN messages must stay generic,
# they are shared by the "unknown account" and "wrong secret" paths.
_KIND_DEFAULTS: dict[AccountErrorKind, tuple[int, str]] = {
    AccountErrorKind.INVALID_CREDENTIALS: (401, "Invalid email or password"),
    AccountErrorKind.EMAIL_UNAVAILABLE: (409, "Email already registered"),
    AccountErrorKind.WEAK_PASSWORD: (422, "Password is too weak"),
    AccountErrorKind.LEAKED_PASSWORD: (
        422,
        "This password has appeared in a data breach. Please choose a different one.",
    ),
    AccountErrorKind.INVALID_EMAIL: (400, "Email address is not deliverable"),
    AccountErrorKind.USER_NOT_FOUND: (404, "User not found"),
    AccountErrorKind.INVALID_TOKEN: (400, "Invalid or expired token"),
    AccountErrorKind.INVALID_MAGIC_LINK: (400, "Invalid or expired magic link"),
    AccountErrorKind.EMAIL_VERIFIED_ALREADY: (409, "Email address already verified"),
}


class AccountError(APIError):
    """Account lifecycle failure.

    Args:
        kind: Which failure occurred.
        did_you_mean: Suggested correction, only set for INVALID_EMAIL.

    Attributes:
        kind: The AccountErrorKind tag.
        did_you_mean: Suggested email address or None.
    """

    def __init__(
        self,
        kind: AccountErrorKind,
        *,
        did_you_mean: str | None = None,
    ) -> None:
        status_code, message = _KIND_DEFAULTS[kind]
        self.kind = kind
        self.did_you_mean = did_you_mean
        super().__init__(
            code=kind.value,
            message=message,
            status_code=status_code,
            details=[{"did_you_mean": did_you_mean}] if did_you_mean else None,
        )

    def __repr__(self) -> str:
        return f"AccountError({self.kind.name})"


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
