"""Application configuration loaded from environment variables.

Settings for database, API, authentication cookies, token lifetimes and the
external collaborators (breach corpus, deliverability service, mail sender).
Uses pydantic-settings for validation and .env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "accounts_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# bcrypt accepts cost factors between 4 and 31
_MIN_BCRYPT_ROUNDS = 4
_MAX_BCRYPT_ROUNDS = 31

_THREE_MONTHS_IN_MINUTES = 3 * 30 * 24 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "accounts"
    database_user: str = "accounts_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    database_pool_size: int = 5
    database_echo: bool = False

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Base URL of the web front end; emailed links point here
    frontend_url: str = "http://localhost:3000"

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session cookie issued after a successful sign-in
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "account-core"
    auth_cookie_name: str = "accounts.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""

    # Token lifetimes
    verify_email_token_expiration_duration_in_minutes: int = 60
    magic_link_token_expiration_duration_in_minutes: int = 60
    reset_password_token_expiration_duration_in_minutes: int = 60
    max_duration_between_two_email_address_verification_in_minutes: int = (
        _THREE_MONTHS_IN_MINUTES
    )

    # Password policy
    bcrypt_rounds: int = 12
    password_min_length: int = 10

    # Have I Been Pwned range API
    hibp_api_url: str = "https://api.pwnedpasswords.com/range"
    hibp_timeout: float = 5.0

    # DeBounce email validation (empty key disables the remote check)
    debounce_api_url: str = "https://api.debounce.io/v1/"
    debounce_api_key: SecretStr = SecretStr("")
    debounce_timeout: float = 5.0

    # Transactional email via Brevo
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    brevo_api_key: SecretStr = SecretStr("")
    email_from: str = "nepasrepondre@moncomptepro.beta.gouv.fr"
    email_from_name: str = "MonComptePro"

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_sign_in: str = "10/minute"
    rate_limit_email: str = "5/15minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate security requirements.

        Checks:
        - Token lifetimes must be positive (all environments)
        - bcrypt cost factor must be within bcrypt's accepted range
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        - FRONTEND_URL must use https in production
        """
        durations = {
            "VERIFY_EMAIL_TOKEN_EXPIRATION_DURATION_IN_MINUTES": (
                self.verify_email_token_expiration_duration_in_minutes
            ),
            "MAGIC_LINK_TOKEN_EXPIRATION_DURATION_IN_MINUTES": (
                self.magic_link_token_expiration_duration_in_minutes
            ),
            "RESET_PASSWORD_TOKEN_EXPIRATION_DURATION_IN_MINUTES": (
                self.reset_password_token_expiration_duration_in_minutes
            ),
            "MAX_DURATION_BETWEEN_TWO_EMAIL_ADDRESS_VERIFICATION_IN_MINUTES": (
                self.max_duration_between_two_email_address_verification_in_minutes
            ),
        }
        for name, value in durations.items():
            if value <= 0:
                msg = f"{name} must be positive. Got: {value}"
                raise ValueError(msg)

        if not _MIN_BCRYPT_ROUNDS <= self.bcrypt_rounds <= _MAX_BCRYPT_ROUNDS:
            msg = (
                f"BCRYPT_ROUNDS must be between {_MIN_BCRYPT_ROUNDS} and "
                f"{_MAX_BCRYPT_ROUNDS}. Got: {self.bcrypt_rounds}"
            )
            raise ValueError(msg)

        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    'characters in production. Generate with: python -c "import '
                    'secrets; print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

            if not self.frontend_url.startswith("https://"):
                msg = (
                    "FRONTEND_URL must use https in production. Emailed sign-in "
                    "and reset links carry single-use tokens."
                )
                raise ValueError(msg)

        return self


settings = Settings()
