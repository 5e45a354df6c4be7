"""Password policy: strength rules, breach check and bcrypt hashing.

Pipeline:
- is_password_secure: Format rules (sync, no network)
- has_password_been_pwned: HIBP k-anonymity check (async, network)
- hash_password / validate_password: bcrypt with a configurable cost factor
- _dummy_hash: Timing-safe decoy hash for user enumeration defense
"""

import functools
import hashlib
import logging
import re

import bcrypt
import httpx

from accounts.core.config import settings

logger = logging.getLogger(__name__)

_MAX_PASSWORD_LENGTH = 128

# Local parts shorter than this are too common to be a meaningful leak
# ("a@b.com" must not forbid every password containing an "a").
_MIN_LOCAL_PART_LENGTH = 4

_DUMMY_PASSWORD = b"account-core-dummy-password"  # nosec B105


@functools.lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> bytes:
    """Decoy bcrypt hash at the given cost factor.

    Security: prevents user enumeration via response time differences.
    Comparing against it must cost as much as comparing against a real
    hash, so its cost follows BCRYPT_ROUNDS. Computed on first use and
    cached per cost factor.
    """
    return bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds))


def is_password_secure(password: str, email: str) -> bool:
    """Check password format rules against the account's email.

    Rules: PASSWORD_MIN_LENGTH to 128 chars, at least one letter, one
    number and one special character, and no case-insensitive copy of the
    email address or of its local part.

    Args:
        password: Plain-text candidate password.
        email: Email of the account the password is for.

    Returns:
        True if the password is acceptable.
    """
    if not settings.password_min_length <= len(password) <= _MAX_PASSWORD_LENGTH:
        return False
    if not re.search(r"[a-zA-Z]", password):
        return False
    if not re.search(r"\d", password):
        return False
    if not re.search(r"[^a-zA-Z\d]", password):
        return False

    lowered = password.lower()
    normalized_email = email.strip().lower()
    if normalized_email and normalized_email in lowered:
        return False

    local_part = normalized_email.partition("@")[0]
    return not (len(local_part) >= _MIN_LOCAL_PART_LENGTH and local_part in lowered)


async def _fetch_hibp_range(prefix: str) -> str | None:
    """Fetch HIBP range response for a SHA-1 prefix.

    Uses k-anonymity: only the first 5 chars of the SHA-1 hash are sent.
    The API returns all suffixes matching that prefix, and we check locally.

    Args:
        prefix: First 5 chars of SHA-1 hex digest (uppercase).

    Returns:
        Response text or None on error.
    """
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{settings.hibp_api_url}/{prefix}",
                headers={"Add-Padding": "true"},
                timeout=settings.hibp_timeout,
            )
            response.raise_for_status()
            return response.text
    except httpx.HTTPError:
        logger.warning("HIBP API request failed, breach check degraded")
        return None


async def has_password_been_pwned(password: str) -> bool:
    """Check if password appears in the HIBP breach database.

    Only the first 5 characters of the SHA-1 hash are sent to HIBP.
    The full hash never leaves the server.

    Fails open: if HIBP is unavailable, allows the password. This prevents
    HIBP outages from blocking every signup and password reset.

    Args:
        password: Plain-text password to check.

    Returns:
        True if password found in breach database, False otherwise.
    """
    sha1 = hashlib.sha1(password.encode()).hexdigest().upper()  # nosec B324
    prefix = sha1[:5]
    suffix = sha1[5:]

    text = await _fetch_hibp_range(prefix)
    if text is None:
        return False

    for line in text.splitlines():
        parts = line.split(":")
        # Padding entries carry a count of 0 and are not real breaches
        if len(parts) == 2 and parts[0] == suffix and parts[1].strip() != "0":
            return True

    return False


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password.

    Returns:
        bcrypt hash as a string.
    """
    return bcrypt.hashpw(
        password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    ).decode()


def validate_password(password: str, password_hash: str | None) -> bool:
    """Compare a password with a stored bcrypt hash.

    Security: a missing hash still costs one bcrypt comparison, against a
    decoy hash at the configured cost, so that accounts without a password
    cannot be told apart from wrong passwords by response time.

    Args:
        password: Plain-text password presented by the user.
        password_hash: Stored bcrypt hash, or None.

    Returns:
        True if the password matches the hash.
    """
    if not password_hash:
        bcrypt.checkpw(password.encode(), _dummy_hash(settings.bcrypt_rounds))
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())
