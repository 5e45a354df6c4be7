"""Email deliverability pre-check before account creation.

Two layers:
1. Remote: DeBounce single validation API decides whether transactional
   mail can be sent to the address, and may suggest a correction.
2. Local: get_did_you_mean_suggestion() compares the domain with common
   providers to catch typos when the remote service has no suggestion.

Fails open: without an API key, or when DeBounce is unreachable, the
address is considered safe. Magic link and reset emails are never gated
by this check.
"""

import difflib
import logging
from dataclasses import dataclass

import httpx

from accounts.core.config import settings

logger = logging.getLogger(__name__)

_SIMILARITY_CUTOFF = 0.75

_COMMON_DOMAINS: tuple[str, ...] = (
    "gmail.com",
    "yahoo.com",
    "yahoo.fr",
    "hotmail.com",
    "hotmail.fr",
    "outlook.com",
    "outlook.fr",
    "live.fr",
    "msn.com",
    "icloud.com",
    "orange.fr",
    "wanadoo.fr",
    "free.fr",
    "sfr.fr",
    "laposte.net",
    "gmx.fr",
    "aol.com",
    "protonmail.com",
    "beta.gouv.fr",
    "interieur.gouv.fr",
)

# Frequent typos that sequence similarity alone ranks poorly
_KNOWN_TYPOS: dict[str, str] = {
    "gmail.fr": "gmail.com",
    "gmail.co": "gmail.com",
    "gmail.con": "gmail.com",
    "gmai.com": "gmail.com",
    "hotmail.con": "hotmail.com",
    "orange.com": "orange.fr",
    "wanadoo.com": "wanadoo.fr",
    "free.com": "free.fr",
    "laposte.fr": "laposte.net",
}


@dataclass(frozen=True)
class EmailSafety:
    """Outcome of a deliverability check.

    Attributes:
        is_email_safe_to_send: False when the address looks undeliverable.
        did_you_mean: Suggested corrected address, if any.
    """

    is_email_safe_to_send: bool
    did_you_mean: str | None = None


async def _fetch_debounce_result(email: str) -> dict | None:
    """Query DeBounce for one address.

    Args:
        email: Address to validate.

    Returns:
        The ``debounce`` object of the response, or None on error.
    """
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                settings.debounce_api_url,
                params={
                    "api": settings.debounce_api_key.get_secret_value(),
                    "email": email,
                },
                timeout=settings.debounce_timeout,
            )
            response.raise_for_status()
            payload = response.json()
    except (httpx.HTTPError, ValueError):
        logger.warning("DeBounce API request failed, deliverability check skipped")
        return None

    result = payload.get("debounce") if isinstance(payload, dict) else None
    if not isinstance(result, dict):
        logger.warning("DeBounce API returned an unexpected payload")
        return None
    return result


async def is_email_safe_to_send_transactional(email: str) -> EmailSafety:
    """Ask the deliverability service whether mail to ``email`` will land.

    Args:
        email: Address to check.

    Returns:
        EmailSafety; safe when the service is disabled or unavailable.
    """
    if not settings.debounce_api_key.get_secret_value():
        return EmailSafety(is_email_safe_to_send=True)

    result = await _fetch_debounce_result(email)
    if result is None:
        return EmailSafety(is_email_safe_to_send=True)

    is_safe = str(result.get("send_transactional", "1")) == "1"
    did_you_mean = result.get("did_you_mean") or None
    return EmailSafety(is_email_safe_to_send=is_safe, did_you_mean=did_you_mean)


def get_did_you_mean_suggestion(email: str) -> str | None:
    """Suggest a corrected address when the domain looks mistyped.

    Args:
        email: Address as typed by the user.

    Returns:
        Corrected address, or None if the domain is already a known
        provider, unparseable, or not close to any known provider.
    """
    local_part, at, domain = email.strip().lower().rpartition("@")
    if not at or not local_part or not domain:
        return None

    if domain in _COMMON_DOMAINS:
        return None

    corrected = _KNOWN_TYPOS.get(domain)
    if corrected is None:
        matches = difflib.get_close_matches(
            domain, _COMMON_DOMAINS, n=1, cutoff=_SIMILARITY_CUTOFF
        )
        if not matches:
            return None
        corrected = matches[0]

    return f"{local_part}@{corrected}"
