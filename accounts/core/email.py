"""Transactional email via the Brevo API.

Simple HTTP POST per message. Templates are plain text rendered locally.
Sending is fire-and-forget: failures are logged, never raised, so a token
issued before the send stays valid and the user can ask for another email.
"""

import logging
from typing import Protocol

import httpx

from accounts.core.config import settings

logger = logging.getLogger(__name__)

_BREVO_TIMEOUT = 10.0

_TEMPLATES: dict[str, str] = {
    "verify-email": (
        "Voici votre code de vérification : {verify_email_token}\n\n"
        "Ce code expire dans {expires_in_minutes} minutes."
    ),
    "magic-link": (
        "Cliquez sur ce lien pour vous connecter :\n\n{magic_link}\n\n"
        "Ce lien expire dans {expires_in_minutes} minutes. "
        "Si vous n'êtes pas à l'origine de cette demande, ignorez cet email."
    ),
    "reset-password": (
        "Pour réinitialiser votre mot de passe, cliquez sur ce lien :\n\n"
        "{reset_password_link}\n\n"
        "Ce lien expire dans {expires_in_minutes} minutes. "
        "Si vous n'êtes pas à l'origine de cette demande, ignorez cet email."
    ),
}


class NotificationSink(Protocol):
    """Anything that can deliver a templated email."""

    async def send_mail(
        self,
        *,
        to: list[str],
        subject: str,
        template: str,
        params: dict[str, str],
    ) -> None: ...


def format_pin_token(token: str) -> str:
    """Insert a space after every 3 characters for readability.

    Display only; the stored token is never formatted.

    Args:
        token: Raw PIN token.

    Returns:
        e.g. ``"123 456 789 0"`` for ``"1234567890"``.
    """
    return " ".join(token[i : i + 3] for i in range(0, len(token), 3))


def render_template(template: str, params: dict[str, str]) -> str:
    """Render a named template.

    Args:
        template: Template name (key of _TEMPLATES).
        params: Values substituted into the template.

    Returns:
        Plain-text email body.

    Raises:
        KeyError: If the template or one of its parameters is unknown.
    """
    return _TEMPLATES[template].format(**params)


class BrevoMailer:
    """NotificationSink posting to the Brevo transactional API."""

    async def send_mail(
        self,
        *,
        to: list[str],
        subject: str,
        template: str,
        params: dict[str, str],
    ) -> None:
        """Send one email, logging instead of raising on failure.

        Args:
            to: Recipient addresses.
            subject: Email subject.
            template: Template name.
            params: Template parameters.
        """
        try:
            body = render_template(template, params)
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    settings.brevo_api_url,
                    headers={
                        "api-key": settings.brevo_api_key.get_secret_value(),
                        "accept": "application/json",
                    },
                    json={
                        "sender": {
                            "name": settings.email_from_name,
                            "email": settings.email_from,
                        },
                        "to": [{"email": address} for address in to],
                        "subject": subject,
                        "textContent": body,
                        "tags": [template],
                    },
                    timeout=_BREVO_TIMEOUT,
                )
                resp.raise_for_status()
        except (httpx.HTTPError, KeyError):
            logger.warning("Failed to send %s email", template, exc_info=True)
