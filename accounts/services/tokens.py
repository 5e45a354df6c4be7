"""Single-use token generation.

Both generators draw from the ``secrets`` CSPRNG. Tokens are capabilities:
whoever presents one proves they received the email it was sent in.
"""

import secrets

# 32 bytes -> 43 URL-safe characters, 256 bits of entropy
_TOKEN_BYTES = 32

# Length of the numeric code a user retypes from their mailbox
PIN_TOKEN_LENGTH = 10


def generate_token() -> str:
    """Generate an opaque URL-safe token for links (magic link, reset).

    Returns:
        Random URL-safe string.
    """
    return secrets.token_urlsafe(_TOKEN_BYTES)


def generate_pin_token() -> str:
    """Generate a numeric code meant to be typed by hand.

    Returns:
        String of PIN_TOKEN_LENGTH decimal digits (leading zeros kept).
    """
    return "".join(str(secrets.randbelow(10)) for _ in range(PIN_TOKEN_LENGTH))
