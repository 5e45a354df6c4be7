"""Expiration arithmetic for token and verification timestamps."""

from datetime import UTC, datetime, timedelta


def is_expired(
    sent_at: datetime | None,
    duration_minutes: int,
    *,
    now: datetime | None = None,
) -> bool:
    """Check whether ``duration_minutes`` have elapsed since ``sent_at``.

    The exact boundary is not expired: a token issued 60 minutes ago with a
    60 minute lifetime is still valid.

    Naive datetimes are read as UTC.

    Args:
        sent_at: When the token was issued. Callers handle "nothing
            pending" before calling.
        duration_minutes: Validity window.
        now: Reference time, defaults to the current UTC time.

    Returns:
        True if strictly more than ``duration_minutes`` have elapsed.

    Raises:
        ValueError: If sent_at is None.
    """
    if sent_at is None:
        msg = "sent_at is required to compute an expiration"
        raise ValueError(msg)

    current = now or datetime.now(UTC)
    if sent_at.tzinfo is None:
        sent_at = sent_at.replace(tzinfo=UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)

    return current - sent_at > timedelta(minutes=duration_minutes)
