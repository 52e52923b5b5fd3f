"""
Common utility functions for Undangan.

Time helpers keep every timestamp in UTC; SQLite hands datetimes back
without tzinfo, so values read from the database go through ``as_utc``.
"""

import secrets
from datetime import UTC, datetime

from ..settings import settings


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are assumed to already be UTC wall time.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def generate_token(nbytes: int | None = None) -> str:
    """Generate a URL-safe, high-entropy session token."""
    return secrets.token_urlsafe(nbytes or settings.session_token_bytes)


def token_preview(token: str) -> str:
    """Shorten a token for logs and listings."""
    return token[:8] + "..."
