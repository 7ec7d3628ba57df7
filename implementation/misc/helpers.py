"""
Small pure helpers shared across the service.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

_BEARER_PREFIX = "Bearer "


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime, truncated to seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def unique_in_order(values: Iterable[str]) -> list[str]:
    """
    De-duplicate values while keeping the position of each first occurrence.

    Examples:
        >>> unique_in_order(["Good", "Bad", "Good"])
        ['Good', 'Bad']
    """
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address so lookups and uniqueness agree."""
    return email.strip().lower()


def parse_bearer_token(header_value: Optional[str]) -> Optional[str]:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header value.

    Returns None when the header is absent, uses another scheme, or carries
    an empty token.
    """
    if not header_value or not header_value.startswith(_BEARER_PREFIX):
        return None
    token = header_value[len(_BEARER_PREFIX):].strip()
    return token or None
