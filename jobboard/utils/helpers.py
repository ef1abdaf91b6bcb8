"""Helper utilities."""

import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w)?\s*$", re.IGNORECASE)

_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_duration(value) -> timedelta:
    """
    Parse a duration such as "15m", "7d" or "2h" into a timedelta.

    Plain numbers (int or digit-only strings) are seconds.

    Raises:
        ValueError: if the value is not a positive duration
    """
    if isinstance(value, timedelta):
        duration = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        duration = timedelta(seconds=value)
    else:
        match = _DURATION_PATTERN.match(str(value))
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        duration = float(amount) * _DURATION_UNITS[(unit or "s").lower()]

    if duration <= timedelta(0):
        raise ValueError(f"Duration must be positive: {value!r}")
    return duration


def generate_hash(text: str) -> str:
    """Generate SHA256 hash of text."""
    return hashlib.sha256(text.encode()).hexdigest()


def generate_token(nbytes: int = 32) -> str:
    """Generate a random hex token."""
    return secrets.token_hex(nbytes)


def normalize_email(email: str) -> str:
    """Lower-case and trim an email for storage and lookups."""
    return email.strip().lower()


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)
