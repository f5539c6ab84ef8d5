"""Parsing of GitLab ISO-8601 timestamps."""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..core.exceptions import TimestampParseError

# Tried in order; the flag marks formats whose literal "Z" means UTC.
TIMESTAMP_FORMATS: List[Tuple[str, bool]] = [
    ("%Y-%m-%dT%H:%M:%S.%f%z", False),  # 2025-12-17T17:49:02.891+08:00
    ("%Y-%m-%dT%H:%M:%S%z", False),     # 2025-12-17T17:49:02+08:00
    ("%Y-%m-%dT%H:%M:%S.%fZ", True),    # 2025-12-17T09:49:02.891Z
    ("%Y-%m-%dT%H:%M:%SZ", True),       # 2025-12-17T09:49:02Z
]


def _attempt(value: str, fmt: str, assume_utc: bool) -> Optional[datetime]:
    try:
        parsed = datetime.strptime(value, fmt)
    except ValueError:
        return None
    if assume_utc:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_gitlab_timestamp(value: str) -> datetime:
    """Parse a GitLab timestamp into a timezone-aware datetime.

    Raises:
        TimestampParseError: when no known format matches
    """
    text = (value or "").strip()
    for fmt, assume_utc in TIMESTAMP_FORMATS:
        parsed = _attempt(text, fmt, assume_utc)
        if parsed is not None:
            return parsed
    raise TimestampParseError(f"Unrecognised timestamp: {value!r}", value=value)


def from_unix_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def format_local(moment: datetime) -> str:
    """Render a timestamp for progress output."""
    return moment.astimezone().strftime("%Y-%m-%d %H:%M:%S")
