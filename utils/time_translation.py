"""
Time helpers for the route search.
Translates wall-clock HH:MM strings to absolute local timestamps and back, and
converts the timestamp and duration strings used by the upstream routing API.
"""

import re
from datetime import datetime, time, timezone
from typing import Optional

_HHMM_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')
_DURATION_PATTERN = re.compile(r'^(\d+(?:\.\d+)?)s$')


def local_now() -> datetime:
    """Current instant as an aware datetime in the server's local time zone."""
    return datetime.now().astimezone()


def to_absolute(hhmm: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Resolve an "H:MM" or "HH:MM" wall-clock time to today's timestamp in local time.

    The result is always on the same calendar day as `now`, so a time earlier than
    `now` resolves to the past.

    Args:
        hhmm: Wall-clock time string
        now: Reference instant, defaults to the current local time

    Returns:
        Aware datetime, or None if the input is malformed
    """
    if not hhmm or not isinstance(hhmm, str):
        return None

    match = _HHMM_PATTERN.match(hhmm.strip())
    if not match:
        return None

    hours, minutes = map(int, match.groups())
    if hours > 23 or minutes > 59:
        return None

    reference = (now or local_now()).astimezone()
    # Resolve through the local zone so the offset is the one in force at the target
    return datetime.combine(reference.date(), time(hours, minutes)).astimezone()


def to_display(ts: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as zero-padded HH:MM in local time."""
    if ts is None:
        return None
    return ts.astimezone().strftime("%H:%M")


def to_rfc3339(ts: datetime) -> str:
    """Format a timestamp the way the upstream expects departure times (UTC, 'Z' suffix)."""
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp from the upstream; None if absent or unparseable."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    # fromisoformat only accepts up to 6 fractional digits
    text = re.sub(r'(\.\d{6})\d+', r'\1', text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_duration(value: Optional[str]) -> Optional[int]:
    """Parse an upstream duration such as '1834s' into whole seconds."""
    if not value:
        return None
    match = _DURATION_PATTERN.match(value.strip())
    if not match:
        return None
    return int(float(match.group(1)))
