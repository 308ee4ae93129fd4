"""
Timestamp parsing helpers.

Transcript timestamps are ISO-8601 UTC strings (usually with a trailing Z). Empty or
unparseable values are treated as unset and never coerced to epoch.
"""

from __future__ import annotations

import datetime


def parse_timestamp(value: str | None) -> datetime.datetime | None:
    """Parse an ISO-8601 timestamp to an aware UTC datetime, or None when empty/unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.UTC)
    return parsed.astimezone(datetime.UTC)


def day_of_week(moment: datetime.datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def minutes_between(start: datetime.datetime, end: datetime.datetime) -> int:
    """Whole minutes from start to end (0 when end precedes start)."""
    return max(0, int((end - start).total_seconds() // 60))


def isoformat_utc(moment: datetime.datetime) -> str:
    """Format as ISO-8601 UTC with a trailing Z."""
    return moment.astimezone(datetime.UTC).isoformat().replace('+00:00', 'Z')
