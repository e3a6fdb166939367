"""
agenda/timeutil.py
Timezone-aware parsing for LLM-supplied date strings.

Values carrying an explicit offset (RFC 3339) keep it. Naive values are
interpreted in the user's zone; an unknown or empty zone falls back to
UTC and the caller is told so it can flag the item.
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_ZONE = timezone.utc

NAIVE_LAYOUTS = (
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
)

_RFC3339 = re.compile(
    r'^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|z|[+-]\d{2}:\d{2})$'
)


def resolve_zone(tz_name: str) -> Tuple[tzinfo, bool]:
    """Return (zone, fell_back). Empty or unknown names resolve to UTC."""
    if not tz_name:
        return DEFAULT_ZONE, True
    try:
        return ZoneInfo(tz_name), False
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # directory names like "America" raise IsADirectoryError
        return DEFAULT_ZONE, True


def _parse_rfc3339(value: str):
    m = _RFC3339.match(value)
    if not m:
        return None
    base, frac, offset = m.groups()
    if offset in ('Z', 'z'):
        offset = '+00:00'
    micro = ''
    if frac:
        micro = '.' + frac[:6].ljust(6, '0')
    try:
        return datetime.fromisoformat(f"{base}{micro}{offset}")
    except ValueError:
        return None


def parse_datetime(value: str, tz_name: str) -> Tuple[datetime, bool]:
    """
    Parse value as RFC 3339 or one of NAIVE_LAYOUTS.
    Returns (aware datetime, timezone_fallback).
    Raises ValueError when the value is empty or matches no layout.
    """
    if not value:
        raise ValueError("time value is required")

    parsed = _parse_rfc3339(value.strip())
    if parsed is not None:
        return parsed, False

    zone, fallback = resolve_zone(tz_name)
    for layout in NAIVE_LAYOUTS:
        try:
            naive = datetime.strptime(value.strip(), layout)
        except ValueError:
            continue
        return naive.replace(tzinfo=zone), fallback

    raise ValueError(f"unable to parse time: {value}")


def parse_date_with_default_time(
    value:   str,
    tz_name: str,
    hour:    int,
    minute:  int,
) -> Tuple[datetime, bool]:
    """Parse a YYYY-MM-DD date and pin it to hour:minute in the user's zone."""
    if not value:
        raise ValueError("date value is required")

    zone, fallback = resolve_zone(tz_name)
    try:
        day = datetime.strptime(value.strip(), '%Y-%m-%d')
    except ValueError:
        raise ValueError(f"unable to parse date: {value}") from None
    return day.replace(hour=hour, minute=minute, tzinfo=zone), fallback


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def default_end(start: datetime) -> datetime:
    return start + timedelta(hours=1)
