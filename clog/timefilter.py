"""Parsing of --since / --until arguments into a TimeFilter."""

import re
from datetime import datetime, timedelta, timezone

from clog.extract import parse_timestamp
from clog.models import TimeFilter

RELATIVE_PATTERN = re.compile(r"^\s*(\d+)\s*([mhdw])$")

_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}

ABSOLUTE_FORMATS = ("%Y-%m-%dT%H:%M", "%Y-%m-%d")


def parse_relative_duration(value: str) -> timedelta | None:
    """Parse "30m", "2h", "1d", "1w". Returns None for anything else."""
    match = RELATIVE_PATTERN.match(value)
    if not match:
        return None
    amount = int(match.group(1))
    if amount <= 0:
        return None
    return amount * _UNITS[match.group(2)]


def parse_time_arg(value: str, now: datetime | None = None) -> datetime:
    """Parse a relative duration (counted back from now) or an absolute timestamp.

    Absolute values without a zone are taken as UTC.
    """
    now = now or datetime.now(timezone.utc)

    duration = parse_relative_duration(value)
    if duration is not None:
        return now - duration

    parsed = parse_timestamp(value, None)
    if parsed is not None:
        return parsed

    for fmt in ABSOLUTE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise ValueError(
        "expected relative duration (30m, 2h, 1d, 1w) or timestamp "
        "(YYYY-MM-DD, YYYY-MM-DDTHH:MM, RFC 3339)"
    )


def parse_time_filter(since: str | None, until: str | None) -> TimeFilter | None:
    """Build a TimeFilter from CLI strings. Returns None if both are empty."""
    if not since and not until:
        return None

    since_ts = until_ts = None
    if since:
        try:
            since_ts = parse_time_arg(since)
        except ValueError as e:
            raise ValueError(f"invalid --since value {since!r}: {e}") from e
    if until:
        try:
            until_ts = parse_time_arg(until)
        except ValueError as e:
            raise ValueError(f"invalid --until value {until!r}: {e}") from e

    return TimeFilter(since=since_ts, until=until_ts)
