from __future__ import annotations

import calendar
import math
from collections.abc import Collection, Iterator
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

MS_IN_MINUTE = 60_000
MS_IN_HOUR = 3_600_000
MS_IN_DAY = 86_400_000

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Bounds that still convert back to a datetime in any zone.
MIN_MILLIS = (datetime(2, 1, 1, tzinfo=timezone.utc) - EPOCH) // timedelta(milliseconds=1)
MAX_MILLIS = (datetime(9998, 12, 31, tzinfo=timezone.utc) - EPOCH) // timedelta(milliseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(value: datetime) -> int:
    """Convert a timezone-aware datetime to epoch milliseconds."""
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_millis(value: int, tz: ZoneInfo | timezone = timezone.utc) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz)


def parse_timestamp(value: object) -> int | None:
    """Parse an ISO string, epoch millis or datetime into epoch millis.

    Returns None for anything missing or malformed so callers can skip the
    record instead of failing the whole computation.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            # Upstream payloads are UTC; treat naive values as UTC for resilience.
            value = value.replace(tzinfo=timezone.utc)
        return _within_range(to_millis(value))

    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return _within_range(int(value))

    if isinstance(value, int):
        return _within_range(value)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.isdigit():
        return _within_range(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return _within_range(to_millis(parsed))


def _within_range(value: int) -> int | None:
    if MIN_MILLIS <= value <= MAX_MILLIS:
        return value
    return None


def local_millis(day: date, hour: int, minute: int, tz: ZoneInfo) -> int:
    return to_millis(datetime.combine(day, time(hour, minute), tzinfo=tz))


def local_date(value: int, tz: ZoneInfo) -> date:
    return from_millis(value, tz).date()


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def start_of_month(value: int, tz: ZoneInfo) -> datetime:
    local = from_millis(value, tz)
    return datetime(local.year, local.month, 1, tzinfo=tz)


def iter_local_days(start: int, end: int, tz: ZoneInfo) -> Iterator[date]:
    """Yield every local calendar day touched by [start, end]."""
    if end < start:
        return
    cursor = local_date(start, tz)
    last = local_date(end, tz)
    while cursor <= last:
        yield cursor
        cursor += timedelta(days=1)


def is_public_holiday(value: int | date, tz: ZoneInfo, holidays: Collection[str]) -> bool:
    day = value if isinstance(value, date) else local_date(value, tz)
    return day.strftime("%m-%d") in holidays
