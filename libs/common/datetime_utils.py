"""Date arithmetic shared by the contract and scheduling services.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

Calendar dates (contract start/end) and instants (session start/end) are kept
apart on purpose: calendar dates are compared as ``YYYY-MM-DD`` strings in the
gym's local zone, instants are always compared as timezone-aware UTC values.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from libs.common.config import get_settings


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    This replaces the deprecated datetime.utcnow() which returns naive datetimes.
    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are treated as UTC; some drivers (SQLite) drop the offset
    on the way back from storage.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


def local_today(now: Optional[datetime] = None) -> date:
    """Today's calendar date in the configured gym timezone."""
    now = ensure_utc(now) if now else utc_now()
    return now.astimezone(local_zone()).date()


def is_not_in_past(day: Union[date, str], today: Union[date, str]) -> bool:
    """Calendar-day comparison on ``YYYY-MM-DD`` strings.

    Comparing the ISO strings rather than datetimes keeps a start date of
    "today" valid regardless of the server's offset from the gym's zone.
    """
    day_str = day.isoformat() if isinstance(day, date) else str(day)[:10]
    today_str = today.isoformat() if isinstance(today, date) else str(today)[:10]
    return day_str >= today_str


def add_validity_days(start: date, validity_days: int) -> date:
    """Pure calendar-day addition, no time-of-day component."""
    return start + timedelta(days=validity_days)


def shift_by_duration(day: date, duration: timedelta) -> date:
    """Push a calendar date forward by an elapsed duration.

    The date is anchored at midnight UTC and the duration added; the calendar
    date of the result is kept, so only whole elapsed days move the date.
    Negative durations (clock skew) never pull the date backwards.
    """
    if duration <= timedelta(0):
        return day
    anchored = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return (anchored + duration).date()


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open overlap: intervals that only touch at a boundary do not overlap."""
    return ensure_utc(a_start) < ensure_utc(b_end) and ensure_utc(a_end) > ensure_utc(
        b_start
    )


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC instants covering ``day`` in the gym timezone, as ``[start, end)``."""
    zone = local_zone()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_range_bounds(first_day: date, last_day: date) -> tuple[datetime, datetime]:
    """UTC instants covering every local day from ``first_day`` to ``last_day``."""
    start, _ = local_day_bounds(first_day)
    _, end = local_day_bounds(last_day)
    return start, end


def local_month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    return local_range_bounds(date(year, month, 1), date(year, month, last_day))
