from __future__ import annotations

import calendar
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

POLICY_TIMEZONE = "America/Denver"


def policy_local_datetime(moment: datetime, tz_name: str = POLICY_TIMEZONE) -> datetime:
    """Converts an aware datetime to the policy timezone of record."""
    return moment.astimezone(ZoneInfo(tz_name))


def policy_local_date(moment: datetime | date, tz_name: str = POLICY_TIMEZONE) -> date:
    """Returns the calendar date of ``moment`` in the policy timezone.

    Plain dates are already calendar dates and pass through unchanged.
    """
    if isinstance(moment, datetime):
        return policy_local_datetime(moment, tz_name).date()
    return moment


def calendar_days_between(
    start: datetime | date,
    end: datetime | date,
    tz_name: str = POLICY_TIMEZONE,
) -> int:
    """Whole calendar days from ``start`` to ``end``; wall-clock hours are ignored."""
    return (policy_local_date(end, tz_name) - policy_local_date(start, tz_name)).days


def add_months(value: date, months: int) -> date:
    """Adds calendar months, clamping the day to the end of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def is_within_time_window(local_time: time, start: time | None, end: time | None) -> bool:
    """Inclusive wall-clock window; a window with ``start > end`` wraps past midnight."""
    if start is None and end is None:
        return True
    if start is None:
        return local_time <= end  # type: ignore[operator]
    if end is None:
        return local_time >= start
    if start <= end:
        return start <= local_time <= end
    return local_time >= start or local_time <= end
