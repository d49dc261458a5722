"""
UTC calendar windows for quota counters.
"""

from datetime import datetime, timedelta

from ..domain.clock import as_utc


def day_start(now: datetime) -> datetime:
    now = as_utc(now)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def month_start(now: datetime) -> datetime:
    return day_start(now).replace(day=1)


def next_day_start(now: datetime) -> datetime:
    return day_start(now) + timedelta(days=1)


def next_month_start(now: datetime) -> datetime:
    start = month_start(now)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)
