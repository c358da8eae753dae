"""Calendar periods used by dashboard filters and stats (UTC)"""

from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

Period = Literal["today", "week", "month"]


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    """Weeks start on Sunday"""
    days_since_sunday = (now.weekday() + 1) % 7
    return start_of_day(now) - timedelta(days=days_since_sunday)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


def period_bounds(period: Period, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Half-open [start, end) range of the period containing `now`"""
    now = now or datetime.now(timezone.utc)
    if period == "today":
        start = start_of_day(now)
        return start, start + timedelta(days=1)
    if period == "week":
        start = start_of_week(now)
        return start, start + timedelta(days=7)
    if period == "month":
        start = start_of_month(now)
        if start.month == 12:
            return start, start.replace(year=start.year + 1, month=1)
        return start, start.replace(month=start.month + 1)
    raise ValueError(f"Unknown period: {period}")
