"""
Time windows for analytics queries.

Everything here is pure: the reference instant is always passed in.
The only clock read lives in SystemClock, which callers inject at the
outermost layer (the query client or the HTTP routes).
"""
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Protocol

from .models import Window

TODAY = "today"
LAST_7_DAYS = "7d"
LAST_30_DAYS = "30d"
ALL_TIME = "all"


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to one instant; advance() moves it forward."""

    def __init__(self, instant: datetime):
        self.instant = as_utc(instant)

    def now(self) -> datetime:
        return self.instant

    def advance(self, **kwargs) -> datetime:
        self.instant = self.instant + timedelta(**kwargs)
        return self.instant


def as_utc(moment: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def start_of_today(now: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Midnight of the calendar day containing `now` in `tz`, as UTC."""
    local = as_utc(now).astimezone(tz)
    # Built from the date so the offset is the one in force at midnight
    midnight = datetime(local.year, local.month, local.day, tzinfo=tz)
    return midnight.astimezone(timezone.utc)


def days_before(now: datetime, n: int) -> datetime:
    """Exactly n*24h before `now`, with no calendar adjustment."""
    return as_utc(now) - timedelta(days=n)


def today_window(now: datetime, tz: tzinfo = timezone.utc) -> Window:
    return Window(name=TODAY, start=start_of_today(now, tz))


def last_days_window(now: datetime, days: int) -> Window:
    return Window(name=f"{days}d", start=days_before(now, days))


def all_time_window() -> Window:
    return Window(name=ALL_TIME)


def windows_for(
    now: datetime,
    tz: tzinfo = timezone.utc,
    weekly_days: int = 7,
    monthly_days: int = 30,
) -> dict[str, Window]:
    """The four dashboard windows relative to `now`.

    Keys are "today", "7d", "30d" and "all" regardless of the configured
    spans, so callers can look them up by role.
    """
    return {
        TODAY: today_window(now, tz),
        LAST_7_DAYS: last_days_window(now, weekly_days),
        LAST_30_DAYS: last_days_window(now, monthly_days),
        ALL_TIME: all_time_window(),
    }
