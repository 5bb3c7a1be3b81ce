"""Trading-day and daily fetch-window helpers.

Weekdays are numbered Sunday=0 .. Saturday=6, the convention used by the
`TRADING_DAYS` setting.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, time, timedelta


def weekday_index(moment: datetime) -> int:
    return (moment.weekday() + 1) % 7


def is_trading_day(moment: datetime, trading_days: Collection[int]) -> bool:
    return weekday_index(moment) in trading_days


def is_after_daily_time(moment: datetime, hour: int, minute: int) -> bool:
    return (moment.hour, moment.minute) >= (hour, minute)


def in_fetch_window(
    moment: datetime,
    trading_days: Collection[int],
    hour: int,
    minute: int,
) -> bool:
    """Return whether scheduled gates may run at `moment`."""
    return is_trading_day(moment, trading_days) and is_after_daily_time(moment, hour, minute)


def next_daily_schedule(
    now: datetime,
    trading_days: Collection[int],
    hour: int,
    minute: int,
) -> datetime:
    """Return the next trading-day fetch time strictly after `now`."""
    for days_ahead in range(8):
        candidate_day = now.date() + timedelta(days=days_ahead)
        candidate = datetime.combine(candidate_day, time(hour, minute))
        if candidate > now and is_trading_day(candidate, trading_days):
            return candidate
    return now + timedelta(hours=24)
