from __future__ import annotations

from datetime import datetime

from barfeed.scheduling.calendar import (
    in_fetch_window,
    is_trading_day,
    next_daily_schedule,
    weekday_index,
)

SUN_TO_THU = (0, 1, 2, 3, 4)


def test_weekday_index_counts_from_sunday() -> None:
    assert weekday_index(datetime(2024, 1, 7)) == 0
    assert weekday_index(datetime(2024, 1, 8)) == 1
    assert weekday_index(datetime(2024, 1, 6)) == 6


def test_friday_is_not_a_trading_day_for_evening_sessions() -> None:
    assert not is_trading_day(datetime(2024, 1, 5, 20, 0), SUN_TO_THU)
    assert is_trading_day(datetime(2024, 1, 7, 20, 0), SUN_TO_THU)


def test_fetch_window_opens_at_daily_time() -> None:
    assert not in_fetch_window(datetime(2024, 1, 8, 18, 59, 59), SUN_TO_THU, 19, 0)
    assert in_fetch_window(datetime(2024, 1, 8, 19, 0, 0), SUN_TO_THU, 19, 0)
    assert in_fetch_window(datetime(2024, 1, 8, 23, 45, 0), SUN_TO_THU, 19, 0)


def test_next_daily_schedule_without_trading_days_falls_back_to_a_day_later() -> None:
    now = datetime(2024, 1, 8, 12, 0, 0)

    assert next_daily_schedule(now, (), 19, 0) == datetime(2024, 1, 9, 12, 0, 0)
