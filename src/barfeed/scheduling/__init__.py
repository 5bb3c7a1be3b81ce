"""Fetch scheduling and trading calendar helpers."""

from .calendar import in_fetch_window, is_trading_day, next_daily_schedule, weekday_index
from .scheduler import (
    FetchScheduler,
    StatusSummary,
    always_missing,
    store_missing_data_check,
)

__all__ = [
    "FetchScheduler",
    "StatusSummary",
    "always_missing",
    "in_fetch_window",
    "is_trading_day",
    "next_daily_schedule",
    "store_missing_data_check",
    "weekday_index",
]
