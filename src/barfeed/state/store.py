"""Bar persistence contract used by the scheduler."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from barfeed.domain.models import Bar, Timeframe


class BarStore(Protocol):
    """Persistence API for complete bars."""

    def is_ready(self) -> bool:
        """Return true when the store accepts writes."""

    def upsert_bar(self, symbol: str, timeframe: Timeframe, bar: Bar) -> bool:
        """Insert or replace one bar keyed by symbol, timeframe, date and time."""


class BarHistoryStore(BarStore, Protocol):
    """Store that can also answer existence queries for recovery."""

    def has_bars_since(self, symbol: str, timeframe: Timeframe, since: datetime) -> bool:
        """Return true when at least one bar at or after `since` is stored."""
