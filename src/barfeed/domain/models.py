"""Core bar ingestion domain models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import StrEnum

from barfeed.errors import ConfigError


class Timeframe(StrEnum):
    """Supported bar granularities."""

    DAILY = "daily"
    MIN_15 = "15min"
    MIN_30 = "30min"
    HOUR_1 = "1hour"
    HOURS_2 = "2hours"


class LabelAlignment(StrEnum):
    """Which end of an intraday interval the feed timestamp denotes."""

    START = "start"
    END = "end"


INTRADAY_TIMEFRAMES = (
    Timeframe.MIN_15,
    Timeframe.MIN_30,
    Timeframe.HOUR_1,
    Timeframe.HOURS_2,
)
ALL_TIMEFRAMES = (Timeframe.DAILY, *INTRADAY_TIMEFRAMES)


@dataclass(frozen=True)
class Bar:
    """One OHLCV observation as returned by the feed."""

    date: str
    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    open_interest: int = 0

    @property
    def is_daily(self) -> bool:
        return not self.time

    def session_date(self) -> date:
        return date.fromisoformat(self.date)

    def timestamp(self) -> datetime:
        """Return the bar label as a naive local datetime."""
        if not self.time:
            return datetime.combine(self.session_date(), datetime.min.time())
        return datetime.strptime(f"{self.date} {self.time}", "%Y-%m-%d %H:%M:%S")

    def label(self) -> str:
        return self.date if not self.time else f"{self.date} {self.time}"


@dataclass(frozen=True)
class TimeframeSpec:
    """Per-timeframe constants consumed by the fetcher and scheduler.

    `interval_code` is the feed's interval argument: seconds for intraday
    requests, the literal "daily" for bulk daily history. `cadence` is how
    often the scheduler gate for this timeframe elapses.
    """

    timeframe: Timeframe
    interval_code: str
    interval: timedelta
    cadence: timedelta

    @property
    def is_daily(self) -> bool:
        return self.timeframe == Timeframe.DAILY


TIMEFRAME_SPECS: dict[Timeframe, TimeframeSpec] = {
    Timeframe.DAILY: TimeframeSpec(
        timeframe=Timeframe.DAILY,
        interval_code="daily",
        interval=timedelta(days=1),
        cadence=timedelta(hours=24),
    ),
    Timeframe.MIN_15: TimeframeSpec(
        timeframe=Timeframe.MIN_15,
        interval_code="900",
        interval=timedelta(minutes=15),
        cadence=timedelta(minutes=15),
    ),
    Timeframe.MIN_30: TimeframeSpec(
        timeframe=Timeframe.MIN_30,
        interval_code="1800",
        interval=timedelta(minutes=30),
        cadence=timedelta(minutes=30),
    ),
    Timeframe.HOUR_1: TimeframeSpec(
        timeframe=Timeframe.HOUR_1,
        interval_code="3600",
        interval=timedelta(hours=1),
        cadence=timedelta(hours=1),
    ),
    Timeframe.HOURS_2: TimeframeSpec(
        timeframe=Timeframe.HOURS_2,
        interval_code="7200",
        interval=timedelta(hours=2),
        cadence=timedelta(hours=2),
    ),
}


def parse_timeframe(value: str | Timeframe) -> Timeframe:
    """Normalize user-facing timeframe names."""
    if isinstance(value, Timeframe):
        return value
    aliases = {
        "daily": Timeframe.DAILY,
        "day": Timeframe.DAILY,
        "1d": Timeframe.DAILY,
        "15min": Timeframe.MIN_15,
        "15m": Timeframe.MIN_15,
        "30min": Timeframe.MIN_30,
        "30m": Timeframe.MIN_30,
        "1hour": Timeframe.HOUR_1,
        "1h": Timeframe.HOUR_1,
        "60min": Timeframe.HOUR_1,
        "2hours": Timeframe.HOURS_2,
        "2hour": Timeframe.HOURS_2,
        "2h": Timeframe.HOURS_2,
        "120min": Timeframe.HOURS_2,
    }
    normalized = str(value).strip().lower()
    if normalized not in aliases:
        supported = ", ".join(item.value for item in ALL_TIMEFRAMES)
        raise ConfigError(f"Unknown timeframe '{value}'. Supported: {supported}")
    return aliases[normalized]


@dataclass(frozen=True)
class FetchRequest:
    """One fetch of `bar_count` bars for a symbol and timeframe."""

    symbol: str
    timeframe: Timeframe
    bar_count: int

    @property
    def request_id(self) -> str:
        return f"HIST_{self.symbol}_{self.timeframe.value}"


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a timeframe fetch; `bars` is empty whenever `success` is false."""

    bars: list[Bar]
    success: bool
    error: str | None = None
    filtered_count: int = 0


@dataclass(frozen=True)
class FetchStatus:
    """Record of one fetch attempt kept in the scheduler's run history."""

    timeframe: Timeframe
    symbol: str
    scheduled_time: datetime
    actual_time: datetime
    successful: bool
    bars_fetched: int = 0
    error_message: str | None = None

    def to_record(self) -> dict[str, object]:
        return {
            "timeframe": self.timeframe.value,
            "symbol": self.symbol,
            "scheduled_time": self.scheduled_time.isoformat(),
            "actual_time": self.actual_time.isoformat(),
            "successful": self.successful,
            "bars_fetched": self.bars_fetched,
            "error_message": self.error_message or "",
        }
