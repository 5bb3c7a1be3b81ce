"""Domain models for bar ingestion."""

from .models import (
    ALL_TIMEFRAMES,
    INTRADAY_TIMEFRAMES,
    TIMEFRAME_SPECS,
    Bar,
    FetchRequest,
    FetchResult,
    FetchStatus,
    LabelAlignment,
    Timeframe,
    TimeframeSpec,
    parse_timeframe,
)

__all__ = [
    "ALL_TIMEFRAMES",
    "INTRADAY_TIMEFRAMES",
    "TIMEFRAME_SPECS",
    "Bar",
    "FetchRequest",
    "FetchResult",
    "FetchStatus",
    "LabelAlignment",
    "Timeframe",
    "TimeframeSpec",
    "parse_timeframe",
]
