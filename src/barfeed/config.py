"""Environment and CLI runtime configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Self

from dotenv import load_dotenv

from barfeed.domain.models import ALL_TIMEFRAMES, LabelAlignment, Timeframe
from barfeed.errors import ConfigError

DEFAULT_SYMBOLS = ["QGC#"]
DEFAULT_TRADING_DAYS = (0, 1, 2, 3, 4)
DEFAULT_BAR_COUNT = 100
WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
BAR_COUNT_ENV = {
    Timeframe.DAILY: "BARS_DAILY",
    Timeframe.MIN_15: "BARS_15MIN",
    Timeframe.MIN_30: "BARS_30MIN",
    Timeframe.HOUR_1: "BARS_1HOUR",
    Timeframe.HOURS_2: "BARS_2HOURS",
}


def parse_symbols(value: str | None, default: list[str] | None = None) -> list[str]:
    """Parse comma-separated symbols, dropping duplicates while preserving order."""
    fallback = default or DEFAULT_SYMBOLS
    if not value:
        return list(fallback)
    symbols: list[str] = []
    for item in value.split(","):
        symbol = item.strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols or list(fallback)


def parse_trading_days(value: str | None) -> tuple[int, ...]:
    """Parse weekday numbers (Sunday=0) or three-letter names."""
    if value is None or not value.strip():
        return DEFAULT_TRADING_DAYS
    days: list[int] = []
    for item in value.split(","):
        text = item.strip().lower()
        if not text:
            continue
        if text[:3] in WEEKDAY_NAMES:
            day = WEEKDAY_NAMES.index(text[:3])
        else:
            try:
                day = int(text)
            except ValueError as exc:
                raise ConfigError(f"invalid trading day '{item.strip()}'") from exc
        if day not in days:
            days.append(day)
    return tuple(sorted(days))


def parse_hm(value: str | None, default: tuple[int, int]) -> tuple[int, int]:
    """Parse HH:MM into an hour/minute pair."""
    if value is None or not value.strip():
        return default
    try:
        hour_text, minute_text = value.strip().split(":", 1)
        return int(hour_text), int(minute_text)
    except ValueError as exc:
        raise ConfigError(f"invalid HH:MM value '{value}'") from exc


def parse_positive_int(value: str | None, default: int, *, field_name: str) -> int:
    """Parse positive integer values from env strings."""
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc
    if parsed <= 0:
        raise ConfigError(f"{field_name} must be positive")
    return parsed


def default_bar_counts() -> dict[Timeframe, int]:
    return {timeframe: DEFAULT_BAR_COUNT for timeframe in ALL_TIMEFRAMES}


@dataclass(frozen=True)
class ScheduleConfig:
    """What the scheduler fetches and when.

    Trading days use Sunday=0 .. Saturday=6. Fetch gates only run on those
    days at or after `daily_hour:daily_minute` local time.
    """

    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    trading_days: tuple[int, ...] = DEFAULT_TRADING_DAYS
    daily_hour: int = 19
    daily_minute: int = 0
    bar_counts: dict[Timeframe, int] = field(default_factory=default_bar_counts)

    def bar_count(self, timeframe: Timeframe) -> int:
        return self.bar_counts.get(timeframe, DEFAULT_BAR_COUNT)

    def validate(self) -> Self:
        if not 0 <= self.daily_hour <= 23:
            raise ConfigError("daily_hour must be between 0 and 23")
        if not 0 <= self.daily_minute <= 59:
            raise ConfigError("daily_minute must be between 0 and 59")
        for day in self.trading_days:
            if not 0 <= day <= 6:
                raise ConfigError("trading_days must be weekday numbers 0 (Sunday) to 6")
        for timeframe, count in self.bar_counts.items():
            if count <= 0:
                raise ConfigError(f"bar count for {timeframe.value} must be positive")
        return self


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings."""

    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    trading_days: tuple[int, ...] = DEFAULT_TRADING_DAYS
    daily_hour: int = 19
    daily_minute: int = 0
    bar_counts: dict[Timeframe, int] = field(default_factory=default_bar_counts)
    feed_host: str = "127.0.0.1"
    feed_port: int = 9100
    feed_protocol: str = "6.2"
    read_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 0.5
    label_alignment: LabelAlignment = LabelAlignment.START
    recovery_policy: str = "check"
    state_db_path: str = "state/barfeed.db"
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> Self:
        """Create settings from environment variables."""
        load_dotenv()
        daily_hour, daily_minute = parse_hm(os.getenv("DAILY_FETCH_TIME"), (19, 0))
        bar_counts = {
            timeframe: parse_positive_int(
                os.getenv(env_name),
                DEFAULT_BAR_COUNT,
                field_name=env_name.lower(),
            )
            for timeframe, env_name in BAR_COUNT_ENV.items()
        }
        alignment_text = str(os.getenv("LABEL_ALIGNMENT", "start")).strip().lower()
        try:
            label_alignment = LabelAlignment(alignment_text)
        except ValueError as exc:
            raise ConfigError("label_alignment must be one of start, end") from exc
        try:
            read_timeout = float(os.getenv("FEED_READ_TIMEOUT_SECONDS", "30"))
            poll_interval = float(os.getenv("FEED_POLL_INTERVAL_SECONDS", "0.5"))
        except ValueError as exc:
            raise ConfigError("feed timeouts must be numbers") from exc
        raw = cls(
            symbols=parse_symbols(os.getenv("SYMBOLS")),
            trading_days=parse_trading_days(os.getenv("TRADING_DAYS")),
            daily_hour=daily_hour,
            daily_minute=daily_minute,
            bar_counts=bar_counts,
            feed_host=str(os.getenv("FEED_HOST", "127.0.0.1")).strip(),
            feed_port=parse_positive_int(os.getenv("FEED_PORT"), 9100, field_name="feed_port"),
            feed_protocol=str(os.getenv("FEED_PROTOCOL", "6.2")).strip(),
            read_timeout_seconds=read_timeout,
            poll_interval_seconds=poll_interval,
            label_alignment=label_alignment,
            recovery_policy=str(os.getenv("RECOVERY_POLICY", "check")).strip().lower(),
            state_db_path=str(os.getenv("STATE_DB_PATH", "state/barfeed.db")).strip(),
            log_level=str(os.getenv("LOG_LEVEL", "INFO")).strip().upper(),
            log_file=(os.getenv("LOG_FILE") or "").strip() or None,
        )
        return raw.validate()

    def with_overrides(self, **kwargs: object) -> Self:
        """Return a new settings object with updated values."""
        updated = replace(self, **kwargs)
        return updated.validate()

    def schedule_config(self) -> ScheduleConfig:
        return ScheduleConfig(
            symbols=list(self.symbols),
            trading_days=tuple(self.trading_days),
            daily_hour=self.daily_hour,
            daily_minute=self.daily_minute,
            bar_counts=dict(self.bar_counts),
        ).validate()

    def validate(self) -> Self:
        """Validate settings fields."""
        if not self.symbols:
            raise ConfigError("at least one symbol is required")
        if self.feed_port <= 0 or self.feed_port > 65535:
            raise ConfigError("feed_port must be between 1 and 65535")
        if self.read_timeout_seconds <= 0:
            raise ConfigError("read_timeout_seconds must be positive")
        if self.poll_interval_seconds <= 0:
            raise ConfigError("poll_interval_seconds must be positive")
        if self.poll_interval_seconds > self.read_timeout_seconds:
            raise ConfigError("poll_interval_seconds must not exceed read_timeout_seconds")
        if self.recovery_policy not in {"always", "check"}:
            raise ConfigError("recovery_policy must be one of always, check")
        self.schedule_config()
        return self
