"""Background fetch scheduler with per-timeframe gates and bounded run history."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from barfeed.config import ScheduleConfig
from barfeed.domain.models import (
    ALL_TIMEFRAMES,
    INTRADAY_TIMEFRAMES,
    TIMEFRAME_SPECS,
    Bar,
    FetchStatus,
    LabelAlignment,
    Timeframe,
    parse_timeframe,
)
from barfeed.errors import ConfigError
from barfeed.feed.fetcher import BarFetcher, build_fetchers
from barfeed.feed.transport import Transport
from barfeed.logging.logger import HumanLogger
from barfeed.scheduling.calendar import in_fetch_window, next_daily_schedule
from barfeed.state.store import BarHistoryStore, BarStore

HISTORY_RETENTION = timedelta(hours=168)
RECOVERY_WINDOW = timedelta(hours=24)
TICK_SECONDS = 60.0

MissingDataCheck = Callable[[str, Timeframe, datetime], bool]


def always_missing(symbol: str, timeframe: Timeframe, since: datetime) -> bool:
    """Treat every symbol and timeframe as needing a re-fetch."""
    _ = (symbol, timeframe, since)
    return True


def store_missing_data_check(store: BarHistoryStore) -> MissingDataCheck:
    """Return a check that reports data missing when no bar since `since` is stored."""

    def check(symbol: str, timeframe: Timeframe, since: datetime) -> bool:
        return not store.has_bars_since(symbol, timeframe, since)

    return check


def _copy_config(config: ScheduleConfig) -> ScheduleConfig:
    return replace(config, symbols=list(config.symbols), bar_counts=dict(config.bar_counts))


@dataclass(frozen=True)
class StatusSummary:
    """Fetch outcome counts over a history window."""

    hours: int
    total: int
    successful: int
    failed: int

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.successful / self.total


class FetchScheduler:
    """Runs timeframe fetches on a fixed cadence during configured trading windows.

    The scheduler is either stopped or running one background thread. Each
    tick checks the trading-day window, then five independent gates (daily
    plus four intraday cadences); a gate whose cadence has elapsed fetches
    its timeframe for every configured symbol. Manual fetch operations work
    in either state. Every attempt appends one `FetchStatus` to a history
    that is pruned to a rolling week.

    Config, gate timestamps and history share one lock. Fetch and persist
    calls run outside it.
    """

    def __init__(
        self,
        store: BarStore,
        transport: Transport,
        config: ScheduleConfig | None = None,
        *,
        label_alignment: LabelAlignment = LabelAlignment.START,
        fetchers: Mapping[Timeframe, BarFetcher] | None = None,
        missing_data: MissingDataCheck = always_missing,
        clock: Callable[[], datetime] = datetime.now,
        tick_seconds: float = TICK_SECONDS,
        human_logger: HumanLogger | None = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.tick_seconds = tick_seconds
        self.logger = logging.getLogger("barfeed.scheduling.scheduler")
        self.human_logger = human_logger or HumanLogger()
        self.last_start_error: str | None = None
        self._clock = clock
        self._missing_data = missing_data
        self._fetchers: dict[Timeframe, BarFetcher] = dict(
            fetchers
            if fetchers is not None
            else build_fetchers(transport, label_alignment=label_alignment, clock=clock)
        )
        self._lock = threading.Lock()
        self._config = _copy_config((config or ScheduleConfig()).validate())
        self._history: list[FetchStatus] = []
        self._last_run: dict[Timeframe, datetime | None] = {
            timeframe: None for timeframe in ALL_TIMEFRAMES
        }
        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # configuration

    def set_config(self, config: ScheduleConfig) -> None:
        validated = _copy_config(config.validate())
        with self._lock:
            self._config = validated
        self.logger.info(
            "configuration updated: %s symbols, trading days %s",
            len(validated.symbols),
            list(validated.trading_days),
        )

    def get_config(self) -> ScheduleConfig:
        with self._lock:
            return _copy_config(self._config)

    def add_symbol(self, symbol: str) -> None:
        normalized = symbol.strip().upper()
        with self._lock:
            if normalized in self._config.symbols:
                return
            self._config = replace(self._config, symbols=[*self._config.symbols, normalized])
        self.logger.info("added symbol %s", normalized)

    def remove_symbol(self, symbol: str) -> None:
        normalized = symbol.strip().upper()
        with self._lock:
            if normalized not in self._config.symbols:
                return
            remaining = [item for item in self._config.symbols if item != normalized]
            self._config = replace(self._config, symbols=remaining)
        self.logger.info("removed symbol %s", normalized)

    # lifecycle

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> bool:
        """Start the background loop when both collaborators are ready."""
        with self._lock:
            if self._running:
                self.last_start_error = "scheduler already running"
            elif not self.transport.is_ready():
                self.last_start_error = "feed transport not ready"
            elif not self.store.is_ready():
                self.last_start_error = "bar store not ready"
            else:
                self.last_start_error = None
                self._running = True
                # One stop event per run.
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._main_loop,
                    args=(self._stop_event,),
                    name="barfeed-scheduler",
                    daemon=True,
                )
                self._thread.start()
            config = self._config
        if self.last_start_error is not None:
            self.human_logger.error(f"scheduler not started: {self.last_start_error}")
            return False
        self.human_logger.scheduler_started(config.symbols, self.next_daily_schedule())
        return True

    def stop(self) -> None:
        """Signal the loop to exit and wait for the in-flight cycle to finish."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self.human_logger.scheduler_stopped()

    def _main_loop(self, stop_event: threading.Event) -> None:
        self.logger.info("scheduler loop started")
        try:
            self.check_and_recover_today()
        except Exception as exc:
            self.logger.exception("startup recovery failed: %s", exc)
        while not stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as exc:  # pragma: no cover - loop guard
                self.logger.exception("scheduler cycle failed: %s", exc)
            stop_event.wait(self.tick_seconds)
        self.logger.info("scheduler loop ended")

    # scheduling

    def due_timeframes(self, now: datetime) -> list[Timeframe]:
        """Return timeframes whose gate cadence has elapsed at `now`."""
        due: list[Timeframe] = []
        with self._lock:
            for timeframe in ALL_TIMEFRAMES:
                last_run = self._last_run[timeframe]
                cadence = TIMEFRAME_SPECS[timeframe].cadence
                if last_run is None or now - last_run >= cadence:
                    due.append(timeframe)
        return due

    def last_run(self, timeframe: Timeframe) -> datetime | None:
        with self._lock:
            return self._last_run[timeframe]

    def run_cycle(self, now: datetime | None = None) -> list[Timeframe]:
        """Evaluate the trading window and gates once; return the timeframes fetched."""
        moment = now or self._clock()
        config = self.get_config()
        fired: list[Timeframe] = []
        if in_fetch_window(moment, config.trading_days, config.daily_hour, config.daily_minute):
            for timeframe in self.due_timeframes(moment):
                self.human_logger.gate_fired(timeframe.value, config.symbols)
                for symbol in config.symbols:
                    self._execute_fetch(timeframe, symbol, scheduled_time=moment)
                with self._lock:
                    self._last_run[timeframe] = moment
                fired.append(timeframe)
        self.prune_history(moment)
        return fired

    def next_daily_schedule(self, now: datetime | None = None) -> datetime:
        config = self.get_config()
        return next_daily_schedule(
            now or self._clock(),
            config.trading_days,
            config.daily_hour,
            config.daily_minute,
        )

    # manual operations

    def fetch_all_now(self, symbol: str | None = None) -> bool:
        symbols = self._target_symbols(symbol)
        self.logger.info("manual fetch of all timeframes for %s symbol(s)", len(symbols))
        success = True
        for target in symbols:
            for timeframe in ALL_TIMEFRAMES:
                if not self._execute_fetch(timeframe, target):
                    success = False
        return success

    def fetch_daily_now(self, symbol: str | None = None) -> bool:
        success = True
        for target in self._target_symbols(symbol):
            if not self._execute_fetch(Timeframe.DAILY, target):
                success = False
        return success

    def fetch_intraday_now(self, timeframe: str | Timeframe, symbol: str | None = None) -> bool:
        resolved = parse_timeframe(timeframe)
        if resolved not in INTRADAY_TIMEFRAMES:
            raise ConfigError(f"{resolved.value} is not an intraday timeframe")
        success = True
        for target in self._target_symbols(symbol):
            if not self._execute_fetch(resolved, target):
                success = False
        return success

    # recovery

    def recover_missing_data(self, from_time: datetime, to_time: datetime | None = None) -> bool:
        """Re-fetch every symbol and timeframe the missing-data check flags."""
        until = to_time or self._clock()
        config = self.get_config()
        self.human_logger.recovery(
            f"checking {len(config.symbols)} symbol(s) from "
            f"{from_time:%Y-%m-%d %H:%M:%S} to {until:%Y-%m-%d %H:%M:%S}"
        )
        success = True
        for symbol in config.symbols:
            for timeframe in ALL_TIMEFRAMES:
                try:
                    missing = self._missing_data(symbol, timeframe, from_time)
                except Exception as exc:
                    self.logger.exception(
                        "missing-data check failed for %s %s: %s",
                        symbol,
                        timeframe.value,
                        exc,
                    )
                    missing = True
                if not missing:
                    self.logger.debug("%s %s already current", symbol, timeframe.value)
                    continue
                self.human_logger.recovery(f"re-fetching {symbol} {timeframe.value}")
                if not self._execute_fetch(timeframe, symbol):
                    success = False
        return success

    def check_and_recover_today(self) -> bool:
        now = self._clock()
        return self.recover_missing_data(now - RECOVERY_WINDOW, now)

    # history

    def record_fetch_status(self, status: FetchStatus) -> None:
        with self._lock:
            self._history.append(status)

    def prune_history(self, now: datetime | None = None) -> int:
        """Drop statuses older than the retention window; return how many were removed."""
        cutoff = (now or self._clock()) - HISTORY_RETENTION
        with self._lock:
            kept = [status for status in self._history if status.actual_time >= cutoff]
            removed = len(self._history) - len(kept)
            self._history = kept
        return removed

    def recent_history(self, hours: int = 24, now: datetime | None = None) -> list[FetchStatus]:
        cutoff = (now or self._clock()) - timedelta(hours=hours)
        with self._lock:
            return [status for status in self._history if status.actual_time >= cutoff]

    def summary(self, hours: int = 24, now: datetime | None = None) -> StatusSummary:
        recent = self.recent_history(hours, now)
        successful = sum(1 for status in recent if status.successful)
        return StatusSummary(
            hours=hours,
            total=len(recent),
            successful=successful,
            failed=len(recent) - successful,
        )

    def log_fetch_summary(self, hours: int = 1) -> StatusSummary:
        result = self.summary(hours)
        self.human_logger.status_summary(result.total, result.successful, result.failed, hours)
        return result

    # execution

    def _target_symbols(self, symbol: str | None) -> list[str]:
        if symbol and symbol.strip():
            return [symbol.strip().upper()]
        return list(self.get_config().symbols)

    def _execute_fetch(
        self,
        timeframe: Timeframe,
        symbol: str,
        scheduled_time: datetime | None = None,
    ) -> bool:
        actual_time = self._clock()
        bar_count = self.get_config().bar_count(timeframe)
        bars: list[Bar] = []
        error: str | None = None
        try:
            result = self._fetchers[timeframe].fetch(symbol, bar_count)
            if not result.success:
                error = result.error or "feed fetch failed"
            else:
                bars = result.bars
                failed = self._persist(symbol, timeframe, bars)
                if failed:
                    error = f"store rejected {failed} of {len(bars)} bars"
        except Exception as exc:
            self.logger.exception("%s fetch for %s raised: %s", timeframe.value, symbol, exc)
            error = f"unexpected error: {exc}"

        status = FetchStatus(
            timeframe=timeframe,
            symbol=symbol,
            scheduled_time=scheduled_time or actual_time,
            actual_time=actual_time,
            successful=error is None,
            bars_fetched=len(bars),
            error_message=error,
        )
        self.record_fetch_status(status)
        # Feed order is newest first.
        self.human_logger.fetch_result(status, latest=bars[0] if bars else None)
        return status.successful

    def _persist(self, symbol: str, timeframe: Timeframe, bars: list[Bar]) -> int:
        saved = 0
        failed = 0
        for bar in bars:
            if self.store.upsert_bar(symbol, timeframe, bar):
                saved += 1
            else:
                failed += 1
        self.human_logger.persisted(symbol, timeframe.value, saved, failed)
        return failed
