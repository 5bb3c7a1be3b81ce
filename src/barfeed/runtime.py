"""Runtime wiring and scheduler lifecycle orchestration."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from time import sleep

from barfeed.config import Settings
from barfeed.domain.models import Timeframe, parse_timeframe
from barfeed.feed.transport import LookupSocketTransport
from barfeed.logging.logger import HumanLogger, setup_logger
from barfeed.logging.status_report import generate_status_report
from barfeed.scheduling.scheduler import (
    FetchScheduler,
    MissingDataCheck,
    always_missing,
    store_missing_data_check,
)
from barfeed.state.sqlite_store import SqliteBarStore

SUMMARY_INTERVAL = timedelta(hours=1)
IDLE_SLEEP_SECONDS = 1.0


def build_transport(settings: Settings) -> LookupSocketTransport:
    """Create the lookup transport and probe the feed endpoint."""
    transport = LookupSocketTransport(
        host=settings.feed_host,
        port=settings.feed_port,
        protocol_version=settings.feed_protocol,
        read_timeout=settings.read_timeout_seconds,
        poll_interval=settings.poll_interval_seconds,
    )
    transport.connect()
    return transport


def build_store(settings: Settings) -> SqliteBarStore:
    return SqliteBarStore(settings.state_db_path)


def build_missing_data_check(settings: Settings, store: SqliteBarStore) -> MissingDataCheck:
    """Select the recovery predicate from the configured policy."""
    if settings.recovery_policy == "always":
        return always_missing
    return store_missing_data_check(store)


def build_scheduler(
    settings: Settings,
    transport: LookupSocketTransport,
    store: SqliteBarStore,
) -> FetchScheduler:
    return FetchScheduler(
        store=store,
        transport=transport,
        config=settings.schedule_config(),
        label_alignment=settings.label_alignment,
        missing_data=build_missing_data_check(settings, store),
    )


def run_scheduler(
    settings: Settings,
    max_minutes: float | None = None,
    report_path: str | None = None,
) -> int:
    """Run the background scheduler until interrupted or `max_minutes` elapse."""
    setup_logger(settings.log_level, settings.log_file)
    human_logger = HumanLogger()
    transport = build_transport(settings)
    store = build_store(settings)
    scheduler = build_scheduler(settings, transport, store)

    exit_code = 0
    try:
        if not scheduler.start():
            return 1
        started = datetime.now()
        last_summary = started
        while True:
            sleep(IDLE_SLEEP_SECONDS)
            now = datetime.now()
            if now - last_summary >= SUMMARY_INTERVAL:
                scheduler.log_fetch_summary(hours=1)
                last_summary = now
            if max_minutes is not None and now - started >= timedelta(minutes=max_minutes):
                break
    except KeyboardInterrupt:
        exit_code = 0
    except Exception as exc:
        human_logger.error(str(exc))
        exit_code = 1
    finally:
        try:
            scheduler.stop()
            scheduler.log_fetch_summary(hours=24)
            if report_path:
                generate_status_report(scheduler.recent_history(hours=168), report_path)
        finally:
            transport.disconnect()
            store.close()

    return exit_code


def fetch_now(
    settings: Settings,
    timeframe: str | Timeframe | None = None,
    symbol: str | None = None,
    report_path: str | None = None,
) -> int:
    """Fetch immediately without starting the background loop."""
    setup_logger(settings.log_level, settings.log_file)
    resolved = parse_timeframe(timeframe) if timeframe else None
    transport = build_transport(settings)
    store = build_store(settings)
    scheduler = build_scheduler(settings, transport, store)
    try:
        if resolved is None:
            success = scheduler.fetch_all_now(symbol)
        elif resolved == Timeframe.DAILY:
            success = scheduler.fetch_daily_now(symbol)
        else:
            success = scheduler.fetch_intraday_now(resolved, symbol)
        scheduler.log_fetch_summary(hours=1)
        if report_path:
            generate_status_report(scheduler.recent_history(hours=1), report_path)
    finally:
        transport.disconnect()
        store.close()
    return 0 if success else 1


def show_bars(settings: Settings, symbol: str, timeframe: str | Timeframe, limit: int = 20) -> int:
    """Print the newest stored bars for one symbol and timeframe."""
    resolved = parse_timeframe(timeframe)
    store = build_store(settings)
    try:
        frame = store.load_bars(symbol.strip().upper(), resolved, limit=limit)
    finally:
        store.close()
    if frame.empty:
        logging.getLogger("barfeed.runtime").warning(
            "no stored %s bars for %s",
            resolved.value,
            symbol,
        )
        return 1
    print(frame.to_string())
    return 0
