"""Command-line interface for the barfeed runtime."""

from __future__ import annotations

import argparse
import sys

from barfeed.config import Settings, parse_symbols
from barfeed.domain.models import parse_timeframe
from barfeed.errors import ConfigError
from barfeed.runtime import fetch_now, run_scheduler, show_bars


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description="Historical bar ingestion and scheduling")
    parser.add_argument("--symbols", type=str, help="Comma-separated symbols")
    parser.add_argument(
        "--timeframe",
        type=str,
        help="Timeframe for --fetch-now or --show (daily, 15min, 30min, 1hour, 2hours)",
    )
    parser.add_argument(
        "--fetch-now",
        action="store_true",
        help="Fetch immediately instead of running the scheduler, then exit",
    )
    parser.add_argument(
        "--show",
        type=str,
        metavar="SYMBOL",
        help="Print the newest stored bars for SYMBOL, then exit",
    )
    parser.add_argument("--limit", type=int, default=20, help="Rows printed by --show")
    parser.add_argument(
        "--max-minutes",
        type=float,
        help="Stop the scheduler after this many minutes",
    )
    parser.add_argument("--status-report", type=str, help="Write an HTML fetch report here")
    parser.add_argument("--state-db", type=str, help="SQLite bar database path")
    parser.add_argument("--log-level", type=str, help="Logging level")
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply CLI values onto environment-derived settings."""
    if args.fetch_now and args.show:
        raise ConfigError("Use only one action flag: --fetch-now or --show")
    if args.show and not args.timeframe:
        raise ConfigError("--show requires --timeframe")
    if args.timeframe:
        parse_timeframe(args.timeframe)
    if args.max_minutes is not None and (args.fetch_now or args.show):
        raise ConfigError("--max-minutes only applies to the scheduler")
    if args.max_minutes is not None and args.max_minutes <= 0:
        raise ConfigError("--max-minutes must be positive")
    if args.limit <= 0:
        raise ConfigError("--limit must be positive")

    overrides: dict[str, object] = {}
    if args.symbols:
        overrides["symbols"] = parse_symbols(args.symbols, settings.symbols)
    if args.state_db:
        overrides["state_db_path"] = args.state_db
    if args.log_level:
        overrides["log_level"] = args.log_level.strip().upper()
    return settings.with_overrides(**overrides)


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_cli_overrides(Settings.from_env(), args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}")
        return 2
    if args.show:
        return show_bars(settings, args.show, args.timeframe, args.limit)
    if args.fetch_now:
        return fetch_now(settings, args.timeframe, report_path=args.status_report)
    return run_scheduler(settings, args.max_minutes, report_path=args.status_report)


if __name__ == "__main__":
    sys.exit(main())
