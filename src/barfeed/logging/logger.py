"""Central logging configuration and concise operator-facing fetch logger."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from barfeed.domain.models import Bar, FetchStatus


def setup_logger(log_level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Configure and return the barfeed root logger.

    Logs are written to console, plus an optional file if `log_file` is set.
    """
    logger = logging.getLogger("barfeed")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class HumanLogger:
    """Scheduler event lines with fixed line types."""

    def __init__(self, name: str = "barfeed.scheduler") -> None:
        self._logger = logging.getLogger(name)

    def scheduler_started(self, symbols: Sequence[str], next_run: datetime) -> None:
        self._logger.info(
            "scheduler | started | symbols %s | next daily run %s",
            ",".join(symbols) or "-",
            self._format_time(next_run),
        )

    def scheduler_stopped(self) -> None:
        self._logger.info("scheduler | stopped")

    def gate_fired(self, timeframe: str, symbols: Sequence[str]) -> None:
        self._logger.info("gate | %s | %s symbol(s)", timeframe, len(symbols))

    def fetch_result(self, status: FetchStatus, latest: Bar | None = None) -> None:
        parts = [f"fetch | {status.symbol} | {status.timeframe.value}"]
        if status.successful:
            parts.append(f"ok {status.bars_fetched} bars")
            if latest is not None:
                parts.append(
                    f"latest {latest.label()} "
                    f"ohlc {latest.open:g}/{latest.high:g}/{latest.low:g}/{latest.close:g}"
                )
            self._logger.info(" | ".join(parts))
            return
        parts.append(f"failed: {status.error_message or 'unknown error'}")
        self._logger.error(" | ".join(parts))

    def persisted(self, symbol: str, timeframe: str, saved: int, failed: int) -> None:
        level = logging.INFO if failed == 0 else logging.WARNING
        self._logger.log(
            level,
            "store | %s | %s | saved %s | failed %s",
            symbol,
            timeframe,
            saved,
            failed,
        )

    def status_summary(self, total: int, successful: int, failed: int, hours: int) -> None:
        rate = (successful * 100 // total) if total else 0
        self._logger.info(
            "status | last %sh | total %s | ok %s | failed %s | success %s%%",
            hours,
            total,
            successful,
            failed,
            rate,
        )

    def recovery(self, message: str) -> None:
        self._logger.info("recovery | %s", message)

    def error(self, message: str) -> None:
        self._logger.error("error | %s", message)

    @staticmethod
    def _format_time(value: datetime) -> str:
        return value.strftime("%Y-%m-%d %H:%M:%S")
