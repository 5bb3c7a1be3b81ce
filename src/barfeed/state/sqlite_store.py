"""SQLite bar store with idempotent per-timeframe upserts."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from barfeed.domain.models import Bar, Timeframe
from barfeed.errors import StoreError


class SqliteBarStore:
    """SQLite-backed implementation of bar persistence."""

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.logger = logging.getLogger("barfeed.state.sqlite")
        # Shared by the scheduler thread and manual callers.
        self.connection: sqlite3.Connection | None = sqlite3.connect(
            path,
            check_same_thread=False,
        )
        self.connection.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize_schema()

    def is_ready(self) -> bool:
        return self.connection is not None

    def upsert_bar(self, symbol: str, timeframe: Timeframe, bar: Bar) -> bool:
        connection = self._require_connection()
        now = self._utc_now()
        try:
            with self._lock:
                connection.execute(
                    """
                    INSERT INTO bars(
                        symbol,
                        timeframe,
                        bar_date,
                        bar_time,
                        open_price,
                        high_price,
                        low_price,
                        close_price,
                        volume,
                        open_interest,
                        fetched_ts
                    )
                    VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(symbol, timeframe, bar_date, bar_time) DO UPDATE SET
                        open_price = excluded.open_price,
                        high_price = excluded.high_price,
                        low_price = excluded.low_price,
                        close_price = excluded.close_price,
                        volume = excluded.volume,
                        open_interest = excluded.open_interest,
                        fetched_ts = excluded.fetched_ts
                    """,
                    (
                        symbol.upper(),
                        timeframe.value,
                        bar.date,
                        bar.time,
                        bar.open,
                        bar.high,
                        bar.low,
                        bar.close,
                        bar.volume,
                        bar.open_interest,
                        now,
                    ),
                )
                connection.commit()
        except sqlite3.Error as exc:
            self.logger.error(
                "upsert failed for %s %s %s: %s",
                symbol,
                timeframe.value,
                bar.label(),
                exc,
            )
            return False
        return True

    def has_bars_since(self, symbol: str, timeframe: Timeframe, since: datetime) -> bool:
        connection = self._require_connection()
        since_date = since.strftime("%Y-%m-%d")
        with self._lock:
            if timeframe == Timeframe.DAILY:
                row = connection.execute(
                    """
                    SELECT 1
                    FROM bars
                    WHERE symbol = ? AND timeframe = ? AND bar_date >= ?
                    LIMIT 1
                    """,
                    (symbol.upper(), timeframe.value, since_date),
                ).fetchone()
            else:
                row = connection.execute(
                    """
                    SELECT 1
                    FROM bars
                    WHERE symbol = ? AND timeframe = ?
                      AND (bar_date || ' ' || bar_time) >= ?
                    LIMIT 1
                    """,
                    (symbol.upper(), timeframe.value, since.strftime("%Y-%m-%d %H:%M:%S")),
                ).fetchone()
        return row is not None

    def count_bars(self, symbol: str, timeframe: Timeframe) -> int:
        connection = self._require_connection()
        with self._lock:
            row = connection.execute(
                "SELECT COUNT(*) AS n FROM bars WHERE symbol = ? AND timeframe = ?",
                (symbol.upper(), timeframe.value),
            ).fetchone()
        return int(row["n"])

    def load_bars(
        self,
        symbol: str,
        timeframe: Timeframe,
        limit: int | None = None,
    ) -> pd.DataFrame:
        """Return stored bars newest first with a datetime index."""
        connection = self._require_connection()
        query = """
            SELECT bar_date, bar_time, open_price, high_price, low_price,
                   close_price, volume, open_interest
            FROM bars
            WHERE symbol = ? AND timeframe = ?
            ORDER BY bar_date DESC, bar_time DESC
        """
        params: list[object] = [symbol.upper(), timeframe.value]
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self._lock:
            frame = pd.read_sql_query(query, connection, params=params)
        frame = frame.rename(
            columns={
                "bar_date": "date",
                "bar_time": "time",
                "open_price": "open",
                "high_price": "high",
                "low_price": "low",
                "close_price": "close",
            }
        )
        stamps = (frame["date"] + " " + frame["time"]).str.strip()
        frame.index = pd.to_datetime(stamps, format="mixed")
        frame.index.name = "timestamp"
        return frame[["open", "high", "low", "close", "volume", "open_interest"]]

    def close(self) -> None:
        if self.connection is None:
            return
        with self._lock:
            self.connection.close()
            self.connection = None

    def _require_connection(self) -> sqlite3.Connection:
        if self.connection is None:
            raise StoreError(f"bar store {self.path} is closed")
        return self.connection

    def _initialize_schema(self) -> None:
        connection = self._require_connection()
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS bars(
                symbol TEXT NOT NULL,
                timeframe TEXT NOT NULL,
                bar_date TEXT NOT NULL,
                bar_time TEXT NOT NULL DEFAULT '',
                open_price REAL NOT NULL,
                high_price REAL NOT NULL,
                low_price REAL NOT NULL,
                close_price REAL NOT NULL,
                volume INTEGER NOT NULL,
                open_interest INTEGER NOT NULL DEFAULT 0,
                fetched_ts TEXT NOT NULL,
                PRIMARY KEY(symbol, timeframe, bar_date, bar_time)
            )
            """
        )
        connection.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_bars_symbol_timeframe_date
            ON bars(symbol, timeframe, bar_date DESC)
            """
        )
        connection.commit()

    @staticmethod
    def _utc_now() -> str:
        return datetime.now(tz=UTC).isoformat()
