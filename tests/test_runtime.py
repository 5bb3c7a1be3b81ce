from __future__ import annotations

from pathlib import Path

import pytest

from barfeed import runtime
from barfeed.config import Settings
from barfeed.domain.models import Bar, Timeframe
from barfeed.scheduling.scheduler import always_missing
from barfeed.state.sqlite_store import SqliteBarStore

DAILY_REPLY = (
    "HIST_QGC#_daily,LH,2020-01-03,10,8,9,9.5,100,5,\r\n"
    "HIST_QGC#_daily,LH,2020-01-02,11,9,10,10.5,120,6,\r\n"
    "HIST_QGC#_daily,!ENDMSG!,\r\n"
)


class ScriptedTransport:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.disconnected = False

    def is_ready(self) -> bool:
        return True

    def open_session(self) -> object:
        return object()

    def send(self, handle: object, text: str) -> bool:
        _ = (handle, text)
        return True

    def read_until_marker(self, handle: object) -> str:
        _ = handle
        return self.reply

    def close_session(self, handle: object) -> None:
        _ = handle

    def disconnect(self) -> None:
        self.disconnected = True


def test_recovery_policy_selects_missing_data_check(tmp_path: Path) -> None:
    store = SqliteBarStore(str(tmp_path / "bars.db"))

    always = runtime.build_missing_data_check(Settings(recovery_policy="always"), store)
    checked = runtime.build_missing_data_check(Settings(recovery_policy="check"), store)

    assert always is always_missing
    assert checked is not always_missing
    store.close()


def test_fetch_now_persists_completed_daily_bars(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    transport = ScriptedTransport(DAILY_REPLY)
    monkeypatch.setattr(runtime, "build_transport", lambda settings: transport)
    db_path = tmp_path / "bars.db"
    report_path = tmp_path / "report.html"
    settings = Settings(state_db_path=str(db_path))

    exit_code = runtime.fetch_now(settings, "daily", report_path=str(report_path))

    assert exit_code == 0
    assert transport.disconnected
    assert report_path.exists()
    store = SqliteBarStore(str(db_path))
    assert store.count_bars("QGC#", Timeframe.DAILY) == 2
    store.close()


def test_fetch_now_reports_failure_exit_code(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(runtime, "build_transport", lambda settings: ScriptedTransport(""))
    settings = Settings(state_db_path=str(tmp_path / "bars.db"))

    assert runtime.fetch_now(settings, "15min") == 1


def test_show_bars_prints_stored_rows(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_path = tmp_path / "bars.db"
    store = SqliteBarStore(str(db_path))
    store.upsert_bar(
        "QGC#",
        Timeframe.HOUR_1,
        Bar(date="2024-01-02", time="10:00:00", open=1.0, high=2.0, low=0.5, close=1.5, volume=10),
    )
    store.close()
    settings = Settings(state_db_path=str(db_path))

    assert runtime.show_bars(settings, "qgc#", "1h", limit=5) == 0
    assert "2024-01-02 10:00:00" in capsys.readouterr().out
    assert runtime.show_bars(settings, "QGC#", "daily") == 1
