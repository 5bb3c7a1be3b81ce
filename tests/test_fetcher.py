from __future__ import annotations

from datetime import datetime

from barfeed.domain.models import ALL_TIMEFRAMES, TIMEFRAME_SPECS, LabelAlignment, Timeframe
from barfeed.feed.fetcher import TimeframeFetcher, build_fetchers

NOW = datetime(2024, 1, 3, 12, 0, 0)


class FakeTransport:
    def __init__(
        self,
        reply: str = "",
        ready: bool = True,
        session_ok: bool = True,
        send_ok: bool = True,
    ) -> None:
        self.reply = reply
        self.ready = ready
        self.session_ok = session_ok
        self.send_ok = send_ok
        self.sent: list[str] = []
        self.opened = 0
        self.closed = 0

    def is_ready(self) -> bool:
        return self.ready

    def open_session(self) -> object | None:
        if not self.session_ok:
            return None
        self.opened += 1
        return object()

    def send(self, handle: object, text: str) -> bool:
        _ = handle
        self.sent.append(text)
        return self.send_ok

    def read_until_marker(self, handle: object) -> str:
        _ = handle
        return self.reply

    def close_session(self, handle: object) -> None:
        _ = handle
        self.closed += 1


def _fetcher(transport: FakeTransport, timeframe: Timeframe) -> TimeframeFetcher:
    return TimeframeFetcher(
        transport=transport,
        spec=TIMEFRAME_SPECS[timeframe],
        label_alignment=LabelAlignment.START,
        clock=lambda: NOW,
    )


def test_daily_fetch_returns_completed_bars_and_closes_session() -> None:
    transport = FakeTransport(
        reply=(
            "HIST_QGC#_daily,LH,2024-01-03,10,8,9,9.5,100,5,\r\n"
            "HIST_QGC#_daily,LH,2024-01-02,11,9,10,10.5,120,6,\r\n"
            "HIST_QGC#_daily,!ENDMSG!,\r\n"
        )
    )

    result = _fetcher(transport, Timeframe.DAILY).fetch("QGC#", 2)

    assert result.success
    assert [bar.date for bar in result.bars] == ["2024-01-02"]
    assert result.filtered_count == 1
    assert transport.sent == ["HDX,QGC#,2,0,HIST_QGC#_daily,100,0\r\n"]
    assert transport.opened == transport.closed == 1


def test_fetch_fails_without_opening_session_when_transport_not_ready() -> None:
    transport = FakeTransport(ready=False)

    result = _fetcher(transport, Timeframe.MIN_15).fetch("QGC#", 10)

    assert not result.success
    assert result.bars == []
    assert result.error == "feed transport not ready"
    assert transport.opened == 0


def test_fetch_fails_when_session_cannot_open() -> None:
    result = _fetcher(FakeTransport(session_ok=False), Timeframe.MIN_30).fetch("QGC#", 10)

    assert not result.success
    assert result.error == "could not open feed session"


def test_send_failure_still_closes_session() -> None:
    transport = FakeTransport(send_ok=False)

    result = _fetcher(transport, Timeframe.HOUR_1).fetch("QGC#", 10)

    assert not result.success
    assert result.error == "failed to send request"
    assert transport.closed == 1


def test_empty_reply_is_a_failure() -> None:
    result = _fetcher(FakeTransport(reply=""), Timeframe.HOURS_2).fetch("QGC#", 10)

    assert not result.success
    assert result.error == "empty or timed out response"


def test_vendor_error_reply_yields_no_bars() -> None:
    transport = FakeTransport(
        reply="HIST_BAD_15min,E,Invalid symbol.,\r\nHIST_BAD_15min,!ENDMSG!,\r\n"
    )

    result = _fetcher(transport, Timeframe.MIN_15).fetch("BAD", 10)

    assert not result.success
    assert result.bars == []
    assert "Invalid symbol" in (result.error or "")


def test_reply_with_only_in_progress_bars_is_a_failure() -> None:
    transport = FakeTransport(
        reply=(
            "H1,L,2024-01-03 11:45:00,10,8,9,9.5,100\r\n"
            "H1,L,2024-01-03 11:30:00,10,8,9,9.5,100\r\n"
            "!ENDMSG!\r\n"
        )
    )

    result = _fetcher(transport, Timeframe.MIN_15).fetch("QGC#", 2)

    assert not result.success
    assert result.bars == []
    assert result.filtered_count == 1
    assert result.error == "no complete bars in response"


def test_build_fetchers_covers_every_timeframe() -> None:
    fetchers = build_fetchers(FakeTransport(), clock=lambda: NOW)

    assert tuple(fetchers) == ALL_TIMEFRAMES
    assert all(fetcher.timeframe == timeframe for timeframe, fetcher in fetchers.items())
