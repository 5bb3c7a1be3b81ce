"""Timeframe fetcher: one feed round trip, parsed and filtered to complete bars."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from barfeed.domain.models import (
    ALL_TIMEFRAMES,
    TIMEFRAME_SPECS,
    FetchRequest,
    FetchResult,
    LabelAlignment,
    Timeframe,
    TimeframeSpec,
)
from barfeed.feed.codec import build_request, parse_response
from barfeed.feed.normalizer import normalize_bars
from barfeed.feed.transport import Transport


class BarFetcher(Protocol):
    """Uniform fetch contract consumed by the scheduler."""

    def fetch(self, symbol: str, bar_count: int) -> FetchResult:
        """Return complete bars, or a failed result with no bars."""


class TimeframeFetcher:
    """Fetch complete bars for one timeframe through a transport."""

    def __init__(
        self,
        transport: Transport,
        spec: TimeframeSpec,
        label_alignment: LabelAlignment = LabelAlignment.START,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.transport = transport
        self.spec = spec
        self.label_alignment = label_alignment
        self.clock = clock
        self.logger = logging.getLogger(f"barfeed.feed.fetcher.{spec.timeframe.value}")

    @property
    def timeframe(self) -> Timeframe:
        return self.spec.timeframe

    def fetch(self, symbol: str, bar_count: int) -> FetchResult:
        request = FetchRequest(symbol=symbol, timeframe=self.timeframe, bar_count=bar_count)
        if not self.transport.is_ready():
            return self._failed(request, "feed transport not ready")

        self.logger.info("fetching %s %s bars for %s", bar_count, self.timeframe.value, symbol)
        handle = self.transport.open_session()
        if handle is None:
            return self._failed(request, "could not open feed session")
        try:
            command = build_request(request, self.label_alignment)
            if not self.transport.send(handle, command):
                return self._failed(request, "failed to send request")
            raw = self.transport.read_until_marker(handle)
        finally:
            self.transport.close_session(handle)

        if not raw:
            return self._failed(request, "empty or timed out response")
        self.logger.debug("received %s characters for %s", len(raw), request.request_id)

        parsed = parse_response(raw, self.timeframe)
        if not parsed.ok:
            return self._failed(request, parsed.error or "feed reported error")

        normalized = normalize_bars(parsed.bars, self.timeframe, self.clock(), self.label_alignment)
        if not normalized.bars:
            return self._failed(
                request,
                "no complete bars in response",
                filtered_count=normalized.filtered_count,
            )
        self.logger.info(
            "parsed %s complete %s bars for %s (filtered %s in-progress)",
            len(normalized.bars),
            self.timeframe.value,
            symbol,
            normalized.filtered_count,
        )
        return FetchResult(
            bars=normalized.bars,
            success=True,
            filtered_count=normalized.filtered_count,
        )

    def _failed(
        self,
        request: FetchRequest,
        reason: str,
        filtered_count: int = 0,
    ) -> FetchResult:
        self.logger.error(
            "%s fetch for %s failed: %s",
            request.timeframe.value,
            request.symbol,
            reason,
        )
        return FetchResult(bars=[], success=False, error=reason, filtered_count=filtered_count)


def build_fetchers(
    transport: Transport,
    label_alignment: LabelAlignment = LabelAlignment.START,
    clock: Callable[[], datetime] = datetime.now,
) -> dict[Timeframe, TimeframeFetcher]:
    """Return one fetcher per supported timeframe sharing a transport."""
    return {
        timeframe: TimeframeFetcher(
            transport=transport,
            spec=TIMEFRAME_SPECS[timeframe],
            label_alignment=label_alignment,
            clock=clock,
        )
        for timeframe in ALL_TIMEFRAMES
    }
