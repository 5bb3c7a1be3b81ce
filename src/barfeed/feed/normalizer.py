"""Completeness filtering and timestamp realignment for parsed feed rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from barfeed.domain.models import TIMEFRAME_SPECS, Bar, LabelAlignment, Timeframe, TimeframeSpec

START_LABEL_MARGIN = timedelta(minutes=1)
END_LABEL_MARGIN = timedelta(seconds=30)

logger = logging.getLogger("barfeed.feed.normalizer")


@dataclass(frozen=True)
class NormalizedBars:
    """Complete bars in feed order plus how many rows were dropped as in-progress."""

    bars: list[Bar] = field(default_factory=list)
    filtered_count: int = 0


def completeness_margin(label_alignment: LabelAlignment) -> timedelta:
    if label_alignment == LabelAlignment.START:
        return START_LABEL_MARGIN
    return END_LABEL_MARGIN


def is_complete_bar(
    bar: Bar,
    spec: TimeframeSpec,
    now: datetime,
    label_alignment: LabelAlignment = LabelAlignment.START,
) -> bool:
    """Return whether a bar's interval has fully elapsed at `now`.

    Daily bars are complete once their date is before today. Start-labeled
    intraday bars close at label + interval, end-labeled ones at the label;
    either must then be older than the convention's safety margin.
    """
    if spec.is_daily:
        try:
            return bar.session_date() < now.date()
        except ValueError:
            logger.debug("unparseable daily date %r", bar.date)
            return False
    try:
        stamp = bar.timestamp()
    except ValueError:
        logger.debug("unparseable intraday timestamp %r", bar.label())
        return False
    if label_alignment == LabelAlignment.START:
        bar_end = stamp + spec.interval
    else:
        bar_end = stamp
    return now >= bar_end + completeness_margin(label_alignment)


def normalize_bars(
    rows: list[Bar],
    timeframe: Timeframe,
    now: datetime,
    label_alignment: LabelAlignment = LabelAlignment.START,
) -> NormalizedBars:
    """Turn parsed rows into the complete bars that are safe to persist."""
    spec = TIMEFRAME_SPECS[timeframe]
    if spec.is_daily:
        return _filter_complete(rows, spec, now, label_alignment)
    if label_alignment == LabelAlignment.END:
        return _filter_complete(rows, spec, now, label_alignment)
    return _realign_start_labeled(rows, spec, now)


def _filter_complete(
    rows: list[Bar],
    spec: TimeframeSpec,
    now: datetime,
    label_alignment: LabelAlignment,
) -> NormalizedBars:
    complete: list[Bar] = []
    filtered = 0
    for bar in rows:
        if is_complete_bar(bar, spec, now, label_alignment):
            complete.append(bar)
        else:
            filtered += 1
            logger.debug("filtered in-progress %s bar %s", spec.timeframe.value, bar.label())
    return NormalizedBars(bars=complete, filtered_count=filtered)


def _realign_start_labeled(rows: list[Bar], spec: TimeframeSpec, now: datetime) -> NormalizedBars:
    # Row 0 carries the newest interval's label, row 1 carries its values.
    if len(rows) < 2:
        logger.debug("%s reply has %s rows; nothing to realign", spec.timeframe.value, len(rows))
        return NormalizedBars(bars=[], filtered_count=len(rows))

    first = replace(rows[1], date=rows[0].date, time=rows[0].time)
    candidates = [first, *rows[2:]]
    normalized = _filter_complete(candidates, spec, now, LabelAlignment.START)
    logger.debug(
        "realigned %s bar %s with values of %s",
        spec.timeframe.value,
        first.label(),
        rows[1].label(),
    )
    return normalized
