"""Request builder and reply parser for the feed's historical lookup protocol.

Commands are single CRLF-terminated ASCII lines. Replies are one CSV record
per bar, newest first, followed by a line carrying ``!ENDMSG!``. A reply
that contains ``E,`` anywhere is a vendor error and yields no bars.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from barfeed.domain.models import TIMEFRAME_SPECS, Bar, FetchRequest, LabelAlignment, Timeframe

END_MARKER = "!ENDMSG!"
ERROR_MARKER = "E,"
SYSTEM_PREFIX = "S,"
MIN_FIELDS = 8
DATAPOINTS_PER_SEND = 100

logger = logging.getLogger("barfeed.feed.codec")


@dataclass(frozen=True)
class ParseResult:
    """Parsed reply rows in feed order (newest first)."""

    bars: list[Bar] = field(default_factory=list)
    error: str | None = None
    skipped_lines: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def build_request(
    request: FetchRequest,
    label_alignment: LabelAlignment = LabelAlignment.START,
) -> str:
    """Return the wire command for a fetch request."""
    spec = TIMEFRAME_SPECS[request.timeframe]
    if spec.is_daily:
        # Trailing 0 excludes the in-progress daily datapoint.
        return (
            f"HDX,{request.symbol},{request.bar_count},0,"
            f"{request.request_id},{DATAPOINTS_PER_SEND},0\r\n"
        )
    label_flag = "1" if label_alignment == LabelAlignment.START else "0"
    return (
        f"HIX,{request.symbol},{spec.interval_code},{request.bar_count},0,"
        f"{request.request_id},{DATAPOINTS_PER_SEND},s,{label_flag}\r\n"
    )


def split_csv(line: str) -> list[str]:
    """Split one reply line on commas outside double quotes.

    Quotes only toggle state and are not kept. CR/LF characters are dropped
    and a trailing empty field is not emitted.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        elif char not in "\r\n":
            current.append(char)
    if current:
        fields.append("".join(current))
    return fields


def response_lines(raw_text: str) -> list[str]:
    """Return data-bearing lines with blanks, end marker and system lines removed."""
    lines: list[str] = []
    for line in raw_text.split("\n"):
        text = line.rstrip("\r")
        if not text.strip():
            continue
        if END_MARKER in text:
            continue
        if text.startswith(SYSTEM_PREFIX):
            continue
        lines.append(text)
    return lines


def parse_response(raw_text: str, timeframe: Timeframe) -> ParseResult:
    """Parse a full reply into bars, preserving the feed's newest-first order."""
    if ERROR_MARKER in raw_text:
        logger.error("feed error in %s reply: %s", timeframe.value, raw_text.strip()[:200])
        return ParseResult(error=f"feed reported error: {raw_text.strip()[:200]}")

    daily = TIMEFRAME_SPECS[timeframe].is_daily
    bars: list[Bar] = []
    skipped = 0
    for line in response_lines(raw_text):
        fields = split_csv(line)
        if len(fields) < MIN_FIELDS:
            skipped += 1
            continue
        try:
            bar = _daily_bar(fields) if daily else _intraday_bar(fields)
        except (ValueError, OverflowError) as exc:
            logger.debug("skipping unparseable line %r: %s", line, exc)
            skipped += 1
            continue
        bars.append(bar)
    logger.debug(
        "parsed %s %s rows (%s skipped)", len(bars), timeframe.value, skipped
    )
    return ParseResult(bars=bars, skipped_lines=skipped)


def _daily_bar(fields: list[str]) -> Bar:
    open_interest = _parse_int(fields[8]) if len(fields) > 8 and fields[8].strip() else 0
    return Bar(
        date=fields[2].strip(),
        time="",
        high=float(fields[3]),
        low=float(fields[4]),
        open=float(fields[5]),
        close=float(fields[6]),
        volume=_parse_int(fields[7]),
        open_interest=open_interest,
    )


def _intraday_bar(fields: list[str]) -> Bar:
    stamp = fields[2].strip()
    bar_date, _, bar_time = stamp.partition(" ")
    return Bar(
        date=bar_date,
        time=bar_time.strip(),
        high=float(fields[3]),
        low=float(fields[4]),
        open=float(fields[5]),
        close=float(fields[6]),
        volume=_parse_int(fields[7]),
    )


def _parse_int(value: str) -> int:
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        return int(float(text))
