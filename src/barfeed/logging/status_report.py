"""Plotly HTML report rendered from the scheduler's in-memory fetch history."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pandas as pd
import plotly.express as px

from barfeed.domain.models import FetchStatus

STATUS_COLUMNS = [
    "timeframe",
    "symbol",
    "scheduled_time",
    "actual_time",
    "successful",
    "bars_fetched",
    "error_message",
]


def statuses_to_frame(statuses: Sequence[FetchStatus]) -> pd.DataFrame:
    """Return fetch statuses as a frame ordered by attempt time."""
    if not statuses:
        return pd.DataFrame(columns=STATUS_COLUMNS)
    frame = pd.DataFrame([status.to_record() for status in statuses], columns=STATUS_COLUMNS)
    frame["scheduled_time"] = pd.to_datetime(frame["scheduled_time"])
    frame["actual_time"] = pd.to_datetime(frame["actual_time"])
    return frame.sort_values("actual_time").reset_index(drop=True)


def generate_status_report(statuses: Sequence[FetchStatus], output_html_path: str) -> None:
    """Render a fetch timeline and per-timeframe outcome counts."""
    output = Path(output_html_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    frame = statuses_to_frame(statuses)
    if frame.empty:
        empty_df = pd.DataFrame({"timeframe": ["none"], "count": [0]})
        figure = px.bar(empty_df, x="timeframe", y="count", title="Fetch Status Summary")
        figure.write_html(str(output), include_plotlyjs="cdn")
        return

    frame["outcome"] = frame["successful"].map({True: "ok", False: "failed"})
    timeline = px.scatter(
        frame,
        x="actual_time",
        y="timeframe",
        color="outcome",
        symbol="symbol",
        title="Fetch Timeline",
        hover_data=["bars_fetched", "error_message"],
    )
    summary = (
        frame.groupby(["timeframe", "outcome"], dropna=False)
        .size()
        .reset_index(name="count")
    )
    bars = px.bar(
        summary,
        x="timeframe",
        y="count",
        color="outcome",
        barmode="group",
        title="Fetch Outcomes by Timeframe",
    )
    html_parts = [
        "<html><head><meta charset='utf-8'><title>barfeed status report</title></head><body>",
        timeline.to_html(full_html=False, include_plotlyjs="cdn"),
        bars.to_html(full_html=False, include_plotlyjs=False),
        "</body></html>",
    ]
    output.write_text("".join(html_parts), encoding="utf-8")
