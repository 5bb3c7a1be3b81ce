"""Feed protocol, normalization and fetch implementations."""

from .codec import ParseResult, build_request, parse_response, split_csv
from .fetcher import BarFetcher, TimeframeFetcher, build_fetchers
from .normalizer import NormalizedBars, is_complete_bar, normalize_bars
from .transport import LookupSocketTransport, Transport

__all__ = [
    "BarFetcher",
    "LookupSocketTransport",
    "NormalizedBars",
    "ParseResult",
    "TimeframeFetcher",
    "Transport",
    "build_fetchers",
    "build_request",
    "is_complete_bar",
    "normalize_bars",
    "parse_response",
    "split_csv",
]
