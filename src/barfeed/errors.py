"""Custom exceptions for clearer error handling across barfeed."""


class BarFeedError(Exception):
    """Base exception for all barfeed-specific errors."""


class ConfigError(BarFeedError):
    """Raised when environment or schedule configuration is invalid."""


class TransportError(BarFeedError):
    """Raised when the feed socket cannot be opened, written or read."""


class StoreError(BarFeedError):
    """Raised when bar persistence is used before it is ready."""
