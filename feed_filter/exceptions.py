"""Exceptions raised by feed_filter."""


class FeedFilterError(Exception):
    """Base class for feed_filter errors."""


class FeedFormatError(FeedFilterError):
    """The document is not RSS 1.0, RSS 2.0 or Atom."""


class FeedFetchError(FeedFilterError):
    """The feed could not be downloaded (timeout, connection, non-2xx)."""


class ValidationError(FeedFilterError, ValueError):
    """User input was rejected at the point of submission."""
