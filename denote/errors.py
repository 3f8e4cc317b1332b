"""Exception hierarchy shared across the denote pipeline."""

from __future__ import annotations


class DenoteError(Exception):
    """Base class for all errors raised by denote."""


class ConfigError(DenoteError):
    """Configuration file is missing, unreadable, or invalid."""


class FeedError(DenoteError):
    """A feed could not be downloaded or turned into items."""


class FeedParseError(FeedError):
    """Feed content could not be parsed."""


class UnsupportedFeedTypeError(FeedError):
    """No connector exists for the detected or configured feed type."""

    def __init__(self, feed_type: str) -> None:
        super().__init__(f"Unsupported source type: {feed_type}")
        self.feed_type = feed_type


class LLMError(DenoteError):
    """The language model server failed or returned an unusable response."""
