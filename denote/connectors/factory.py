"""Connector factory: detect a feed's type and pick the connector for it."""

from __future__ import annotations

from denote.connectors.base import BaseConnector
from denote.connectors.rss import RSSConnector
from denote.errors import UnsupportedFeedTypeError

# arXiv listings, GitHub release pages and YouTube channels all publish
# RSS or Atom, so they share the RSS connector.
_RSS_TYPES = frozenset({"rss", "atom", "arxiv", "github", "youtube"})

_ATOM_NAMESPACE = 'xmlns="http://www.w3.org/2005/Atom"'


def detect_feed_type(url: str, content: str) -> str:
    """Guess the feed type from the URL first, then from the body."""
    if "arxiv.org" in url:
        return "arxiv"
    if "doi.org" in url:
        return "doi"
    if "github.com" in url and "/releases" in url:
        return "github"
    if "youtube.com" in url or "youtu.be" in url:
        return "youtube"

    if "<rss" in content or "<channel" in content:
        return "rss"
    if "<feed" in content and _ATOM_NAMESPACE in content:
        return "atom"

    return "url"


def build_connector(feed_type: str) -> BaseConnector:
    """Return the connector for ``feed_type``.

    Raises:
        UnsupportedFeedTypeError: for ``doi``, ``url`` and unknown types.
    """
    if feed_type.lower().strip() in _RSS_TYPES:
        return RSSConnector()
    raise UnsupportedFeedTypeError(feed_type)
