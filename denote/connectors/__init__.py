"""Feed connectors for denote.

Supported types: rss, atom, and the RSS/Atom feeds of arxiv, github releases
and youtube. doi and plain url sources are detected but not parsed.
"""

from denote.connectors.base import BaseConnector
from denote.connectors.downloader import FeedDownloader
from denote.connectors.factory import build_connector, detect_feed_type
from denote.connectors.rss import RSSConnector

__all__ = [
    "BaseConnector",
    "FeedDownloader",
    "build_connector",
    "detect_feed_type",
    "RSSConnector",
]
