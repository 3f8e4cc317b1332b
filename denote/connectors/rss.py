"""RSS/Atom connector using feedparser."""

from __future__ import annotations

import calendar
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
from bs4 import BeautifulSoup
from dateutil.parser import parse as dateparse

from denote.connectors.base import BaseConnector
from denote.errors import FeedParseError
from denote.storage.models import ContentItem

logger = logging.getLogger(__name__)


def _html_to_text(html: str) -> str:
    """Strip markup from an entry body and collapse whitespace."""
    if "<" not in html:
        return re.sub(r"\s+", " ", html).strip()
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(separator=" ", strip=True)).strip()


def _entry_date(entry: Any) -> Optional[datetime]:
    """Published date, falling back to updated; naive values are UTC."""
    for key in ("published", "updated"):
        raw = entry.get(key)
        if not raw:
            continue
        try:
            value = dateparse(raw)
        except (ValueError, TypeError, OverflowError):
            parsed = entry.get(f"{key}_parsed")
            if not parsed:
                continue
            value = datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value
    return None


def _entry_content(entry: Any) -> str:
    contents = entry.get("content") or []
    if contents and contents[0].get("value"):
        return contents[0]["value"]
    return entry.get("summary") or entry.get("description") or ""


def _entry_link(entry: Any) -> str:
    if entry.get("link"):
        return entry["link"]
    links = entry.get("links") or []
    return links[0].get("href", "") if links else ""


def _entry_author(entry: Any) -> Optional[str]:
    authors = entry.get("authors") or []
    if authors and authors[0].get("name"):
        return authors[0]["name"]
    return entry.get("author") or None


def _entry_tags(entry: Any) -> tuple:
    tags: List[str] = []
    for tag in entry.get("tags") or []:
        value = tag.get("term") or tag.get("label")
        if value and value not in tags:
            tags.append(value)
    return tuple(tags)


class RSSConnector(BaseConnector):
    """Turn an RSS 2.0 or Atom document into ContentItems."""

    def parse(self, content: str, source: str) -> List[ContentItem]:
        feed = feedparser.parse(content)
        entries = getattr(feed, "entries", [])
        # Only fail on a parse error if nothing came out; minor bozo with entries is OK
        if getattr(feed, "bozo", False) and not entries:
            exc = getattr(feed, "bozo_exception", None)
            raise FeedParseError(f"Failed to parse RSS feed: {exc}")

        now = datetime.now(timezone.utc)
        items: List[ContentItem] = []
        for index, entry in enumerate(entries):
            title = entry.get("title") or "Untitled"
            items.append(
                ContentItem(
                    id=entry.get("id") or f"{source}_{index}",
                    title=_html_to_text(title) or "Untitled",
                    url=_entry_link(entry),
                    published_at=_entry_date(entry) or now,
                    source=source,
                    content=_html_to_text(_entry_content(entry)),
                    author=_entry_author(entry),
                    tags=_entry_tags(entry),
                )
            )

        logger.debug("RSSConnector: parsed %d entries from %s", len(items), source)
        return items
