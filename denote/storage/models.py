"""Data models for the denote storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ContentItem:
    """A single fetched feed entry, before summarization."""

    id: str
    title: str
    url: str
    published_at: datetime
    source: str
    content: str
    author: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def to_row(self, created_at: Optional[datetime] = None) -> tuple:
        created = created_at or datetime.now(timezone.utc)
        return (
            self.id,
            self.title,
            self.url,
            _as_utc(self.published_at).isoformat(),
            self.source,
            self.content or "",
            self.author or "",
            created.isoformat(),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any], tags: Sequence[str] = ()) -> ContentItem:
        return cls(
            id=row["id"],
            title=row["title"],
            url=row["url"],
            published_at=_parse_ts(row["date"]) or datetime.now(timezone.utc),
            source=row["source"],
            content=row.get("content") or "",
            author=row.get("author") or None,
            tags=tuple(tags),
        )


@dataclass
class FetchResult:
    """Outcome of fetching a single feed."""

    feed_id: str
    success: bool = True
    items: List[ContentItem] = field(default_factory=list)
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def new_items(self) -> int:
        return len(self.items)


@dataclass
class FetchSummary:
    """Aggregate result from fetching every configured feed."""

    results: List[FetchResult] = field(default_factory=list)
    total_success: int = 0
    total_errors: int = 0
    total_items: int = 0
    duration_seconds: float = 0.0

    def add(self, result: FetchResult) -> None:
        self.results.append(result)
        if result.success:
            self.total_success += 1
            self.total_items += result.new_items
        else:
            self.total_errors += 1

    @property
    def feeds_processed(self) -> int:
        return len(self.results)


# --- Helpers ---

def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_ts(val: Any) -> Optional[datetime]:
    """Parse a timestamp string or return None."""
    if val is None:
        return None
    if isinstance(val, datetime):
        return _as_utc(val)
    try:
        from dateutil.parser import parse
        return _as_utc(parse(str(val)))
    except (ValueError, TypeError, OverflowError):
        return None
