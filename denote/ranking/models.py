"""Item types flowing through summarization and ranking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from denote.storage.models import ContentItem


@dataclass(frozen=True)
class SummarizedItem:
    """A content item with its generated summary.

    ``summarized`` is False when the language model failed and ``summary``
    holds a fallback message instead.
    """

    item: ContentItem
    summary: str
    summarized: bool = True

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def title(self) -> str:
        return self.item.title

    @property
    def published_at(self) -> datetime:
        return self.item.published_at

    def search_text(self) -> str:
        """Lowercased title, summary and body used for topic matching."""
        return f"{self.item.title} {self.summary} {self.item.content}".lower()


@dataclass(frozen=True)
class ScoreBreakdown:
    """Relevance score split into its topic and recency components."""

    topic: float
    recency: float

    @property
    def total(self) -> float:
        return self.topic + self.recency

    def to_dict(self) -> dict[str, float]:
        return {
            "total": round(self.total, 4),
            "topic": round(self.topic, 4),
            "recency": round(self.recency, 4),
        }


@dataclass(frozen=True)
class RankedItem:
    """A summarized item with its relevance score and matched topics."""

    entry: SummarizedItem
    score: float
    matched_topics: Tuple[str, ...] = ()
    breakdown: Optional[ScoreBreakdown] = None

    @property
    def id(self) -> str:
        return self.entry.item.id

    @property
    def title(self) -> str:
        return self.entry.item.title

    @property
    def url(self) -> str:
        return self.entry.item.url

    @property
    def source(self) -> str:
        return self.entry.item.source

    @property
    def author(self) -> Optional[str]:
        return self.entry.item.author

    @property
    def summary(self) -> str:
        return self.entry.summary
