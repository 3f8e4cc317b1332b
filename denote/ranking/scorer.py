"""Relevance scoring from topic matches and recency."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import numpy as np

from denote.ranking.models import ScoreBreakdown, SummarizedItem

logger = logging.getLogger(__name__)

POINTS_PER_TOPIC = 20.0
TOPIC_SCORE_CAP = 80.0
RECENCY_WEIGHT = 20.0
RECENCY_DECAY_PER_DAY = 0.05

_SECONDS_PER_DAY = 86400.0


def _age_in_days(published_at: datetime, now: datetime) -> float:
    """Fractional age in days; negative for items dated in the future."""
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - published_at).total_seconds() / _SECONDS_PER_DAY


def topic_component(match_count: int) -> float:
    return min(match_count * POINTS_PER_TOPIC, TOPIC_SCORE_CAP)


def recency_component(age_days: float) -> float:
    """Exponential decay: 20 * exp(-0.05 * age). Not capped for future items."""
    return RECENCY_WEIGHT * math.exp(-RECENCY_DECAY_PER_DAY * age_days)


def score_relevance(
    item: SummarizedItem,
    matched_topics: Sequence[str],
    now: Optional[datetime] = None,
) -> float:
    """Score an item: up to 80 points for topics plus up to ~20 for recency.

    The total is deliberately not clamped to 100; an item with four or more
    topic matches dated in the future scores above it.
    """
    now = now or datetime.now(timezone.utc)
    age = _age_in_days(item.published_at, now)
    return topic_component(len(matched_topics)) + recency_component(age)


class Scorer:
    """Score a batch of items against a fixed instant."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self._now = now or datetime.now(timezone.utc)

    @property
    def now(self) -> datetime:
        return self._now

    def score_item(self, item: SummarizedItem, matched_topics: Sequence[str]) -> ScoreBreakdown:
        """Compute the score breakdown for a single item."""
        age = _age_in_days(item.published_at, self._now)
        return ScoreBreakdown(
            topic=topic_component(len(matched_topics)),
            recency=recency_component(age),
        )

    def score_items(
        self,
        items: Sequence[SummarizedItem],
        matches: Sequence[Sequence[str]],
    ) -> List[ScoreBreakdown]:
        """Score a batch; ``matches[i]`` holds the topics matched by ``items[i]``."""
        if len(items) != len(matches):
            raise ValueError("items and matches must have the same length")
        if not items:
            return []

        n = len(items)
        counts = np.empty(n)
        ages = np.empty(n)
        for i, item in enumerate(items):
            counts[i] = len(matches[i])
            ages[i] = _age_in_days(item.published_at, self._now)

        topic = np.minimum(counts * POINTS_PER_TOPIC, TOPIC_SCORE_CAP)
        recency = RECENCY_WEIGHT * np.exp(-RECENCY_DECAY_PER_DAY * ages)

        future = int(np.count_nonzero(ages < 0))
        if future:
            logger.debug("Scorer: %d item(s) dated in the future", future)

        return [
            ScoreBreakdown(topic=float(topic[i]), recency=float(recency[i]))
            for i in range(n)
        ]
