"""Ranking engine: match -> score -> group -> select."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from denote.ranking.grouper import group_by_topic
from denote.ranking.matcher import TopicMatcher
from denote.ranking.models import RankedItem, SummarizedItem
from denote.ranking.scorer import Scorer
from denote.ranking.selector import select_top_items

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 10
DEFAULT_MAX_PER_TOPIC = 3


class RankingEngine:
    """Turn summarized items into the ordered, topic-diverse digest selection.

    The engine holds only its configuration. ``rank`` has no side effects
    besides debug logging, so one engine may be shared across threads.
    """

    def __init__(
        self,
        topics: Sequence[str],
        max_items: int = DEFAULT_MAX_ITEMS,
        max_per_topic: int = DEFAULT_MAX_PER_TOPIC,
    ) -> None:
        if max_items <= 0:
            raise ValueError(f"max_items must be positive, got {max_items}")
        if max_per_topic <= 0:
            raise ValueError(f"max_per_topic must be positive, got {max_per_topic}")
        self.topics = list(topics)
        self.max_items = max_items
        self.max_per_topic = max_per_topic
        self._matcher = TopicMatcher(self.topics)

    def score(
        self,
        items: Sequence[SummarizedItem],
        now: Optional[datetime] = None,
    ) -> List[RankedItem]:
        """Match and score every item, preserving input order."""
        scorer = Scorer(now or datetime.now(timezone.utc))
        matches = [self._matcher.match(item.search_text()) for item in items]
        breakdowns = scorer.score_items(items, matches)
        return [
            RankedItem(
                entry=item,
                score=bd.total,
                matched_topics=tuple(topics),
                breakdown=bd,
            )
            for item, topics, bd in zip(items, matches, breakdowns)
        ]

    def rank(
        self,
        items: Sequence[SummarizedItem],
        now: Optional[datetime] = None,
    ) -> List[RankedItem]:
        """Score, group and select; returns at most ``max_items`` items by score."""
        scored = self.score(items, now)
        groups = group_by_topic(scored)
        selected = select_top_items(groups, self.max_items, self.max_per_topic)
        logger.debug(
            "RankingEngine: %d items, %d topic groups -> %d selected",
            len(items),
            len(groups),
            len(selected),
        )
        return selected


def rank_items(
    items: Sequence[SummarizedItem],
    topics: Sequence[str],
    max_items: int = DEFAULT_MAX_ITEMS,
    max_per_topic: int = DEFAULT_MAX_PER_TOPIC,
    now: Optional[datetime] = None,
) -> List[RankedItem]:
    """Functional shortcut for ``RankingEngine(...).rank(items, now)``."""
    return RankingEngine(topics, max_items, max_per_topic).rank(items, now)
