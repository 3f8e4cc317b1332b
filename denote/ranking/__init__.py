"""Relevance ranking: topic matching, scoring, grouping and diversified selection."""

from denote.ranking.engine import RankingEngine, rank_items
from denote.ranking.grouper import OTHER_TOPIC, group_by_topic
from denote.ranking.matcher import TopicMatcher, match_topics
from denote.ranking.models import RankedItem, ScoreBreakdown, SummarizedItem
from denote.ranking.scorer import Scorer, score_relevance
from denote.ranking.selector import select_top_items

__all__ = [
    "RankingEngine",
    "rank_items",
    "OTHER_TOPIC",
    "group_by_topic",
    "TopicMatcher",
    "match_topics",
    "RankedItem",
    "ScoreBreakdown",
    "SummarizedItem",
    "Scorer",
    "score_relevance",
    "select_top_items",
]
