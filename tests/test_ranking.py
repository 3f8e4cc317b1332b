"""Tests for the ranking engine: topic matching, scoring, grouping, selection."""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Sequence

import pytest

from denote.ranking.engine import RankingEngine, rank_items
from denote.ranking.grouper import OTHER_TOPIC, group_by_topic
from denote.ranking.matcher import TopicMatcher, match_topics
from denote.ranking.models import RankedItem, ScoreBreakdown, SummarizedItem
from denote.ranking.scorer import Scorer, recency_component, score_relevance, topic_component
from denote.ranking.selector import select_top_items
from denote.storage.models import ContentItem

NOW = datetime(2025, 1, 8, 12, 0, tzinfo=timezone.utc)


# --- Helpers ---

def make_summarized(
    item_id: str = "item-1",
    title: str = "Untitled note",
    content: str = "",
    summary: str = "",
    published_at: datetime = NOW,
    source: str = "test_feed",
) -> SummarizedItem:
    item = ContentItem(
        id=item_id,
        title=title,
        url=f"https://example.com/{item_id}",
        published_at=published_at,
        source=source,
        content=content,
    )
    return SummarizedItem(item=item, summary=summary)


def make_ranked(item_id: str, score: float, topics: Sequence[str] = ()) -> RankedItem:
    return RankedItem(entry=make_summarized(item_id), score=score, matched_topics=tuple(topics))


def ids(items: List[RankedItem]) -> List[str]:
    return [it.id for it in items]


# --- Topic Matcher ---

class TestTopicMatcher:
    def test_substring_match_is_case_insensitive(self):
        assert match_topics("new results in machine learning", ["Machine Learning"]) == [
            "Machine Learning"
        ]

    def test_no_match(self):
        assert match_topics("a post about gardening", ["robotics"]) == []

    def test_empty_topic_list(self):
        assert match_topics("anything at all", []) == []

    def test_partial_word_collision_matches(self):
        # "ai" inside "maintain" is an accepted false positive
        assert match_topics("how to maintain a garden", ["ai"]) == ["ai"]

    def test_multi_word_threshold_without_exact_phrase(self):
        content = "learning systems for reinforcement agents"
        assert match_topics(content, ["reinforcement learning"]) == ["reinforcement learning"]

    def test_multi_word_threshold_not_reached(self):
        # one of three qualifying words is below 70%
        content = "a note on neural things"
        assert match_topics(content, ["neural network pruning"]) == []

    def test_multi_word_threshold_reached_two_of_three_fails(self):
        # 2 / 3 = 0.67 < 0.7
        content = "network pruning explained"
        assert match_topics(content, ["neural network pruning"]) == []

    def test_short_words_ignored_in_threshold(self):
        # qualifying words are "language" and "models"; "ai" and "for" are skipped
        content = "models that understand language"
        assert match_topics(content, ["ai for language models"]) == ["ai for language models"]

    def test_multi_word_topic_of_only_short_words(self):
        assert match_topics("the cat sat", ["the big dog"]) == []

    def test_duplicate_topics_matched_once(self):
        matcher = TopicMatcher(["ai", "ai", "llm"])
        assert matcher.topic_count == 2
        assert matcher.match("ai and llm news") == ["ai", "llm"]

    def test_original_casing_preserved(self):
        assert match_topics("rust compilers", ["Rust", "GO"]) == ["Rust"]


# --- Scorer ---

class TestScorer:
    def test_topic_component_caps_at_80(self):
        assert topic_component(0) == 0
        assert topic_component(1) == 20
        assert topic_component(4) == 80
        assert topic_component(7) == 80

    def test_recency_component_today(self):
        assert recency_component(0) == pytest.approx(20.0)

    def test_recency_component_decays(self):
        assert recency_component(10) == pytest.approx(20 * math.exp(-0.5))
        assert recency_component(30) < recency_component(1)

    def test_score_relevance_combines_components(self):
        item = make_summarized(published_at=NOW - timedelta(days=2))
        score = score_relevance(item, ["ai", "llm"], now=NOW)
        assert score == pytest.approx(40 + 20 * math.exp(-0.1))

    def test_future_item_not_clamped(self):
        item = make_summarized(published_at=NOW + timedelta(hours=1))
        score = score_relevance(item, ["a", "b", "c", "d"], now=NOW)
        assert score > 100
        assert score - 80 > 20

    def test_no_topics_past_item_bounded(self):
        for days in (0, 0.5, 3, 365, 10000):
            item = make_summarized(published_at=NOW - timedelta(days=days))
            score = score_relevance(item, [], now=NOW)
            assert 0 <= score <= 20.000001

    def test_naive_timestamp_treated_as_utc(self):
        item = make_summarized(published_at=datetime(2025, 1, 7, 12, 0))
        assert score_relevance(item, [], now=NOW) == pytest.approx(20 * math.exp(-0.05))

    def test_batch_matches_single(self):
        items = [
            make_summarized("a", published_at=NOW - timedelta(days=1)),
            make_summarized("b", published_at=NOW - timedelta(days=9)),
        ]
        scorer = Scorer(NOW)
        batch = scorer.score_items(items, [["ai"], []])
        assert batch[0].total == pytest.approx(score_relevance(items[0], ["ai"], NOW))
        assert batch[1].total == pytest.approx(score_relevance(items[1], [], NOW))
        assert scorer.score_item(items[0], ["ai"]).total == pytest.approx(batch[0].total)

    def test_batch_length_mismatch(self):
        with pytest.raises(ValueError):
            Scorer(NOW).score_items([make_summarized()], [])

    def test_empty_batch(self):
        assert Scorer(NOW).score_items([], []) == []

    def test_breakdown_to_dict(self):
        bd = ScoreBreakdown(topic=20.0, recency=10.123456)
        assert bd.to_dict() == {"total": 30.1235, "topic": 20.0, "recency": 10.1235}


# --- Grouper ---

class TestGrouper:
    def test_other_always_present(self):
        groups = group_by_topic([])
        assert groups == {OTHER_TOPIC: []}

    def test_unmatched_go_to_other(self):
        a = make_ranked("a", 10)
        groups = group_by_topic([a])
        assert groups[OTHER_TOPIC] == [a]

    def test_fan_out_shares_the_same_object(self):
        a = make_ranked("a", 50, ["ai", "llm"])
        groups = group_by_topic([a])
        assert groups["ai"][0] is a
        assert groups["llm"][0] is a
        assert groups[OTHER_TOPIC] == []

    def test_topic_named_other_shares_bucket(self):
        a = make_ranked("a", 30, ["Other"])
        b = make_ranked("b", 10)
        groups = group_by_topic([a, b])
        assert set(ids(groups[OTHER_TOPIC])) == {"a", "b"}


# --- Selector ---

class TestSelector:
    def test_scenario_a_sorted_by_score(self):
        a = make_ranked("a", 90, ["ai"])
        b = make_ranked("b", 15)
        result = select_top_items(group_by_topic([b, a]), max_items=10, max_per_topic=3)
        assert ids(result) == ["a", "b"]

    def test_scenario_b_single_topic_capped_by_max_per_topic(self):
        items = [make_ranked(f"ml-{i}", 50 - i, ["ml"]) for i in range(5)]
        result = select_top_items(group_by_topic(items), max_items=10, max_per_topic=2)
        assert ids(result) == ["ml-0", "ml-1"]

    def test_scenario_c_everything_in_other(self):
        items = [make_ranked(f"x{i}", float(i)) for i in range(6)]
        groups = group_by_topic(items)
        assert list(groups) == [OTHER_TOPIC]
        result = select_top_items(groups, max_items=2, max_per_topic=3)
        assert ids(result) == ["x5", "x4"]
        result = select_top_items(groups, max_items=10, max_per_topic=3)
        assert ids(result) == ["x5", "x4", "x3"]

    def test_scenario_e_ties_are_deterministic(self):
        items = [make_ranked(i, 25.0, ["ai"]) for i in ("c", "a", "b")]
        runs = {
            tuple(ids(select_top_items(group_by_topic(items), 10, 2))) for _ in range(10)
        }
        assert runs == {("a", "b")}

    def test_round_robin_across_topics(self):
        ai = [make_ranked(f"ai-{i}", 90 - i, ["ai"]) for i in range(3)]
        ml = [make_ranked(f"ml-{i}", 60 - i, ["ml"]) for i in range(3)]
        result = select_top_items(group_by_topic(ai + ml), max_items=3, max_per_topic=3)
        # round 0 takes ai-0 and ml-0, round 1 takes ai-1 then stops at the cap
        assert ids(result) == ["ai-0", "ai-1", "ml-0"]

    def test_multi_topic_item_selected_once(self):
        shared = make_ranked("shared", 95, ["ai", "ml"])
        other = make_ranked("ml-1", 40, ["ml"])
        result = select_top_items(group_by_topic([shared, other]), 10, 2)
        assert ids(result) == ["shared", "ml-1"]

    def test_dedupe_does_not_backfill_round(self):
        # "shared" tops both groups; ml's round-0 slot is skipped, not refilled
        shared = make_ranked("shared", 95, ["ai", "ml"])
        ml = make_ranked("ml-1", 40, ["ml"])
        result = select_top_items(group_by_topic([shared, ml]), 10, 1)
        assert ids(result) == ["shared"]

    def test_groups_not_mutated(self):
        items = [make_ranked("low", 1, ["ai"]), make_ranked("high", 9, ["ai"])]
        groups = group_by_topic(items)
        select_top_items(groups, 10, 3)
        assert ids(groups["ai"]) == ["low", "high"]

    def test_empty_groups(self):
        assert select_top_items({OTHER_TOPIC: []}, 10, 3) == []
        assert select_top_items({}, 10, 3) == []


# --- Engine ---

class TestRankingEngine:
    def _items(self) -> List[SummarizedItem]:
        return [
            make_summarized(
                "llm-paper",
                title="Scaling laws for LLM training",
                summary="A study of llm scaling.",
                published_at=NOW - timedelta(days=1),
            ),
            make_summarized(
                "garden",
                title="Tomato season",
                summary="Notes on tomatoes.",
                published_at=NOW - timedelta(days=1),
            ),
            make_summarized(
                "rl",
                title="Agents and reinforcement",
                content="We train learning agents with reinforcement signals.",
                summary="Policy gradients revisited.",
                published_at=NOW - timedelta(days=3),
            ),
        ]

    def test_rank_orders_by_score(self):
        engine = RankingEngine(["llm", "reinforcement learning"], max_items=10, max_per_topic=3)
        result = engine.rank(self._items(), now=NOW)
        assert ids(result) == ["llm-paper", "rl", "garden"]
        assert result[0].matched_topics == ("llm",)
        assert result[1].matched_topics == ("reinforcement learning",)
        assert result[2].matched_topics == ()

    def test_scores_carry_breakdown(self):
        engine = RankingEngine(["llm"])
        result = engine.score(self._items(), now=NOW)
        top = result[0]
        assert top.breakdown is not None
        assert top.breakdown.topic == 20
        assert top.score == pytest.approx(20 + 20 * math.exp(-0.05))

    def test_no_topics_all_bounded(self):
        result = rank_items(self._items(), [], max_items=10, max_per_topic=5, now=NOW)
        assert len(result) == 3
        assert all(0 <= r.score <= 20.000001 for r in result)

    def test_future_item_scenario(self):
        future = make_summarized(
            "future", title="ai llm gpu cuda", published_at=NOW + timedelta(hours=1)
        )
        result = rank_items([future], ["ai", "llm", "gpu", "cuda"], now=NOW)
        assert result[0].breakdown.recency > 20
        assert result[0].score > 100

    def test_output_properties(self):
        items = [
            make_summarized(
                f"item-{i}",
                title=f"{'ai' if i % 2 else 'llm'} update {i}",
                published_at=NOW - timedelta(days=i),
            )
            for i in range(12)
        ]
        result = rank_items(items, ["ai", "llm"], max_items=5, max_per_topic=3, now=NOW)
        assert len(result) <= 5
        assert len(set(ids(result))) == len(result)
        input_entries = set(id(it) for it in items)
        assert all(id(r.entry) in input_entries for r in result)
        assert all(r.score >= 0 for r in result)
        assert [r.score for r in result] == sorted((r.score for r in result), reverse=True)

    def test_deterministic_for_fixed_now(self):
        engine = RankingEngine(["llm", "reinforcement learning"])
        first = engine.rank(self._items(), now=NOW)
        second = engine.rank(self._items(), now=NOW)
        assert [(r.id, r.score) for r in first] == [(r.id, r.score) for r in second]

    def test_shared_engine_across_threads(self):
        engine = RankingEngine(["llm", "reinforcement learning"])
        results = []

        def worker():
            results.append(ids(engine.rank(self._items(), now=NOW)))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results == [["llm-paper", "rl", "garden"]] * 4

    def test_rank_logs_only_at_debug(self, caplog):
        caplog.set_level(logging.DEBUG, logger="denote.ranking")
        RankingEngine(["llm"]).rank(self._items(), now=NOW)
        ranking_records = [r for r in caplog.records if r.name.startswith("denote.ranking")]
        assert ranking_records
        assert all(r.levelno == logging.DEBUG for r in ranking_records)

    def test_empty_input(self):
        assert rank_items([], ["ai"], now=NOW) == []

    @pytest.mark.parametrize("max_items,max_per_topic", [(0, 3), (10, 0), (-1, 1)])
    def test_non_positive_quota_rejected(self, max_items, max_per_topic):
        with pytest.raises(ValueError):
            RankingEngine(["ai"], max_items=max_items, max_per_topic=max_per_topic)
