"""Partition ranked items into topic buckets."""

from __future__ import annotations

from typing import Dict, Iterable, List

from denote.ranking.models import RankedItem

OTHER_TOPIC = "Other"


def group_by_topic(items: Iterable[RankedItem]) -> Dict[str, List[RankedItem]]:
    """Group items by matched topic.

    An item matching several topics is placed in each of their groups (the
    same object, not a copy). Items with no match go to ``"Other"``, which is
    always present even when empty. A configured topic literally named
    ``"Other"`` shares that bucket.
    """
    groups: Dict[str, List[RankedItem]] = {}
    unmatched: List[RankedItem] = []

    for item in items:
        if not item.matched_topics:
            unmatched.append(item)
            continue
        for topic in item.matched_topics:
            groups.setdefault(topic, []).append(item)

    groups.setdefault(OTHER_TOPIC, []).extend(unmatched)
    return groups
