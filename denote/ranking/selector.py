"""Round-robin selection across topic groups with per-topic and global caps."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Sequence

from denote.ranking.models import RankedItem

logger = logging.getLogger(__name__)


def _by_score(item: RankedItem) -> tuple:
    return (-item.score, item.id)


def select_top_items(
    groups: Mapping[str, Sequence[RankedItem]],
    max_items: int,
    max_per_topic: int,
) -> List[RankedItem]:
    """Pick a topic-diverse top-N from grouped items.

    Groups are visited in order of their best item's score (ties by topic
    name). Round ``r`` takes the ``r``-th best item of each group, skipping
    items already picked through another topic, until ``max_per_topic``
    rounds are done or ``max_items`` items are selected. The result is
    sorted by score descending.

    Both caps must be positive; callers validate them beforehand.
    """
    # Sorted copies; the caller's sequences are left untouched.
    ordered: Dict[str, List[RankedItem]] = {
        topic: sorted(items, key=_by_score) for topic, items in groups.items()
    }
    topic_order = sorted(
        ordered,
        key=lambda t: (-(ordered[t][0].score if ordered[t] else 0.0), t),
    )

    selected: List[RankedItem] = []
    selected_ids: set[str] = set()

    for round_idx in range(max_per_topic):
        if len(selected) >= max_items:
            break
        for topic in topic_order:
            if len(selected) >= max_items:
                break
            candidates = ordered[topic]
            if round_idx >= len(candidates):
                continue
            item = candidates[round_idx]
            if item.id in selected_ids:
                continue
            selected.append(item)
            selected_ids.add(item.id)

    # Stable sort keeps round-robin order among equal scores.
    selected.sort(key=lambda it: -it.score)

    logger.debug(
        "Selector: %d groups -> %d items (max_items=%d, max_per_topic=%d)",
        len(ordered),
        len(selected),
        max_items,
        max_per_topic,
    )
    return selected
