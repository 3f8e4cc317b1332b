"""Topic keyword matching against item text."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

# Words this short are skipped in multi-word matching ("of", "the", "and").
MIN_WORD_LENGTH = 3
# Fraction of a multi-word topic's qualifying words that must appear.
MULTI_WORD_THRESHOLD = 0.7


@dataclass(frozen=True)
class CompiledTopic:
    """A topic with its lowercased phrase and qualifying words."""

    name: str
    phrase: str
    words: Tuple[str, ...] = field(default_factory=tuple)
    multi_word: bool = False

    @classmethod
    def from_topic(cls, topic: str) -> CompiledTopic:
        phrase = topic.lower()
        split = phrase.split()
        return cls(
            name=topic,
            phrase=phrase,
            words=tuple(w for w in split if len(w) > MIN_WORD_LENGTH),
            multi_word=len(split) > 1,
        )

    def matches(self, content: str) -> bool:
        """Test the topic against already-lowercased content."""
        if self.phrase in content:
            return True
        if not self.multi_word or not self.words:
            return False
        hits = sum(1 for w in self.words if w in content)
        return hits >= len(self.words) * MULTI_WORD_THRESHOLD


class TopicMatcher:
    """Matches item text against an ordered topic list.

    Topics are lowercased once on construction; each call only scans the
    content. Results keep the configured topic order and casing.
    """

    def __init__(self, topics: Iterable[str]) -> None:
        self._compiled: List[CompiledTopic] = []
        seen: set[str] = set()
        for topic in topics:
            if topic in seen:
                continue
            seen.add(topic)
            self._compiled.append(CompiledTopic.from_topic(topic))

    @property
    def topic_count(self) -> int:
        return len(self._compiled)

    def match(self, content: str) -> List[str]:
        """Return the topics found in lowercased ``content``."""
        return [t.name for t in self._compiled if t.matches(content)]


def match_topics(content: str, topics: Sequence[str]) -> List[str]:
    """Find the topics that match ``content`` (expected lowercase).

    A topic matches when its lowercased phrase occurs anywhere in the
    content, or, for multi-word topics, when at least 70% of its words
    longer than three characters occur somewhere in the content.
    """
    return TopicMatcher(topics).match(content)
