"""Base connector interface for denote feeds."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from denote.storage.models import ContentItem


class BaseConnector(ABC):
    """Abstract base for feed connectors.

    Subclasses turn a downloaded feed body into ContentItems tagged with the
    feed's id as their source.
    """

    @abstractmethod
    def parse(self, content: str, source: str) -> List[ContentItem]:
        """Parse raw feed text into items.

        Raises:
            FeedParseError: if the content cannot be parsed.
        """
        ...
