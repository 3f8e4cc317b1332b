"""Observer hooks for pipeline progress.

The orchestrator reports progress through a PipelineEvents instance instead
of printing. The default implementation logs; the CLI swaps in a rich-backed
one. The ranking engine never sees these.
"""

from __future__ import annotations

import logging
from pathlib import Path

from denote.ranking.models import SummarizedItem
from denote.storage.models import ContentItem, FetchResult, FetchSummary

logger = logging.getLogger(__name__)


class PipelineEvents:
    """No-op base observer. Override the hooks you care about."""

    def stage_started(self, stage: str) -> None:
        pass

    def feed_fetched(self, result: FetchResult) -> None:
        pass

    def fetch_finished(self, summary: FetchSummary) -> None:
        pass

    def item_summarizing(self, item: ContentItem) -> None:
        pass

    def summary_chunk(self, item: ContentItem, chunk: str) -> None:
        pass

    def item_summarized(self, item: SummarizedItem) -> None:
        pass

    def digest_written(self, path: Path, item_count: int) -> None:
        pass

    def notice(self, message: str) -> None:
        pass


class LoggingEvents(PipelineEvents):
    """Observer that forwards every event to the module logger."""

    def stage_started(self, stage: str) -> None:
        logger.info("Running %s pipeline", stage)

    def feed_fetched(self, result: FetchResult) -> None:
        if result.success:
            logger.info("Feed %s: %d new items", result.feed_id, result.new_items)
        else:
            logger.warning("Feed %s failed: %s", result.feed_id, result.error)

    def fetch_finished(self, summary: FetchSummary) -> None:
        logger.info(
            "Fetch complete: %d feeds, %d ok, %d failed, %d new items",
            summary.feeds_processed,
            summary.total_success,
            summary.total_errors,
            summary.total_items,
        )

    def item_summarizing(self, item: ContentItem) -> None:
        logger.info("Summarising item: %s", item.title)

    def item_summarized(self, item: SummarizedItem) -> None:
        if not item.summarized:
            logger.warning("Fell back to placeholder summary for %s", item.id)

    def digest_written(self, path: Path, item_count: int) -> None:
        logger.info("Digest with %d items saved to %s", item_count, path)

    def notice(self, message: str) -> None:
        logger.info(message)
