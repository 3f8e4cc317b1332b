"""LLM summarizer producing SummarizedItems with an explicit success flag."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from denote.digest.llm import LLMClient, StreamCallback
from denote.ranking.models import SummarizedItem
from denote.storage.models import ContentItem

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_LENGTH = 150
# Content shorter than summary_length * this many characters is kept verbatim.
SHORT_CONTENT_FACTOR = 5

_SUMMARY_PREFIX = re.compile(r"^Summary:\s*", re.IGNORECASE)
_WRAPPING_QUOTES = re.compile(r'^"(.*)"$', re.DOTALL)

StreamCallbackFactory = Callable[[ContentItem], Optional[StreamCallback]]


class LLMSummarizer:
    """Summarise content items with a language model client."""

    def __init__(self, config: Dict[str, Any], client: LLMClient) -> None:
        self.summary_length: int = config.get("summary_length", DEFAULT_SUMMARY_LENGTH)
        self.client = client

    async def summarize_item(
        self,
        item: ContentItem,
        stream_callback: Optional[StreamCallback] = None,
    ) -> SummarizedItem:
        """Summarise one item. Never raises; failures set ``summarized=False``."""
        if len(item.content) < self.summary_length * SHORT_CONTENT_FACTOR:
            return SummarizedItem(item=item, summary=item.content, summarized=True)

        try:
            response = await self.client.generate(self._build_prompt(item), stream_callback)
        except Exception as e:
            logger.warning("Summary failed for %s: %s", item.id, e)
            return SummarizedItem(
                item=item,
                summary=self._fallback_summary(e),
                summarized=False,
            )
        return SummarizedItem(item=item, summary=self._cleanup(response), summarized=True)

    async def summarize_items(
        self,
        items: Sequence[ContentItem],
        stream_callback_factory: Optional[StreamCallbackFactory] = None,
    ) -> List[SummarizedItem]:
        """Summarise items one at a time, in order.

        ``stream_callback_factory`` is asked for a callback per item so
        streamed output from different items never interleaves.
        """
        results: List[SummarizedItem] = []
        for item in items:
            callback = stream_callback_factory(item) if stream_callback_factory else None
            results.append(await self.summarize_item(item, callback))

        failed = sum(1 for r in results if not r.summarized)
        logger.info("LLMSummarizer: %d items summarised (%d failed)", len(results), failed)
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_prompt(self, item: ContentItem) -> str:
        author_line = f"Author: {item.author}\n" if item.author else ""
        return (
            f"Summarise the following content in about {self.summary_length} words.\n"
            f"The summary should be concise, factual, and capture the key points.\n\n"
            f"Title: {item.title}\n"
            f"Source: {item.source}\n"
            f"{author_line}"
            f"Date: {item.published_at.date().isoformat()}\n\n"
            f"Content:\n{item.content}\n\n"
            f"Summary:"
        )

    @staticmethod
    def _cleanup(summary: str) -> str:
        summary = _SUMMARY_PREFIX.sub("", summary)
        summary = _WRAPPING_QUOTES.sub(r"\1", summary)
        return summary.strip()

    @staticmethod
    def _fallback_summary(error: Exception) -> str:
        """Placeholder text when the LLM call fails."""
        return f"Error summarising content: {error}"
