"""Pipeline orchestration for denote.

fetch:    download feeds concurrently, parse, skip known ids, store new items.
generate: recent items -> summarize -> rank -> markdown digest.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from denote.config import create_default_config, load_config
from denote.connectors.downloader import FeedDownloader
from denote.connectors.factory import build_connector, detect_feed_type
from denote.digest.generator import DigestGenerator
from denote.digest.llm import LLMClient, StreamCallback, connect_to_llm
from denote.digest.summarizer import LLMSummarizer
from denote.pipeline.events import LoggingEvents, PipelineEvents
from denote.ranking.engine import RankingEngine
from denote.storage.db import DatabaseManager
from denote.storage.models import ContentItem, FetchResult, FetchSummary

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 5

FetchText = Callable[[str], Awaitable[str]]


class FetchOrchestrator:
    """Fetch every configured feed and store the items not seen before.

    Usage:
        orchestrator = FetchOrchestrator(db)
        summary = await orchestrator.fetch_all(config["feeds"])
    """

    def __init__(
        self,
        db: DatabaseManager,
        fetch_text: Optional[FetchText] = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        events: Optional[PipelineEvents] = None,
    ) -> None:
        self.db = db
        self.fetch_text: FetchText = fetch_text or FeedDownloader()
        self.max_concurrent = max_concurrent
        self.events = events or LoggingEvents()
        # ids stored (or being stored) during this run, shared across feeds
        self._claimed: set[str] = set()

    async def fetch_all(self, feeds: List[Dict[str, Any]]) -> FetchSummary:
        """Fetch all feeds concurrently; a failing feed never aborts the others."""
        summary = FetchSummary()
        t0 = time.monotonic()

        sem = asyncio.Semaphore(self.max_concurrent)
        results = await asyncio.gather(*(self.fetch_feed(feed, sem) for feed in feeds))

        for result in results:
            summary.add(result)
            self.events.feed_fetched(result)

        summary.duration_seconds = time.monotonic() - t0
        self.events.fetch_finished(summary)
        return summary

    async def fetch_feed(
        self,
        feed: Dict[str, Any],
        sem: Optional[asyncio.Semaphore] = None,
    ) -> FetchResult:
        """Fetch, parse and store a single feed."""
        feed_id = feed["id"]
        url = feed["url"]
        result = FetchResult(feed_id=feed_id)
        t0 = time.monotonic()

        async with sem or asyncio.Semaphore(1):
            logger.info("Fetching content from %s: %s", feed_id, url)
            try:
                text = await self.fetch_text(url)
                feed_type = feed.get("type") or detect_feed_type(url, text)
                items = build_connector(feed_type).parse(text, feed_id)
                result.items = await self._store_new(items)
            except Exception as e:
                logger.error("Error fetching content from %s: %s", feed_id, e)
                result.success = False
                result.error = str(e)
                result.items = []

        result.duration_seconds = time.monotonic() - t0
        return result

    async def _store_new(self, items: List[ContentItem]) -> List[ContentItem]:
        """Store a feed's unseen items in one transaction and return them."""
        claimed = []
        for item in items:
            if item.id in self._claimed:
                continue
            self._claimed.add(item.id)
            claimed.append(item)

        try:
            new_items = [item for item in claimed if not await self.db.has_item(item.id)]
            await self.db.add_items(new_items)
        except Exception:
            # nothing was stored; let another feed carrying the same ids store them
            self._claimed.difference_update(item.id for item in claimed)
            raise
        return new_items


class DigestPipeline:
    """Generate stage: recent items -> summaries -> ranking -> markdown file."""

    def __init__(
        self,
        config: Dict[str, Any],
        db: DatabaseManager,
        client: LLMClient,
        events: Optional[PipelineEvents] = None,
    ) -> None:
        self.config = config
        self.db = db
        self.summarizer = LLMSummarizer(config, client)
        self.engine = RankingEngine(
            config.get("topics", []),
            max_items=config.get("max_items_per_week", 10),
            max_per_topic=config.get("max_per_topic", 3),
        )
        self.generator = DigestGenerator(config)
        self.events = events or LoggingEvents()

    def _stream_callback_factory(self, stream: bool) -> Callable[[ContentItem], Optional[StreamCallback]]:
        def factory(item: ContentItem) -> Optional[StreamCallback]:
            self.events.item_summarizing(item)
            return partial(self.events.summary_chunk, item) if stream else None

        return factory

    async def generate(self, stream: bool = True, now: Optional[datetime] = None) -> Optional[Path]:
        """Build the digest. Returns its path, or None when there is nothing to digest."""
        now = now or datetime.now(timezone.utc)
        items = await self.db.get_recent_items(self.config.get("recent_days", 7), now=now)
        if not items:
            self.events.notice("No items to process, skipping digest generation")
            return None

        summarized = await self.summarizer.summarize_items(
            items, self._stream_callback_factory(stream)
        )
        for entry in summarized:
            self.events.item_summarized(entry)

        ranked = self.engine.rank(summarized, now=now)
        path = self.generator.generate(ranked, today=now.date())
        self.events.digest_written(path, len(ranked))
        return path


@dataclass
class RunResult:
    """What a full pipeline run produced."""

    fetch: Optional[FetchSummary] = None
    digest_path: Optional[Path] = None


async def run(
    config_path: str,
    fetch_only: bool = False,
    generate_only: bool = False,
    stream: bool = True,
    events: Optional[PipelineEvents] = None,
    fetch_text: Optional[FetchText] = None,
    llm_client: Optional[LLMClient] = None,
    now: Optional[datetime] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> RunResult:
    """Run the fetch and/or generate stages against the configured database.

    The config file is created with starter values when missing. The
    database and LLM client are always closed, even on failure. ``overrides``
    replaces top-level config keys after loading (the CLI validates them).
    """
    events = events or LoggingEvents()
    if create_default_config(config_path):
        events.notice(f"Created default configuration at {config_path}")

    config = load_config(config_path)
    if overrides:
        config.update(overrides)
    result = RunResult()

    db = DatabaseManager(config["database"]["path"])
    await db.initialize()
    try:
        if not generate_only:
            events.stage_started("fetch")
            orchestrator = FetchOrchestrator(db, fetch_text=fetch_text, events=events)
            result.fetch = await orchestrator.fetch_all(config["feeds"])

        if not fetch_only:
            events.stage_started("generate")
            client = llm_client or connect_to_llm(config["llm"])
            try:
                pipeline = DigestPipeline(config, db, client, events)
                result.digest_path = await pipeline.generate(stream=stream, now=now)
            finally:
                await client.close()
    finally:
        await db.close()

    return result
