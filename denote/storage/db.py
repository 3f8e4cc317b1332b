"""Async SQLite item store used for dedupe and recency queries."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import aiosqlite

from denote.storage.migrations import apply_migrations
from denote.storage.models import ContentItem

logger = logging.getLogger(__name__)

DEFAULT_RECENT_DAYS = 7


class DatabaseManager:
    """Async SQLite manager for fetched content items.

    Usage:
        db = DatabaseManager("denote.db")
        await db.initialize()
        # ... use db ...
        await db.close()
    """

    def __init__(self, db_path: str, cache_size_mb: int = 16):
        self.db_path = db_path
        self.cache_size_mb = cache_size_mb
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create database, apply migrations, and configure pragmas."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        apply_migrations(self.db_path)

        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute(f"PRAGMA cache_size=-{self.cache_size_mb * 1000}")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")

        logger.info("Database initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> DatabaseManager:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Acquire write lock and begin a transaction."""
        assert self._conn is not None, "Database not initialized"
        async with self._write_lock:
            await self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise

    # --- Items ---

    async def add_item(self, item: ContentItem) -> None:
        """Insert an item and its tags in a single transaction."""
        async with self._transaction() as conn:
            await conn.execute(
                """INSERT INTO items
                   (id, title, url, date, source, content, author, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                item.to_row(),
            )
            if item.tags:
                await conn.executemany(
                    "INSERT OR IGNORE INTO tags (item_id, tag) VALUES (?, ?)",
                    [(item.id, tag) for tag in item.tags],
                )
        logger.debug("Stored item %s (%d tags)", item.id, len(item.tags))

    async def add_items(self, items: Sequence[ContentItem]) -> None:
        """Insert several items and their tags; all or none are stored."""
        if not items:
            return
        async with self._transaction() as conn:
            await conn.executemany(
                """INSERT INTO items
                   (id, title, url, date, source, content, author, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                [item.to_row() for item in items],
            )
            await conn.executemany(
                "INSERT OR IGNORE INTO tags (item_id, tag) VALUES (?, ?)",
                [(item.id, tag) for item in items for tag in item.tags],
            )
        logger.debug("Stored %d items", len(items))

    async def has_item(self, item_id: str) -> bool:
        """Check if an item already exists."""
        assert self._conn is not None
        cursor = await self._conn.execute(
            "SELECT 1 FROM items WHERE id = ? LIMIT 1", (item_id,)
        )
        return await cursor.fetchone() is not None

    async def get_item(self, item_id: str) -> Optional[ContentItem]:
        """Get an item by ID, with its tags."""
        assert self._conn is not None
        cursor = await self._conn.execute(
            "SELECT * FROM items WHERE id = ?", (item_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return ContentItem.from_row(dict(row), await self._get_tags(item_id))

    async def get_recent_items(
        self,
        days: int = DEFAULT_RECENT_DAYS,
        now: Optional[datetime] = None,
    ) -> List[ContentItem]:
        """Get items published in the last ``days`` days, newest first."""
        assert self._conn is not None
        now = now or datetime.now(timezone.utc)
        since = (now - timedelta(days=days)).astimezone(timezone.utc)

        cursor = await self._conn.execute(
            """SELECT * FROM items WHERE date >= ?
               ORDER BY date DESC""",
            (since.isoformat(),),
        )
        rows = await cursor.fetchall()

        items = []
        for r in rows:
            d = dict(r)
            items.append(ContentItem.from_row(d, await self._get_tags(d["id"])))

        logger.info("Loaded %d items from the last %d days", len(items), days)
        return items

    async def _get_tags(self, item_id: str) -> List[str]:
        assert self._conn is not None
        cursor = await self._conn.execute(
            "SELECT tag FROM tags WHERE item_id = ? ORDER BY rowid", (item_id,)
        )
        return [r["tag"] for r in await cursor.fetchall()]

    async def count_items(self, source: Optional[str] = None) -> int:
        """Count items, optionally filtered by source."""
        assert self._conn is not None
        if source:
            cursor = await self._conn.execute(
                "SELECT COUNT(*) FROM items WHERE source = ?", (source,)
            )
        else:
            cursor = await self._conn.execute("SELECT COUNT(*) FROM items")
        row = await cursor.fetchone()
        return row[0] if row else 0

    # --- Maintenance ---

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        assert self._conn is not None
        stats: Dict[str, Any] = {}

        stats["total_items"] = await self.count_items()

        cursor = await self._conn.execute("SELECT COUNT(*) FROM tags")
        row = await cursor.fetchone()
        stats["total_tags"] = row[0] if row else 0

        cursor = await self._conn.execute(
            """SELECT source, COUNT(*) as cnt FROM items
               GROUP BY source ORDER BY cnt DESC"""
        )
        stats["items_by_source"] = {r["source"]: r["cnt"] for r in await cursor.fetchall()}

        cursor = await self._conn.execute("SELECT MAX(date) FROM items")
        row = await cursor.fetchone()
        stats["latest_item_date"] = row[0] if row else None

        cursor = await self._conn.execute(
            "SELECT page_count * page_size as size FROM pragma_page_count(), pragma_page_size()"
        )
        row = await cursor.fetchone()
        stats["db_size_bytes"] = row[0] if row else 0

        return stats
