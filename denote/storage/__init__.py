"""Storage layer: SQLite item history with WAL mode and versioned migrations."""

from denote.storage.db import DatabaseManager
from denote.storage.models import ContentItem, FetchResult, FetchSummary

__all__ = ["DatabaseManager", "ContentItem", "FetchResult", "FetchSummary"]
