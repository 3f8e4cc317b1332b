"""Markdown digest rendering for ranked items."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from denote.ranking.grouper import group_by_topic
from denote.ranking.models import RankedItem

logger = logging.getLogger(__name__)

HIGHLIGHT_COUNT = 3
EMPTY_DIGEST_TEXT = "No articles this week. Check back next week!"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# "&" first so the entities produced for "<" and ">" are not escaped again
_MARKDOWN_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ("[", "\\["),
    ("]", "\\]"),
    ("(", "\\("),
    (")", "\\)"),
    ("*", "\\*"),
    ("_", "\\_"),
    ("~", "\\~"),
    ("`", "\\`"),
)


def escape_markdown(text: str) -> str:
    for raw, escaped in _MARKDOWN_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def week_range(today: Optional[date] = None) -> str:
    """Sunday-to-Saturday week containing ``today``, e.g. ``"5 Jan - 11 Jan, 2025"``."""
    today = today or date.today()
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    end = start + timedelta(days=6)
    return f"{start.day} {_MONTHS[start.month - 1]} - {end.day} {_MONTHS[end.month - 1]}, {end.year}"


def _first_sentence(summary: str) -> str:
    return summary.split(".")[0]


def format_markdown(
    items: Sequence[RankedItem],
    title: str,
    generated_on: Optional[date] = None,
) -> str:
    """Render ranked items, already in display order, as a markdown digest."""
    lines: List[str] = [f"# {escape_markdown(title)}", ""]

    if not items:
        lines.append(EMPTY_DIGEST_TEXT)
        return "\n".join(lines) + "\n"

    lines += ["## Highlights", ""]
    for item in items[:HIGHLIGHT_COUNT]:
        lines.append(
            f"- **[{escape_markdown(item.title)}]({item.url})**: "
            f"{escape_markdown(_first_sentence(item.summary))}."
        )
    lines.append("")

    lines += ["## Summaries", ""]
    for item in items:
        lines += [f"### {escape_markdown(item.title)}", "", escape_markdown(item.summary), ""]
        source_line = f"Source: [{escape_markdown(item.source)}]({item.url})"
        if item.author:
            source_line += f" - {escape_markdown(item.author)}"
        lines += [source_line, ""]

    lines += ["## Further Reading", ""]
    by_source: Dict[str, List[RankedItem]] = {}
    for item in items:
        by_source.setdefault(item.source, []).append(item)
    for source in sorted(by_source):
        lines += [f"### {escape_markdown(source)}", ""]
        lines += [f"- [{escape_markdown(it.title)}]({it.url})" for it in by_source[source]]
        lines.append("")

    topic_groups = group_by_topic(items)
    if len(topic_groups) > 1:
        lines += ["## Topics", ""]
        for topic in sorted(topic_groups):
            members = topic_groups[topic]
            if not members:
                continue
            lines += [f"### {escape_markdown(topic)}", ""]
            lines += [f"- [{escape_markdown(it.title)}]({it.url})" for it in members]
            lines.append("")

    generated_on = generated_on or date.today()
    lines += ["---", "", f"Generated on {generated_on.isoformat()} by denote"]
    return "\n".join(lines) + "\n"


class DigestGenerator:
    """Write the weekly markdown digest to the configured output file."""

    def __init__(self, config: Dict[str, Any]) -> None:
        output = config.get("output", {})
        self.directory = Path(output.get("directory", "./output"))
        self.filename: str = output.get("filename", "weekly_summary.md")

    @property
    def output_path(self) -> Path:
        return self.directory / self.filename

    def generate(self, items: Sequence[RankedItem], today: Optional[date] = None) -> Path:
        """Render ``items`` and write them out. Returns the written path."""
        today = today or date.today()
        markdown = format_markdown(items, f"Weekly Digest - {week_range(today)}", today)

        if self.directory.exists() and not self.directory.is_dir():
            raise NotADirectoryError(f"Path exists but is not a directory: {self.directory}")
        self.directory.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(markdown, encoding="utf-8")

        logger.info("DigestGenerator: wrote %d items to %s", len(items), self.output_path)
        return self.output_path
