"""CLI interface for denote.

Usage:
    denote init
    denote run                  # fetch, then generate
    denote run --fetch-only
    denote run --generate-only --no-stream
    denote generate --max-items 5 --max-per-topic 2
    denote status
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from denote.config import DEFAULT_CONFIG_PATH, create_default_config, load_config
from denote.errors import DenoteError
from denote.pipeline.events import PipelineEvents
from denote.pipeline.orchestrator import RunResult, run
from denote.ranking.models import SummarizedItem
from denote.storage.db import DatabaseManager
from denote.storage.models import ContentItem, FetchResult, FetchSummary

console = Console()


class ConsoleEvents(PipelineEvents):
    """Pipeline observer that reports progress on the rich console."""

    def __init__(self, out: Console) -> None:
        self.out = out
        self._streaming = False

    def stage_started(self, stage: str) -> None:
        self.out.print(f"[bold]Running {stage} pipeline[/bold]")

    def feed_fetched(self, result: FetchResult) -> None:
        if not result.success:
            self.out.print(f"[red]Feed {result.feed_id} failed:[/red] {escape(str(result.error))}")

    def fetch_finished(self, summary: FetchSummary) -> None:
        table = Table(title="Fetch Results")
        table.add_column("Feed", style="cyan")
        table.add_column("New items", justify="right", style="green")
        table.add_column("Status")
        table.add_column("Time", justify="right")

        for r in summary.results:
            table.add_row(
                escape(r.feed_id),
                str(r.new_items),
                "[green]ok" if r.success else "[red]failed",
                f"{r.duration_seconds:.1f}s",
            )
        table.add_section()
        table.add_row(
            f"[bold]{summary.feeds_processed} feeds",
            f"[bold green]{summary.total_items}",
            f"[bold]{summary.total_success} ok / [red]{summary.total_errors} failed",
            f"[bold]{summary.duration_seconds:.1f}s",
        )
        self.out.print(table)

    def item_summarizing(self, item: ContentItem) -> None:
        self.out.print(f"[cyan]Summarising:[/cyan] {escape(item.title)}", highlight=False)

    def summary_chunk(self, item: ContentItem, chunk: str) -> None:
        self._streaming = True
        self.out.print(chunk, end="", markup=False, highlight=False)

    def item_summarized(self, item: SummarizedItem) -> None:
        if self._streaming:
            self.out.print()
            self._streaming = False
        if not item.summarized:
            self.out.print(f"[yellow]Fallback summary used for[/yellow] {escape(item.title)}")

    def digest_written(self, path: Path, item_count: int) -> None:
        self.out.print(f"[green]Digest with {item_count} items saved to {path}[/green]")

    def notice(self, message: str) -> None:
        self.out.print(f"[yellow]{escape(message)}[/yellow]")


def run_async(coro):
    """Run an async function to completion."""
    return asyncio.run(coro)


def _run_pipeline(
    ctx: click.Context,
    fetch_only: bool = False,
    generate_only: bool = False,
    stream: bool = True,
    overrides: Optional[Dict[str, Any]] = None,
) -> RunResult:
    try:
        return run_async(
            run(
                ctx.obj["config_path"],
                fetch_only=fetch_only,
                generate_only=generate_only,
                stream=stream,
                events=ConsoleEvents(console),
                overrides=overrides,
            )
        )
    except (DenoteError, OSError) as e:
        console.print(f"[red]Error running denote:[/red] {escape(str(e))}")
        sys.exit(1)


@click.group()
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline details")
@click.pass_context
def cli(ctx, config_path: str, verbose: bool):
    """denote: a self-hosted weekly TL;DR summariser."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command("run")
@click.option("--fetch-only", "-f", is_flag=True, help="Only fetch new content")
@click.option("--generate-only", "-g", is_flag=True, help="Only generate a digest from stored content")
@click.option("--run-all", "-a", is_flag=True, help="Fetch and generate (default)")
@click.option("--no-stream", "-n", is_flag=True, help="Disable streaming LLM output")
@click.pass_context
def run_command(ctx, fetch_only: bool, generate_only: bool, run_all: bool, no_stream: bool):
    """Run the complete pipeline: fetch, summarise, rank, write the digest."""
    if run_all:
        fetch_only = generate_only = False
    if fetch_only and generate_only:
        console.print("[red]Error:[/red] --fetch-only and --generate-only are mutually exclusive")
        sys.exit(1)
    _run_pipeline(ctx, fetch_only=fetch_only, generate_only=generate_only, stream=not no_stream)


@cli.command()
@click.pass_context
def fetch(ctx):
    """Fetch new content from every feed."""
    _run_pipeline(ctx, fetch_only=True)


@cli.command()
@click.option("--no-stream", "-n", is_flag=True, help="Disable streaming LLM output")
@click.option("--max-items", type=click.IntRange(min=1), help="Override max_items_per_week")
@click.option("--max-per-topic", type=click.IntRange(min=1), help="Override max_per_topic")
@click.pass_context
def generate(ctx, no_stream: bool, max_items: Optional[int], max_per_topic: Optional[int]):
    """Generate a digest from content already stored."""
    overrides: Dict[str, Any] = {}
    if max_items is not None:
        overrides["max_items_per_week"] = max_items
    if max_per_topic is not None:
        overrides["max_per_topic"] = max_per_topic
    _run_pipeline(ctx, generate_only=True, stream=not no_stream, overrides=overrides)


@cli.command()
@click.pass_context
def init(ctx):
    """Write a starter configuration file."""
    config_path = ctx.obj["config_path"]
    if create_default_config(config_path):
        console.print(f"[green]Created default configuration at {config_path}[/green]")
    else:
        console.print(f"[yellow]Configuration already exists at {config_path}[/yellow]")


@cli.command()
@click.pass_context
def status(ctx):
    """Show configuration and database status."""
    try:
        config = load_config(ctx.obj["config_path"])
    except DenoteError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    async def _run():
        db = DatabaseManager(config["database"]["path"])
        await db.initialize()
        try:
            return await db.get_stats()
        finally:
            await db.close()

    stats = run_async(_run())

    console.print("\n[bold]Configuration[/bold]")
    console.print(f"  Path: {ctx.obj['config_path']}")
    console.print(f"  Feeds: {len(config['feeds'])}")
    console.print(f"  Topics: {escape(', '.join(config['topics'])) or '(none)'}")
    console.print(
        f"  Selection: {config['max_items_per_week']} items, "
        f"{config['max_per_topic']} per topic"
    )

    console.print("\n[bold]Database Status[/bold]")
    console.print(f"  Path: {config['database']['path']}")
    console.print(f"  Size: {stats['db_size_bytes'] / 1024:.1f} KB")
    console.print(f"  Items: {stats['total_items']}")
    console.print(f"  Tags: {stats['total_tags']}")
    console.print(f"  Latest item: {stats['latest_item_date'] or 'never'}")

    if stats["items_by_source"]:
        table = Table(title="Items by Source")
        table.add_column("Source", style="cyan")
        table.add_column("Items", justify="right")
        for src, cnt in stats["items_by_source"].items():
            table.add_row(escape(src), str(cnt))
        console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
