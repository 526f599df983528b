"""
Stats Command - Summarize the durable cache store.

Usage:
    geohistory stats --db ~/.geohistory/durable.db
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from cli.commands import open_backend

logger = logging.getLogger("geohistory.stats")


@click.command("stats")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite database of the durable tier (default: configured db_path).",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format (default: text).",
)
@click.pass_obj
def stats(ctx, db_path: Optional[Path], output_format: str):
    """
    Show row counts and write times per cache name.

    \b
    Examples:
        # Table of all caches
        geohistory stats --db ./durable.db

        # Machine-readable output
        geohistory stats --db ./durable.db --format json
    """
    backend = open_backend(ctx, db_path)
    try:
        result = backend.summary()
    finally:
        backend.close()

    if not result.ok:
        click.echo(f"Error: {result.error}", err=True)
        raise SystemExit(1)

    rows = result.value or []
    logger.debug(f"Summary returned {len(rows)} cache names")

    if output_format == "json":
        click.echo(json.dumps(rows, indent=2))
    else:
        _print_summary_text(rows)


def _print_summary_text(rows: List[Dict[str, Any]]) -> None:
    if not rows:
        click.echo("No cached items.")
        return

    click.echo(f"{'Cache':<20} {'Entries':>8}  {'Oldest':<20} {'Newest':<20}")
    click.echo("-" * 72)
    for row in rows:
        click.echo(
            f"{row['cache_name']:<20} {row['entries']:>8}  "
            f"{format_timestamp(row['oldest']):<20} {format_timestamp(row['newest']):<20}"
        )


def format_timestamp(value: Optional[float]) -> str:
    """Format an epoch timestamp for display."""
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
