"""
Purge Command - Apply durable-tier limits to one cache.

Usage:
    geohistory purge --db ./durable.db --cache-name path --max-age 86400
"""

import logging
import time
from pathlib import Path
from typing import Optional

import click

from cli.commands import open_backend

logger = logging.getLogger("geohistory.purge")


@click.command("purge")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite database of the durable tier (default: configured db_path).",
)
@click.option(
    "--cache-name",
    "-n",
    required=True,
    help="Cache name whose rows are purged (e.g. point, path, relation).",
)
@click.option(
    "--max-age",
    type=click.FloatRange(min=0),
    default=None,
    help="Delete rows written more than this many seconds ago "
    "(default: configured durable max age).",
)
@click.option(
    "--max-count",
    type=click.IntRange(min=0),
    default=None,
    help="Keep at most this many of the newest rows "
    "(default: configured durable max count).",
)
@click.pass_obj
def purge(
    ctx,
    db_path: Optional[Path],
    cache_name: str,
    max_age: Optional[float],
    max_count: Optional[int],
):
    """
    Delete stale and excess rows of one cache from the durable store.

    Rows older than the age limit are removed first, then all but the
    newest rows up to the count limit. Running caches refresh their
    persisted-id index on their next clean-up.

    \b
    Examples:
        # Use the configured durable limits
        geohistory purge --db ./durable.db --cache-name relation

        # Drop everything for the path cache
        geohistory purge --db ./durable.db --cache-name path --max-count 0
    """
    limits = ctx.config.durable
    if max_age is None:
        max_age = float(limits.max_age_seconds)
    if max_count is None:
        max_count = limits.max_count

    backend = open_backend(ctx, db_path)
    try:
        by_age = backend.delete_older_than(cache_name, time.time() - max_age)
        if not by_age.ok:
            click.echo(f"Error: {by_age.error}", err=True)
            raise SystemExit(1)

        by_count = backend.delete_beyond_newest(cache_name, max_count)
        if not by_count.ok:
            click.echo(f"Error: {by_count.error}", err=True)
            raise SystemExit(1)
    finally:
        backend.close()

    logger.info(
        f"Purged cache '{cache_name}': {by_age.value} expired, {by_count.value} over limit"
    )
    click.echo(f"Expired rows deleted: {by_age.value}")
    click.echo(f"Excess rows deleted: {by_count.value}")
