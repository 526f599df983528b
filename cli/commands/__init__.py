"""
geohistory CLI Commands

This package contains the CLI subcommands for the geohistory tool.

Commands:
    stats - Summarize rows per cache in the durable store
    purge - Apply age and count limits to one cache's durable rows
"""

import sqlite3
from pathlib import Path
from typing import Optional

import click

from geohistory.data.cache.storage import SQLiteBackend


def open_backend(ctx, db_path: Optional[Path]) -> SQLiteBackend:
    """Open the durable store named by --db or the loaded configuration."""
    path = ctx.resolve_db(db_path)
    if not path.exists():
        click.echo(f"Error: database not found: {path}", err=True)
        raise SystemExit(1)
    try:
        return SQLiteBackend(path)
    except sqlite3.Error as e:
        click.echo(f"Error: cannot open {path}: {e}", err=True)
        raise SystemExit(1)


__all__ = ["open_backend"]
