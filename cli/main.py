"""
geohistory CLI - Main Entry Point

Operator tooling for the durable cache tier of geohistory.
Built with Click for argument parsing and help generation.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from geohistory.config import CacheConfig, load_config

# Configure logging for CLI
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("geohistory")


class GeoHistoryContext:
    """Context object for passing global options to subcommands."""

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        config_path: Optional[Path] = None,
    ):
        self.verbose = verbose
        self.quiet = quiet
        self.config_path = config_path
        self._config: Optional[CacheConfig] = None

        # Configure logging based on verbosity
        if quiet:
            logger.setLevel(logging.WARNING)
        elif verbose:
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.INFO)

    @property
    def config(self) -> CacheConfig:
        """Lazy load configuration from file and environment."""
        if self._config is None:
            self._config = load_config(
                str(self.config_path) if self.config_path else None
            )
            if self.verbose:
                logger.debug(f"Effective cache config: {self._config.to_dict()}")
        return self._config

    def resolve_db(self, db_path: Optional[Path]) -> Path:
        """Use the explicit --db path, else the configured one."""
        if db_path is not None:
            return db_path
        if self.config.db_path:
            return Path(self.config.db_path).expanduser()
        raise click.UsageError(
            "No durable database given; pass --db or set db_path / GEOHISTORY_DB_PATH"
        )


# Custom Click group with enhanced help formatting
class GeoHistoryGroup(click.Group):
    """Custom Click group with improved help formatting."""

    def format_help(self, ctx, formatter):
        """Format help with custom banner and examples."""
        formatter.write_paragraph()
        formatter.write_text("geohistory - durable cache maintenance")
        formatter.write_paragraph()

        super().format_help(ctx, formatter)

        formatter.write_paragraph()
        formatter.write_text("Examples:")
        formatter.indent()

        examples = [
            "# Show rows per cache in the durable store",
            "geohistory stats --db ~/.geohistory/durable.db",
            "",
            "# Trim one cache to the newest 1000 rows of the last day",
            "geohistory purge --db ~/.geohistory/durable.db --cache-name path "
            "--max-count 1000 --max-age 86400",
        ]

        for line in examples:
            formatter.write_text(line)

        formatter.dedent()


pass_context = click.make_pass_decorator(GeoHistoryContext, ensure=True)


@click.group(cls=GeoHistoryGroup)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable verbose output (debug logging).",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    default=False,
    help="Quiet mode (only warnings and errors).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file.",
)
@click.version_option(
    version="0.1.0",
    prog_name="geohistory",
    message="%(prog)s version %(version)s",
)
@click.pass_context
def app(ctx, verbose: bool, quiet: bool, config_path: Optional[Path]):
    """
    geohistory CLI - inspect and maintain the durable cache tier.
    """
    if verbose and quiet:
        raise click.UsageError("Cannot use both --verbose and --quiet")

    ctx.obj = GeoHistoryContext(
        verbose=verbose,
        quiet=quiet,
        config_path=config_path,
    )


@app.command("config")
@pass_context
def show_config(ctx):
    """Print the effective cache configuration as JSON."""
    click.echo(json.dumps(ctx.config.to_dict(), indent=2))


def register_commands():
    """Register all subcommands."""
    from cli.commands import purge, stats

    app.add_command(stats.stats)
    app.add_command(purge.purge)


register_commands()


def main():
    """Main entry point for the CLI."""
    try:
        app()
    except Exception as e:
        logger.error(f"Error: {e}")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
