"""
geohistory CLI Package

Command-line interface for maintaining the durable cache tier.

Usage:
    geohistory stats --db ./durable.db
    geohistory purge --db ./durable.db --cache-name path --max-age 86400
"""

__version__ = "0.1.0"

from cli.main import app

__all__ = ["app", "__version__"]
