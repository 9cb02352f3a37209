"""Command-line interface for pagesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Store the API token, database ids and auto-sync settings
- test-connection: Check that the configured databases are reachable
- sync: Pull remote changes, then push queued local changes
- status: Show configuration, checkpoints and outbox counts
- retry-failed: Re-queue failed outbox entries
- clear-failed: Drop failed outbox entries
- watch: Sync periodically until interrupted
"""

from __future__ import annotations

import click

from pagesync.cli.config import (
    get_config_dir,
    get_store_path,
    open_store,
    setup_logging,
)
from pagesync.cli.configure import configure, test_connection
from pagesync.cli.sync import clear_failed, retry_failed, status, sync, watch


@click.group()
@click.version_option(package_name="pagesync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """pagesync - Two-way sync between a local store and remote databases."""
    setup_logging(verbose)


# Configuration commands
cli.add_command(configure)
cli.add_command(test_connection)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(retry_failed)
cli.add_command(clear_failed)
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_store_path",
    "open_store",
]
