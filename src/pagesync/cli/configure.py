"""Configuration commands for the pagesync CLI.

Commands:
- configure: Store the API token, database ids and auto-sync settings
- test-connection: Check that each configured database is reachable
"""

from __future__ import annotations

import sys
from typing import Any

import click

from pagesync.cli.config import open_store, selected_families
from pagesync.cli.sync import build_orchestrators, family_option


@click.command()
@click.option("--token", default=None, help="Integration token of the remote API.")
@click.option("--items-db", default=None, help="Id of the items database.")
@click.option("--prompts-db", default=None, help="Id of the prompts database.")
@click.option("--auto-sync/--no-auto-sync", default=None, help="Enable or disable periodic sync.")
@click.option("--interval", type=click.IntRange(min=1), default=None,
              help="Minutes between periodic syncs.")
def configure(
    token: str | None,
    items_db: str | None,
    prompts_db: str | None,
    auto_sync: bool | None,
    interval: int | None,
) -> None:
    """Store connection and auto-sync settings.

    Prompts for the token when none is stored yet and none is given.
    """
    store = open_store()
    try:
        settings = store.get_settings()
        if token is None and not settings.token:
            token = click.prompt("API token", hide_input=True)

        updates: dict[str, Any] = {}
        if token is not None:
            updates["token"] = token.strip()
        if items_db is not None:
            updates["items_database_id"] = items_db.strip()
        if prompts_db is not None:
            updates["prompts_database_id"] = prompts_db.strip()
        if auto_sync is not None:
            updates["auto_sync_enabled"] = auto_sync
        if interval is not None:
            updates["auto_sync_interval"] = interval

        store.update_settings(**updates)
        click.echo(f"Updated {len(updates)} setting(s).")
    finally:
        store.close()


@click.command("test-connection")
@family_option
def test_connection(family: str | None) -> None:
    """Check that the configured databases can be read."""
    store = open_store()
    failed = False
    try:
        for orchestrator in build_orchestrators(store, selected_families(family)):
            label = orchestrator.family.label
            if not orchestrator.is_configured():
                click.echo(f"{label}: not configured")
                failed = failed or family is not None
                continue
            if orchestrator.test_connection():
                click.echo(f"{label}: OK")
            else:
                click.echo(f"{label}: FAILED", err=True)
                failed = True
    finally:
        store.close()

    if failed:
        sys.exit(1)

