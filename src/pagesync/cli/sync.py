"""Sync commands for the pagesync CLI.

Commands:
- sync: Run a sync cycle now
- status: Show configuration, checkpoints and outbox counts
- retry-failed: Re-queue failed outbox entries
- clear-failed: Drop failed outbox entries
- watch: Sync periodically until interrupted
"""

from __future__ import annotations

import sys
import threading

import click

from pagesync.cli.config import FAMILY_CHOICES, open_store, selected_families
from pagesync.client.api import RemoteClient
from pagesync.client.rate_limiter import RateLimiter
from pagesync.store.database import LocalStore
from pagesync.sync.engine import SyncOrchestrator
from pagesync.sync.scheduler import AutoSyncScheduler

family_option = click.option(
    "--family",
    "-f",
    type=click.Choice(FAMILY_CHOICES),
    default=None,
    help="Restrict to one family (default: all).",
)


def build_orchestrators(store: LocalStore, families: tuple[str, ...]) -> list[SyncOrchestrator]:
    """Create one orchestrator per family, all sharing a rate limiter."""
    limiter = RateLimiter()
    return [
        SyncOrchestrator(store, name, limiter, client_factory=RemoteClient)
        for name in families
    ]


@click.command()
@family_option
@click.option("--force", is_flag=True, help="Ignore the checkpoint and fetch every remote record.")
def sync(family: str | None, force: bool) -> None:
    """Pull remote changes, then push queued local changes."""
    store = open_store()
    failed = False
    try:
        for orchestrator in build_orchestrators(store, selected_families(family)):
            label = orchestrator.family.label
            if family is None and not orchestrator.is_configured():
                click.echo(f"{label}: not configured, skipped")
                continue

            result = orchestrator.full_sync(force=force)
            if result.success:
                click.echo(f"{label}: {result.summary()}")
            else:
                failed = True
                click.echo(f"{label}: {result.summary()}", err=True)
                for error in result.errors:
                    click.echo(f"  - {error}", err=True)
    finally:
        store.close()

    if failed:
        sys.exit(1)


@click.command()
def status() -> None:
    """Show sync configuration and outbox state."""
    store = open_store()
    try:
        settings = store.get_settings()
        click.echo(f"Token: {'set' if settings.token else 'not set'}")
        if settings.auto_sync_enabled:
            click.echo(f"Auto-sync: every {settings.auto_sync_interval} min")
        else:
            click.echo("Auto-sync: disabled")

        for orchestrator in build_orchestrators(store, FAMILY_CHOICES):
            fam = orchestrator.family
            checkpoint = fam.checkpoint(settings)
            stats = orchestrator.stats()
            click.echo("")
            click.echo(f"{fam.label}:")
            click.echo(f"  Database: {fam.database_id(settings) or 'not configured'}")
            click.echo(
                f"  Last sync: {checkpoint.isoformat(timespec='seconds') if checkpoint else 'never'}"
            )
            click.echo(
                f"  Queue: {stats.queued} queued, {stats.syncing} syncing, {stats.failed} failed"
            )
    finally:
        store.close()


@click.command("retry-failed")
@family_option
def retry_failed(family: str | None) -> None:
    """Re-queue outbox entries that failed too many times."""
    store = open_store()
    try:
        for orchestrator in build_orchestrators(store, selected_families(family)):
            count = orchestrator.retry_failed()
            click.echo(f"{orchestrator.family.label}: {count} entries re-queued")
    finally:
        store.close()


@click.command("clear-failed")
@family_option
@click.confirmation_option(prompt="Drop failed entries? Their changes will never reach the remote.")
def clear_failed(family: str | None) -> None:
    """Delete outbox entries that failed too many times."""
    store = open_store()
    try:
        for orchestrator in build_orchestrators(store, selected_families(family)):
            count = orchestrator.clear_failed()
            click.echo(f"{orchestrator.family.label}: {count} entries cleared")
    finally:
        store.close()


@click.command()
@click.option("--interval", "-i", type=click.IntRange(min=1), default=None,
              help="Minutes between syncs (default: configured interval).")
def watch(interval: int | None) -> None:
    """Sync now, then keep syncing periodically until interrupted.

    Auto-sync settings changed with 'pagesync configure' while watching are
    applied on the fly. When auto-sync is disabled, only the initial sync
    runs until it is enabled again.
    """
    store = open_store()
    settings = store.get_settings()
    schedule = (interval or settings.auto_sync_interval, settings.auto_sync_enabled)

    scheduler = AutoSyncScheduler(
        build_orchestrators(store, FAMILY_CHOICES),
        interval_minutes=schedule[0],
        enabled=schedule[1],
    )
    results = scheduler.run_now()
    if not results:
        click.echo("Nothing to sync: no database configured. Run 'pagesync configure' first.", err=True)
        store.close()
        sys.exit(1)
    for name, result in results.items():
        click.echo(f"{name}: {result.summary()}")

    scheduler.start()
    echo_schedule(*schedule)
    click.echo("Press Ctrl+C to stop.")
    stop_event = threading.Event()
    try:
        while not stop_event.wait(1.0):
            settings = store.get_settings()
            current = (interval or settings.auto_sync_interval, settings.auto_sync_enabled)
            if current != schedule:
                schedule = current
                scheduler.reschedule(*schedule)
                echo_schedule(*schedule)
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        scheduler.stop()
        store.close()


def echo_schedule(minutes: int, enabled: bool) -> None:
    if enabled:
        click.echo(f"Watching, syncing every {minutes} min.")
    else:
        click.echo("Auto-sync disabled, waiting for 'pagesync configure --auto-sync'.")
