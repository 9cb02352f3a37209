"""Configuration utilities for the pagesync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from pagesync.store.database import LocalStore

FAMILY_CHOICES = ("items", "prompts")


class EchoHandler(logging.Handler):
    """Logging handler writing through click to the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def get_config_dir() -> Path:
    """Get the configuration directory for pagesync.

    Returns:
        Path to ~/.pagesync or equivalent.
    """
    return Path.home() / ".pagesync"


def get_store_path() -> Path:
    """Get the path to the local SQLite store."""
    return get_config_dir() / "pagesync.db"


def open_store() -> LocalStore:
    """Open the local store, creating it on first use."""
    return LocalStore(get_store_path())


def selected_families(family: str | None) -> tuple[str, ...]:
    """Expand a ``--family`` option value (None means every family)."""
    return FAMILY_CHOICES if family is None else (family,)


def setup_logging(verbose: bool = False) -> None:
    """Configure the pagesync logger to write to stderr.

    Args:
        verbose: Log at DEBUG instead of WARNING.
    """
    logger = logging.getLogger("pagesync")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = EchoHandler()
    if verbose:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
