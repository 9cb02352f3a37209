"""Sync module - Pull, merge and push between the local store and the remote."""

from pagesync.sync.engine import SyncOrchestrator
from pagesync.sync.families import FAMILIES, ItemFamily, PromptFamily, PullContext, SyncFamily
from pagesync.sync.outbox import MAX_ATTEMPTS, OutboxQueue
from pagesync.sync.resolver import IdentifierResolver
from pagesync.sync.scheduler import AutoSyncScheduler
from pagesync.sync.types import (
    DrainResult,
    EntityNotFoundError,
    Outcome,
    QueueStats,
    SyncError,
    SyncResult,
)

__all__ = [
    # Engine
    "SyncOrchestrator",
    "AutoSyncScheduler",
    # Families
    "FAMILIES",
    "ItemFamily",
    "PromptFamily",
    "PullContext",
    "SyncFamily",
    # Building blocks
    "IdentifierResolver",
    "MAX_ATTEMPTS",
    "OutboxQueue",
    # Types
    "DrainResult",
    "EntityNotFoundError",
    "Outcome",
    "QueueStats",
    "SyncError",
    "SyncResult",
]
