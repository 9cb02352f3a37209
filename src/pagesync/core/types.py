"""Shared types for pagesync.

This module defines the enums used by the local store and the sync engine.
"""

from __future__ import annotations

from enum import Enum


class SyncStatus(str, Enum):
    """Sync status of a local entity relative to the remote."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class QueueStatus(str, Enum):
    """Status of an outbox entry."""

    QUEUED = "queued"
    SYNCING = "syncing"
    FAILED = "failed"


class Operation(str, Enum):
    """Mutation carried by an outbox entry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SyncPhase(str, Enum):
    """Phase of a sync orchestrator.

    Only IDLE accepts a new cycle.
    """

    IDLE = "idle"
    PULLING = "pulling"
    PUSHING = "pushing"
