"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, EntityNotFoundError: Exception classes
- Outcome: What processing one outbox entry did
- DrainResult: Counters of one outbox drain
- QueueStats: Outbox counts by status
- SyncResult: Overall sync cycle result
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

IN_PROGRESS_ERROR = "Sync already in progress"


class SyncError(Exception):
    """Base exception for sync errors."""


class EntityNotFoundError(SyncError):
    """A local entity referenced by a mutation does not exist."""

    def __init__(self, family: str, entity_id: str) -> None:
        self.family = family
        self.entity_id = entity_id
        super().__init__(f"{family} entity {entity_id} not found")


class Outcome(Enum):
    """Result of processing a single outbox entry."""

    CREATED = auto()
    UPDATED = auto()
    DELETED = auto()
    SKIPPED = auto()


@dataclass
class DrainResult:
    """Result of draining an outbox once."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, outcome: Outcome) -> None:
        """Count one successful entry."""
        if outcome is Outcome.CREATED:
            self.created += 1
        elif outcome is Outcome.UPDATED:
            self.updated += 1
        elif outcome is Outcome.DELETED:
            self.deleted += 1
        else:
            self.skipped += 1


@dataclass
class QueueStats:
    """Outbox entry counts by status."""

    queued: int = 0
    syncing: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        """Get total number of entries."""
        return self.queued + self.syncing + self.failed


@dataclass
class SyncResult:
    """Result of a pull, a push or a full sync cycle.

    ``success`` is False exactly when ``errors`` is non-empty.
    """

    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if the cycle completed without errors."""
        return not self.errors

    @classmethod
    def failure(cls, message: str) -> SyncResult:
        """Create a result carrying a single error."""
        return cls(errors=[message])

    @classmethod
    def in_progress(cls) -> SyncResult:
        """Result returned when another cycle holds the orchestrator."""
        return cls.failure(IN_PROGRESS_ERROR)

    @classmethod
    def from_drain(cls, drain: DrainResult) -> SyncResult:
        """Convert outbox drain counters into a sync result."""
        return cls(
            created=drain.created,
            updated=drain.updated,
            deleted=drain.deleted,
            errors=list(drain.errors),
        )

    def merge(self, other: SyncResult) -> SyncResult:
        """Combine two results (counts summed, errors concatenated)."""
        return SyncResult(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            deleted=self.deleted + other.deleted,
            errors=self.errors + other.errors,
        )

    def summary(self) -> str:
        """One-line human readable summary."""
        text = f"{self.created} created, {self.updated} updated, {self.deleted} deleted"
        if self.errors:
            text += f", {len(self.errors)} error(s)"
        return text
