"""Durable outbox of local mutations.

This module provides:
- OutboxQueue: Per-family queue of create/update/delete operations

Entries live in the store's ``sync_queue`` table, so they survive restarts.
They are drained oldest first, one at a time. An entry is removed when its
operation reaches the remote, and parked as ``failed`` after
MAX_ATTEMPTS unsuccessful tries until the user retries or clears it.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import Any

from pagesync.core.types import Operation, QueueStatus
from pagesync.store.database import LocalStore
from pagesync.store.models import QueueEntry
from pagesync.sync.types import DrainResult, Outcome, QueueStats

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

# Handler applying one entry to the remote
ProcessOne = Callable[[QueueEntry], Outcome]


class OutboxQueue:
    """Outbox for a single sync family."""

    def __init__(self, store: LocalStore, family: str) -> None:
        """Initialize the outbox.

        Args:
            store: Store holding the ``sync_queue`` table.
            family: Family name entries are filed under.
        """
        self._store = store
        self._family = family

    @property
    def family(self) -> str:
        """Family name of this outbox."""
        return self._family

    def enqueue(
        self,
        entity_id: str,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> QueueEntry:
        """Record a local mutation.

        An update is folded into a still-queued create or update of the same
        entity. A delete drops the entity's queued creates and updates before
        being appended.

        Args:
            entity_id: Local id of the mutated entity.
            operation: Mutation kind.
            payload: Entity snapshot, or ``{"remote_id": ...}`` for a delete.

        Returns:
            The entry now representing the mutation.
        """
        if operation in (Operation.UPDATE, Operation.DELETE):
            pending = [
                e
                for e in self._store.list_queue(
                    self._family, status=QueueStatus.QUEUED, entity_id=entity_id
                )
                if e.operation in (Operation.CREATE, Operation.UPDATE)
            ]

            if operation is Operation.UPDATE and pending:
                target = pending[-1]
                if payload is not None:
                    self._store.update_queue_entry(target.id, payload=payload)
                    target = dataclasses.replace(target, payload=payload)
                logger.debug("Folded update of %s into %s entry %d",
                             entity_id, target.operation.value, target.id)
                return target

            if operation is Operation.DELETE:
                for entry in pending:
                    self._store.delete_queue_entry(entry.id)
                if pending:
                    logger.debug("Dropped %d pending entries of deleted %s",
                                 len(pending), entity_id)

        entry = self._store.add_queue_entry(self._family, entity_id, operation, payload)
        logger.debug("Queued %s %s (%s)", operation.value, entity_id, self._family)
        return entry

    def pending(self) -> list[QueueEntry]:
        """Get queued entries, oldest first."""
        return self._store.list_queue(self._family, status=QueueStatus.QUEUED)

    def failed(self) -> list[QueueEntry]:
        """Get entries parked after too many failures."""
        return self._store.list_queue(self._family, status=QueueStatus.FAILED)

    def drain(self, process_one: ProcessOne) -> DrainResult:
        """Apply every queued entry with ``process_one``.

        Entries left ``syncing`` by an interrupted drain are queued again
        first. A failing entry never stops the drain.

        Args:
            process_one: Applies one entry to the remote and reports what
                it did. Any exception counts as a failed attempt.

        Returns:
            Counters and error messages of this drain.
        """
        recovered = self._store.reset_queue_status(self._family, QueueStatus.SYNCING)
        if recovered:
            logger.info("Recovered %d interrupted %s entries", recovered, self._family)

        result = DrainResult()
        for snapshot in self.pending():
            # Re-read: a delete enqueued meanwhile may have removed it
            entry = self._store.get_queue_entry(snapshot.id)
            if entry is None or entry.status is not QueueStatus.QUEUED:
                continue

            self._store.update_queue_entry(entry.id, status=QueueStatus.SYNCING)
            try:
                outcome = process_one(entry)
            except Exception as e:
                message = f"{entry.operation.value} {entry.entity_id}: {e}"
                result.errors.append(message)
                self._record_failure(entry, message)
            else:
                self._store.delete_queue_entry(entry.id)
                result.record(outcome)

        return result

    def _record_failure(self, entry: QueueEntry, message: str) -> None:
        # Re-read: the handler may have promoted the entry
        current = self._store.get_queue_entry(entry.id) or entry
        attempts = current.retry_count + 1
        if attempts >= MAX_ATTEMPTS:
            logger.error("Giving up on %s after %d attempts", message, attempts)
            status = QueueStatus.FAILED
        else:
            logger.warning("Attempt %d failed: %s", attempts, message)
            status = QueueStatus.QUEUED
        self._store.update_queue_entry(entry.id, retry_count=attempts, status=status)

    def promote_to_create(self, entry: QueueEntry) -> QueueEntry:
        """Persist an update entry as a create (entity has no remote id yet)."""
        self._store.update_queue_entry(entry.id, operation=Operation.CREATE)
        logger.debug("Promoted entry %d for %s to create", entry.id, entry.entity_id)
        return dataclasses.replace(entry, operation=Operation.CREATE)

    def retry_failed(self) -> int:
        """Queue failed entries again with a fresh attempt budget.

        Returns:
            Number of entries re-queued.
        """
        count = self._store.reset_queue_status(
            self._family, QueueStatus.FAILED, reset_retries=True
        )
        logger.info("Re-queued %d failed %s entries", count, self._family)
        return count

    def clear_failed(self) -> int:
        """Delete failed entries.

        Returns:
            Number of entries deleted.
        """
        count = self._store.delete_queue_status(self._family, QueueStatus.FAILED)
        logger.info("Cleared %d failed %s entries", count, self._family)
        return count

    def stats(self) -> QueueStats:
        """Count entries by status."""
        stats = QueueStats()
        for entry in self._store.list_queue(self._family):
            if entry.status is QueueStatus.QUEUED:
                stats.queued += 1
            elif entry.status is QueueStatus.SYNCING:
                stats.syncing += 1
            else:
                stats.failed += 1
        return stats
