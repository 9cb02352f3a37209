"""Sync engine coordinating local and remote state.

This module provides:
- SyncOrchestrator: Runs pull / push cycles for one entity family

A cycle pulls remote changes since the family's checkpoint, merges them with
last-write-wins, then drains the outbox. Only one cycle runs per
orchestrator at a time; a second request while one is running is rejected
immediately rather than queued.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any, assert_never

from pagesync.client.api import RemoteClient
from pagesync.client.errors import NotFoundError
from pagesync.client.rate_limiter import RateLimiter
from pagesync.core.config import RemoteConfig
from pagesync.core.types import Operation, SyncPhase, SyncStatus
from pagesync.store.database import LocalStore
from pagesync.store.models import QueueEntry, utcnow
from pagesync.sync.families import FAMILIES, PropertiesBuilder, SyncFamily
from pagesync.sync.outbox import OutboxQueue
from pagesync.sync.types import Outcome, QueueStats, SyncResult

logger = logging.getLogger(__name__)

ClientFactory = Callable[[RemoteConfig, RateLimiter], Any]


class SyncOrchestrator:
    """Drives sync cycles of one family against its remote database."""

    def __init__(
        self,
        store: LocalStore,
        family: SyncFamily | str,
        limiter: RateLimiter | None = None,
        client_factory: ClientFactory = RemoteClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Local store.
            family: Family adapter, or its name ("items", "prompts").
            limiter: Rate limiter shared by every client of the process.
            client_factory: Builds a remote client from config and limiter.
            clock: Source of the checkpoint timestamps.
        """
        self._store = store
        self._family = FAMILIES[family] if isinstance(family, str) else family
        self._limiter = limiter or RateLimiter()
        self._client_factory = client_factory
        self._clock = clock
        self._outbox = OutboxQueue(store, self._family.name)

        self._lock = threading.Lock()
        self._state = SyncPhase.IDLE

    @property
    def family(self) -> SyncFamily:
        """Family adapter of this orchestrator."""
        return self._family

    @property
    def outbox(self) -> OutboxQueue:
        """Outbox of this family."""
        return self._outbox

    @property
    def state(self) -> SyncPhase:
        """Current phase."""
        with self._lock:
            return self._state

    @property
    def is_syncing(self) -> bool:
        """Check if a cycle is running."""
        return self.state is not SyncPhase.IDLE

    # === Phase guard ===

    def _try_begin(self, phase: SyncPhase) -> bool:
        with self._lock:
            if self._state is not SyncPhase.IDLE:
                return False
            self._state = phase
            return True

    def _enter(self, phase: SyncPhase) -> None:
        with self._lock:
            self._state = phase

    def _finish(self) -> None:
        with self._lock:
            self._state = SyncPhase.IDLE

    # === Public entry points ===

    def full_sync(self, force: bool = False) -> SyncResult:
        """Pull remote changes, then push the outbox.

        Args:
            force: Ignore the checkpoint and fetch every remote record.
                The checkpoint is still advanced afterwards.

        Returns:
            Aggregated result. Never raises.
        """
        return self._guarded(SyncPhase.PULLING, pull=True, push=True, force=force)

    def pull(self, force: bool = False) -> SyncResult:
        """Run the pull phase only."""
        return self._guarded(SyncPhase.PULLING, pull=True, push=False, force=force)

    def push(self) -> SyncResult:
        """Run the push phase only (drain the outbox)."""
        return self._guarded(SyncPhase.PUSHING, pull=False, push=True, force=False)

    def _guarded(self, phase: SyncPhase, *, pull: bool, push: bool, force: bool) -> SyncResult:
        if not self._try_begin(phase):
            logger.info("%s sync requested while one is running", self._family.label)
            return SyncResult.in_progress()
        try:
            return self._run_cycle(pull=pull, push=push, force=force)
        except Exception as e:
            logger.exception("%s sync failed", self._family.label)
            return SyncResult.failure(str(e))
        finally:
            self._finish()

    def _run_cycle(self, *, pull: bool, push: bool, force: bool) -> SyncResult:
        settings = self._store.get_settings()
        config = self._family.remote_config(settings)
        if not config.is_configured:
            return SyncResult.failure(f"{self._family.label} database not configured")

        client = self._client_factory(config, self._limiter)
        try:
            result = SyncResult()
            if pull:
                self._enter(SyncPhase.PULLING)
                pulled = self._pull(client, self._family.checkpoint(settings), force)
                result = result.merge(pulled)
                if not pulled.success:
                    return result
            if push:
                self._enter(SyncPhase.PUSHING)
                result = result.merge(self._push(client))
        finally:
            client.close()

        logger.info("%s sync: %s", self._family.label, result.summary())
        return result

    # === Pull ===

    def _pull(self, client: Any, checkpoint: datetime | None, force: bool) -> SyncResult:
        """Fetch and merge remote changes.

        Errors abort the pass; entities already written stay written and the
        checkpoint is left alone.
        """
        started = self._clock()
        since = None if force else checkpoint
        result = SyncResult()

        try:
            if since is not None:
                records = client.fetch_modified_since(since)
            else:
                records = client.fetch_all()
            logger.info(
                "%s %s pull: fetched %d records",
                self._family.label, "delta" if since else "full", len(records),
            )

            ctx = self._family.begin_pull(self._store)
            for record in records:
                if record.archived:
                    continue
                outcome = self._family.apply_record(self._store, ctx, record)
                if outcome is Outcome.CREATED:
                    result.created += 1
                elif outcome is Outcome.UPDATED:
                    result.updated += 1
        except Exception as e:
            logger.exception("%s pull failed", self._family.label)
            result.errors.append(str(e))
            return result

        if checkpoint is None or started > checkpoint:
            self._family.set_checkpoint(self._store, started)
        return result

    # === Push ===

    def _push(self, client: Any) -> SyncResult:
        build = self._family.properties_builder(self._store)

        def process_one(entry: QueueEntry) -> Outcome:
            try:
                match entry.operation:
                    case Operation.CREATE:
                        return self._push_create(client, entry, build)
                    case Operation.UPDATE:
                        return self._push_update(client, entry, build)
                    case Operation.DELETE:
                        return self._push_delete(client, entry)
                    case _:
                        assert_never(entry.operation)
            except Exception:
                if entry.operation is not Operation.DELETE:
                    self._mark_error(entry.entity_id)
                raise

        return SyncResult.from_drain(self._outbox.drain(process_one))

    def _mark_error(self, entity_id: str) -> None:
        if self._family.get_entity(self._store, entity_id) is not None:
            self._family.update_entity(self._store, entity_id, sync_status=SyncStatus.ERROR)

    def _push_create(self, client: Any, entry: QueueEntry, build: PropertiesBuilder) -> Outcome:
        entity = self._family.get_entity(self._store, entry.entity_id)
        if entity is None:
            logger.debug("Skipping create of deleted %s %s", self._family.name, entry.entity_id)
            return Outcome.SKIPPED

        if entity.remote_id:
            # Linked by a pull since it was queued
            client.update_record(entity.remote_id, build(entity))
            self._family.mark_pushed(self._store, entity.id, entity.remote_id)
            return Outcome.UPDATED

        # An earlier attempt may have created the record before failing
        existing = client.find_by_local_id(entity.id)
        if existing is not None:
            logger.info("Found existing remote record %s for %s", existing.remote_id, entity.id)
            record = client.update_record(existing.remote_id, build(entity))
        else:
            record = client.create_record(build(entity))

        self._family.mark_pushed(self._store, entity.id, record.remote_id)
        return Outcome.CREATED

    def _push_update(self, client: Any, entry: QueueEntry, build: PropertiesBuilder) -> Outcome:
        entity = self._family.get_entity(self._store, entry.entity_id)
        if entity is None:
            logger.debug("Skipping update of deleted %s %s", self._family.name, entry.entity_id)
            return Outcome.SKIPPED

        if not entity.remote_id:
            promoted = self._outbox.promote_to_create(entry)
            return self._push_create(client, promoted, build)

        client.update_record(entity.remote_id, build(entity))
        self._family.mark_pushed(self._store, entity.id, entity.remote_id)
        return Outcome.UPDATED

    def _push_delete(self, client: Any, entry: QueueEntry) -> Outcome:
        remote_id = entry.remote_id
        if not remote_id:
            # Never reached the remote
            return Outcome.SKIPPED
        try:
            client.archive_record(remote_id)
        except NotFoundError:
            logger.info("Remote record %s already gone", remote_id)
        return Outcome.DELETED

    # === Queue maintenance ===

    def stats(self) -> QueueStats:
        """Outbox counts by status."""
        return self._outbox.stats()

    def retry_failed(self) -> int:
        """Re-queue failed outbox entries."""
        return self._outbox.retry_failed()

    def clear_failed(self) -> int:
        """Drop failed outbox entries."""
        return self._outbox.clear_failed()

    def is_configured(self) -> bool:
        """Check if credentials and the family's database id are set."""
        return self._family.remote_config(self._store.get_settings()).is_configured

    def test_connection(self) -> bool:
        """Check that the family's database is reachable."""
        config = self._family.remote_config(self._store.get_settings())
        if not config.is_configured:
            return False
        client = self._client_factory(config, self._limiter)
        try:
            return bool(client.test_connection())
        finally:
            client.close()
