"""Scheduler for automatic sync.

This module provides:
- AutoSyncScheduler: Runs a full sync of every configured family at a
  fixed interval
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from pagesync.sync.engine import SyncOrchestrator
    from pagesync.sync.types import SyncResult

logger = logging.getLogger(__name__)

JOB_ID = "auto_sync"


class AutoSyncScheduler:
    """Periodic trigger for full sync cycles.

    Ticks go through ``SyncOrchestrator.full_sync``, so a tick landing while
    a cycle is running is rejected by the orchestrator and only logged.
    """

    def __init__(
        self,
        orchestrators: Sequence[SyncOrchestrator],
        interval_minutes: int = 5,
        enabled: bool = True,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrators: One orchestrator per family.
            interval_minutes: Minutes between two ticks.
            enabled: Whether ticks are scheduled at all.
        """
        self._orchestrators = list(orchestrators)
        self._interval_minutes = interval_minutes
        self._enabled = enabled
        self._scheduler: BackgroundScheduler | None = None

    @property
    def interval_minutes(self) -> int:
        """Minutes between two ticks."""
        return self._interval_minutes

    @property
    def enabled(self) -> bool:
        """Whether periodic sync is enabled."""
        return self._enabled

    @property
    def running(self) -> bool:
        """Whether the background scheduler is started."""
        return self._scheduler is not None

    def _sync_job(self) -> None:
        """Job function for the periodic sync."""
        logger.debug("Auto-sync tick")
        try:
            self.run_now()
        except Exception:
            logger.exception("Error during scheduled sync")

    def run_now(self) -> dict[str, SyncResult]:
        """Run a full sync of every configured family (manual trigger).

        Returns:
            Result per family name. Unconfigured families are left out.
        """
        results: dict[str, SyncResult] = {}
        for orchestrator in self._orchestrators:
            name = orchestrator.family.name
            if not orchestrator.is_configured():
                logger.debug("Skipping %s: not configured", name)
                continue
            result = orchestrator.full_sync()
            results[name] = result
            if result.success:
                logger.info("Auto-sync %s: %s", name, result.summary())
            else:
                logger.warning("Auto-sync %s: %s", name, "; ".join(result.errors))
        return results

    def _add_job(self) -> None:
        assert self._scheduler is not None
        self._scheduler.add_job(
            self._sync_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=JOB_ID,
            name="Periodic sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        if self._enabled:
            self._add_job()
        self._scheduler.start()
        logger.info(
            "Auto-sync scheduler started (%s, every %d min)",
            "enabled" if self._enabled else "disabled",
            self._interval_minutes,
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Auto-sync scheduler stopped")

    def reschedule(self, interval_minutes: int, enabled: bool = True) -> None:
        """Apply new auto-sync settings to a running or stopped scheduler.

        Args:
            interval_minutes: Minutes between two ticks.
            enabled: Whether ticks are scheduled.

        Raises:
            ValueError: If the interval is not positive.
        """
        if interval_minutes < 1:
            raise ValueError("Interval must be at least one minute")

        self._interval_minutes = interval_minutes
        self._enabled = enabled
        if self._scheduler is None:
            return

        if self._scheduler.get_job(JOB_ID) is not None:
            self._scheduler.remove_job(JOB_ID)
        if enabled:
            self._add_job()
        logger.info(
            "Auto-sync rescheduled (%s, every %d min)",
            "enabled" if enabled else "disabled",
            interval_minutes,
        )
