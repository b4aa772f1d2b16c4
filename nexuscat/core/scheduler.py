"""Background scheduler for catalog maintenance.

Uses APScheduler's AsyncIOScheduler to reconcile duplicate catalog rows at a
configured interval.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from nexuscat.catalog.manager import CatalogManager

logger = logging.getLogger(__name__)

# Job ID for the reconcile task
RECONCILE_JOB_ID = "catalog_reconcile"


class MaintenanceScheduler:
    """Owns the scheduler and the catalog reconcile job."""

    def __init__(self, catalog: CatalogManager, scheduler: AsyncIOScheduler | None = None) -> None:
        self.catalog = catalog
        self.scheduler = scheduler or AsyncIOScheduler()

    async def run_reconcile_job(self) -> int:
        """Run one reconcile pass; the manager logs its own failures."""
        logger.info("Scheduler: Running scheduled catalog reconcile")
        return await self.catalog.reconcile_duplicates()

    def configure(self, interval_minutes: int, enabled: bool = True) -> None:
        """Reconfigure the reconcile job.

        Removes the existing job and adds a new one if enabled.

        Args:
            interval_minutes: Interval between reconcile passes in minutes.
            enabled: Whether periodic reconciliation is enabled.
        """
        if self.scheduler.get_job(RECONCILE_JOB_ID):
            self.scheduler.remove_job(RECONCILE_JOB_ID)
            logger.info("Scheduler: Removed existing reconcile job")

        if enabled and interval_minutes > 0:
            self.scheduler.add_job(
                self.run_reconcile_job,
                trigger=IntervalTrigger(minutes=interval_minutes),
                id=RECONCILE_JOB_ID,
                name="Catalog Reconcile",
                replace_existing=True,
            )
            logger.info("Scheduler: Added reconcile job with %d minute interval", interval_minutes)
        else:
            logger.info("Scheduler: Reconcile disabled, no job scheduled")

    def start(self, interval_minutes: int) -> None:
        """Set up the reconcile job and start the scheduler."""
        self.configure(interval_minutes, enabled=True)
        self.scheduler.start()
        logger.info("Scheduler: Started")

    def stop(self) -> None:
        """Gracefully shutdown scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        logger.info("Scheduler: Stopped")
