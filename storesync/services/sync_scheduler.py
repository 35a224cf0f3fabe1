"""Scheduled and manual syncs across all tenants.

WHAT:
    SyncScheduler owns an APScheduler AsyncIOScheduler with two independent
    cron jobs:
    - quick_sync: customers + orders for every active tenant (every 15 min)
    - full_sync: customers -> orders -> products for every active tenant (hourly)
    It also exposes a manual per-tenant trigger and a status summary.

WHY:
    - Tenants are isolated: one tick runs every tenant concurrently and waits
      for all of them, so a failing tenant is logged and counted without
      affecting the others
    - A tick never raises into APScheduler; failures end up in the log,
      in Sentry and in the returned TickSummary

REFERENCES:
    - storesync/services/tenant_sync.py (per-tenant work)
    - storesync/main.py (lifespan start/stop)
    - https://apscheduler.readthedocs.io/en/3.x/modules/schedulers/asyncio.html
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from storesync.database import SessionLocal
from storesync.deps import Settings, get_settings
from storesync.services.sync_ledger import latest_sync_log
from storesync.services.tenant_directory import get_tenant, list_active_tenants
from storesync.services.tenant_sync import TenantSyncOrchestrator
from storesync.telemetry.sentry import capture_exception
from storesync.utils.concurrency import settle_all

logger = logging.getLogger(__name__)

QUICK_SYNC_JOB_ID = "quick_sync"
FULL_SYNC_JOB_ID = "full_sync"


@dataclass
class TickSummary:
    """Per-tick outcome counts."""
    successful: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.successful + self.failed


@dataclass
class ManualSyncResult:
    success: bool
    message: str


class SyncScheduler:
    """Runs quick and full syncs for all active tenants on two cadences.

    Usage:
        scheduler = SyncScheduler(TenantSyncOrchestrator())
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: Optional[TenantSyncOrchestrator] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        settings: Optional[Settings] = None,
    ):
        self.orchestrator = orchestrator or TenantSyncOrchestrator(session_factory=session_factory)
        self.session_factory = session_factory
        self.settings = settings or get_settings()

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: Dict[str, Any] = {}

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Register both cron jobs and start scheduling. No-op when already running."""
        if self.running:
            logger.warning("[SCHEDULER] Already running, ignoring start()")
            return

        scheduler = AsyncIOScheduler()

        self._jobs[QUICK_SYNC_JOB_ID] = scheduler.add_job(
            self.sync_all_tenants,
            CronTrigger.from_crontab(self.settings.QUICK_SYNC_CRON),
            id=QUICK_SYNC_JOB_ID,
            name="Quick sync (customers + orders)",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._jobs[FULL_SYNC_JOB_ID] = scheduler.add_job(
            self.full_sync_all_tenants,
            CronTrigger.from_crontab(self.settings.FULL_SYNC_CRON),
            id=FULL_SYNC_JOB_ID,
            name="Full sync (customers -> orders -> products)",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            f"[SCHEDULER] Started (quick='{self.settings.QUICK_SYNC_CRON}', "
            f"full='{self.settings.FULL_SYNC_CRON}')"
        )

    async def stop(self) -> None:
        """Cancel both jobs and shut the scheduler down. No-op when not running."""
        if self._scheduler is None:
            return

        for job in self._jobs.values():
            job.remove()
        self._jobs.clear()

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("[SCHEDULER] Stopped")

    def get_jobs_info(self) -> List[Dict[str, Any]]:
        """Get information about scheduled jobs."""
        if not self._scheduler:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]

    # =========================================================================
    # TICKS
    # =========================================================================

    def _load_active_tenants(self, operation: str) -> Optional[list]:
        try:
            with self.session_factory() as db:
                return list_active_tenants(db)
        except Exception as e:
            logger.error(f"[SCHEDULER] {operation}: failed to load active tenants: {e}")
            capture_exception(e, extra={"operation": operation})
            return None

    async def _run_tick(self, operation: str, run: Callable) -> TickSummary:
        tenants = self._load_active_tenants(operation)
        if not tenants:
            if tenants is not None:
                logger.info(f"[SCHEDULER] {operation}: no active tenants")
            return TickSummary()

        logger.info(f"[SCHEDULER] {operation}: starting for {len(tenants)} tenant(s)")
        outcomes = await settle_all(run(tenant) for tenant in tenants)

        summary = TickSummary()
        for tenant, outcome in zip(tenants, outcomes):
            if outcome.ok:
                summary.successful += 1
                continue

            summary.failed += 1
            logger.error(f"[SCHEDULER] {operation} failed for tenant {tenant.id} ({tenant.name}): {outcome.error}")
            capture_exception(outcome.error, extra={"operation": operation, "tenant_id": str(tenant.id)})

        logger.info(
            f"[SCHEDULER] {operation} completed: {summary.successful} successful, {summary.failed} failed"
        )
        return summary

    async def sync_all_tenants(self) -> TickSummary:
        """Quick sync tick across all active tenants."""
        return await self._run_tick("quick_sync", self.orchestrator.quick_sync)

    async def full_sync_all_tenants(self) -> TickSummary:
        """Full sync tick across all active tenants."""
        return await self._run_tick("full_sync", self.orchestrator.full_sync)

    # =========================================================================
    # MANUAL TRIGGER & STATUS
    # =========================================================================

    async def sync_tenant_by_id(self, tenant_id) -> ManualSyncResult:
        """Quick sync one tenant on demand.

        Never raises: every outcome is reported as ManualSyncResult.
        """
        try:
            tenant_uuid = tenant_id if isinstance(tenant_id, UUID) else UUID(str(tenant_id))
        except ValueError:
            return ManualSyncResult(success=False, message="Tenant not found")

        try:
            with self.session_factory() as db:
                tenant = get_tenant(db, tenant_uuid)

            if tenant is None:
                return ManualSyncResult(success=False, message="Tenant not found")
            if not tenant.is_active:
                return ManualSyncResult(success=False, message="Tenant is not active")

            await self.orchestrator.quick_sync(tenant)
            return ManualSyncResult(success=True, message="Sync completed successfully")

        except Exception as e:
            logger.error(f"[SCHEDULER] Manual sync failed for tenant {tenant_uuid}: {e}")
            return ManualSyncResult(success=False, message=str(e))

    def get_sync_status(self) -> List[Dict[str, Any]]:
        """Latest SyncLog outcome for every active tenant."""
        db = self.session_factory()
        try:
            status = []
            for tenant in list_active_tenants(db):
                log = latest_sync_log(db, tenant.id)
                status.append({
                    "tenant_id": str(tenant.id),
                    "tenant_name": tenant.name,
                    "last_sync": log.completed_at.isoformat() if log else None,
                    "status": log.status.value if log else "never",
                })
            return status
        finally:
            db.close()
