"""Ingestion endpoints: on-demand syncs, sync status and history.

WHAT:
    Thin HTTP wrappers around the sync engine.

WHY:
    - Routers handle request parsing and tenant validation only
    - Sync logic is shared with the scheduler through TenantSyncOrchestrator

REFERENCES:
    - storesync/services/tenant_sync.py
    - storesync/services/sync_scheduler.py
    - storesync/services/sync_ledger.py
"""

from __future__ import annotations

import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from storesync import schemas
from storesync.database import get_db
from storesync.deps import get_orchestrator, get_scheduler
from storesync.models import Customer, Order, Product, SyncEntityEnum, Tenant
from storesync.services.store_client import StoreAPIError
from storesync.services.sync_ledger import last_successful_sync, list_sync_logs
from storesync.services.sync_scheduler import SyncScheduler
from storesync.services.tenant_directory import get_tenant
from storesync.services.tenant_sync import TenantSyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ingestion", tags=["Ingestion"])


def _get_tenant_or_404(db: Session, tenant_id: UUID, require_active: bool = False) -> Tenant:
    tenant = get_tenant(db, tenant_id)
    if tenant is None or (require_active and not tenant.is_active):
        raise HTTPException(status_code=404, detail="Tenant not found or inactive" if require_active else "Tenant not found")
    return tenant


def _counts(results) -> dict:
    return {
        entity_type.value: schemas.EntitySyncCounts(
            records_processed=result.records_processed,
            records_failed=result.records_failed,
        )
        for entity_type, result in results.items()
    }


# =============================================================================
# Sync triggers
# =============================================================================

@router.post("/sync/{tenant_id}", response_model=schemas.SyncRunResponse)
async def trigger_sync(
    tenant_id: UUID,
    payload: Optional[schemas.SyncRequest] = None,
    db: Session = Depends(get_db),
    orchestrator: TenantSyncOrchestrator = Depends(get_orchestrator),
) -> schemas.SyncRunResponse:
    """Run a sync for one tenant and wait for it to finish.

    entity_type:
    - customers / orders / products: that synchronizer only
    - quick: customers and orders concurrently
    - all (default): customers -> orders -> products
    """
    entity_type = payload.entity_type if payload else "all"
    tenant = _get_tenant_or_404(db, tenant_id, require_active=True)

    logger.info(f"[INGESTION] Manual {entity_type} sync requested for tenant {tenant.id}")

    try:
        if entity_type == "all":
            results = await orchestrator.full_sync(tenant)
        elif entity_type == "quick":
            results = await orchestrator.quick_sync(tenant)
        else:
            entity = SyncEntityEnum(entity_type)
            results = {entity: await orchestrator.sync_entity(tenant, entity)}
    except Exception as e:
        logger.error(f"[INGESTION] {entity_type} sync failed for tenant {tenant.id}: {e}")
        raise HTTPException(status_code=502, detail={"error": "Sync failed", "message": str(e)})

    return schemas.SyncRunResponse(
        success=True,
        tenant_id=tenant.id,
        entity_type=entity_type,
        results=_counts(results),
    )


@router.post("/sync/{tenant_id}/manual", response_model=schemas.ManualSyncResponse)
async def trigger_manual_sync(
    tenant_id: str,
    scheduler: SyncScheduler = Depends(get_scheduler),
) -> schemas.ManualSyncResponse:
    """Quick sync through the scheduler's manual path; always answers 200."""
    result = await scheduler.sync_tenant_by_id(tenant_id)
    return schemas.ManualSyncResponse(success=result.success, message=result.message)


# =============================================================================
# Status & history
# =============================================================================

@router.get("/status/{tenant_id}", response_model=schemas.SyncStatusResponse)
def get_ingestion_status(
    tenant_id: UUID,
    db: Session = Depends(get_db),
) -> schemas.SyncStatusResponse:
    """Stored counts, last successful sync per entity, and the 10 latest runs."""
    tenant = _get_tenant_or_404(db, tenant_id)

    counts = {
        SyncEntityEnum.customers.value: db.query(func.count(Customer.id)).filter(Customer.tenant_id == tenant.id).scalar(),
        SyncEntityEnum.orders.value: db.query(func.count(Order.id)).filter(Order.tenant_id == tenant.id).scalar(),
        SyncEntityEnum.products.value: db.query(func.count(Product.id)).filter(Product.tenant_id == tenant.id).scalar(),
    }

    last_success = {}
    for entity_type in SyncEntityEnum:
        log = last_successful_sync(db, tenant.id, entity_type)
        last_success[entity_type.value] = log.completed_at if log else None

    recent_logs, _ = list_sync_logs(db, tenant.id, page=1, limit=10)

    return schemas.SyncStatusResponse(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        counts=counts,
        last_successful_sync=last_success,
        recent_logs=[schemas.SyncLogResponse.model_validate(log) for log in recent_logs],
    )


@router.get("/logs/{tenant_id}", response_model=schemas.SyncLogPage)
def get_sync_logs(
    tenant_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    entity_type: Optional[SyncEntityEnum] = Query(default=None),
    db: Session = Depends(get_db),
) -> schemas.SyncLogPage:
    """Paginated sync history, newest first."""
    tenant = _get_tenant_or_404(db, tenant_id)
    logs, total = list_sync_logs(db, tenant.id, entity_type=entity_type, page=page, limit=limit)

    return schemas.SyncLogPage(
        logs=[schemas.SyncLogResponse.model_validate(log) for log in logs],
        pagination=schemas.Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/scheduler", response_model=schemas.SchedulerStatusResponse)
def get_scheduler_status(
    scheduler: SyncScheduler = Depends(get_scheduler),
) -> schemas.SchedulerStatusResponse:
    return schemas.SchedulerStatusResponse(
        running=scheduler.running,
        jobs=scheduler.get_jobs_info(),
        tenants=scheduler.get_sync_status(),
    )


# =============================================================================
# Connection test
# =============================================================================

@router.post("/test/{tenant_id}", response_model=schemas.ConnectionTestResponse)
async def test_store_connection(
    tenant_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: TenantSyncOrchestrator = Depends(get_orchestrator),
) -> schemas.ConnectionTestResponse:
    """Verify a tenant's store credentials by fetching shop metadata."""
    tenant = _get_tenant_or_404(db, tenant_id, require_active=True)
    client = orchestrator.client_factory(tenant)

    try:
        shop = await client.get_shop()
    except StoreAPIError as e:
        logger.warning(f"[INGESTION] Connection test failed for tenant {tenant.id}: {e}")
        raise HTTPException(status_code=400, detail={"error": "Connection test failed", "message": str(e)})

    return schemas.ConnectionTestResponse(success=True, shop=shop)
