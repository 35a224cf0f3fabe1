"""Sync ledger: append-only SyncLog writes and reads.

WHAT:
    - record_sync_attempt(): append exactly one SyncLog row per sync run
    - determine_status(): success / partial from per-record failure counts
    - list_sync_logs(), latest_sync_log(), last_successful_sync(): read side
      used by the status endpoints and the scheduler

WHY:
    SyncLog rows are immutable. Keeping every write in one function makes it
    easy to see that nothing in the codebase updates or deletes them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session

from storesync.models import SyncEntityEnum, SyncLog, SyncStatusEnum

logger = logging.getLogger(__name__)


def determine_status(records_failed: int) -> SyncStatusEnum:
    """Status of a run whose fetch succeeded.

    A run where every record failed is still `partial`; `error` is reserved
    for runs whose fetch failed.
    """
    return SyncStatusEnum.success if records_failed == 0 else SyncStatusEnum.partial


def record_sync_attempt(
    db: Session,
    tenant_id: UUID,
    entity_type: SyncEntityEnum,
    status: SyncStatusEnum,
    records_processed: int = 0,
    records_failed: int = 0,
    error_message: Optional[str] = None,
    fetch_failed: bool = False,
    started_at: Optional[datetime] = None,
) -> SyncLog:
    """Append one SyncLog row and commit it.

    Args:
        db: Session owned by the calling synchronizer run
        tenant_id: Tenant the run belongs to
        entity_type: customers / orders / products
        status: Outcome of the run
        records_processed: Attempted upserts (successes + failures)
        records_failed: Upserts that raised
        error_message: Fetch error text, or a partial-failure summary
        fetch_failed: True only when the upstream fetch itself failed
        started_at: When the run began (defaults to now)
    """
    now = datetime.utcnow()
    log = SyncLog(
        tenant_id=tenant_id,
        entity_type=entity_type,
        status=status,
        records_processed=records_processed,
        records_failed=records_failed,
        fetch_failed=fetch_failed,
        error_message=error_message,
        started_at=started_at or now,
        completed_at=now,
    )
    db.add(log)
    db.commit()

    logger.info(
        f"[SYNC_LEDGER] {entity_type.value} for tenant {tenant_id}: {status.value} "
        f"(processed={records_processed}, failed={records_failed})"
    )
    return log


def list_sync_logs(
    db: Session,
    tenant_id: UUID,
    entity_type: Optional[SyncEntityEnum] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[SyncLog], int]:
    """Return one page of a tenant's sync history, newest first, and the total count."""
    query = db.query(SyncLog).filter(SyncLog.tenant_id == tenant_id)
    if entity_type is not None:
        query = query.filter(SyncLog.entity_type == entity_type)

    total = query.count()
    logs = (
        query.order_by(desc(SyncLog.completed_at))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return logs, total


def latest_sync_log(db: Session, tenant_id: UUID) -> Optional[SyncLog]:
    return (
        db.query(SyncLog)
        .filter(SyncLog.tenant_id == tenant_id)
        .order_by(desc(SyncLog.completed_at))
        .first()
    )


def last_successful_sync(db: Session, tenant_id: UUID, entity_type: SyncEntityEnum) -> Optional[SyncLog]:
    return (
        db.query(SyncLog)
        .filter(
            SyncLog.tenant_id == tenant_id,
            SyncLog.entity_type == entity_type,
            SyncLog.status == SyncStatusEnum.success,
        )
        .order_by(desc(SyncLog.completed_at))
        .first()
    )
