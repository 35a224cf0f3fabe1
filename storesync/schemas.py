"""Pydantic schemas for request/response payloads."""

from datetime import datetime
from uuid import UUID
from typing import Optional, List, Literal, Dict

from pydantic import BaseModel, Field

from .models import SyncEntityEnum, SyncStatusEnum


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["ok"])


# Sync triggers -------------------------------------------------

class SyncRequest(BaseModel):
    """Request body for the on-demand sync endpoint.

    `quick` runs customers and orders concurrently; `all` runs the ordered
    full sync (customers -> orders -> products).
    """

    entity_type: Literal["customers", "orders", "products", "quick", "all"] = Field(
        default="all",
        description="Which entity type(s) to synchronize",
    )


class EntitySyncCounts(BaseModel):
    records_processed: int = Field(description="Attempted upserts")
    records_failed: int = Field(description="Upserts that failed")


class SyncRunResponse(BaseModel):
    """Result of an on-demand sync run."""

    success: bool
    tenant_id: UUID
    entity_type: str
    results: Dict[str, EntitySyncCounts] = Field(default_factory=dict)


class ManualSyncResponse(BaseModel):
    success: bool
    message: str


# Sync status ---------------------------------------------------

class SyncLogResponse(BaseModel):
    """One SyncLog ledger row."""

    id: UUID
    entity_type: SyncEntityEnum
    status: SyncStatusEnum
    records_processed: int
    records_failed: int
    fetch_failed: bool
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: datetime

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class SyncLogPage(BaseModel):
    logs: List[SyncLogResponse]
    pagination: Pagination


class SyncStatusResponse(BaseModel):
    """Stored record counts and recent sync history for one tenant."""

    tenant_id: UUID
    tenant_name: str
    counts: Dict[str, int] = Field(description="Stored rows per entity type")
    last_successful_sync: Dict[str, Optional[datetime]] = Field(
        description="completed_at of the latest successful run per entity type"
    )
    recent_logs: List[SyncLogResponse]


class TenantSyncState(BaseModel):
    tenant_id: str
    tenant_name: str
    last_sync: Optional[str] = None
    status: str


class ScheduledJob(BaseModel):
    id: str
    name: str
    next_run: Optional[str] = None


class SchedulerStatusResponse(BaseModel):
    running: bool
    jobs: List[ScheduledJob]
    tenants: List[TenantSyncState]


class ConnectionTestResponse(BaseModel):
    success: bool
    shop: dict
