"""Tests for scheduler ticks, the manual trigger and lifecycle."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from conftest import customer_payload
from storesync.models import Customer, SyncEntityEnum, SyncLog, SyncStatusEnum
from storesync.services.sync_scheduler import FULL_SYNC_JOB_ID, QUICK_SYNC_JOB_ID

ALPHA = "alpha.myshopify.com"
BETA = "beta.myshopify.com"


@pytest.mark.asyncio
async def test_tick_isolates_failing_tenant(test_tenant, test_tenant_b, fake_store, sync_scheduler, session_factory):
    fake_store.set_collection(ALPHA, "/customers.json", "customers", [customer_payload(1)])
    fake_store.set_collection(ALPHA, "/orders.json", "orders", [])
    fake_store.fail(BETA, "/customers.json", status_code=401, errors="Invalid API key or access token")
    fake_store.fail(BETA, "/orders.json", status_code=401, errors="Invalid API key or access token")

    summary = await sync_scheduler.sync_all_tenants()

    assert (summary.successful, summary.failed) == (1, 1)
    with session_factory() as db:
        assert db.query(Customer).filter(Customer.tenant_id == test_tenant.id).count() == 1
        assert db.query(Customer).filter(Customer.tenant_id == test_tenant_b.id).count() == 0
        beta_statuses = {log.status for log in db.query(SyncLog).filter(SyncLog.tenant_id == test_tenant_b.id)}
    assert beta_statuses == {SyncStatusEnum.error}


@pytest.mark.asyncio
async def test_tick_skips_inactive_tenants(test_tenant, make_tenant, fake_store, sync_scheduler):
    make_tenant("Dormant Store", "dormant.myshopify.com", is_active=False)
    sync_scheduler.orchestrator.full_sync = AsyncMock(return_value={})

    summary = await sync_scheduler.full_sync_all_tenants()

    assert (summary.successful, summary.failed) == (1, 0)
    called_with = [call.args[0].id for call in sync_scheduler.orchestrator.full_sync.await_args_list]
    assert called_with == [test_tenant.id]


@pytest.mark.asyncio
async def test_tick_with_no_tenants_is_empty(sync_scheduler):
    summary = await sync_scheduler.sync_all_tenants()
    assert summary.total == 0


@pytest.mark.asyncio
async def test_tick_survives_tenant_listing_failure(sync_scheduler, monkeypatch):
    def broken_factory():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(sync_scheduler, "session_factory", broken_factory)

    summary = await sync_scheduler.sync_all_tenants()

    assert summary.total == 0


@pytest.mark.asyncio
async def test_manual_sync_unknown_tenant(sync_scheduler):
    result = await sync_scheduler.sync_tenant_by_id(uuid4())
    assert (result.success, result.message) == (False, "Tenant not found")

    result = await sync_scheduler.sync_tenant_by_id("not-a-uuid")
    assert (result.success, result.message) == (False, "Tenant not found")


@pytest.mark.asyncio
async def test_manual_sync_inactive_tenant(make_tenant, sync_scheduler):
    tenant = make_tenant("Dormant Store", "dormant.myshopify.com", is_active=False)

    result = await sync_scheduler.sync_tenant_by_id(tenant.id)

    assert (result.success, result.message) == (False, "Tenant is not active")


@pytest.mark.asyncio
async def test_manual_sync_success_and_failure(test_tenant, fake_store, sync_scheduler):
    fake_store.set_collection(ALPHA, "/customers.json", "customers", [])
    fake_store.set_collection(ALPHA, "/orders.json", "orders", [])

    result = await sync_scheduler.sync_tenant_by_id(str(test_tenant.id))
    assert (result.success, result.message) == (True, "Sync completed successfully")

    fake_store.fail(ALPHA, "/orders.json", status_code=500, errors="Internal Server Error")
    result = await sync_scheduler.sync_tenant_by_id(test_tenant.id)
    assert result.success is False
    assert "/orders.json" in result.message


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(sync_scheduler):
    await sync_scheduler.start()
    await sync_scheduler.start()

    assert sync_scheduler.running
    assert sorted(job["id"] for job in sync_scheduler.get_jobs_info()) == [FULL_SYNC_JOB_ID, QUICK_SYNC_JOB_ID]

    await sync_scheduler.stop()
    await sync_scheduler.stop()

    assert not sync_scheduler.running
    assert sync_scheduler.get_jobs_info() == []


def test_sync_status_reports_latest_log(test_tenant, test_tenant_b, test_db_session, sync_scheduler):
    test_db_session.add(SyncLog(
        tenant_id=test_tenant.id,
        entity_type=SyncEntityEnum.customers,
        status=SyncStatusEnum.partial,
        records_processed=3,
        records_failed=1,
    ))
    test_db_session.commit()

    status = {entry["tenant_name"]: entry for entry in sync_scheduler.get_sync_status()}

    assert status["Alpha Store"]["status"] == "partial"
    assert status["Alpha Store"]["last_sync"] is not None
    assert status["Beta Store"]["status"] == "never"
