"""Unit tests for the sync ledger and the settle_all combinator."""

import asyncio
from datetime import datetime, timedelta

import pytest

from storesync.models import SyncEntityEnum, SyncLog, SyncStatusEnum
from storesync.services.sync_ledger import (
    determine_status,
    last_successful_sync,
    latest_sync_log,
    list_sync_logs,
    record_sync_attempt,
)
from storesync.utils.concurrency import settle_all


def test_determine_status():
    assert determine_status(0) == SyncStatusEnum.success
    assert determine_status(1) == SyncStatusEnum.partial


def test_record_sync_attempt_appends_rows(test_db_session, test_tenant):
    started = datetime.utcnow() - timedelta(seconds=5)

    first = record_sync_attempt(test_db_session, test_tenant.id, SyncEntityEnum.customers,
                                SyncStatusEnum.success, records_processed=4, started_at=started)
    second = record_sync_attempt(test_db_session, test_tenant.id, SyncEntityEnum.customers,
                                 SyncStatusEnum.error, error_message="boom", fetch_failed=True)

    assert first.id != second.id
    assert first.started_at == started
    assert first.completed_at >= started
    assert test_db_session.query(SyncLog).count() == 2


def test_ledger_reads_are_tenant_scoped(test_db_session, test_tenant, test_tenant_b):
    record_sync_attempt(test_db_session, test_tenant.id, SyncEntityEnum.orders, SyncStatusEnum.success)
    record_sync_attempt(test_db_session, test_tenant.id, SyncEntityEnum.orders, SyncStatusEnum.partial,
                        records_processed=2, records_failed=1)
    record_sync_attempt(test_db_session, test_tenant_b.id, SyncEntityEnum.orders, SyncStatusEnum.success)

    logs, total = list_sync_logs(test_db_session, test_tenant.id)
    assert total == 2
    assert all(log.tenant_id == test_tenant.id for log in logs)

    assert last_successful_sync(test_db_session, test_tenant.id, SyncEntityEnum.orders).status == SyncStatusEnum.success
    assert last_successful_sync(test_db_session, test_tenant.id, SyncEntityEnum.products) is None
    assert latest_sync_log(test_db_session, test_tenant_b.id).tenant_id == test_tenant_b.id


@pytest.mark.asyncio
async def test_settle_all_reports_each_outcome_in_order():
    async def ok(value):
        await asyncio.sleep(0)
        return value

    async def boom():
        raise ValueError("tenant failed")

    outcomes = await settle_all([ok(1), boom(), ok(3)])

    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[0].value == 1
    assert outcomes[2].value == 3
    assert isinstance(outcomes[1].error, ValueError)
