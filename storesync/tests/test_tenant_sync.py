"""Tests for quick/full sync orchestration."""

from decimal import Decimal

import pytest

from conftest import customer_payload, order_payload, product_payload
from storesync.models import Customer, Order, Product, SyncEntityEnum, SyncLog, SyncStatusEnum
from storesync.services.store_client import StoreAPIError

HOST = "alpha.myshopify.com"


@pytest.mark.asyncio
async def test_quick_sync_scenario(test_tenant, fake_store, orchestrator, session_factory):
    """One customer upstream, no orders: one customer row and a success log per entity."""
    fake_store.set_collection(HOST, "/customers.json", "customers", [
        customer_payload(1, first_name="Ada", last_name="Lovelace", email="ada@example.com",
                         total_spent="10.00", orders_count=0),
    ])
    fake_store.set_collection(HOST, "/orders.json", "orders", [])

    results = await orchestrator.quick_sync(test_tenant)

    assert set(results) == {SyncEntityEnum.customers, SyncEntityEnum.orders}
    with session_factory() as db:
        customer = db.query(Customer).filter(Customer.tenant_id == test_tenant.id).one()
        customer_logs = db.query(SyncLog).filter(SyncLog.entity_type == SyncEntityEnum.customers).all()

    assert customer.external_id == "1"
    assert customer.total_spent == Decimal("10.00")
    assert customer.orders_count == 0
    assert len(customer_logs) == 1
    assert customer_logs[0].status == SyncStatusEnum.success
    assert (customer_logs[0].records_processed, customer_logs[0].records_failed) == (1, 0)


@pytest.mark.asyncio
async def test_quick_sync_settles_both_before_raising(test_tenant, fake_store, orchestrator, session_factory):
    fake_store.set_collection(HOST, "/customers.json", "customers", [customer_payload(1)])
    fake_store.fail(HOST, "/orders.json", status_code=500)

    with pytest.raises(StoreAPIError):
        await orchestrator.quick_sync(test_tenant)

    with session_factory() as db:
        statuses = {log.entity_type: log.status for log in db.query(SyncLog)}
        assert db.query(Customer).count() == 1

    assert statuses == {
        SyncEntityEnum.customers: SyncStatusEnum.success,
        SyncEntityEnum.orders: SyncStatusEnum.error,
    }


@pytest.mark.asyncio
async def test_full_sync_runs_in_order_and_links_orders(test_tenant, fake_store, orchestrator, session_factory):
    fake_store.set_collection(HOST, "/customers.json", "customers", [customer_payload(1)])
    fake_store.set_collection(HOST, "/orders.json", "orders", [order_payload(100, customer_id=1)])
    fake_store.set_collection(HOST, "/products.json", "products", [product_payload(5)])

    results = await orchestrator.full_sync(test_tenant)

    assert list(results) == [SyncEntityEnum.customers, SyncEntityEnum.orders, SyncEntityEnum.products]
    paths = [r.url.path.rsplit("/", 1)[-1] for r in fake_store.requests]
    assert paths == ["customers.json", "orders.json", "products.json"]

    with session_factory() as db:
        order = db.query(Order).one()
        assert order.customer_id is not None
        assert db.query(Product).count() == 1


@pytest.mark.asyncio
async def test_full_sync_stops_after_failed_stage(test_tenant, fake_store, orchestrator, session_factory):
    fake_store.set_collection(HOST, "/customers.json", "customers", [customer_payload(1)])
    fake_store.fail(HOST, "/orders.json", status_code=503)
    fake_store.set_collection(HOST, "/products.json", "products", [product_payload(5)])

    with pytest.raises(StoreAPIError):
        await orchestrator.full_sync(test_tenant)

    assert fake_store.requests_for(HOST, "/products.json") == []
    with session_factory() as db:
        entity_types = sorted(log.entity_type.value for log in db.query(SyncLog))
        assert db.query(Product).count() == 0
    assert entity_types == ["customers", "orders"]


@pytest.mark.asyncio
async def test_sync_entity_runs_single_synchronizer(test_tenant, fake_store, orchestrator):
    fake_store.set_collection(HOST, "/products.json", "products", [product_payload(1), product_payload(2)])

    result = await orchestrator.sync_entity(test_tenant, SyncEntityEnum.products)

    assert result.entity_type == SyncEntityEnum.products
    assert result.records_processed == 2
    assert fake_store.requests_for(HOST, "/customers.json") == []
