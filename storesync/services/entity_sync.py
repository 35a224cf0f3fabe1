"""Per-entity synchronizers: fetch from the store, upsert per record, log the run.

WHAT:
    - EntitySynchronizer: shared fetch / upsert loop / SyncLog bookkeeping
    - CustomerSynchronizer, OrderSynchronizer, ProductSynchronizer: field
      mapping and upsert for each entity type

WHY:
    - One failing record must not abort the run: each record is committed on
      its own, and failures are rolled back, counted and logged
    - A failing fetch must never be mistaken for an empty store: it is written
      to the ledger as `error` and re-raised to the orchestrator
    - Upserts are keyed on (tenant_id, external_id), so re-running a sync
      against unchanged upstream data changes nothing

REFERENCES:
    - storesync/services/store_client.py (fetch layer)
    - storesync/services/sync_ledger.py (SyncLog writes)
    - storesync/services/tenant_sync.py (callers)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from storesync.database import SessionLocal
from storesync.models import Customer, Order, OrderLineItem, Product, SyncEntityEnum, SyncStatusEnum
from storesync.services.store_client import StoreClient
from storesync.services.sync_ledger import determine_status, record_sync_attempt

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one synchronizer run.

    records_processed counts attempted upserts, successes and failures alike.
    """
    entity_type: SyncEntityEnum
    records_processed: int = 0
    records_failed: int = 0

    @property
    def records_synced(self) -> int:
        return self.records_processed - self.records_failed


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _parse_decimal(value: Any) -> Decimal:
    """Parse a money amount, falling back to 0 when absent or non-numeric."""
    if value is None or value == "":
        return Decimal("0")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    return parsed if parsed.is_finite() else Decimal("0")


def _parse_int(value: Any) -> int:
    """Parse a count, falling back to 0 when absent or non-numeric."""
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (ValueError, TypeError, OverflowError):
        return 0


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into a naive UTC datetime."""
    if not dt_str:
        return None
    try:
        parsed = datetime.fromisoformat(str(dt_str).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _external_id(record: Dict[str, Any]) -> str:
    """Return the upstream id of a record as a string.

    Raises:
        ValueError: If the record has no id (malformed record)
    """
    if not isinstance(record, dict):
        raise ValueError(f"Malformed record: expected an object, got {type(record).__name__}")
    value = record.get("id")
    if value is None or value == "":
        raise ValueError("Malformed record: missing id")
    return str(value)


def _record_label(record: Any) -> str:
    if isinstance(record, dict):
        return str(record.get("id", "<no id>"))
    return "<malformed>"


# =============================================================================
# BASE SYNCHRONIZER
# =============================================================================

class EntitySynchronizer:
    """Fetch one entity type for one tenant and upsert it record by record.

    Subclasses set `entity_type` and implement `fetch()` and `upsert()`.
    Each `sync()` call opens its own session from `session_factory` and
    appends exactly one SyncLog row.
    """

    entity_type: SyncEntityEnum

    def __init__(
        self,
        tenant,
        client: StoreClient,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.tenant_id = tenant.id
        self.client = client
        self.session_factory = session_factory

    @property
    def label(self) -> str:
        return self.entity_type.value

    async def fetch(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def upsert(self, db: Session, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def sync(self) -> SyncResult:
        """Run one synchronization pass.

        Only the fetch runs on the event loop. The upsert loop and the SyncLog
        writes use a blocking Session, so they run in a worker thread with a
        session of their own.

        Returns:
            SyncResult with processed/failed counts

        Raises:
            Exception: Whatever the fetch raised, after an `error` SyncLog
                row has been written
        """
        started_at = datetime.utcnow()
        try:
            records = await self.fetch()
        except Exception as e:
            logger.error(f"[ENTITY_SYNC] Failed to fetch {self.label} for tenant {self.tenant_id}: {e}")
            await asyncio.to_thread(self.record_fetch_failure, str(e), started_at)
            raise

        result = await asyncio.to_thread(self.store_records, records, started_at)

        logger.info(
            f"[ENTITY_SYNC] Synced {result.records_synced}/{result.records_processed} "
            f"{self.label} for tenant {self.tenant_id}"
        )
        return result

    def record_fetch_failure(self, error_message: str, started_at: datetime) -> None:
        db = self.session_factory()
        try:
            record_sync_attempt(
                db,
                tenant_id=self.tenant_id,
                entity_type=self.entity_type,
                status=SyncStatusEnum.error,
                error_message=error_message,
                fetch_failed=True,
                started_at=started_at,
            )
        finally:
            db.close()

    def store_records(self, records: List[Dict[str, Any]], started_at: datetime) -> SyncResult:
        """Upsert fetched records one by one and append the run's SyncLog row.

        Blocking; called from a worker thread by sync().
        """
        db = self.session_factory()
        try:
            result = SyncResult(entity_type=self.entity_type)
            for record in records:
                result.records_processed += 1
                try:
                    self.upsert(db, record)
                    db.commit()
                except Exception as e:
                    db.rollback()
                    result.records_failed += 1
                    logger.error(
                        f"[ENTITY_SYNC] Error syncing {self.label} record {_record_label(record)} "
                        f"for tenant {self.tenant_id}: {e}"
                    )

            record_sync_attempt(
                db,
                tenant_id=self.tenant_id,
                entity_type=self.entity_type,
                status=determine_status(result.records_failed),
                records_processed=result.records_processed,
                records_failed=result.records_failed,
                error_message=f"Some {self.label} failed to sync" if result.records_failed else None,
                started_at=started_at,
            )
            return result
        finally:
            db.close()


# =============================================================================
# CUSTOMERS
# =============================================================================

class CustomerSynchronizer(EntitySynchronizer):
    entity_type = SyncEntityEnum.customers

    async def fetch(self) -> List[Dict[str, Any]]:
        return await self.client.get_customers()

    def upsert(self, db: Session, record: Dict[str, Any]) -> None:
        external_id = _external_id(record)

        customer = db.query(Customer).filter(
            Customer.tenant_id == self.tenant_id,
            Customer.external_id == external_id,
        ).first()
        if customer is None:
            customer = Customer(tenant_id=self.tenant_id, external_id=external_id)
            db.add(customer)

        customer.email = record.get("email")
        customer.first_name = record.get("first_name")
        customer.last_name = record.get("last_name")
        customer.phone = record.get("phone")
        customer.total_spent = _parse_decimal(record.get("total_spent"))
        customer.orders_count = _parse_int(record.get("orders_count"))


# =============================================================================
# ORDERS
# =============================================================================

class OrderSynchronizer(EntitySynchronizer):
    """Orders plus their line items.

    The customer link is resolved through the customer's (tenant_id,
    external_id) key; when the customer has not been synced yet the order is
    stored without one and linked on a later run. Line items are always fully
    replaced by the current upstream set.
    """

    entity_type = SyncEntityEnum.orders

    async def fetch(self) -> List[Dict[str, Any]]:
        return await self.client.get_orders()

    def _resolve_customer_id(self, db: Session, record: Dict[str, Any]):
        customer_data = record.get("customer")
        if not isinstance(customer_data, dict) or customer_data.get("id") is None:
            return None

        customer = db.query(Customer.id).filter(
            Customer.tenant_id == self.tenant_id,
            Customer.external_id == str(customer_data["id"]),
        ).first()
        return customer.id if customer else None

    def upsert(self, db: Session, record: Dict[str, Any]) -> None:
        external_id = _external_id(record)
        customer_id = self._resolve_customer_id(db, record)

        order = db.query(Order).filter(
            Order.tenant_id == self.tenant_id,
            Order.external_id == external_id,
        ).first()
        if order is None:
            order = Order(tenant_id=self.tenant_id, external_id=external_id)
            db.add(order)

        order.customer_id = customer_id
        order.order_number = _optional_str(record.get("name"))
        order.total_price = _parse_decimal(record.get("total_price"))
        order.subtotal_price = _parse_decimal(record.get("subtotal_price"))
        order.total_tax = _parse_decimal(record.get("total_tax"))
        order.currency = record.get("currency") or "USD"
        order.financial_status = record.get("financial_status")
        order.fulfillment_status = record.get("fulfillment_status")
        order.processed_at = _parse_datetime(record.get("processed_at"))

        # Order id is needed for the line item FK
        db.flush()

        db.query(OrderLineItem).filter(OrderLineItem.order_id == order.id).delete(synchronize_session=False)

        for item in record.get("line_items") or []:
            db.add(
                OrderLineItem(
                    order_id=order.id,
                    external_id=_optional_str(item.get("id")),
                    title=item.get("title"),
                    quantity=_parse_int(item.get("quantity")),
                    price=_parse_decimal(item.get("price")),
                    variant_id=_optional_str(item.get("variant_id")),
                    sku=item.get("sku"),
                    product_external_id=_optional_str(item.get("product_id")),
                )
            )


# =============================================================================
# PRODUCTS
# =============================================================================

class ProductSynchronizer(EntitySynchronizer):
    entity_type = SyncEntityEnum.products

    async def fetch(self) -> List[Dict[str, Any]]:
        return await self.client.get_products()

    def upsert(self, db: Session, record: Dict[str, Any]) -> None:
        external_id = _external_id(record)

        product = db.query(Product).filter(
            Product.tenant_id == self.tenant_id,
            Product.external_id == external_id,
        ).first()
        if product is None:
            product = Product(tenant_id=self.tenant_id, external_id=external_id)
            db.add(product)

        product.title = record.get("title") or ""
        product.handle = record.get("handle") or ""
        product.description = record.get("body_html")
        product.vendor = record.get("vendor")
        product.product_type = record.get("product_type")
        product.status = record.get("status") or "active"


SYNCHRONIZERS = {
    SyncEntityEnum.customers: CustomerSynchronizer,
    SyncEntityEnum.orders: OrderSynchronizer,
    SyncEntityEnum.products: ProductSynchronizer,
}
