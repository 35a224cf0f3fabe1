"""SQLAlchemy ORM models and enums.

This module defines the synchronized commerce schema using UUID primary keys
and explicit relationships. Every synchronized row is scoped by `tenant_id`
and keyed on the identifier issued by the upstream store API
(`external_id`), which is what makes re-running a sync an idempotent upsert.
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Enum, Integer, ForeignKey, Numeric, Text, Boolean, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class SyncEntityEnum(str, enum.Enum):
    customers = "customers"
    orders = "orders"
    products = "products"


class SyncStatusEnum(str, enum.Enum):
    success = "success"
    partial = "partial"
    error = "error"


# Tenants -------------------------------------------------------

class Tenant(Base):
    """One onboarded store account, the unit of data isolation.

    WHAT: Holds the store domain and access token used to reach the store API
    WHY: The sync engine only reads tenants; onboarding and credential storage
         are owned elsewhere
    """
    __tablename__ = "tenants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    store_domain = Column(String, nullable=False)  # e.g. "mystore.myshopify.com"
    access_token = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customers = relationship("Customer", back_populates="tenant", passive_deletes=True)
    orders = relationship("Order", back_populates="tenant", passive_deletes=True)
    products = relationship("Product", back_populates="tenant", passive_deletes=True)
    sync_logs = relationship("SyncLog", back_populates="tenant", passive_deletes=True)

    def __str__(self):
        return f"{self.name} ({self.store_domain})"


# Synchronized entities -----------------------------------------

class Customer(Base):
    """Customer master mirrored from the store.

    WHAT: Stores customer contact data and lifetime totals reported upstream
    WHY: Orders link to customers through (tenant_id, external_id)
    """
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_customer_tenant_external"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String, nullable=False)

    # Customer info (PII - handle with care)
    email = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    # Lifetime stats as reported by the store
    total_spent = Column(Numeric(18, 4), nullable=False, default=0)
    orders_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="customers")
    orders = relationship("Order", back_populates="customer")

    def __str__(self):
        name = f"{self.first_name or ''} {self.last_name or ''}".strip() or "Guest"
        return f"{name} ({self.email or 'No email'}) - ${self.total_spent}"


class Order(Base):
    """Order header mirrored from the store.

    WHAT: Stores order totals and status; line items live in OrderLineItem
    WHY: customer_id is resolved at sync time and may legitimately be empty
         (guest checkout, or the customer has not been synced yet)
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_order_tenant_external"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    external_id = Column(String, nullable=False)

    order_number = Column(String, nullable=True)  # e.g. "#1001"
    total_price = Column(Numeric(18, 4), nullable=False, default=0)
    subtotal_price = Column(Numeric(18, 4), nullable=False, default=0)
    total_tax = Column(Numeric(18, 4), nullable=False, default=0)
    currency = Column(String, nullable=False, default="USD")
    financial_status = Column(String, nullable=True)  # paid, pending, refunded, ...
    fulfillment_status = Column(String, nullable=True)  # fulfilled, partial, None
    processed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="orders")
    customer = relationship("Customer", back_populates="orders")
    line_items = relationship(
        "OrderLineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __str__(self):
        return f"Order {self.order_number or self.external_id} - ${self.total_price}"


class OrderLineItem(Base):
    """Line item belonging to exactly one order.

    Rows are replaced wholesale on every re-sync of the parent order.
    """
    __tablename__ = "order_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String, nullable=True)

    title = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(18, 4), nullable=False, default=0)
    variant_id = Column(String, nullable=True)
    sku = Column(String, nullable=True)
    product_external_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="line_items")

    def __str__(self):
        return f"{self.title} x{self.quantity}"


class Product(Base):
    """Product catalog entry mirrored from the store."""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_product_tenant_external"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String, nullable=False)

    title = Column(String, nullable=False, default="")
    handle = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)  # body_html upstream
    vendor = Column(String, nullable=True)
    product_type = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")  # active, archived, draft

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="products")

    def __str__(self):
        return f"{self.title} ({self.handle})"


# Ledger --------------------------------------------------------

class SyncLog(Base):
    """Append-only record of one synchronization attempt.

    WHAT: One row per (tenant, entity type) run, written once and never updated
    WHY: Drives status reporting and auditing of sync health

    `fetch_failed` marks runs where the upstream fetch itself failed; such
    rows always carry status=error and records_failed=0.
    """
    __tablename__ = "sync_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(
        Enum(SyncEntityEnum, name="sync_entity_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    status = Column(
        Enum(SyncStatusEnum, name="sync_status_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    records_processed = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    fetch_failed = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    tenant = relationship("Tenant", back_populates="sync_logs")

    def __str__(self):
        return f"{self.entity_type.value} {self.status.value} ({self.records_processed}/{self.records_failed})"
