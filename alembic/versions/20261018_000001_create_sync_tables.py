"""create_sync_tables

WHAT:
    Creates the tenant, synchronized entity and sync ledger tables:
    tenants, customers, orders, order_line_items, products, sync_logs.

WHY:
    - Unique (tenant_id, external_id) constraints are the upsert keys that make
      re-running a sync idempotent
    - ON DELETE CASCADE from tenants removes a tenant's synchronized data
    - sync_logs is append-only; indexed for "latest run" lookups

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_000001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('store_domain', sa.String(), nullable=False),
        sa.Column('access_token', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('total_spent', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('orders_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'external_id', name='uq_customer_tenant_external'),
    )
    op.create_index('ix_customers_tenant_id', 'customers', ['tenant_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('order_number', sa.String(), nullable=True),
        sa.Column('total_price', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('subtotal_price', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('total_tax', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(), nullable=False, server_default='USD'),
        sa.Column('financial_status', sa.String(), nullable=True),
        sa.Column('fulfillment_status', sa.String(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'external_id', name='uq_order_tenant_external'),
    )
    op.create_index('ix_orders_tenant_id', 'orders', ['tenant_id'])

    op.create_table(
        'order_line_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('variant_id', sa.String(), nullable=True),
        sa.Column('sku', sa.String(), nullable=True),
        sa.Column('product_external_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_line_items_order_id', 'order_line_items', ['order_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False, server_default=''),
        sa.Column('handle', sa.String(), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('vendor', sa.String(), nullable=True),
        sa.Column('product_type', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'external_id', name='uq_product_tenant_external'),
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])

    sync_entity_enum = sa.Enum('customers', 'orders', 'products', name='sync_entity_enum')
    sync_status_enum = sa.Enum('success', 'partial', 'error', name='sync_status_enum')

    op.create_table(
        'sync_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('entity_type', sync_entity_enum, nullable=False),
        sa.Column('status', sync_status_enum, nullable=False),
        sa.Column('records_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fetch_failed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_logs_tenant_id', 'sync_logs', ['tenant_id'])
    op.create_index('ix_sync_logs_completed_at', 'sync_logs', ['completed_at'])


def downgrade() -> None:
    op.drop_index('ix_sync_logs_completed_at', table_name='sync_logs')
    op.drop_index('ix_sync_logs_tenant_id', table_name='sync_logs')
    op.drop_table('sync_logs')
    op.drop_index('ix_products_tenant_id', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_order_line_items_order_id', table_name='order_line_items')
    op.drop_table('order_line_items')
    op.drop_index('ix_orders_tenant_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_customers_tenant_id', table_name='customers')
    op.drop_table('customers')
    op.drop_table('tenants')

    sa.Enum(name='sync_status_enum').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='sync_entity_enum').drop(op.get_bind(), checkfirst=True)
