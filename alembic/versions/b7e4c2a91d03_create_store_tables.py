"""create_store_tables

Revision ID: b7e4c2a91d03
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = 'b7e4c2a91d03'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'store_supplier_type_enum': ('aliexpress', 'custom'),
    'store_stock_status_enum': ('in_stock', 'out_of_stock'),
    'store_sync_status_enum': ('pending', 'syncing', 'synced', 'failed'),
    'store_order_status_enum': (
        'pending', 'payment_confirmed', 'processing', 'shipped', 'delivered',
        'cancelled', 'refunded', 'payment_failed',
    ),
    'store_payment_status_enum': ('pending', 'paid', 'failed', 'expired', 'refunded'),
    'store_fulfillment_status_enum': (
        'pending', 'processing', 'shipped', 'delivered', 'cancelled',
    ),
    'store_payment_method_enum': ('paystack', 'crypto'),
    'store_payment_provider_enum': ('paystack', 'nowpayments'),
    'store_automation_type_enum': (
        'inventory_sync', 'price_update', 'order_fulfillment', 'tracking_sync',
        'product_import',
    ),
    'store_automation_status_enum': ('running', 'completed', 'failed'),
    'store_outbox_event_type_enum': ('order.paid',),
    'store_outbox_status_enum': ('pending', 'processed', 'failed'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    """Upgrade schema - Create store tables."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # Catalog
    op.create_table(
        'store_products',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('supplier', _enum('store_supplier_type_enum'), nullable=False),
        sa.Column('supplier_product_id', sa.String(length=128), nullable=False),
        sa.Column('supplier_sku', sa.String(length=128), nullable=True),
        sa.Column('title', sa.String(length=512), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('images', JSONB(), nullable=False),
        sa.Column('variants', JSONB(), nullable=False),
        sa.Column('supplier_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('markup_multiplier', sa.Numeric(6, 2), nullable=False),
        sa.Column('final_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('stock_status', _enum('store_stock_status_enum'), nullable=False),
        sa.Column('trending_score', sa.Float(), nullable=True),
        sa.Column('sales_velocity', sa.Float(), nullable=True),
        sa.Column('sync_status', _enum('store_sync_status_enum'), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('supplier', 'supplier_product_id', name='unique_supplier_product'),
    )

    op.create_table(
        'store_supplier_credentials',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_type', _enum('store_supplier_type_enum'), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('supplier_type'),
    )

    # Carts
    op.create_table(
        'store_carts',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('session_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'user_id IS NOT NULL OR session_id IS NOT NULL', name='cart_one_owner'
        ),
    )
    op.create_index('ix_store_carts_user_id', 'store_carts', ['user_id'])
    op.create_index('ix_store_carts_session_id', 'store_carts', ['session_id'])

    op.create_table(
        'store_cart_items',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('cart_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('variant_id', sa.String(length=128), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['cart_id'], ['store_carts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'cart_id', 'product_id', 'variant_id', name='unique_cart_product_variant'
        ),
        sa.CheckConstraint('quantity > 0', name='positive_quantity'),
    )

    # Orders and payments
    op.create_table(
        'store_orders',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(length=40), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('items', JSONB(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('shipping_address', JSONB(), nullable=False),
        sa.Column('status', _enum('store_order_status_enum'), nullable=False),
        sa.Column('status_note', sa.String(length=255), nullable=True),
        sa.Column('payment_status', _enum('store_payment_status_enum'), nullable=False),
        sa.Column('fulfillment_status', _enum('store_fulfillment_status_enum'), nullable=False),
        sa.Column('payment_method', _enum('store_payment_method_enum'), nullable=False),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('supplier_order_ids', JSONB(), nullable=False),
        sa.Column('tracking_number', sa.String(length=128), nullable=True),
        sa.Column('tracking_url', sa.String(length=512), nullable=True),
        sa.Column('carrier', sa.String(length=128), nullable=True),
        sa.Column('tracking_status', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_orders_order_number', 'store_orders', ['order_number'], unique=True)
    op.create_index('ix_store_orders_user_id', 'store_orders', ['user_id'])
    op.create_index('ix_store_orders_payment_reference', 'store_orders', ['payment_reference'])
    op.create_index(
        'ix_store_orders_status_created', 'store_orders', ['payment_status', 'created_at']
    )

    op.create_table(
        'store_payment_sessions',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('provider', _enum('store_payment_provider_enum'), nullable=False),
        sa.Column('provider_payment_id', sa.String(length=128), nullable=False),
        sa.Column('provider_status', sa.String(length=64), nullable=False),
        sa.Column('price_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('price_currency', sa.String(length=10), nullable=False),
        sa.Column('pay_amount', sa.Numeric(24, 8), nullable=True),
        sa.Column('pay_currency', sa.String(length=20), nullable=True),
        sa.Column('pay_address', sa.String(length=255), nullable=True),
        sa.Column('payin_extra_id', sa.String(length=128), nullable=True),
        sa.Column('authorization_url', sa.Text(), nullable=True),
        sa.Column('raw_metadata', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider', 'provider_payment_id', name='unique_provider_payment'),
    )
    op.create_index('ix_store_payment_sessions_order_id', 'store_payment_sessions', ['order_id'])

    # Automation
    op.create_table(
        'store_automation_logs',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('automation_type', _enum('store_automation_type_enum'), nullable=False),
        sa.Column('status', _enum('store_automation_status_enum'), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=True),
        sa.Column('details', JSONB(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'automation_type', name='unique_order_automation'),
    )
    op.create_index(
        'ix_store_automation_logs_type_started',
        'store_automation_logs',
        ['automation_type', 'started_at'],
    )

    op.create_table(
        'store_outbox_events',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('event_type', _enum('store_outbox_event_type_enum'), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('status', _enum('store_outbox_status_enum'), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_type', 'order_id', name='unique_outbox_event_order'),
    )
    op.create_index('ix_store_outbox_events_status', 'store_outbox_events', ['status'])


def downgrade() -> None:
    """Downgrade schema - Drop store tables."""
    op.drop_table('store_outbox_events')
    op.drop_table('store_automation_logs')
    op.drop_table('store_payment_sessions')
    op.drop_table('store_orders')
    op.drop_table('store_cart_items')
    op.drop_table('store_carts')
    op.drop_table('store_supplier_credentials')
    op.drop_table('store_products')

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
