"""Initial order, payment, promo, loyalty and accounting schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ### Customers ###
    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('loyalty_points >= 0', name='ck_customers_points_non_negative'),
    )

    op.create_table(
        'designs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'cart_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), index=True),
        sa.Column('product_id', sa.String(64), nullable=False),
        sa.Column('variant_id', sa.String(64)),
        sa.Column('quantity', sa.Integer(), server_default='1'),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Orders ###
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='RESTRICT'), index=True),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('promo_code', sa.String(64)),
        sa.Column('points_used', sa.Integer()),
        sa.Column('points_discount', sa.Numeric(precision=12, scale=2)),
        sa.Column('shipping_cost', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('tax_amount', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='GBP'),
        sa.Column('shipping_address', postgresql.JSONB()),
        sa.Column('status', sa.String(32), server_default='pending', index=True),
        sa.Column('cancellation_reason', sa.String(64)),
        sa.Column('cancellation_notes', sa.Text()),
        sa.Column('share_token', sa.String(32), unique=True, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('total_price >= 0', name='ck_orders_total_non_negative'),
    )

    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), index=True),
        sa.Column('position', sa.Integer(), server_default='0'),
        sa.Column('product_id', sa.String(64), nullable=False),
        sa.Column('variant_id', sa.String(64)),
        sa.Column('design_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('designs.id')),
        sa.Column('category_id', sa.String(64)),
        sa.Column('subcategory_id', sa.String(64)),
        sa.Column('description', sa.String(255)),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('customization', postgresql.JSONB()),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )

    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='RESTRICT'), unique=True, nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='GBP'),
        sa.Column('payment_method', sa.String(32), server_default='CARD'),
        sa.Column('status', sa.String(16), server_default='PENDING', index=True),
        sa.Column('gateway_payment_id', sa.String(255), index=True),
        sa.Column('gateway_response', postgresql.JSONB()),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('refunded_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    # ### Promos ###
    op.create_table(
        'promos',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('code', sa.String(64), unique=True, index=True, nullable=False),
        sa.Column('name', sa.String(255), server_default=''),
        sa.Column('description', sa.Text()),
        sa.Column('discount_type', sa.String(16), server_default='PERCENTAGE'),
        sa.Column('discount_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('scope', sa.String(32), server_default='ALL_PRODUCTS'),
        sa.Column('category_id', sa.String(64)),
        sa.Column('subcategory_id', sa.String(64)),
        sa.Column('product_ids', postgresql.JSONB()),
        sa.Column('starts_at', sa.DateTime(timezone=True)),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('max_uses', sa.Integer()),
        sa.Column('max_uses_per_user', sa.Integer(), server_default='1'),
        sa.Column('current_uses', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_order_amount', sa.Numeric(precision=12, scale=2)),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('max_uses IS NULL OR current_uses <= max_uses', name='ck_promos_uses_within_budget'),
    )

    op.create_table(
        'promo_usages',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('promo_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('promos.id', ondelete='RESTRICT'), index=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), index=True),
        sa.Column('email', sa.String(255), index=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='RESTRICT'), unique=True),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Loyalty ###
    op.create_table(
        'points_transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), index=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('reference_id', sa.String(64)),
        sa.Column('description', sa.String(255)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.UniqueConstraint('customer_id', 'type', 'reference_id', name='uq_points_customer_type_ref'),
    )

    # ### Accounting ###
    op.create_table(
        'incomes',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('income_number', sa.String(32), unique=True, nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), index=True),
        sa.Column('entry_type', sa.String(16), server_default='SALE'),
        sa.Column('category', sa.String(32), server_default='SALES'),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='GBP'),
        sa.Column('source', sa.String(64)),
        sa.Column('customer_name', sa.String(255)),
        sa.Column('income_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('tax_year', sa.String(9), nullable=False),
        sa.Column('vat_amount', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('vat_rate', sa.Numeric(precision=5, scale=2), server_default='20'),
        sa.Column('is_vat_included', sa.Boolean(), server_default=sa.true()),
        sa.Column('status', sa.String(16), server_default='PENDING'),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('order_id', 'entry_type', name='uq_incomes_order_entry_type'),
    )

    op.create_table(
        'invoices',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('invoice_number', sa.String(32), unique=True, nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), unique=True, nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('customer_name', sa.String(255)),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('vat_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('vat_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='GBP'),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), server_default='DRAFT'),
        sa.Column('sent_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Webhooks, resolutions, recovery, audit ###
    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(64), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'issue_resolutions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), index=True),
        sa.Column('type', sa.String(16), server_default='REFUND'),
        sa.Column('status', sa.String(32), server_default='PENDING', index=True),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'cancellation_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('reason', sa.String(64), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.String(16), server_default='PENDING', index=True),
        sa.Column('previous_status', sa.String(32), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(timezone=True)),
        sa.Column('reviewed_by', postgresql.UUID(as_uuid=True)),
        sa.Column('review_notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'recovery_campaigns',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), index=True),
        sa.Column('promo_code', sa.String(64), index=True),
        sa.Column('status', sa.String(16), server_default='PENDING', index=True),
        sa.Column('converted_order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id')),
        sa.Column('converted_at', sa.DateTime(timezone=True)),
        sa.Column('order_value', sa.Numeric(precision=12, scale=2)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('action', sa.String(64), nullable=False, index=True),
        sa.Column('entity_type', sa.String(32), nullable=False),
        sa.Column('entity_id', sa.String(64), index=True),
        sa.Column('actor_type', sa.String(16), server_default='SYSTEM'),
        sa.Column('actor_id', sa.String(64)),
        sa.Column('previous_state', postgresql.JSONB()),
        sa.Column('new_state', postgresql.JSONB()),
        sa.Column('metadata', postgresql.JSONB()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('recovery_campaigns')
    op.drop_table('cancellation_requests')
    op.drop_table('issue_resolutions')
    op.drop_table('processed_webhook_events')
    op.drop_table('invoices')
    op.drop_table('incomes')
    op.drop_table('points_transactions')
    op.drop_table('promo_usages')
    op.drop_table('promos')
    op.drop_table('payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('designs')
    op.drop_table('customers')
