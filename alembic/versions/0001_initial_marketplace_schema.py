"""initial_marketplace_schema

Revision ID: 0001a7c3e5b2
Revises:
Create Date: 2026-02-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001a7c3e5b2'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS = sa.Enum(
    'pending', 'processing', 'ready_for_pickup', 'picked_up', 'shipped',
    'delivered', 'cancelled',
    name='store_order_status_enum',
)
DISCOUNT_TYPE = sa.Enum('percentage', 'fixed', name='rewards_discount_type_enum')
POINTS_TRANSACTION_TYPE = sa.Enum(
    'earned', 'redeemed', name='rewards_points_transaction_type_enum'
)
PAYOUT_METHOD = sa.Enum('bank', 'paypal', 'stripe', name='payments_payout_method_enum')
PAYOUT_STATUS = sa.Enum(
    'pending', 'processing', 'completed', 'failed', name='payments_payout_status_enum'
)


def _timestamps(updated=True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    """Upgrade schema - Create store, rewards and payments tables."""

    # Store: catalog and inventory
    op.create_table(
        'store_retailers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_auth_id', sa.String(length=255), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=False),
        sa.Column('business_address', sa.String(length=500), nullable=True),
        sa.Column('postcode', sa.String(length=20), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_store_retailers_user_auth_id', 'store_retailers', ['user_auth_id'], unique=True
    )

    op.create_table(
        'store_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('retailer_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='non_negative_price'),
        sa.ForeignKeyConstraint(['retailer_id'], ['store_retailers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_products_retailer_id', 'store_products', ['retailer_id'])

    op.create_table(
        'store_stock_units',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity >= 0', name='non_negative_stock'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id'),
    )

    # Store: cart and orders
    op.create_table(
        'store_cart_lines',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_auth_id', sa.String(length=255), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity > 0', name='positive_cart_quantity'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_auth_id', 'product_id', name='unique_cart_product'),
    )
    op.create_index('ix_store_cart_lines_user_auth_id', 'store_cart_lines', ['user_auth_id'])

    op.create_table(
        'store_order_groups',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=20), nullable=False),
        sa.Column('checkout_id', sa.Uuid(), nullable=False),
        sa.Column('user_auth_id', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('retailer_id', sa.Uuid(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('points_used', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('points_earned', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('discount_code', sa.String(length=50), nullable=True),
        sa.Column('status', ORDER_STATUS, server_default='pending', nullable=True),
        sa.Column('commission', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_rate', sa.Numeric(6, 4), nullable=True),
        sa.Column('commission_rate_version', sa.Integer(), nullable=True),
        sa.Column('retailer_net', sa.Numeric(12, 2), nullable=True),
        sa.Column('external_session_ref', sa.String(length=255), nullable=True),
        sa.Column('checkout_url', sa.Text(), nullable=True),
        sa.Column('external_payment_ref', sa.String(length=255), nullable=True),
        sa.Column('settled_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pickup_location', sa.String(length=500), nullable=True),
        sa.Column('pickup_instructions', sa.Text(), nullable=True),
        sa.Column('ready_for_pickup_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('picked_up_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('total >= 0', name='non_negative_total'),
        sa.CheckConstraint('discount_amount >= 0', name='non_negative_discount'),
        sa.CheckConstraint('points_used >= 0', name='non_negative_points_used'),
        sa.ForeignKeyConstraint(['retailer_id'], ['store_retailers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_session_ref'),
    )
    op.create_index(
        'ix_store_order_groups_order_number', 'store_order_groups', ['order_number'], unique=True
    )
    op.create_index('ix_store_order_groups_checkout_id', 'store_order_groups', ['checkout_id'])
    op.create_index('ix_store_order_groups_user_auth_id', 'store_order_groups', ['user_auth_id'])
    op.create_index('ix_store_order_groups_retailer_id', 'store_order_groups', ['retailer_id'])
    op.create_index(
        'ix_store_order_groups_external_payment_ref', 'store_order_groups', ['external_payment_ref']
    )

    op.create_table(
        'store_order_lines',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_group_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint('quantity > 0', name='positive_line_quantity'),
        sa.ForeignKeyConstraint(
            ['order_group_id'], ['store_order_groups.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_store_order_lines_order_group_id', 'store_order_lines', ['order_group_id']
    )

    # Rewards
    op.create_table(
        'rewards_discount_codes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('discount_type', DISCOUNT_TYPE, nullable=False),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('min_purchase_amount', sa.Numeric(12, 2), server_default='0', nullable=True),
        sa.Column('max_discount_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('discount_value > 0', name='positive_discount_value'),
        sa.CheckConstraint(
            'usage_limit IS NULL OR used_count <= usage_limit', name='used_within_limit'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_rewards_discount_codes_code', 'rewards_discount_codes', ['code'], unique=True
    )

    op.create_table(
        'rewards_order_discount_codes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_group_id', sa.Uuid(), nullable=False),
        sa.Column('discount_code_id', sa.Uuid(), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ['order_group_id'], ['store_order_groups.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(['discount_code_id'], ['rewards_discount_codes.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'order_group_id', 'discount_code_id', name='unique_order_discount_code'
        ),
    )

    op.create_table(
        'rewards_points_balances',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_auth_id', sa.String(length=255), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_earned', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_redeemed', sa.Numeric(12, 2), server_default='0', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('balance >= 0', name='non_negative_points'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_rewards_points_balances_user_auth_id',
        'rewards_points_balances',
        ['user_auth_id'],
        unique=True,
    )

    op.create_table(
        'rewards_points_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('user_auth_id', sa.String(length=255), nullable=False),
        sa.Column('order_group_id', sa.Uuid(), nullable=True),
        sa.Column('transaction_type', POINTS_TRANSACTION_TYPE, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('amount > 0', name='positive_points_amount'),
        sa.ForeignKeyConstraint(
            ['order_group_id'], ['store_order_groups.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_rewards_points_transactions_idempotency_key',
        'rewards_points_transactions',
        ['idempotency_key'],
        unique=True,
    )
    op.create_index(
        'ix_rewards_points_transactions_user_auth_id',
        'rewards_points_transactions',
        ['user_auth_id'],
    )

    # Payments
    op.create_table(
        'payments_destination_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('retailer_id', sa.Uuid(), nullable=False),
        sa.Column('external_account_id', sa.String(length=255), nullable=False),
        sa.Column('charges_enabled', sa.Boolean(), nullable=True),
        sa.Column('payouts_enabled', sa.Boolean(), nullable=True),
        sa.Column('details_submitted', sa.Boolean(), nullable=True),
        sa.Column('onboarding_completed', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_payments_destination_accounts_retailer_id',
        'payments_destination_accounts',
        ['retailer_id'],
        unique=True,
    )
    op.create_index(
        'ix_payments_destination_accounts_external_account_id',
        'payments_destination_accounts',
        ['external_account_id'],
        unique=True,
    )

    op.create_table(
        'payments_commission_rates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('rate', sa.Numeric(6, 4), nullable=False),
        sa.Column('effective_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('rate >= 0 AND rate <= 1', name='rate_in_unit_interval'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('version'),
    )
    op.create_index(
        'ix_payments_commission_rates_effective_from',
        'payments_commission_rates',
        ['effective_from'],
    )

    op.create_table(
        'payments_payout_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('retailer_id', sa.Uuid(), nullable=False),
        sa.Column('payout_method', PAYOUT_METHOD, nullable=False),
        sa.Column('account_details', sa.JSON(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_payments_payout_accounts_retailer_id',
        'payments_payout_accounts',
        ['retailer_id'],
        unique=True,
    )

    op.create_table(
        'payments_payouts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('retailer_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('amount_base', sa.Numeric(12, 2), nullable=False),
        sa.Column('base_currency', sa.String(length=3), nullable=False),
        sa.Column('status', PAYOUT_STATUS, nullable=True),
        sa.Column('payout_method', PAYOUT_METHOD, nullable=False),
        sa.Column('transfer_ref', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='positive_payout_amount'),
        sa.CheckConstraint('amount_base > 0', name='positive_payout_amount_base'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_payouts_retailer_id', 'payments_payouts', ['retailer_id'])
    op.create_index('ix_payments_payouts_status', 'payments_payouts', ['status'])

    op.create_table(
        'payments_webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_payments_webhook_events_event_id',
        'payments_webhook_events',
        ['event_id'],
        unique=True,
    )


def downgrade() -> None:
    """Downgrade schema - Drop marketplace tables."""
    for table in (
        'payments_webhook_events',
        'payments_payouts',
        'payments_payout_accounts',
        'payments_commission_rates',
        'payments_destination_accounts',
        'rewards_points_transactions',
        'rewards_points_balances',
        'rewards_order_discount_codes',
        'rewards_discount_codes',
        'store_order_lines',
        'store_order_groups',
        'store_cart_lines',
        'store_stock_units',
        'store_products',
        'store_retailers',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        PAYOUT_STATUS,
        PAYOUT_METHOD,
        POINTS_TRANSACTION_TYPE,
        DISCOUNT_TYPE,
        ORDER_STATUS,
    ):
        enum.drop(bind, checkfirst=True)
