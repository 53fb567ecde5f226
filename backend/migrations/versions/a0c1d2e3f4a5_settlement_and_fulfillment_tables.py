"""settlement and fulfillment tables

Revision ID: a0c1d2e3f4a5
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = 'a0c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = inspect(bind)

    def _table_exists(name: str) -> bool:
        try:
            return name in insp.get_table_names()
        except Exception:
            return False

    if not _table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('phone', sa.String(length=32), nullable=True),
            sa.Column('password_hash', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('role', sa.String(length=32), nullable=False, server_default='customer'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_phone', 'users', ['phone'], unique=True)

    if not _table_exists('wallets'):
        op.create_table(
            'wallets',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('balance', sa.Float(), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(length=8), nullable=False, server_default='GHS'),
            sa.Column('last_reconciled_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_wallets_user_id', 'wallets', ['user_id'], unique=True)

    if not _table_exists('wallet_transactions'):
        op.create_table(
            'wallet_transactions',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('type', sa.String(length=8), nullable=False),
            sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
            sa.Column('reference', sa.String(length=128), nullable=False),
            sa.Column('balance_before', sa.Float(), nullable=False, server_default='0'),
            sa.Column('balance_after', sa.Float(), nullable=False, server_default='0'),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
            sa.Column('description', sa.String(length=240), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('reference', 'user_id', 'type', name='uq_wallet_txn_ref_user_type'),
        )
        op.create_index('ix_wallet_transactions_user_id', 'wallet_transactions', ['user_id'])
        op.create_index('ix_wallet_transactions_reference', 'wallet_transactions', ['reference'])

    if not _table_exists('shops'):
        op.create_table(
            'shops',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('slug', sa.String(length=120), nullable=True, unique=True),
            sa.Column('parent_shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_shops_user_id', 'shops', ['user_id'])
        op.create_index('ix_shops_parent_shop_id', 'shops', ['parent_shop_id'])

    if not _table_exists('orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('order_type', sa.String(length=16), nullable=False, server_default='shop'),
            sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('customer_phone', sa.String(length=32), nullable=True),
            sa.Column('customer_email', sa.String(length=255), nullable=True),
            sa.Column('customer_name', sa.String(length=120), nullable=True),
            sa.Column('network', sa.String(length=32), nullable=True),
            sa.Column('volume_gb', sa.Float(), nullable=False, server_default='0'),
            sa.Column('price', sa.Float(), nullable=False, server_default='0'),
            sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('order_status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('profit_amount', sa.Float(), nullable=False, server_default='0'),
            sa.Column('parent_shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=True),
            sa.Column('parent_profit_amount', sa.Float(), nullable=False, server_default='0'),
            sa.Column('queue', sa.String(length=24), nullable=True),
            sa.Column('fulfillment_method', sa.String(length=24), nullable=True),
            sa.Column('external_order_id', sa.String(length=64), nullable=True),
            sa.Column('payment_reference', sa.String(length=128), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_orders_order_type', 'orders', ['order_type'])
        op.create_index('ix_orders_shop_id', 'orders', ['shop_id'])
        op.create_index('ix_orders_user_id', 'orders', ['user_id'])
        op.create_index('ix_orders_customer_phone', 'orders', ['customer_phone'])
        op.create_index('ix_orders_order_status', 'orders', ['order_status'])
        op.create_index('ix_orders_payment_reference', 'orders', ['payment_reference'])

    if not _table_exists('wallet_payments'):
        op.create_table(
            'wallet_payments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('reference', sa.String(length=128), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True),
            sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
            sa.Column('fee', sa.Float(), nullable=False, server_default='0'),
            sa.Column('amount_received', sa.Float(), nullable=True),
            sa.Column('gateway_transaction_id', sa.String(length=64), nullable=True),
            sa.Column('gateway_response', sa.String(length=240), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_wallet_payments_reference', 'wallet_payments', ['reference'], unique=True)
        op.create_index('ix_wallet_payments_user_id', 'wallet_payments', ['user_id'])
        op.create_index('ix_wallet_payments_order_id', 'wallet_payments', ['order_id'])
        op.create_index('ix_wallet_payments_shop_id', 'wallet_payments', ['shop_id'])

    if not _table_exists('shop_profits'):
        op.create_table(
            'shop_profits',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=False),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
            sa.Column('seq', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('profit_amount', sa.Float(), nullable=False, server_default='0'),
            sa.Column('balance_before', sa.Float(), nullable=False, server_default='0'),
            sa.Column('balance_after', sa.Float(), nullable=False, server_default='0'),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='credited'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('shop_id', 'order_id', name='uq_shop_profits_shop_order'),
            sa.UniqueConstraint('shop_id', 'seq', name='uq_shop_profits_shop_seq'),
        )
        op.create_index('ix_shop_profits_shop_id', 'shop_profits', ['shop_id'])
        op.create_index('ix_shop_profits_order_id', 'shop_profits', ['order_id'])
        op.create_index('ix_shop_profits_status', 'shop_profits', ['status'])

    if not _table_exists('shop_available_balance'):
        op.create_table(
            'shop_available_balance',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=False),
            sa.Column('available_balance', sa.Float(), nullable=False, server_default='0'),
            sa.Column('total_profit', sa.Float(), nullable=False, server_default='0'),
            sa.Column('pending_profit', sa.Float(), nullable=False, server_default='0'),
            sa.Column('credited_profit', sa.Float(), nullable=False, server_default='0'),
            sa.Column('withdrawn_profit', sa.Float(), nullable=False, server_default='0'),
            sa.Column('approved_withdrawals', sa.Float(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_shop_available_balance_shop_id', 'shop_available_balance', ['shop_id'], unique=True)

    if not _table_exists('withdrawal_requests'):
        op.create_table(
            'withdrawal_requests',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('amount', sa.Float(), nullable=False),
            sa.Column('destination', sa.String(length=120), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('reference', sa.String(length=64), nullable=True, unique=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('approved_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_withdrawal_requests_shop_id', 'withdrawal_requests', ['shop_id'])
        op.create_index('ix_withdrawal_requests_user_id', 'withdrawal_requests', ['user_id'])

    if not _table_exists('shop_customers'):
        op.create_table(
            'shop_customers',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=False),
            sa.Column('phone_number', sa.String(length=32), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('name', sa.String(length=120), nullable=True),
            sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_spent', sa.Float(), nullable=False, server_default='0'),
            sa.Column('first_order_at', sa.DateTime(), nullable=True),
            sa.Column('last_order_at', sa.DateTime(), nullable=True),
            sa.UniqueConstraint('shop_id', 'phone_number', name='uq_shop_customers_shop_phone'),
        )
        op.create_index('ix_shop_customers_shop_id', 'shop_customers', ['shop_id'])

    if not _table_exists('fulfillment_logs'):
        op.create_table(
            'fulfillment_logs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
            sa.Column('order_type', sa.String(length=16), nullable=False, server_default='shop'),
            sa.Column('phone_number', sa.String(length=32), nullable=True),
            sa.Column('network', sa.String(length=32), nullable=True),
            sa.Column('provider', sa.String(length=32), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('attempt_number', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
            sa.Column('api_response', sa.Text(), nullable=True),
            sa.Column('error_message', sa.String(length=400), nullable=True),
            sa.Column('retry_after', sa.DateTime(), nullable=True),
            sa.Column('fulfilled_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_fulfillment_logs_order_id', 'fulfillment_logs', ['order_id'], unique=True)
        op.create_index('ix_fulfillment_logs_status', 'fulfillment_logs', ['status'])

    if not _table_exists('blacklisted_phone_numbers'):
        op.create_table(
            'blacklisted_phone_numbers',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('phone_number', sa.String(length=32), nullable=False),
            sa.Column('reason', sa.String(length=240), nullable=True),
            sa.Column('added_by', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_blacklisted_phone_numbers_phone_number', 'blacklisted_phone_numbers', ['phone_number'], unique=True)

    if not _table_exists('app_settings'):
        op.create_table(
            'app_settings',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('key', sa.String(length=80), nullable=False),
            sa.Column('value', sa.String(length=240), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_app_settings_key', 'app_settings', ['key'], unique=True)

    if not _table_exists('notifications'):
        op.create_table(
            'notifications',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('channel', sa.String(length=32), nullable=False, server_default='in_app'),
            sa.Column('template', sa.String(length=64), nullable=False, server_default='generic'),
            sa.Column('recipient', sa.String(length=255), nullable=True),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('status', sa.String(length=24), nullable=False, server_default='queued'),
            sa.Column('provider', sa.String(length=64), nullable=True),
            sa.Column('provider_ref', sa.String(length=120), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('sent_at', sa.DateTime(), nullable=True),
            sa.Column('meta', sa.Text(), nullable=True),
        )
        op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    if not _table_exists('audit_logs'):
        op.create_table(
            'audit_logs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('actor_user_id', sa.Integer(), nullable=True),
            sa.Column('action', sa.String(length=64), nullable=False),
            sa.Column('target_type', sa.String(length=64), nullable=True),
            sa.Column('target_id', sa.String(length=128), nullable=True),
            sa.Column('meta', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_audit_logs_action_created', 'audit_logs', ['action', 'created_at'])


def downgrade():
    for table in (
        'audit_logs',
        'notifications',
        'app_settings',
        'blacklisted_phone_numbers',
        'fulfillment_logs',
        'shop_customers',
        'withdrawal_requests',
        'shop_available_balance',
        'shop_profits',
        'wallet_payments',
        'orders',
        'shops',
        'wallet_transactions',
        'wallets',
        'users',
    ):
        op.drop_table(table)
