"""Initial schema: stores, users, day operations, money movements, pricing

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
1. Stores, users and session tokens
2. Sales, credit transactions and supplier payments (read by reconciliation)
3. Day operations with the one-open-day-per-store constraint, their events
   and cash movements
4. VAT configurations and promotions
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. STORES / USERS / SESSIONS
    # ==========================================================================
    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('default_vat_rate_bps', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stores_code', 'stores', ['code'], unique=True)

    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='cashier'),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ==========================================================================
    # 2. SALES / CREDIT / SUPPLIER PAYMENTS
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_number', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('cashier_id', sa.Integer(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('vat_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['cashier_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_transactions_store_created', 'transactions', ['store_id', 'created_at'])

    op.create_table('credit_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_ref', sa.String(length=64), nullable=True),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_credit_transactions_store_created', 'credit_transactions', ['store_id', 'created_at'])

    op.create_table('supplier_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('invoice_ref', sa.String(length=64), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_supplier_payments_store_date', 'supplier_payments', ['store_id', 'payment_date'])

    # ==========================================================================
    # 3. DAY OPERATIONS
    # ==========================================================================
    op.create_table('day_operations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        sa.Column('open_slot', sa.Integer(), nullable=True),
        sa.Column('opening_cash_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opening_bank_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sales_cents', sa.Integer(), nullable=True),
        sa.Column('cash_sales_cents', sa.Integer(), nullable=True),
        sa.Column('card_sales_cents', sa.Integer(), nullable=True),
        sa.Column('credit_sales_cents', sa.Integer(), nullable=True),
        sa.Column('split_sales_cents', sa.Integer(), nullable=True),
        sa.Column('total_transactions', sa.Integer(), nullable=True),
        sa.Column('cash_transaction_count', sa.Integer(), nullable=True),
        sa.Column('card_transaction_count', sa.Integer(), nullable=True),
        sa.Column('credit_transaction_count', sa.Integer(), nullable=True),
        sa.Column('split_transaction_count', sa.Integer(), nullable=True),
        sa.Column('credit_payments_cash_cents', sa.Integer(), nullable=True),
        sa.Column('credit_payments_card_cents', sa.Integer(), nullable=True),
        sa.Column('credit_refunds_cash_cents', sa.Integer(), nullable=True),
        sa.Column('supplier_payments_cents', sa.Integer(), nullable=True),
        sa.Column('owner_deposits_cents', sa.Integer(), nullable=True),
        sa.Column('owner_withdrawals_cents', sa.Integer(), nullable=True),
        sa.Column('owner_bank_deposits_cents', sa.Integer(), nullable=True),
        sa.Column('owner_bank_withdrawals_cents', sa.Integer(), nullable=True),
        sa.Column('expense_payments_cents', sa.Integer(), nullable=True),
        sa.Column('bank_transfers_cents', sa.Integer(), nullable=True),
        sa.Column('bank_withdrawals_cents', sa.Integer(), nullable=True),
        sa.Column('expected_cash_cents', sa.Integer(), nullable=True),
        sa.Column('actual_cash_count_cents', sa.Integer(), nullable=True),
        sa.Column('closing_cash_cents', sa.Integer(), nullable=True),
        sa.Column('cash_difference_cents', sa.Integer(), nullable=True),
        sa.Column('cash_denominations', sa.JSON(), nullable=True),
        sa.Column('expected_bank_cents', sa.Integer(), nullable=True),
        sa.Column('actual_bank_cents', sa.Integer(), nullable=True),
        sa.Column('bank_difference_cents', sa.Integer(), nullable=True),
        sa.Column('pos_card_swipe_cents', sa.Integer(), nullable=True),
        sa.Column('card_swipe_variance_cents', sa.Integer(), nullable=True),
        sa.Column('cash_misc_cents', sa.Integer(), nullable=True),
        sa.Column('misc_notes', sa.Text(), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('opened_by_user_id', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reopened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reopened_by_user_id', sa.Integer(), nullable=True),
        sa.Column('reopen_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('closing_notes', sa.Text(), nullable=True),
        sa.Column('reopening_notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['opened_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['reopened_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'business_date', name='uq_day_operations_store_date'),
        sa.UniqueConstraint('store_id', 'open_slot', name='uq_day_operations_store_open_slot'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_day_operations_store_id', 'day_operations', ['store_id'])
    op.create_index('ix_day_operations_business_date', 'day_operations', ['business_date'])
    op.create_index('ix_day_operations_store_status', 'day_operations', ['store_id', 'status'])

    op.create_table('day_operation_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('day_operation_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['day_operation_id'], ['day_operations.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_day_operation_events_day_operation_id', 'day_operation_events', ['day_operation_id'])
    op.create_index('ix_day_operation_events_event_type', 'day_operation_events', ['event_type'])
    op.create_index('ix_day_events_store_occurred', 'day_operation_events', ['store_id', 'occurred_at'])

    op.create_table('cash_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('day_operation_id', sa.Integer(), nullable=True),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('movement_type', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('recorded_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['day_operation_id'], ['day_operations.id']),
        sa.ForeignKeyConstraint(['recorded_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_cash_movements_day_operation_id', 'cash_movements', ['day_operation_id'])
    op.create_index('ix_cash_movements_store_date', 'cash_movements', ['store_id', 'business_date'])

    # ==========================================================================
    # 4. PRICING
    # ==========================================================================
    op.create_table('vat_configurations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('rate_bps', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_vat_configurations_store_active', 'vat_configurations', ['store_id', 'is_active'])

    op.create_table('promotions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('promo_type', sa.String(length=32), nullable=False),
        sa.Column('discount_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('buy_quantity', sa.Integer(), nullable=True),
        sa.Column('get_quantity', sa.Integer(), nullable=True),
        sa.Column('applies_to', sa.String(length=32), nullable=False, server_default='ALL_PRODUCTS'),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('product_ids', sa.JSON(), nullable=True),
        sa.Column('min_amount_cents', sa.Integer(), nullable=True),
        sa.Column('max_discount_cents', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_promotions_store_id', 'promotions', ['store_id'])
    op.create_index('ix_promotions_is_active', 'promotions', ['is_active'])


def downgrade():
    op.drop_table('promotions')
    op.drop_table('vat_configurations')
    op.drop_table('cash_movements')
    op.drop_table('day_operation_events')
    op.drop_table('day_operations')
    op.drop_table('supplier_payments')
    op.drop_table('credit_transactions')
    op.drop_table('transactions')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('stores')
