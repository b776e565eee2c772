"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-09-01 00:00:00.000000

Creates the complete schema:
- plans / tenants: subscription catalogue and the multi-tenant root
- users / auth_sessions / security_events: identity and audit
- products / warehouses / warehouse_stocks / stock_movements: inventory
- customers / customer_transactions: customer ledger
- accounts / account_movements / account_transfers: cash and bank
- sales / sale_items / payments / returns / return_items / quotes / quote_items
- document_sequences: per tenant numbering
- e_documents / e_document_logs: e-document state machine

tenant_id is created nullable on business tables; 0002 backfills and
enforces NOT NULL.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _tenant_id():
    return sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True)


def _user_ref(name='created_by_user_id'):
    return sa.Column(name, sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)


def _now():
    return sa.text('(CURRENT_TIMESTAMP)')


def _index_tenant(table):
    op.create_index(op.f(f'ix_{table}_tenant_id'), table, ['tenant_id'], unique=False)


def upgrade():
    # ============================================================================
    # Tenancy
    # ============================================================================
    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('limits', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_plans_code'), 'plans', ['code'], unique=True)

    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=True, unique=True),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('billing_email', sa.String(length=255), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_tenants_slug'), 'tenants', ['slug'], unique=True)
    op.create_index(op.f('ix_tenants_plan_id'), 'tenants', ['plan_id'], unique=False)
    op.create_index(op.f('ix_tenants_status'), 'tenants', ['status'], unique=False)

    # ============================================================================
    # Identity and audit
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_users_tenant_email'),
        sqlite_autoincrement=True,
    )
    _index_tenant('users')
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=False)

    op.create_table(
        'auth_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _tenant_id(),
        sa.Column('access_token_hash', sa.String(length=64), nullable=False),
        sa.Column('refresh_token_hash', sa.String(length=64), nullable=False),
        sa.Column('access_expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('refresh_expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refreshed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sqlite_autoincrement=True,
    )
    _index_tenant('auth_sessions')
    op.create_index(op.f('ix_auth_sessions_user_id'), 'auth_sessions', ['user_id'], unique=False)
    op.create_index(op.f('ix_auth_sessions_access_token_hash'), 'auth_sessions', ['access_token_hash'], unique=True)
    op.create_index(op.f('ix_auth_sessions_refresh_token_hash'), 'auth_sessions', ['refresh_token_hash'], unique=True)
    op.create_index(op.f('ix_auth_sessions_refresh_expires_at'), 'auth_sessions', ['refresh_expires_at'], unique=False)
    op.create_index('ix_auth_sessions_user_revoked', 'auth_sessions', ['user_id', 'revoked_at'], unique=False)

    op.create_table(
        'security_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        _user_ref('user_id'),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sqlite_autoincrement=True,
    )
    _index_tenant('security_events')
    op.create_index(op.f('ix_security_events_user_id'), 'security_events', ['user_id'], unique=False)
    op.create_index(op.f('ix_security_events_event_type'), 'security_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_security_events_occurred_at'), 'security_events', ['occurred_at'], unique=False)
    op.create_index('ix_security_events_tenant_occurred', 'security_events', ['tenant_id', 'occurred_at'], unique=False)

    # ============================================================================
    # Inventory
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False),
        sa.Column('wholesale_price_cents', sa.Integer(), nullable=True),
        sa.Column('vat_rate_bps', sa.Integer(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('min_stock_level', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint('tenant_id', 'barcode', name='uq_products_tenant_barcode'),
        sqlite_autoincrement=True,
    )
    _index_tenant('products')
    op.create_index(op.f('ix_products_category'), 'products', ['category'], unique=False)
    op.create_index(op.f('ix_products_is_active'), 'products', ['is_active'], unique=False)
    op.create_index('ix_products_tenant_name', 'products', ['tenant_id', 'name'], unique=False)

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_warehouses_tenant_code'),
        sqlite_autoincrement=True,
    )
    _index_tenant('warehouses')

    op.create_table(
        'warehouse_stocks',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint('warehouse_id', 'product_id', name='uq_warehouse_stocks_warehouse_product'),
        sqlite_autoincrement=True,
    )
    _index_tenant('warehouse_stocks')
    op.create_index(op.f('ix_warehouse_stocks_warehouse_id'), 'warehouse_stocks', ['warehouse_id'], unique=False)
    op.create_index(op.f('ix_warehouse_stocks_product_id'), 'warehouse_stocks', ['product_id'], unique=False)

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('movement_type', sa.String(length=20), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('stock_after', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('movement_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sqlite_autoincrement=True,
    )
    _index_tenant('stock_movements')
    op.create_index(op.f('ix_stock_movements_warehouse_id'), 'stock_movements', ['warehouse_id'], unique=False)
    op.create_index(op.f('ix_stock_movements_movement_type'), 'stock_movements', ['movement_type'], unique=False)
    op.create_index('ix_stock_movements_tenant_product', 'stock_movements', ['tenant_id', 'product_id'], unique=False)
    op.create_index('ix_stock_movements_reference', 'stock_movements', ['reference_type', 'reference_id'], unique=False)

    # ============================================================================
    # Customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('tax_number', sa.String(length=20), nullable=True),
        sa.Column('tax_office', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('balance_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sqlite_autoincrement=True,
    )
    _index_tenant('customers')
    op.create_index(op.f('ix_customers_is_active'), 'customers', ['is_active'], unique=False)
    op.create_index('ix_customers_tenant_name', 'customers', ['tenant_id', 'name'], unique=False)

    op.create_table(
        'customer_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('transaction_type', sa.String(length=10), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('balance_after_cents', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sqlite_autoincrement=True,
    )
    _index_tenant('customer_transactions')
    op.create_index('ix_customer_transactions_customer', 'customer_transactions', ['customer_id', 'id'], unique=False)

    # ============================================================================
    # Cash and bank accounts
    # ============================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('account_type', sa.String(length=10), nullable=False),
        sa.Column('bank_name', sa.String(length=100), nullable=True),
        sa.Column('iban', sa.String(length=34), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('opening_balance_cents', sa.Integer(), nullable=False),
        sa.Column('current_balance_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_accounts_tenant_name'),
        sqlite_autoincrement=True,
    )
    _index_tenant('accounts')

    op.create_table(
        'account_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('movement_type', sa.String(length=20), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('balance_after_cents', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('movement_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sqlite_autoincrement=True,
    )
    _index_tenant('account_movements')
    op.create_index('ix_account_movements_account', 'account_movements', ['account_id', 'id'], unique=False)

    op.create_table(
        'account_transfers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('from_account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('transfer_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sqlite_autoincrement=True,
    )
    _index_tenant('account_transfers')

    # ============================================================================
    # Sales, payments, returns, quotes
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quote_id', sa.Integer(), nullable=True),
        sa.Column('sale_type', sa.String(length=20), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('include_vat', sa.Boolean(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_rate_bps', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('vat_total_cents', sa.Integer(), nullable=False),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        _user_ref('cancelled_by_user_id'),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'invoice_number', name='uq_sales_tenant_invoice_number'),
        sqlite_autoincrement=True,
    )
    _index_tenant('sales')
    op.create_index(op.f('ix_sales_customer_id'), 'sales', ['customer_id'], unique=False)
    op.create_index(op.f('ix_sales_quote_id'), 'sales', ['quote_id'], unique=False)
    op.create_index(op.f('ix_sales_status'), 'sales', ['status'], unique=False)
    op.create_index('ix_sales_tenant_date', 'sales', ['tenant_id', 'sale_date'], unique=False)

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_rate_bps', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('net_cents', sa.Integer(), nullable=False),
        sa.Column('vat_rate_bps', sa.Integer(), nullable=False),
        sa.Column('vat_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_sale_items_sale_id'), 'sale_items', ['sale_id'], unique=False)
    op.create_index(op.f('ix_sale_items_product_id'), 'sale_items', ['product_id'], unique=False)

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    _index_tenant('payments')
    op.create_index(op.f('ix_payments_sale_id'), 'payments', ['sale_id'], unique=False)
    op.create_index(op.f('ix_payments_customer_id'), 'payments', ['customer_id'], unique=False)
    op.create_index(op.f('ix_payments_account_id'), 'payments', ['account_id'], unique=False)
    op.create_index('ix_payments_tenant_date', 'payments', ['tenant_id', 'payment_date'], unique=False)

    op.create_table(
        'returns',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('return_number', sa.String(length=32), nullable=False),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('vat_total_cents', sa.Integer(), nullable=False),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        _user_ref(),
        sa.UniqueConstraint('tenant_id', 'return_number', name='uq_returns_tenant_return_number'),
        sqlite_autoincrement=True,
    )
    _index_tenant('returns')
    op.create_index(op.f('ix_returns_sale_id'), 'returns', ['sale_id'], unique=False)
    op.create_index(op.f('ix_returns_customer_id'), 'returns', ['customer_id'], unique=False)

    op.create_table(
        'return_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('return_id', sa.Integer(), sa.ForeignKey('returns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sale_item_id', sa.Integer(), sa.ForeignKey('sale_items.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('vat_rate_bps', sa.Integer(), nullable=False),
        sa.Column('vat_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_return_items_return_id'), 'return_items', ['return_id'], unique=False)
    op.create_index(op.f('ix_return_items_sale_item_id'), 'return_items', ['sale_item_id'], unique=False)

    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('quote_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('valid_until', sa.Date(), nullable=True),
        sa.Column('include_vat', sa.Boolean(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_rate_bps', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('vat_total_cents', sa.Integer(), nullable=False),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('converted_sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='SET NULL'), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        _user_ref(),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'quote_number', name='uq_quotes_tenant_quote_number'),
        sqlite_autoincrement=True,
    )
    _index_tenant('quotes')
    op.create_index(op.f('ix_quotes_customer_id'), 'quotes', ['customer_id'], unique=False)
    op.create_index(op.f('ix_quotes_status'), 'quotes', ['status'], unique=False)

    op.create_table(
        'quote_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quote_id', sa.Integer(), sa.ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_rate_bps', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('net_cents', sa.Integer(), nullable=False),
        sa.Column('vat_rate_bps', sa.Integer(), nullable=False),
        sa.Column('vat_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_quote_items_quote_id'), 'quote_items', ['quote_id'], unique=False)

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period', sa.String(length=6), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint('tenant_id', 'document_type', 'period', name='uq_doc_sequences_tenant_type_period'),
        sqlite_autoincrement=True,
    )
    _index_tenant('document_sequences')

    # ============================================================================
    # E-documents
    # ============================================================================
    op.create_table(
        'e_documents',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('document_type', sa.String(length=20), nullable=False),
        sa.Column('document_number', sa.String(length=32), nullable=False),
        sa.Column('reference_type', sa.String(length=20), nullable=False),
        sa.Column('reference_id', sa.Integer(), nullable=False),
        sa.Column('receiver_name', sa.String(length=255), nullable=True),
        sa.Column('receiver_tax_number', sa.String(length=20), nullable=True),
        sa.Column('receiver_tax_office', sa.String(length=100), nullable=True),
        sa.Column('receiver_address', sa.Text(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('vat_total_cents', sa.Integer(), nullable=False),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('gib_uuid', sa.String(length=64), nullable=True),
        sa.Column('envelope_uuid', sa.String(length=64), nullable=True),
        sa.Column('response_code', sa.String(length=16), nullable=True),
        sa.Column('response_message', sa.Text(), nullable=True),
        sa.Column('xml_content', sa.Text(), nullable=True),
        sa.Column('issue_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        _user_ref(),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'document_number', name='uq_e_documents_tenant_document_number'),
        sqlite_autoincrement=True,
    )
    _index_tenant('e_documents')
    op.create_index(op.f('ix_e_documents_document_type'), 'e_documents', ['document_type'], unique=False)
    op.create_index(op.f('ix_e_documents_status'), 'e_documents', ['status'], unique=False)
    op.create_index('ix_e_documents_reference', 'e_documents', ['tenant_id', 'reference_type', 'reference_id'], unique=False)

    op.create_table(
        'e_document_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('e_document_id', sa.Integer(), sa.ForeignKey('e_documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('status_before', sa.String(length=20), nullable=True),
        sa.Column('status_after', sa.String(length=20), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        _user_ref('user_id'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sqlite_autoincrement=True,
    )
    _index_tenant('e_document_logs')
    op.create_index(op.f('ix_e_document_logs_e_document_id'), 'e_document_logs', ['e_document_id'], unique=False)


def downgrade():
    for table in (
        'e_document_logs', 'e_documents', 'document_sequences',
        'quote_items', 'quotes', 'return_items', 'returns', 'payments',
        'sale_items', 'sales', 'account_transfers', 'account_movements',
        'accounts', 'customer_transactions', 'customers', 'stock_movements',
        'warehouse_stocks', 'warehouses', 'products', 'security_events',
        'auth_sessions', 'users', 'tenants', 'plans',
    ):
        op.drop_table(table)
