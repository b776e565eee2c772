"""stock transfers between warehouses and expenses

Revision ID: 0003_stock_transfers_and_expenses
Revises: 0002_enforce_tenant_ids
Create Date: 2026-10-19 00:00:00.000000

- stock_transfers / stock_transfer_items: warehouse to warehouse moves
- expenses: categorised outgoings, optionally paid from an account
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0003_stock_transfers_and_expenses'
down_revision = '0002_enforce_tenant_ids'
branch_labels = None
depends_on = None


def _tenant_id():
    return sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)


def _now():
    return sa.text('(CURRENT_TIMESTAMP)')


def upgrade():
    op.create_table(
        'stock_transfers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('transfer_number', sa.String(length=32), nullable=False),
        sa.Column('from_warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_warehouse_id', sa.Integer(), sa.ForeignKey('warehouses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('transfer_date', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('tenant_id', 'transfer_number', name='uq_stock_transfers_tenant_number'),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_stock_transfers_tenant_id'), 'stock_transfers', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_stock_transfers_status'), 'stock_transfers', ['status'], unique=False)
    op.create_index(op.f('ix_stock_transfers_from_warehouse_id'), 'stock_transfers', ['from_warehouse_id'], unique=False)
    op.create_index(op.f('ix_stock_transfers_to_warehouse_id'), 'stock_transfers', ['to_warehouse_id'], unique=False)

    op.create_table(
        'stock_transfer_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transfer_id', sa.Integer(), sa.ForeignKey('stock_transfers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_stock_transfer_items_transfer_id'), 'stock_transfer_items', ['transfer_id'], unique=False)

    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), primary_key=True),
        _tenant_id(),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('recurrence_period', sa.String(length=10), nullable=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f('ix_expenses_tenant_id'), 'expenses', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_expenses_category'), 'expenses', ['category'], unique=False)
    op.create_index(op.f('ix_expenses_account_id'), 'expenses', ['account_id'], unique=False)
    op.create_index('ix_expenses_tenant_date', 'expenses', ['tenant_id', 'expense_date'], unique=False)


def downgrade():
    op.drop_table('expenses')
    op.drop_table('stock_transfer_items')
    op.drop_table('stock_transfers')
