"""enforce tenant_id on business tables

Revision ID: 0002_enforce_tenant_ids
Revises: 0001_initial_schema
Create Date: 2026-09-01 00:10:00.000000

Rows written before tenancy was enforced may carry a NULL tenant_id. They
are assigned to the oldest tenant, then the column becomes NOT NULL.
users, auth_sessions and security_events keep a nullable tenant_id
(platform super_admin users and pre-auth events have no tenant).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_enforce_tenant_ids'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None


TENANT_SCOPED_TABLES = (
    'products',
    'warehouses',
    'warehouse_stocks',
    'stock_movements',
    'customers',
    'customer_transactions',
    'accounts',
    'account_movements',
    'account_transfers',
    'sales',
    'payments',
    'returns',
    'quotes',
    'document_sequences',
    'e_documents',
    'e_document_logs',
)


def upgrade():
    bind = op.get_bind()
    oldest_tenant_id = bind.execute(sa.text("SELECT id FROM tenants ORDER BY id LIMIT 1")).scalar()

    for table in TENANT_SCOPED_TABLES:
        orphans = bind.execute(sa.text(f"SELECT COUNT(*) FROM {table} WHERE tenant_id IS NULL")).scalar()
        if orphans:
            if oldest_tenant_id is None:
                raise RuntimeError(f"{table} has {orphans} rows without tenant_id and no tenant exists to own them")
            bind.execute(
                sa.text(f"UPDATE {table} SET tenant_id = :tenant_id WHERE tenant_id IS NULL"),
                {"tenant_id": oldest_tenant_id},
            )

        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.alter_column('tenant_id', existing_type=sa.Integer(), nullable=False)


def downgrade():
    for table in TENANT_SCOPED_TABLES:
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.alter_column('tenant_id', existing_type=sa.Integer(), nullable=True)
