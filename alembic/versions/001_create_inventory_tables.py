"""Create catalog, inventory record and inventory ledger tables

Revision ID: 001_create_inventory_tables
Revises:
Create Date: 2026-10-19

Note: Using IF NOT EXISTS pattern to make migration idempotent.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = '001_create_inventory_tables'
down_revision = None
branch_labels = None
depends_on = None

QUANTITY = sa.Numeric(18, 4)


def table_exists(conn, table_name):
    """Check if a table exists in the database."""
    result = conn.execute(text(
        "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = :table_name)"
    ), {"table_name": table_name})
    return result.scalar()


def upgrade():
    """Create products, shelves, inventory_records and inventory_transactions."""
    conn = op.get_bind()

    if not table_exists(conn, 'products'):
        op.create_table(
            'products',
            sa.Column('id', sa.Integer, primary_key=True, index=True),
            sa.Column('sku', sa.String(50), unique=True, nullable=True, index=True),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('primary_unit', sa.String(20), nullable=False, server_default='pcs'),
            sa.Column('is_active', sa.Boolean, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        print("Created products table")
    else:
        print("products table already exists, skipping")

    if not table_exists(conn, 'shelves'):
        op.create_table(
            'shelves',
            sa.Column('id', sa.Integer, primary_key=True, index=True),
            sa.Column('shelf_code', sa.String(50), nullable=False, index=True),
            sa.Column('rack_code', sa.String(50), nullable=True),
            sa.Column('warehouse_name', sa.String(255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        print("Created shelves table")
    else:
        print("shelves table already exists, skipping")

    if not table_exists(conn, 'inventory_records'):
        op.create_table(
            'inventory_records',
            sa.Column('id', sa.Integer, primary_key=True, index=True),
            sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id'), nullable=False, index=True),
            sa.Column('shelf_id', sa.Integer, sa.ForeignKey('shelves.id'), nullable=False, index=True),
            sa.Column('quantity', QUANTITY, nullable=False, server_default='0'),
            sa.Column('unit', sa.String(20), nullable=False),
            sa.Column('batch_number', sa.String(100), nullable=True),
            sa.Column('batch_key', sa.String(100), nullable=False, server_default='__no_batch__'),
            sa.Column('expiry_date', sa.Date, nullable=True),
            sa.Column('version', sa.Integer, nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint('product_id', 'shelf_id', 'batch_key', name='uq_inventory_location_batch'),
            sa.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_non_negative'),
        )
        print("Created inventory_records table")
    else:
        print("inventory_records table already exists, skipping")

    # No FK on inventory_id: history must survive records deleted by a draining transfer
    if not table_exists(conn, 'inventory_transactions'):
        op.create_table(
            'inventory_transactions',
            sa.Column('id', sa.Integer, primary_key=True, index=True),
            sa.Column('inventory_id', sa.Integer, nullable=False, index=True),
            sa.Column('product_id', sa.Integer, nullable=False),
            sa.Column('shelf_id', sa.Integer, nullable=False),
            sa.Column('transaction_type', sa.String(20), nullable=False, index=True),
            sa.Column('quantity_before', QUANTITY, nullable=False),
            sa.Column('quantity_change', QUANTITY, nullable=False),
            sa.Column('quantity_after', QUANTITY, nullable=False),
            sa.Column('unit', sa.String(20), nullable=False),
            sa.Column('reason', sa.String(255), nullable=True),
            sa.Column('document_reference', sa.String(100), nullable=True),
            sa.Column('transfer_id', sa.String(36), nullable=True, index=True),
            sa.Column('actor_id', sa.String(100), nullable=False),
            sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index(
            'ix_inventory_transactions_inventory_timestamp',
            'inventory_transactions',
            ['inventory_id', 'timestamp', 'id'],
        )
        print("Created inventory_transactions table")
    else:
        print("inventory_transactions table already exists, skipping")


def downgrade():
    """Drop inventory tables."""
    op.drop_index('ix_inventory_transactions_inventory_timestamp', table_name='inventory_transactions')
    op.drop_table('inventory_transactions')
    op.drop_table('inventory_records')
    op.drop_table('shelves')
    op.drop_table('products')
