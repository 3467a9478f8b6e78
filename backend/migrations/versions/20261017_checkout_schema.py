"""checkout schema

Revision ID: 20261017_checkout
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the point-of-sale schema:
- inventory_items: raw materials, qty/cost in storage units, optimistic lock
- finished_products: sellable products, cost derived from recipes
- product_ingredients: recipe lines, qty in display units
- sales: one immutable row per (transaction, product)
- payment_methods / customer_types: selectable lookups
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_checkout'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # inventory_items: raw materials
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit_type', sa.String(length=16), nullable=False),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False),
        sa.Column('image_path', sa.String(length=512), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('qty >= 0', name='ck_inventory_items_qty_nonnegative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_items_name', 'inventory_items', ['name'], unique=False)

    # ============================================================================
    # finished_products
    # ============================================================================
    op.create_table(
        'finished_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('image_path', sa.String(length=512), nullable=True),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('opex_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_finished_products_name', 'finished_products', ['name'], unique=False)

    # ============================================================================
    # product_ingredients: recipe lines (display units)
    # ============================================================================
    op.create_table(
        'product_ingredients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('qty', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['finished_products.id']),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_ingredients_product_id', 'product_ingredients', ['product_id'], unique=False)
    op.create_index('ix_product_ingredients_item_id', 'product_ingredients', ['item_id'], unique=False)

    # ============================================================================
    # sales: immutable except cancelled / cancelled_at
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=36), nullable=False),
        sa.Column('transaction_number', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('unit_type', sa.String(length=16), nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('customer_payment_cents', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.String(length=64), nullable=False),
        sa.Column('customer_type', sa.String(length=64), nullable=False),
        sa.Column('dine_in_takeout', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('earnings_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['product_id'], ['finished_products.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_transaction_id', 'sales', ['transaction_id'], unique=False)
    op.create_index('ix_sales_transaction_number', 'sales', ['transaction_number'], unique=False)
    op.create_index('ix_sales_created_at', 'sales', ['created_at'], unique=False)
    op.create_index('ix_sales_earnings_datetime', 'sales', ['earnings_datetime'], unique=False)
    op.create_index('ix_sales_product_id', 'sales', ['product_id'], unique=False)
    op.create_index('ix_sales_cancelled', 'sales', ['cancelled'], unique=False)

    # ============================================================================
    # lookups
    # ============================================================================
    op.create_table(
        'payment_methods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('color', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True,
    )
    op.create_table(
        'customer_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('color', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table('customer_types')
    op.drop_table('payment_methods')

    op.drop_index('ix_sales_cancelled', table_name='sales')
    op.drop_index('ix_sales_product_id', table_name='sales')
    op.drop_index('ix_sales_earnings_datetime', table_name='sales')
    op.drop_index('ix_sales_created_at', table_name='sales')
    op.drop_index('ix_sales_transaction_number', table_name='sales')
    op.drop_index('ix_sales_transaction_id', table_name='sales')
    op.drop_table('sales')

    op.drop_index('ix_product_ingredients_item_id', table_name='product_ingredients')
    op.drop_index('ix_product_ingredients_product_id', table_name='product_ingredients')
    op.drop_table('product_ingredients')

    op.drop_index('ix_finished_products_name', table_name='finished_products')
    op.drop_table('finished_products')

    op.drop_index('ix_inventory_items_name', table_name='inventory_items')
    op.drop_table('inventory_items')
