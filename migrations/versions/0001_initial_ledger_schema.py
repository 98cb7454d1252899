"""0001 initial ledger schema

Revision ID: 0001_initial_ledger_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None

QUANTITY = sa.Numeric(18, 6)
COST = sa.Numeric(14, 4)
MONEY = sa.Numeric(12, 2)
PERCENT = sa.Numeric(10, 2)


def upgrade():
    op.create_table(
        'ingredient',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('quantity', QUANTITY, nullable=False),
        sa.Column('purchase_price', MONEY, nullable=False),
        sa.Column('waste_percent', PERCENT, nullable=False),
        sa.Column('supplier', sa.String(length=128), nullable=True),
        sa.Column('cost_per_ml', COST, nullable=True),
        sa.Column('cost_per_gram', COST, nullable=True),
        sa.Column('cost_per_unit', COST, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('waste_percent >= 0 AND waste_percent <= 100', name='check_ingredient_waste_percent_range'),
        sa.CheckConstraint('quantity > 0', name='check_ingredient_quantity_positive'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'name', name='uq_ingredient_owner_name'),
    )
    op.create_index('ix_ingredient_owner_id', 'ingredient', ['owner_id'])

    op.create_table(
        'product',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('sell_price', MONEY, nullable=False),
        sa.Column('total_cost', COST, nullable=False),
        sa.Column('margin_amount', COST, nullable=False),
        sa.Column('margin_percent', PERCENT, nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('quantity_sold', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('sell_price >= 0', name='check_product_sell_price_non_negative'),
        sa.CheckConstraint(
            "status IN ('profitable', 'breaking_even', 'losing_money')", name='check_product_status_values'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_product_owner_id', 'product', ['owner_id'])

    op.create_table(
        'stock_batch',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ingredient_id', sa.Integer(), nullable=False),
        sa.Column('purchased_quantity', QUANTITY, nullable=False),
        sa.Column('usable_quantity', QUANTITY, nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('total_purchased_price', MONEY, nullable=False),
        sa.Column('purchase_price_per_unit', COST, nullable=False),
        sa.Column('waste_percent', PERCENT, nullable=False),
        sa.Column('remaining_quantity', QUANTITY, nullable=False),
        sa.Column('wasted_quantity', QUANTITY, nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('purchased_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('remaining_quantity >= 0', name='check_batch_remaining_non_negative'),
        sa.CheckConstraint('wasted_quantity >= 0', name='check_batch_wasted_non_negative'),
        sa.CheckConstraint('purchased_quantity > 0', name='check_batch_purchased_positive'),
        sa.CheckConstraint(
            'ROUND(remaining_quantity + wasted_quantity, 6) <= usable_quantity',
            name='check_batch_within_usable',
        ),
        sa.ForeignKeyConstraint(['ingredient_id'], ['ingredient.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_stock_batch_ingredient_id', 'stock_batch', ['ingredient_id'])
    op.create_index('ix_stock_batch_fifo', 'stock_batch', ['ingredient_id', 'purchased_at', 'id'])

    op.create_table(
        'purchase',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ingredient_id', sa.Integer(), nullable=False),
        sa.Column('stock_batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', QUANTITY, nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('purchase_price', COST, nullable=False),
        sa.Column('total_cost', MONEY, nullable=False),
        sa.Column('purchased_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='check_purchase_quantity_positive'),
        sa.CheckConstraint('purchase_price >= 0', name='check_purchase_price_non_negative'),
        sa.ForeignKeyConstraint(['ingredient_id'], ['ingredient.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['stock_batch_id'], ['stock_batch.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_purchase_ingredient_id', 'purchase', ['ingredient_id'])
    op.create_index('ix_purchase_stock_batch_id', 'purchase', ['stock_batch_id'])

    op.create_table(
        'waste_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', QUANTITY, nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='check_waste_quantity_positive'),
        sa.ForeignKeyConstraint(['stock_batch_id'], ['stock_batch.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_waste_record_stock_batch_id', 'waste_record', ['stock_batch_id'])

    op.create_table(
        'product_recipe_line',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('ingredient_id', sa.Integer(), nullable=False),
        sa.Column('quantity', QUANTITY, nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('is_optional', sa.Boolean(), nullable=False),
        sa.Column('cost_per_unit', COST, nullable=False),
        sa.Column('line_cost', COST, nullable=False),
        sa.CheckConstraint('quantity > 0', name='check_recipe_line_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['product.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['ingredient_id'], ['ingredient.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_product_recipe_line_product_id', 'product_recipe_line', ['product_id'])
    op.create_index('ix_product_recipe_line_ingredient_id', 'product_recipe_line', ['ingredient_id'])

    op.create_table(
        'sale',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=128), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('sold_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='check_sale_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['product.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sale_product_id', 'sale', ['product_id'])

    op.create_table(
        'sale_allocation',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('stock_batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', QUANTITY, nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.CheckConstraint('quantity > 0', name='check_sale_allocation_quantity_positive'),
        sa.ForeignKeyConstraint(['sale_id'], ['sale.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['stock_batch_id'], ['stock_batch.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sale_allocation_sale_id', 'sale_allocation', ['sale_id'])
    op.create_index('ix_sale_allocation_stock_batch_id', 'sale_allocation', ['stock_batch_id'])


def downgrade():
    op.drop_table('sale_allocation')
    op.drop_table('sale')
    op.drop_table('product_recipe_line')
    op.drop_table('waste_record')
    op.drop_table('purchase')
    op.drop_table('stock_batch')
    op.drop_table('product')
    op.drop_table('ingredient')
