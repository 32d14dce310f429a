"""create products, orders and order_items

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('price', sa.Numeric(10,2), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('image', sa.String(255), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('stock', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('customer_first_name', sa.String(100), nullable=False),
        sa.Column('customer_last_name', sa.String(100), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(50), nullable=False, server_default=''),
        sa.Column('shipping_address', sa.String(255), nullable=False),
        sa.Column('shipping_city', sa.String(100), nullable=False, server_default=''),
        sa.Column('shipping_postal_code', sa.String(20), nullable=False, server_default=''),
        sa.Column('shipping_province', sa.String(100), nullable=False, server_default=''),
        sa.Column('subtotal', sa.Numeric(10,2), nullable=False),
        sa.Column('shipping_cost', sa.Numeric(10,2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(10,2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_email', 'orders', ['customer_email'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer, nullable=False),
        sa.Column('product_name', sa.String(200), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(10,2), nullable=False),
        sa.Column('total_price', sa.Numeric(10,2), nullable=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

def downgrade():
    op.drop_table('order_items')
    op.drop_index('ix_orders_status', 'orders')
    op.drop_index('ix_orders_customer_email', 'orders')
    op.drop_index('ix_orders_order_number', 'orders')
    op.drop_table('orders')
    op.drop_table('products')
