"""Create products and cart_items tables

Revision ID: 0001
Revises: 
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('discount_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('discount_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('price >= 0'),
        sa.CheckConstraint('stock_quantity >= 0'),
        sa.CheckConstraint('discount_percentage >= 0 AND discount_percentage <= 100'),
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_price', 'products', ['price'])
    op.create_index('ix_products_created_at', 'products', ['created_at'])

    # One line per product; lines go away with their product
    op.create_table(
        'cart_items',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('product_id', sa.String(length=36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('quantity > 0'),
        sa.UniqueConstraint('product_id', name='uq_cartitem_product'),
    )
    op.create_index('ix_cart_items_product_id', 'cart_items', ['product_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_cart_items_product_id', table_name='cart_items')
    op.drop_table('cart_items')
    op.drop_index('ix_products_created_at', table_name='products')
    op.drop_index('ix_products_price', table_name='products')
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')
