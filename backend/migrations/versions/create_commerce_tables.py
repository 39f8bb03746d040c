"""Create marketplace profiles, catalog and order tables

Revision ID: create_commerce_tables
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = 'create_commerce_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade():
    op.create_table('profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('business_name', sa.String(length=200), nullable=True),
        sa.Column('tier', sa.String(length=20), server_default='customer', nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('due_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('is_banned', sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("tier IN ('admin', 'importer', 'wholesaler', 'retailer', 'customer')", name='profiles_tier_check'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('icon_svg', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table('products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('listings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), server_default='0', nullable=False),
        sa.Column('target_tier', sa.String(length=20), nullable=False),
        sa.Column('is_bulk_offer', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('min_order_quantity', sa.Integer(), server_default='1', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('price > 0', name='listings_price_positive_check'),
        sa.CheckConstraint('stock_quantity >= 0', name='listings_stock_non_negative_check'),
        sa.CheckConstraint('min_order_quantity >= 1', name='listings_min_order_positive_check'),
        sa.CheckConstraint("target_tier IN ('customer', 'retailer', 'wholesaler')", name='listings_target_tier_check'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['seller_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('listings_target_tier_stock_idx', 'listings', ['target_tier', 'stock_quantity'])
    op.create_index('listings_seller_idx', 'listings', ['seller_id'])

    op.create_table('orders_b2c',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=False),
        sa.Column('customer_address', sa.Text(), nullable=False),
        sa.Column('customer_phone', sa.String(length=30), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'shipped', 'delivered', 'cancelled')", name='orders_b2c_status_check'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('orders_b2c_seller_idx', 'orders_b2c', ['seller_id'])
    op.create_index('orders_b2c_user_idx', 'orders_b2c', ['user_id'])

    # listing_id carries no foreign key: order history outlives listings
    op.create_table('order_items_b2c',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_at_purchase', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='order_items_b2c_quantity_check'),
        sa.ForeignKeyConstraint(['order_id'], ['orders_b2c.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('order_items_b2c_listing_idx', 'order_items_b2c', ['listing_id'])

    op.create_table('orders_b2b',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('buyer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('seller_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_price >= 0', name='orders_b2b_total_check'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'shipped', 'delivered', 'cancelled', 'completed')",
            name='orders_b2b_status_check'
        ),
        sa.ForeignKeyConstraint(['buyer_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['seller_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('orders_b2b_buyer_idx', 'orders_b2b', ['buyer_id'])
    op.create_index('orders_b2b_seller_idx', 'orders_b2b', ['seller_id'])

    op.create_table('order_items_b2b',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_at_purchase', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='order_items_b2b_quantity_check'),
        sa.ForeignKeyConstraint(['order_id'], ['orders_b2b.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('order_items_b2b_listing_idx', 'order_items_b2b', ['listing_id'])


def downgrade():
    op.drop_index('order_items_b2b_listing_idx', table_name='order_items_b2b')
    op.drop_table('order_items_b2b')
    op.drop_index('orders_b2b_seller_idx', table_name='orders_b2b')
    op.drop_index('orders_b2b_buyer_idx', table_name='orders_b2b')
    op.drop_table('orders_b2b')
    op.drop_index('order_items_b2c_listing_idx', table_name='order_items_b2c')
    op.drop_table('order_items_b2c')
    op.drop_index('orders_b2c_user_idx', table_name='orders_b2c')
    op.drop_index('orders_b2c_seller_idx', table_name='orders_b2c')
    op.drop_table('orders_b2c')
    op.drop_index('listings_seller_idx', table_name='listings')
    op.drop_index('listings_target_tier_stock_idx', table_name='listings')
    op.drop_table('listings')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('profiles')
