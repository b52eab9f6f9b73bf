"""create_tracking_tables

Revision ID: 20261001_tracking
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '20261001_tracking'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUSES = ('pending', 'accepted', 'preparing', 'on_delivery', 'delivered', 'cancelled')


def table_exists(table_name):
    """Check if a table exists in the database"""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def index_exists(table_name, index_name):
    """Check if an index exists on a table"""
    bind = op.get_bind()
    inspector = inspect(bind)
    indexes = inspector.get_indexes(table_name)
    return any(idx['name'] == index_name for idx in indexes)


def upgrade():
    # 1. Back-office staff (PIN login)
    if not table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('pin_code', sa.String(), nullable=False, unique=True),
            sa.Column('role', sa.String(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        )

    # 2. Orders with their tracking codes
    if not table_exists('orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('phone', sa.String(), nullable=False),
            sa.Column('address', sa.Text(), nullable=True),
            sa.Column('city', sa.String(), nullable=True),
            sa.Column('governorate', sa.String(), nullable=True),
            sa.Column('items', sa.JSON(), nullable=True),
            sa.Column('total_amount', sa.Numeric(10, 3), nullable=False, server_default='0'),
            sa.Column('payment_method', sa.String(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column(
                'order_status',
                sa.Enum(*ORDER_STATUSES, name='order_status', native_enum=False),
                nullable=False,
                server_default='pending',
            ),
            sa.Column('tracking_code', sa.String(), nullable=True, unique=True),
            sa.Column('driver_code', sa.String(), nullable=True, unique=True),
            sa.Column('driver_pin', sa.String(), nullable=True),
            sa.Column('driver_name', sa.String(), nullable=True),
            sa.Column('driver_phone', sa.String(), nullable=True),
            sa.Column('delivered_at', sa.DateTime(), nullable=True),
            sa.Column('delivery_photo_url', sa.String(), nullable=True),
        )

    if table_exists('orders'):
        if not index_exists('orders', 'idx_orders_status'):
            op.create_index('idx_orders_status', 'orders', ['order_status'])
        if not index_exists('orders', 'idx_orders_created'):
            op.create_index('idx_orders_created', 'orders', ['created_at'])

    # 3. Driver locations (one row per order, overwritten in place)
    if not table_exists('driver_locations'):
        op.create_table(
            'driver_locations',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True),
            sa.Column('tracking_code', sa.String(), nullable=False),
            sa.Column('latitude', sa.Float(), nullable=True),
            sa.Column('longitude', sa.Float(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='out_for_delivery'),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if table_exists('driver_locations'):
        if not index_exists('driver_locations', 'idx_driver_locations_tracking'):
            op.create_index('idx_driver_locations_tracking', 'driver_locations', ['tracking_code'])


def downgrade():
    if table_exists('driver_locations'):
        op.drop_table('driver_locations')
    if table_exists('orders'):
        op.drop_table('orders')
    if table_exists('users'):
        op.drop_table('users')
