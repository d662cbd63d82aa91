"""create users, enterprises, order cycles, schedules and subscriptions

Revision ID: 0001_create_order_cycles_schema
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_create_order_cycles_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_superuser', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'enterprises',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_primary_producer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sells', sa.String(length=16), nullable=False, server_default='none'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'enterprise_roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('enterprise_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['enterprise_id'], ['enterprises.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'enterprise_id', name='enterprise_roles_user_enterprise_unique'),
    )
    op.create_index('ix_enterprise_roles_user_id', 'enterprise_roles', ['user_id'])
    op.create_index('ix_enterprise_roles_enterprise_id', 'enterprise_roles', ['enterprise_id'])

    op.create_table(
        'order_cycles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('orders_open_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('orders_close_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('coordinator_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['coordinator_id'], ['enterprises.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_cycles_orders_close_at', 'order_cycles', ['orders_close_at'])
    op.create_index('ix_order_cycles_coordinator_id', 'order_cycles', ['coordinator_id'])

    op.create_table(
        'exchanges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_cycle_id', sa.Integer(), nullable=False),
        sa.Column('sender_id', sa.Integer(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('incoming', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pickup_time', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['order_cycle_id'], ['order_cycles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['enterprises.id']),
        sa.ForeignKeyConstraint(['receiver_id'], ['enterprises.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_exchanges_order_cycle_id', 'exchanges', ['order_cycle_id'])

    op.create_table(
        'schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # No ON DELETE on order_cycle_id: a linked schedule blocks order cycle deletion
    op.create_table(
        'order_cycle_schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_cycle_id', sa.Integer(), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_cycle_id'], ['order_cycles.id']),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_cycle_id', 'schedule_id', name='order_cycle_schedules_unique'),
    )
    op.create_index('ix_order_cycle_schedules_order_cycle_id', 'order_cycle_schedules', ['order_cycle_id'])
    op.create_index('ix_order_cycle_schedules_schedule_id', 'order_cycle_schedules', ['schedule_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('begins_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id']),
        sa.ForeignKeyConstraint(['shop_id'], ['enterprises.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_schedule_id', 'subscriptions', ['schedule_id'])

    op.create_table(
        'proxy_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('order_cycle_id', sa.Integer(), nullable=False),
        sa.Column('placed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_cycle_id'], ['order_cycles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subscription_id', 'order_cycle_id', name='proxy_orders_subscription_oc_unique'),
    )
    op.create_index('ix_proxy_orders_subscription_id', 'proxy_orders', ['subscription_id'])
    op.create_index('ix_proxy_orders_order_cycle_id', 'proxy_orders', ['order_cycle_id'])

    # No ON DELETE on order_cycle_id: an order keeps its order cycle alive
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=32), nullable=False),
        sa.Column('order_cycle_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_cycle_id'], ['order_cycles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_order_cycle_id', 'orders', ['order_cycle_id'])


def downgrade() -> None:
    op.drop_index('ix_orders_order_cycle_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_proxy_orders_order_cycle_id', table_name='proxy_orders')
    op.drop_index('ix_proxy_orders_subscription_id', table_name='proxy_orders')
    op.drop_table('proxy_orders')
    op.drop_index('ix_subscriptions_schedule_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_order_cycle_schedules_schedule_id', table_name='order_cycle_schedules')
    op.drop_index('ix_order_cycle_schedules_order_cycle_id', table_name='order_cycle_schedules')
    op.drop_table('order_cycle_schedules')
    op.drop_table('schedules')
    op.drop_index('ix_exchanges_order_cycle_id', table_name='exchanges')
    op.drop_table('exchanges')
    op.drop_index('ix_order_cycles_coordinator_id', table_name='order_cycles')
    op.drop_index('ix_order_cycles_orders_close_at', table_name='order_cycles')
    op.drop_table('order_cycles')
    op.drop_index('ix_enterprise_roles_enterprise_id', table_name='enterprise_roles')
    op.drop_index('ix_enterprise_roles_user_id', table_name='enterprise_roles')
    op.drop_table('enterprise_roles')
    op.drop_table('enterprises')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
