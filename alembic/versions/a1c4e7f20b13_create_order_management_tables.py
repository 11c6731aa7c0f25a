"""Create order management tables

Revision ID: a1c4e7f20b13
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers
revision: str = 'a1c4e7f20b13'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table_name):
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    # ── customers ──
    if not _has_table('customers'):
        op.create_table(
            'customers',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('name', sa.String(), nullable=True),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('phone', sa.String(), nullable=True),
            sa.Column('address_line1', sa.String(), nullable=True),
            sa.Column('address_line2', sa.String(), nullable=True),
            sa.Column('address_house_number', sa.String(), nullable=True),
            sa.Column('address_city', sa.String(), nullable=True),
            sa.Column('address_state', sa.String(), nullable=True),
            sa.Column('address_postal_code', sa.String(), nullable=True),
            sa.Column('address_country', sa.String(), nullable=True),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('hubspot_owner_id', sa.String(), nullable=True),
            sa.Column('hubspot_owner_name', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_customers_stripe_customer_id', 'customers', ['stripe_customer_id'], unique=True)
        op.create_index('ix_customers_email', 'customers', ['email'])

    # ── order_pack_lists ──
    if not _has_table('order_pack_lists'):
        op.create_table(
            'order_pack_lists',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('value', sa.String(), nullable=False, unique=True),
            sa.Column('label', sa.String(), nullable=False),
            sa.Column('weight', sa.Float(), nullable=True),
            sa.Column('height', sa.Float(), nullable=True),
            sa.Column('width', sa.Float(), nullable=True),
            sa.Column('length', sa.Float(), nullable=True),
        )

    # ── shipping_methods ──
    if not _has_table('shipping_methods'):
        op.create_table(
            'shipping_methods',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('carrier', sa.String(), nullable=True),
            sa.Column('min_weight', sa.Float(), nullable=True),
            sa.Column('max_weight', sa.Float(), nullable=True),
            sa.Column('service_point_input', sa.String(), nullable=True),
            sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('raw_data', sa.JSON(), nullable=True),
            sa.Column('synced_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_shipping_methods_name', 'shipping_methods', ['name'])

    # ── orders ──
    if not _has_table('orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
            sa.Column('name', sa.String(), nullable=True),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('phone', sa.String(), nullable=True),
            sa.Column('shipping_address_line1', sa.String(), nullable=True),
            sa.Column('shipping_address_line2', sa.String(), nullable=True),
            sa.Column('house_number', sa.String(), nullable=True),
            sa.Column('city', sa.String(), nullable=True),
            sa.Column('postal_code', sa.String(), nullable=True),
            sa.Column('country', sa.String(), nullable=True),
            sa.Column('paid', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('ok_to_ship', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('important', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('order_pack_list_id', sa.Integer(), sa.ForeignKey('order_pack_lists.id'), nullable=True),
            sa.Column('order_pack', sa.String(), nullable=True),
            sa.Column('order_pack_label', sa.String(), nullable=True),
            sa.Column('order_pack_quantity', sa.Integer(), nullable=True, server_default='1'),
            sa.Column('weight', sa.String(), nullable=True),
            sa.Column('reason_for_shipment', sa.String(), nullable=True, server_default='new order'),
            sa.Column('shipping_method', sa.Integer(), nullable=True),
            sa.Column('shipping_id', sa.String(), nullable=True),
            sa.Column('tracking_number', sa.String(), nullable=True),
            sa.Column('tracking_link', sa.String(), nullable=True),
            sa.Column('label_url', sa.String(), nullable=True),
            sa.Column('delivery_status', sa.String(), nullable=True),
            sa.Column('last_delivery_status_check', sa.DateTime(), nullable=True),
            sa.Column('expected_delivery_date', sa.Date(), nullable=True),
            sa.Column('sendcloud_tracking_history', sa.JSON(), nullable=True),
            sa.Column('sendcloud_return_id', sa.String(), nullable=True),
            sa.Column('sendcloud_return_parcel_id', sa.String(), nullable=True),
            sa.Column('sendcloud_return_label_url', sa.String(), nullable=True),
            sa.Column('sendcloud_return_reason', sa.String(), nullable=True),
            sa.Column('sendcloud_return_status', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_invoice_id', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        for column in ('customer_id', 'email', 'country', 'shipping_id', 'tracking_number',
                       'stripe_customer_id', 'stripe_invoice_id', 'created_at'):
            op.create_index(f'ix_orders_{column}', 'orders', [column])

    # ── order_activities ──
    if not _has_table('order_activities'):
        op.create_table(
            'order_activities',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
            sa.Column('action_type', sa.String(), nullable=False),
            sa.Column('changes', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_order_activities_order_id', 'order_activities', ['order_id'])
        op.create_index('ix_order_activities_created_at', 'order_activities', ['created_at'])

    # ── stripe_events ──
    if not _has_table('stripe_events'):
        op.create_table(
            'stripe_events',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('event_id', sa.String(), nullable=False),
            sa.Column('event_type', sa.String(), nullable=False),
            sa.Column('event_data', sa.JSON(), nullable=True),
            sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('processed_at', sa.DateTime(), nullable=True),
            sa.Column('error', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_stripe_events_event_id', 'stripe_events', ['event_id'], unique=True)

    # ── feature_requests ──
    if not _has_table('feature_requests'):
        op.create_table(
            'feature_requests',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('description', sa.Text(), nullable=False),
            sa.Column('author', sa.String(), nullable=False),
            sa.Column('link_url', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='Open'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_feature_requests_created_at', 'feature_requests', ['created_at'])


def downgrade() -> None:
    for table in ('feature_requests', 'stripe_events', 'order_activities', 'orders',
                  'shipping_methods', 'order_pack_lists', 'customers'):
        if _has_table(table):
            op.drop_table(table)
