"""create_booking_schema

Revision ID: 5c1e2a9b7d40
Revises:
Create Date: 2026-10-19 09:12:44.102811

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5c1e2a9b7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum types are created once up front; tables reference them with create_type=False
ENUMS = {
    'user_role': ('CUSTOMER', 'VENDOR', 'ADMIN'),
    'vendor_status': ('PENDING_REVIEW', 'VERIFIED', 'REJECTED', 'SUSPENDED'),
    'availability_override_type': ('BLOCK', 'EXTEND'),
    'booking_status': ('PENDING', 'AWAITING_PAYMENT', 'CONFIRMED', 'COMPLETED', 'NO_SHOW', 'CANCELLED'),
    'booking_source': ('ONLINE', 'MANUAL'),
    'booking_cancel_actor': ('VENDOR', 'CUSTOMER', 'SYSTEM'),
    'gift_card_status': ('PENDING_PAYMENT', 'ACTIVE', 'DEPLETED', 'EXPIRED', 'CANCELLED'),
    'supply_order_status': ('REQUIRES_PAYMENT', 'WAITING_ON_SUPPLIER', 'CANCELLED'),
    'payment_provider': ('PAYSTACK', 'MANUAL'),
    'payment_status': ('REQUIRES_PAYMENT_METHOD', 'SUCCEEDED', 'FAILED', 'CANCELED'),
    'calendar_owner_type': ('VENDOR', 'CUSTOMER'),
    'booking_event_type': (
        'booking.created',
        'booking.awaiting_payment',
        'booking.confirmed',
        'booking.payment_failed',
        'booking.rescheduled',
        'booking.cancelled',
        'booking.completed',
        'booking.no_show',
        'booking.reminder',
        'booking.payment_after_cancel',
    ),
    'job_type': ('AUTO_COMPLETE', 'REMINDERS', 'PAYMENT_EXPIRY', 'OUTBOX_REDELIVERY', 'OTHER'),
    'job_status': ('PENDING', 'PROCESSING', 'DONE', 'FAILED'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _ts(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, **kwargs)


def _uuid_fk(name: str, target: str, ondelete: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable, **kwargs)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', _enum('user_role'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'vendors',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('user_id', 'users.id', 'SET NULL', nullable=True),
        sa.Column('business_name', sa.String(length=120), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('status', _enum('vendor_status'), nullable=False),
        _ts('created_at'),
    )
    op.create_index('ix_vendors_user_id', 'vendors', ['user_id'], unique=True)

    op.create_table(
        'staff_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('bio', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at'),
    )
    op.create_index('ix_staff_members_vendor_id', 'staff_members', ['vendor_id'])

    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('price_minor', sa.Integer(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('buffer_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deposit_percent', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('duration_minutes > 0', name='service_duration_positive'),
        sa.CheckConstraint('buffer_minutes >= 0', name='service_buffer_non_negative'),
    )
    op.create_index('ix_services_vendor_id', 'services', ['vendor_id'])

    op.create_table(
        'service_seats',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('label', sa.String(length=80), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='1'),
        _uuid_fk('staff_id', 'staff_members.id', 'SET NULL', nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at'),
        sa.CheckConstraint('capacity >= 1', name='seat_capacity_positive'),
    )
    op.create_index('ix_service_seats_vendor_id', 'service_seats', ['vendor_id'])
    op.create_index('ix_service_seats_created_at', 'service_seats', ['created_at'])

    op.create_table(
        'seat_services',
        _uuid_fk('seat_id', 'service_seats.id', 'CASCADE', primary_key=True),
        _uuid_fk('service_id', 'services.id', 'CASCADE', primary_key=True),
    )

    op.create_table(
        'weekly_availability',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_minute', sa.Integer(), nullable=False),
        sa.Column('end_minute', sa.Integer(), nullable=False),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='weekly_day_range'),
        sa.CheckConstraint('start_minute < end_minute', name='weekly_start_before_end'),
    )
    op.create_index('ix_weekly_availability_vendor_id', 'weekly_availability', ['vendor_id'])

    op.create_table(
        'availability_overrides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('type', _enum('availability_override_type'), nullable=False),
        _ts('starts_at'),
        _ts('ends_at'),
        sa.Column('reason', sa.String(length=200), nullable=True),
        _ts('created_at'),
        sa.CheckConstraint('starts_at < ends_at', name='override_start_before_end'),
    )
    op.create_index('ix_availability_overrides_vendor_id', 'availability_overrides', ['vendor_id'])
    op.create_index('ix_availability_overrides_starts_at', 'availability_overrides', ['starts_at'])
    op.create_index('ix_availability_overrides_ends_at', 'availability_overrides', ['ends_at'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reference', sa.String(length=40), nullable=False),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        _uuid_fk('service_id', 'services.id', 'RESTRICT'),
        _uuid_fk('customer_user_id', 'users.id', 'SET NULL', nullable=True),
        _uuid_fk('created_by_user_id', 'users.id', 'SET NULL', nullable=True),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _ts('scheduled_start'),
        _ts('scheduled_end'),
        _uuid_fk('seat_id', 'service_seats.id', 'SET NULL', nullable=True),
        _uuid_fk('staff_id', 'staff_members.id', 'SET NULL', nullable=True),
        sa.Column('price_minor', sa.Integer(), nullable=False),
        sa.Column('deposit_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('gift_card_code', sa.String(length=32), nullable=True),
        sa.Column('gift_card_deposit_applied', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gift_card_balance_applied', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', _enum('booking_status'), nullable=False),
        sa.Column('source', _enum('booking_source'), nullable=False),
        sa.Column('cancelled_by', _enum('booking_cancel_actor'), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('reschedule_count', sa.Integer(), nullable=False, server_default='0'),
        _ts('created_at'),
        _ts('updated_at'),
        _ts('rescheduled_at', nullable=True),
        _ts('cancelled_at', nullable=True),
        _ts('completed_at', nullable=True),
        _ts('paid_at', nullable=True),
        _ts('reminder_sent_at', nullable=True),
        sa.CheckConstraint('scheduled_start < scheduled_end', name='booking_start_before_end'),
        sa.CheckConstraint('deposit_minor + balance_minor = price_minor', name='booking_amounts_balance'),
    )
    op.create_index('ix_bookings_reference', 'bookings', ['reference'], unique=True)
    op.create_index('ix_bookings_vendor_start', 'bookings', ['vendor_id', 'scheduled_start'])
    op.create_index('ix_bookings_service_id', 'bookings', ['service_id'])
    op.create_index('ix_bookings_customer_user_id', 'bookings', ['customer_user_id'])
    op.create_index('ix_bookings_customer_email', 'bookings', ['customer_email'])
    op.create_index('ix_bookings_customer_phone', 'bookings', ['customer_phone'])
    op.create_index('ix_bookings_seat_id', 'bookings', ['seat_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'gift_cards',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('value_minor', sa.Integer(), nullable=False),
        sa.Column('balance_minor', sa.Integer(), nullable=False),
        sa.Column('status', _enum('gift_card_status'), nullable=False),
        sa.Column('purchaser_name', sa.String(length=120), nullable=False),
        sa.Column('purchaser_email', sa.String(length=255), nullable=False),
        sa.Column('purchaser_phone', sa.String(length=32), nullable=True),
        sa.Column('recipient_name', sa.String(length=120), nullable=True),
        sa.Column('recipient_email', sa.String(length=255), nullable=True),
        sa.Column('message', sa.String(length=500), nullable=True),
        _ts('expires_at', nullable=True),
        _ts('activated_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('balance_minor >= 0', name='gift_card_balance_non_negative'),
    )
    op.create_index('ix_gift_cards_vendor_id', 'gift_cards', ['vendor_id'])

    op.create_table(
        'gift_card_redemptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('gift_card_id', 'gift_cards.id', 'CASCADE'),
        _uuid_fk('booking_id', 'bookings.id', 'CASCADE'),
        sa.Column('amount_minor', sa.Integer(), nullable=False),
        sa.Column('deposit_amount_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_amount_minor', sa.Integer(), nullable=False, server_default='0'),
        _ts('refunded_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_gift_card_redemptions_gift_card_id', 'gift_card_redemptions', ['gift_card_id'])
    op.create_index('ix_gift_card_redemptions_booking_id', 'gift_card_redemptions', ['booking_id'])

    op.create_table(
        'supply_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('vendor_id', 'vendors.id', 'CASCADE'),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('total_minor', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', _enum('supply_order_status'), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_supply_orders_vendor_id', 'supply_orders', ['vendor_id'])

    op.create_table(
        'supply_order_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('order_id', 'supply_orders.id', 'CASCADE'),
        sa.Column('from_status', _enum('supply_order_status'), nullable=True),
        sa.Column('to_status', _enum('supply_order_status'), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_supply_order_status_history_order_id', 'supply_order_status_history', ['order_id'])

    op.create_table(
        'payment_intents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('booking_id', 'bookings.id', 'CASCADE', nullable=True),
        _uuid_fk('gift_card_id', 'gift_cards.id', 'CASCADE', nullable=True),
        _uuid_fk('supply_order_id', 'supply_orders.id', 'CASCADE', nullable=True),
        sa.Column('provider', _enum('payment_provider'), nullable=False),
        sa.Column('provider_ref', sa.String(length=64), nullable=False, unique=True),
        sa.Column('amount_minor', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', _enum('payment_status'), nullable=False),
        sa.Column('last_error', sa.String(length=500), nullable=True),
        sa.Column(
            'metadata',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment='Provider payload fields stashed on settlement',
        ),
        _ts('created_at'),
        _ts('updated_at'),
        _ts('confirmed_at', nullable=True),
        sa.CheckConstraint(
            '(CASE WHEN booking_id IS NULL THEN 0 ELSE 1 END)'
            ' + (CASE WHEN gift_card_id IS NULL THEN 0 ELSE 1 END)'
            ' + (CASE WHEN supply_order_id IS NULL THEN 0 ELSE 1 END) = 1',
            name='payment_intent_single_subject',
        ),
        sa.CheckConstraint('amount_minor > 0', name='payment_intent_amount_positive'),
    )
    op.create_index('ix_payment_intents_booking_id', 'payment_intents', ['booking_id'])
    op.create_index('ix_payment_intents_gift_card_id', 'payment_intents', ['gift_card_id'])
    op.create_index('ix_payment_intents_supply_order_id', 'payment_intents', ['supply_order_id'])
    op.create_index('ix_payment_intents_status', 'payment_intents', ['status'])

    op.create_table(
        'calendar_entries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _uuid_fk('booking_id', 'bookings.id', 'CASCADE'),
        sa.Column('owner_type', _enum('calendar_owner_type'), nullable=False),
        sa.Column('vendor_id', sa.Uuid(), nullable=True),
        sa.Column('customer_user_id', sa.Uuid(), nullable=True),
        sa.Column('service_id', sa.Uuid(), nullable=False),
        _ts('scheduled_start'),
        _ts('scheduled_end'),
        sa.Column('status', _enum('booking_status'), nullable=False),
        _ts('updated_at'),
        sa.UniqueConstraint('booking_id', 'owner_type', name='uq_calendar_booking_owner'),
    )
    op.create_index('ix_calendar_vendor_start', 'calendar_entries', ['vendor_id', 'scheduled_start'])
    op.create_index('ix_calendar_customer_start', 'calendar_entries', ['customer_user_id', 'scheduled_start'])

    op.create_table(
        'booking_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', _enum('booking_event_type'), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('vendor_id', sa.Uuid(), nullable=False),
        sa.Column('service_id', sa.Uuid(), nullable=False),
        sa.Column('reference', sa.String(length=40), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.String(length=500), nullable=True),
        _ts('dispatched_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_booking_events_booking_id', 'booking_events', ['booking_id'])
    op.create_index('ix_booking_events_dispatched_at', 'booking_events', ['dispatched_at'])

    op.create_table(
        'platform_settings',
        sa.Column('key', sa.String(length=64), primary_key=True),
        sa.Column('int_value', sa.Integer(), nullable=True),
        _uuid_fk('updated_by_user_id', 'users.id', 'SET NULL', nullable=True),
        _ts('updated_at'),
    )

    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', _enum('job_type'), nullable=False),
        _ts('scheduled_for'),
        _ts('run_at', nullable=True),
        sa.Column('status', _enum('job_status'), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            'lock_key',
            sa.BigInteger(),
            nullable=True,
            unique=True,
            comment='Used with pg_try_advisory_lock for distributed locking',
        ),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_jobs_type', 'jobs', ['type'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_scheduled_for', 'jobs', ['scheduled_for'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'jobs',
        'platform_settings',
        'booking_events',
        'calendar_entries',
        'payment_intents',
        'supply_order_status_history',
        'supply_orders',
        'gift_card_redemptions',
        'gift_cards',
        'bookings',
        'availability_overrides',
        'weekly_availability',
        'seat_services',
        'service_seats',
        'services',
        'staff_members',
        'vendors',
        'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
