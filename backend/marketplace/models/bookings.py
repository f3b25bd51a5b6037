"""
Booking model - the central entity of the booking engine.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import (
    String,
    Integer,
    ForeignKey,
    Uuid,
    Text,
    Index,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow


class BookingStatus(str, enum.Enum):
    """Booking lifecycle status."""
    PENDING = "PENDING"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"


# Statuses that occupy capacity
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.AWAITING_PAYMENT,
    BookingStatus.CONFIRMED,
)

# Statuses a payment event may still advance or revert
PAYMENT_PENDING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.AWAITING_PAYMENT,
)


class BookingSource(str, enum.Enum):
    """How the booking was created."""
    ONLINE = "ONLINE"
    MANUAL = "MANUAL"


class BookingCancelActor(str, enum.Enum):
    """Who cancelled the booking."""
    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"
    SYSTEM = "SYSTEM"


class Booking(Base):
    """
    Booking entity.

    Customer contact fields are a snapshot taken at creation. Amounts are
    integer minor units and ``deposit_minor + balance_minor == price_minor``
    always holds; gift-card portions are recorded separately and are part
    of the deposit/balance they were applied against.
    """
    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    reference: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)

    # Ownership
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    customer_user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Contact snapshot
    customer_name: Mapped[str] = mapped_column(String(120), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Schedule and resource
    scheduled_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    seat_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("service_seats.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    staff_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff_members.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Money
    price_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    gift_card_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    gift_card_deposit_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gift_card_balance_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # State
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    source: Mapped[BookingSource] = mapped_column(
        SQLEnum(BookingSource, name="booking_source"),
        nullable=False,
        default=BookingSource.ONLINE,
    )
    cancelled_by: Mapped[Optional[BookingCancelActor]] = mapped_column(
        SQLEnum(BookingCancelActor, name="booking_cancel_actor"),
        nullable=True,
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reschedule_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
    rescheduled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_bookings_vendor_start", "vendor_id", "scheduled_start"),
        CheckConstraint("scheduled_start < scheduled_end", name="booking_start_before_end"),
        CheckConstraint("deposit_minor + balance_minor = price_minor", name="booking_amounts_balance"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, reference={self.reference}, "
            f"status={self.status}, start={self.scheduled_start})>"
        )
