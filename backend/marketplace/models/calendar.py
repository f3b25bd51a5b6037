"""
Calendar entry model - derived occupancy view per owner.

Rows are rebuilt from bookings and are never a source of truth.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import ForeignKey, Uuid, UniqueConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow
from marketplace.models.bookings import BookingStatus


class CalendarOwnerType(str, enum.Enum):
    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"


class CalendarEntry(Base):
    __tablename__ = "calendar_entries"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_type: Mapped[CalendarOwnerType] = mapped_column(
        SQLEnum(CalendarOwnerType, name="calendar_owner_type"),
        nullable=False,
    )
    vendor_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    customer_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    service_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    scheduled_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("booking_id", "owner_type", name="uq_calendar_booking_owner"),
        Index("ix_calendar_vendor_start", "vendor_id", "scheduled_start"),
        Index("ix_calendar_customer_start", "customer_user_id", "scheduled_start"),
    )

    def __repr__(self) -> str:
        return f"<CalendarEntry(booking={self.booking_id}, owner={self.owner_type}, status={self.status})>"
