"""
Booking event outbox.

Events are written in the same transaction as the lifecycle change that
produced them and delivered to listeners after commit.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, Integer, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, JSONType, UTCDateTime, utcnow


class BookingEventType(str, enum.Enum):
    CREATED = "booking.created"
    AWAITING_PAYMENT = "booking.awaiting_payment"
    CONFIRMED = "booking.confirmed"
    PAYMENT_FAILED = "booking.payment_failed"
    RESCHEDULED = "booking.rescheduled"
    CANCELLED = "booking.cancelled"
    COMPLETED = "booking.completed"
    NO_SHOW = "booking.no_show"
    REMINDER = "booking.reminder"
    PAYMENT_AFTER_CANCEL = "booking.payment_after_cancel"


class BookingEvent(Base):
    __tablename__ = "booking_events"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    type: Mapped[BookingEventType] = mapped_column(
        SQLEnum(BookingEventType, name="booking_event_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    booking_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    vendor_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    service_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    reference: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<BookingEvent(id={self.id}, type={self.type}, booking={self.booking_id})>"
