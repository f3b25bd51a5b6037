"""
Payment intent model - one tracked attempt to collect money from a
provider for exactly one subject (booking, gift card or supply order).
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, Integer, ForeignKey, Uuid, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, JSONType, UTCDateTime, utcnow


class PaymentProvider(str, enum.Enum):
    PAYSTACK = "PAYSTACK"
    MANUAL = "MANUAL"


class PaymentStatus(str, enum.Enum):
    """Payment intent status. SUCCEEDED, FAILED and CANCELED are final."""
    REQUIRES_PAYMENT_METHOD = "REQUIRES_PAYMENT_METHOD"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class PaymentIntent(Base):
    """PaymentIntent entity keyed by the provider reference."""
    __tablename__ = "payment_intents"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Subject (exactly one)
    booking_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    gift_card_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("gift_cards.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    supply_order_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("supply_orders.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    provider: Mapped[PaymentProvider] = mapped_column(
        SQLEnum(PaymentProvider, name="payment_provider"),
        nullable=False,
        default=PaymentProvider.PAYSTACK,
    )
    provider_ref: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.REQUIRES_PAYMENT_METHOD,
        index=True,
    )
    last_error: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    provider_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        comment="Provider payload fields stashed on settlement",
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN booking_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN gift_card_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN supply_order_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="payment_intent_single_subject",
        ),
        CheckConstraint("amount_minor > 0", name="payment_intent_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<PaymentIntent(ref={self.provider_ref}, amount={self.amount_minor}, status={self.status})>"
