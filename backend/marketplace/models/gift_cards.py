"""
Gift card models - prepaid vendor credit and its redemption ledger.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, Integer, ForeignKey, Uuid, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow


class GiftCardStatus(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    ACTIVE = "ACTIVE"
    DEPLETED = "DEPLETED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class GiftCard(Base):
    """
    Gift card issued for a single vendor and currency.

    ``code`` is stored normalized (alphanumeric, upper case) so lookups
    tolerate dashes and spacing in what customers type.
    """
    __tablename__ = "gift_cards"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    value_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[GiftCardStatus] = mapped_column(
        SQLEnum(GiftCardStatus, name="gift_card_status"),
        nullable=False,
        default=GiftCardStatus.PENDING_PAYMENT,
    )

    # Purchase details
    purchaser_name: Mapped[str] = mapped_column(String(120), nullable=False)
    purchaser_email: Mapped[str] = mapped_column(String(255), nullable=False)
    purchaser_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    recipient_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    recipient_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    activated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        CheckConstraint("balance_minor >= 0", name="gift_card_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<GiftCard(code={self.code}, balance={self.balance_minor}, status={self.status})>"


class GiftCardRedemption(Base):
    """One application of a gift card against a booking."""
    __tablename__ = "gift_card_redemptions"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    gift_card_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("gift_cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    booking_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_amount_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance_amount_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
