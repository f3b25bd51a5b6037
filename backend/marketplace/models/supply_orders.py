"""
Supply order models - vendor purchases paid through the same payment
intents as bookings.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, Integer, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow


class SupplyOrderStatus(str, enum.Enum):
    REQUIRES_PAYMENT = "REQUIRES_PAYMENT"
    WAITING_ON_SUPPLIER = "WAITING_ON_SUPPLIER"
    CANCELLED = "CANCELLED"


class SupplyOrder(Base):
    __tablename__ = "supply_orders"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[SupplyOrderStatus] = mapped_column(
        SQLEnum(SupplyOrderStatus, name="supply_order_status"),
        nullable=False,
        default=SupplyOrderStatus.REQUIRES_PAYMENT,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<SupplyOrder(id={self.id}, total={self.total_minor}, status={self.status})>"


class SupplyOrderStatusChange(Base):
    """Audit row written on every supply order status transition."""
    __tablename__ = "supply_order_status_history"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("supply_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[Optional[SupplyOrderStatus]] = mapped_column(
        SQLEnum(SupplyOrderStatus, name="supply_order_status"),
        nullable=True,
    )
    to_status: Mapped[SupplyOrderStatus] = mapped_column(
        SQLEnum(SupplyOrderStatus, name="supply_order_status"),
        nullable=False,
    )
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
