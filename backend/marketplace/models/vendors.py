"""
Vendor, staff and seat models.

A vendor with no active seats is "unsegmented": it serves one booking at
a time. Seats add parallel capacity, optionally restricted to a set of
services and bound to a staff member.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    ForeignKey,
    Uuid,
    Table,
    Column,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow


class VendorStatus(str, enum.Enum):
    """Vendor onboarding status. Only VERIFIED vendors accept bookings."""
    PENDING_REVIEW = "PENDING_REVIEW"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


class Vendor(Base):
    """Vendor entity - a business offering bookable services."""
    __tablename__ = "vendors"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        index=True,
    )
    business_name: Mapped[str] = mapped_column(String(120), nullable=False)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[VendorStatus] = mapped_column(
        SQLEnum(VendorStatus, name="vendor_status"),
        nullable=False,
        default=VendorStatus.PENDING_REVIEW,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Vendor(id={self.id}, business_name={self.business_name}, status={self.status})>"


class StaffMember(Base):
    """A person working for a vendor; seats may be assigned to one."""
    __tablename__ = "staff_members"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


# Seat eligibility: a seat with no rows here may host any of the vendor's services
seat_services = Table(
    "seat_services",
    Base.metadata,
    Column("seat_id", Uuid(as_uuid=True), ForeignKey("service_seats.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Uuid(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class Seat(Base):
    """
    Seat entity - one unit of parallel capacity (a chair, a room, a
    staff slot). ``capacity`` bookings may overlap on the same seat.
    """
    __tablename__ = "service_seats"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    label: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    staff_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff_members.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="seat_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, label={self.label}, capacity={self.capacity})>"
