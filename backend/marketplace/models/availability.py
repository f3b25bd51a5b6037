"""
Availability models - recurring weekly windows and one-off overrides.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, Integer, ForeignKey, Uuid, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, UTCDateTime, utcnow


class OverrideType(str, enum.Enum):
    """BLOCK removes time from the weekly schedule; EXTEND adds time."""
    BLOCK = "BLOCK"
    EXTEND = "EXTEND"


class WeeklyAvailabilityWindow(Base):
    """
    Recurring availability for one day of the week.

    ``day_of_week`` counts from Sunday (0) to Saturday (6); minutes are
    offsets from UTC midnight. Windows of one vendor/day never overlap.
    """
    __tablename__ = "weekly_availability"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    end_minute: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="weekly_day_range"),
        CheckConstraint("start_minute < end_minute", name="weekly_start_before_end"),
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklyAvailabilityWindow(day={self.day_of_week}, "
            f"{self.start_minute}-{self.end_minute})>"
        )


class AvailabilityOverride(Base):
    """One-off BLOCK or EXTEND of a vendor's availability (at most 7 days)."""
    __tablename__ = "availability_overrides"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[OverrideType] = mapped_column(
        SQLEnum(OverrideType, name="availability_override_type"),
        nullable=False,
    )
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="override_start_before_end"),
    )
