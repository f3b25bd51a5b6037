"""Calendar entry repository"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from marketplace.models import CalendarEntry, CalendarOwnerType


class CalendarRepository:

    @staticmethod
    def get_entry(db: Session, booking_id: UUID, owner_type: CalendarOwnerType) -> Optional[CalendarEntry]:
        return db.execute(
            select(CalendarEntry).where(
                CalendarEntry.booking_id == booking_id,
                CalendarEntry.owner_type == owner_type,
            )
        ).scalar_one_or_none()

    @staticmethod
    def delete_entry(db: Session, booking_id: UUID, owner_type: CalendarOwnerType) -> int:
        result = db.execute(
            delete(CalendarEntry).where(
                CalendarEntry.booking_id == booking_id,
                CalendarEntry.owner_type == owner_type,
            )
        )
        return result.rowcount or 0

    @staticmethod
    def delete_vendor_entries(db: Session, vendor_id: UUID) -> None:
        db.execute(
            delete(CalendarEntry).where(
                CalendarEntry.owner_type == CalendarOwnerType.VENDOR,
                CalendarEntry.vendor_id == vendor_id,
            )
        )

    @staticmethod
    def list_entries(
        db: Session,
        owner_type: CalendarOwnerType,
        owner_id: UUID,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> List[CalendarEntry]:
        """Entries of one owner, optionally limited to those intersecting a range"""
        owner_column = (
            CalendarEntry.vendor_id if owner_type == CalendarOwnerType.VENDOR else CalendarEntry.customer_user_id
        )
        stmt = select(CalendarEntry).where(
            CalendarEntry.owner_type == owner_type,
            owner_column == owner_id,
        )
        if range_end is not None:
            stmt = stmt.where(CalendarEntry.scheduled_start < range_end)
        if range_start is not None:
            stmt = stmt.where(CalendarEntry.scheduled_end > range_start)
        return list(db.execute(stmt.order_by(CalendarEntry.scheduled_start, CalendarEntry.id)).scalars())
