"""Availability repository - weekly windows and overrides"""

from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from marketplace.models import WeeklyAvailabilityWindow, AvailabilityOverride


class AvailabilityRepository:

    @staticmethod
    def list_weekly(db: Session, vendor_id: UUID) -> List[WeeklyAvailabilityWindow]:
        stmt = (
            select(WeeklyAvailabilityWindow)
            .where(WeeklyAvailabilityWindow.vendor_id == vendor_id)
            .order_by(WeeklyAvailabilityWindow.day_of_week, WeeklyAvailabilityWindow.start_minute)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def replace_weekly(db: Session, vendor_id: UUID, windows: Iterable[dict]) -> List[WeeklyAvailabilityWindow]:
        """Delete every weekly window of the vendor and insert the new set (no commit)"""
        db.execute(delete(WeeklyAvailabilityWindow).where(WeeklyAvailabilityWindow.vendor_id == vendor_id))
        rows = [WeeklyAvailabilityWindow(vendor_id=vendor_id, **w) for w in windows]
        db.add_all(rows)
        db.flush()
        return rows

    @staticmethod
    def list_overrides(db: Session, vendor_id: UUID) -> List[AvailabilityOverride]:
        stmt = (
            select(AvailabilityOverride)
            .where(AvailabilityOverride.vendor_id == vendor_id)
            .order_by(AvailabilityOverride.starts_at, AvailabilityOverride.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_overrides_in_range(
        db: Session, vendor_id: UUID, range_start: datetime, range_end: datetime
    ) -> List[AvailabilityOverride]:
        """Overrides intersecting ``[range_start, range_end)``"""
        stmt = (
            select(AvailabilityOverride)
            .where(
                AvailabilityOverride.vendor_id == vendor_id,
                AvailabilityOverride.starts_at < range_end,
                AvailabilityOverride.ends_at > range_start,
            )
            .order_by(AvailabilityOverride.starts_at, AvailabilityOverride.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def get_override(db: Session, vendor_id: UUID, override_id: UUID) -> Optional[AvailabilityOverride]:
        return db.execute(
            select(AvailabilityOverride).where(
                AvailabilityOverride.id == override_id,
                AvailabilityOverride.vendor_id == vendor_id,
            )
        ).scalar_one_or_none()
