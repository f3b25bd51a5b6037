"""
Availability management and slot queries.

Weekly windows and overrides are validated and stored here; slot lists
are computed on the fly by the pure functions in
``marketplace.scheduling``.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from marketplace.lib.db import UnitOfWork, utcnow
from marketplace.lib.errors import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    OVERLAPPING_WINDOWS,
)
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.models import AvailabilityOverride, OverrideType, Service, WeeklyAvailabilityWindow
from marketplace.repositories.availability import AvailabilityRepository
from marketplace.repositories.catalog import ServiceRepository
from marketplace.scheduling.slots import generate_slots
from marketplace.scheduling.time_windows import (
    Interval,
    MAX_OVERRIDE_DURATION,
    MINUTES_PER_DAY,
    find_overlapping_windows,
    start_of_day_utc,
)
from marketplace.services.vendor_context import require_bookable_vendor, require_vendor_for_identity


logger = get_logger(__name__)

MAX_WEEKLY_WINDOWS = 70
MAX_OVERRIDE_REASON_LENGTH = 200
DEFAULT_SLOT_DAYS = 30
MAX_SLOT_DAYS = 60


@dataclass(frozen=True)
class WindowInput:
    day_of_week: int
    start_minute: int
    end_minute: int


def validate_weekly_windows(windows: Sequence[WindowInput]) -> List[WindowInput]:
    """
    Validate a full weekly schedule.

    Raises:
        BadRequestException: Out-of-range values, start >= end, too many windows
        ConflictException: Two windows on the same day overlap
    """
    if len(windows) > MAX_WEEKLY_WINDOWS:
        raise BadRequestException(f"At most {MAX_WEEKLY_WINDOWS} weekly windows are allowed")

    for window in windows:
        if not 0 <= window.day_of_week <= 6:
            raise BadRequestException("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        if not 0 <= window.start_minute <= MINUTES_PER_DAY - 1:
            raise BadRequestException(f"start_minute must be between 0 and {MINUTES_PER_DAY - 1}")
        if not 1 <= window.end_minute <= MINUTES_PER_DAY:
            raise BadRequestException(f"end_minute must be between 1 and {MINUTES_PER_DAY}")
        if window.start_minute >= window.end_minute:
            raise BadRequestException("Window start must be before its end")

    overlap = find_overlapping_windows(windows)
    if overlap is not None:
        first, second = overlap
        raise ConflictException(
            "Weekly availability windows cannot overlap",
            reason=OVERLAPPING_WINDOWS,
            details={
                "day_of_week": first.day_of_week,
                "windows": [
                    [first.start_minute, first.end_minute],
                    [second.start_minute, second.end_minute],
                ],
            },
        )

    return sorted(windows, key=lambda w: (w.day_of_week, w.start_minute))


class AvailabilityService:
    """Weekly schedule, overrides and slot listing for a vendor."""

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        self.session = session
        self.clock = clock or utcnow

    # ===== Weekly windows =====

    def get_weekly_availability(self, identity: Identity) -> List[WeeklyAvailabilityWindow]:
        vendor = require_vendor_for_identity(self.session, identity)
        return AvailabilityRepository.list_weekly(self.session, vendor.id)

    def set_weekly_availability(
        self, identity: Identity, windows: Sequence[WindowInput]
    ) -> List[WeeklyAvailabilityWindow]:
        """
        Replace the whole weekly schedule.

        Delete and insert share one transaction, so readers never see a
        vendor with an empty schedule mid-update.
        """
        vendor = require_vendor_for_identity(self.session, identity)
        normalized = validate_weekly_windows(windows)

        with UnitOfWork(self.session):
            AvailabilityRepository.replace_weekly(
                self.session,
                vendor.id,
                [
                    {
                        "day_of_week": w.day_of_week,
                        "start_minute": w.start_minute,
                        "end_minute": w.end_minute,
                    }
                    for w in normalized
                ],
            )

        logger.info(f"Weekly availability replaced for vendor {vendor.id} ({len(normalized)} windows)")
        return AvailabilityRepository.list_weekly(self.session, vendor.id)

    # ===== Overrides =====

    def list_overrides(self, identity: Identity) -> List[AvailabilityOverride]:
        vendor = require_vendor_for_identity(self.session, identity)
        return AvailabilityRepository.list_overrides(self.session, vendor.id)

    def create_override(
        self,
        identity: Identity,
        override_type: OverrideType,
        starts_at: datetime,
        ends_at: datetime,
        reason: Optional[str] = None,
    ) -> AvailabilityOverride:
        vendor = require_vendor_for_identity(self.session, identity)

        if starts_at.tzinfo is None or ends_at.tzinfo is None:
            raise BadRequestException("Override times must include a timezone")
        if starts_at >= ends_at:
            raise BadRequestException("Override end must be after start")
        if ends_at - starts_at > MAX_OVERRIDE_DURATION:
            raise BadRequestException("Overrides cannot exceed 7 days")
        trimmed_reason = reason.strip() if reason else None
        if trimmed_reason and len(trimmed_reason) > MAX_OVERRIDE_REASON_LENGTH:
            raise BadRequestException(
                f"Override reason cannot exceed {MAX_OVERRIDE_REASON_LENGTH} characters"
            )

        override = AvailabilityOverride(
            vendor_id=vendor.id,
            type=override_type,
            starts_at=starts_at,
            ends_at=ends_at,
            reason=trimmed_reason or None,
        )
        self.session.add(override)
        self.session.commit()

        logger.info(
            f"{override_type.value} override {override.id} created for vendor {vendor.id} "
            f"({starts_at.isoformat()} - {ends_at.isoformat()})"
        )
        return override

    def delete_override(self, identity: Identity, override_id: UUID) -> None:
        vendor = require_vendor_for_identity(self.session, identity)
        override = AvailabilityRepository.get_override(self.session, vendor.id, override_id)
        if override is None:
            raise NotFoundException("Override", str(override_id))
        self.session.delete(override)
        self.session.commit()
        logger.info(f"Override {override_id} deleted for vendor {vendor.id}")

    # ===== Slots =====

    def list_slots(
        self,
        identity: Identity,
        service_id: UUID,
        start_date: Optional[datetime] = None,
        days: Optional[int] = None,
    ) -> List[Interval]:
        """Slots for one of the calling vendor's active services."""
        vendor = require_vendor_for_identity(self.session, identity)
        service = ServiceRepository.get_vendor_service(self.session, vendor.id, service_id)
        if service is None or not service.is_active:
            raise NotFoundException("Service", str(service_id))
        return self._slots_for_range(service, start_date, days)

    def list_public_slots(
        self,
        service_id: UUID,
        start_date: Optional[datetime] = None,
        days: Optional[int] = None,
    ) -> List[Interval]:
        """Slots for any active service of a verified vendor."""
        service = ServiceRepository.get_service(self.session, service_id)
        if service is None or not service.is_active:
            raise NotFoundException("Service", str(service_id))
        require_bookable_vendor(self.session, service.vendor_id)
        return self._slots_for_range(service, start_date, days)

    def slots_on_day(self, service: Service, moment: datetime) -> List[Interval]:
        """Slots of the UTC day containing ``moment`` (used to validate a booking start)."""
        range_start = start_of_day_utc(moment)
        return self.compute_slots(service, range_start, range_start + timedelta(days=1))

    def compute_slots(self, service: Service, range_start: datetime, range_end: datetime) -> List[Interval]:
        weekly = AvailabilityRepository.list_weekly(self.session, service.vendor_id)
        if not weekly:
            return []
        overrides = AvailabilityRepository.list_overrides_in_range(
            self.session, service.vendor_id, range_start, range_end
        )
        return generate_slots(
            weekly,
            overrides,
            range_start,
            range_end,
            service.duration_minutes,
            service.buffer_minutes,
        )

    def _slots_for_range(
        self, service: Service, start_date: Optional[datetime], days: Optional[int]
    ) -> List[Interval]:
        days = DEFAULT_SLOT_DAYS if days is None else days
        if not 1 <= days <= MAX_SLOT_DAYS:
            raise BadRequestException(f"days must be between 1 and {MAX_SLOT_DAYS}")
        range_start = start_of_day_utc(start_date or self.clock())
        return self.compute_slots(service, range_start, range_start + timedelta(days=days))
