"""
Resource allocator.

Decides whether a booking may occupy ``[start, end)`` and which seat it
binds to. Must run inside the same transaction as the booking write,
after the vendor row has been locked.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from marketplace.lib.errors import (
    ConflictException,
    SLOT_UNAVAILABLE,
    SEAT_NOT_ELIGIBLE,
    SEAT_AT_CAPACITY,
    NO_SEAT_AVAILABLE,
)
from marketplace.lib.logging import get_logger, log_with_context
from marketplace.lib.metrics import get_metrics_collector
from marketplace.models import Seat
from marketplace.repositories.bookings import BookingRepository
from marketplace.repositories.vendors import VendorRepository


logger = get_logger(__name__)


@dataclass(frozen=True)
class Allocation:
    """Outcome of a successful allocation; both ids are None for unsegmented vendors."""
    seat_id: Optional[UUID]
    staff_id: Optional[UUID]

    @property
    def is_segmented(self) -> bool:
        return self.seat_id is not None


def effective_capacity(seat: Seat) -> int:
    return seat.capacity if seat.capacity and seat.capacity > 0 else 1


class ResourceAllocator:
    """
    Capacity checks for one booking request.

    Vendors without eligible seats serve one booking at a time. Vendors
    with seats admit up to ``capacity`` overlapping bookings per seat.
    """

    def __init__(self, session: Session):
        self.session = session

    def allocate(
        self,
        vendor_id: UUID,
        service_id: UUID,
        start: datetime,
        end: datetime,
        requested_seat_id: Optional[UUID] = None,
        preferred_seat_id: Optional[UUID] = None,
        exclude_booking_id: Optional[UUID] = None,
    ) -> Allocation:
        """
        Pick a seat for the booking or raise a conflict.

        Args:
            requested_seat_id: Seat the caller insists on; must be eligible and free
            preferred_seat_id: Seat to keep when free (reschedules), else any free seat
            exclude_booking_id: Booking ignored by overlap counts (reschedules)

        Raises:
            ConflictException: With reason slot_unavailable, seat_not_eligible,
                seat_at_capacity or no_seat_available
        """
        seats = VendorRepository.list_eligible_seats(self.session, vendor_id, service_id)

        if not seats:
            if requested_seat_id is not None:
                self._reject(
                    "Selected seat is not available for this service",
                    SEAT_NOT_ELIGIBLE,
                    vendor_id,
                    seat_id=str(requested_seat_id),
                )
            conflicting = BookingRepository.find_vendor_overlap(
                self.session, vendor_id, start, end, exclude_booking_id=exclude_booking_id
            )
            if conflicting is not None:
                self._reject(
                    "Another booking already occupies this time window",
                    SLOT_UNAVAILABLE,
                    vendor_id,
                )
            return Allocation(seat_id=None, staff_id=None)

        # Segmented and unsegmented bookings must never coexist on one window
        legacy = BookingRepository.find_vendor_overlap(
            self.session,
            vendor_id,
            start,
            end,
            exclude_booking_id=exclude_booking_id,
            seatless_only=True,
        )
        if legacy is not None:
            self._reject("This time slot is no longer available", SLOT_UNAVAILABLE, vendor_id)

        counts = BookingRepository.count_active_by_seat(
            self.session, [seat.id for seat in seats], start, end, exclude_booking_id=exclude_booking_id
        )

        def is_free(seat: Seat) -> bool:
            return counts.get(seat.id, 0) < effective_capacity(seat)

        if requested_seat_id is not None:
            seat = next((s for s in seats if s.id == requested_seat_id), None)
            if seat is None:
                self._reject(
                    "Selected seat is not available for this service",
                    SEAT_NOT_ELIGIBLE,
                    vendor_id,
                    seat_id=str(requested_seat_id),
                )
            if not is_free(seat):
                self._reject(
                    "Selected seat is no longer free for that slot",
                    SEAT_AT_CAPACITY,
                    vendor_id,
                    seat_id=str(requested_seat_id),
                )
            return Allocation(seat_id=seat.id, staff_id=seat.staff_id)

        if preferred_seat_id is not None:
            preferred = next((s for s in seats if s.id == preferred_seat_id), None)
            if preferred is not None and is_free(preferred):
                return Allocation(seat_id=preferred.id, staff_id=preferred.staff_id)

        available = next((s for s in seats if is_free(s)), None)
        if available is None:
            self._reject("No seats are available for this time slot", NO_SEAT_AVAILABLE, vendor_id)
        return Allocation(seat_id=available.id, staff_id=available.staff_id)

    @staticmethod
    def _reject(message: str, reason: str, vendor_id: UUID, **fields) -> None:
        get_metrics_collector().increment_conflicts(reason)
        log_with_context(
            logger,
            "info",
            "Allocation rejected",
            vendor_id=str(vendor_id),
            reason=reason,
            **fields,
        )
        raise ConflictException(message, reason=reason, details=fields or None)
