"""
Calendar projector - derived occupancy entries per vendor and customer.

Entries are rebuilt from bookings after every lifecycle commit. A failed
projection never undoes the booking change; it is logged, counted and
raised as ``CalendarSyncError`` so the caller learns the calendar is
stale.
"""
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.lib.errors import CalendarSyncError, ForbiddenException
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.lib.metrics import get_metrics_collector
from marketplace.models import Booking, CalendarEntry, CalendarOwnerType, UserRole
from marketplace.repositories.bookings import BookingRepository
from marketplace.repositories.calendar import CalendarRepository
from marketplace.repositories.vendors import VendorRepository


logger = get_logger(__name__)


class CalendarProjector:

    def __init__(self, session: Session):
        self.session = session

    def project(self, booking: Booking) -> None:
        """Upsert the vendor entry and upsert or delete the customer entry (no commit)."""
        self._upsert(booking, CalendarOwnerType.VENDOR)
        if booking.customer_user_id is None:
            CalendarRepository.delete_entry(self.session, booking.id, CalendarOwnerType.CUSTOMER)
        else:
            self._upsert(booking, CalendarOwnerType.CUSTOMER)

    def sync_bookings(self, booking_ids: Sequence[UUID]) -> None:
        """
        Project the given bookings in one transaction.

        Raises:
            CalendarSyncError: If the projection could not be written
        """
        if not booking_ids:
            return
        try:
            for booking in BookingRepository.get_many(self.session, booking_ids):
                self.project(booking)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            get_metrics_collector().increment_calendar_sync_failures()
            logger.error(f"Calendar sync failed for bookings {list(map(str, booking_ids))}: {e}", exc_info=True)
            raise CalendarSyncError(str(booking_ids[0])) from e

    def rebuild_vendor(self, vendor_id: UUID) -> int:
        """Drop and recreate every calendar entry derived from a vendor's bookings."""
        bookings = list(
            self.session.execute(select(Booking).where(Booking.vendor_id == vendor_id)).scalars()
        )
        CalendarRepository.delete_vendor_entries(self.session, vendor_id)
        self.session.flush()
        for booking in bookings:
            self.project(booking)
        self.session.commit()
        logger.info(f"Rebuilt calendar for vendor {vendor_id} ({len(bookings)} bookings)")
        return len(bookings)

    def list_entries(
        self,
        identity: Identity,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> List[CalendarEntry]:
        """Vendors see their vendor calendar, everyone else their customer calendar."""
        if identity.role == UserRole.VENDOR:
            vendor = VendorRepository.get_vendor_for_user(self.session, identity.user_id)
            if vendor is None:
                raise ForbiddenException("Vendor profile not found")
            return CalendarRepository.list_entries(
                self.session, CalendarOwnerType.VENDOR, vendor.id, range_start, range_end
            )
        return CalendarRepository.list_entries(
            self.session, CalendarOwnerType.CUSTOMER, identity.user_id, range_start, range_end
        )

    def _upsert(self, booking: Booking, owner_type: CalendarOwnerType) -> CalendarEntry:
        entry = CalendarRepository.get_entry(self.session, booking.id, owner_type)
        if entry is None:
            entry = CalendarEntry(booking_id=booking.id, owner_type=owner_type)
            self.session.add(entry)
        if owner_type == CalendarOwnerType.VENDOR:
            entry.vendor_id = booking.vendor_id
        else:
            entry.customer_user_id = booking.customer_user_id
        entry.service_id = booking.service_id
        entry.scheduled_start = booking.scheduled_start
        entry.scheduled_end = booking.scheduled_end
        entry.status = booking.status
        return entry
