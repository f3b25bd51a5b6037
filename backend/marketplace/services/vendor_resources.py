"""
Staff members and seats - the parallel capacity of a vendor.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from marketplace.lib.errors import BadRequestException, NotFoundException
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.models import Seat, StaffMember
from marketplace.repositories.catalog import ServiceRepository
from marketplace.repositories.vendors import VendorRepository
from marketplace.services.vendor_context import require_vendor_for_identity


logger = get_logger(__name__)

MIN_SEAT_CAPACITY = 1
MAX_SEAT_CAPACITY = 10
MAX_SEAT_SERVICES = 50


@dataclass
class SeatView:
    """A seat together with the ids of the services it is restricted to."""
    seat: Seat
    service_ids: List[UUID]


class VendorResourceService:
    """Manage the staff and seats of the calling vendor."""

    def __init__(self, session: Session):
        self.session = session

    # ===== Staff =====

    def list_staff(self, identity: Identity) -> List[StaffMember]:
        vendor = require_vendor_for_identity(self.session, identity)
        return VendorRepository.list_staff(self.session, vendor.id, include_inactive=True)

    def create_staff(
        self,
        identity: Identity,
        name: str,
        bio: Optional[str] = None,
        is_active: bool = True,
    ) -> StaffMember:
        vendor = require_vendor_for_identity(self.session, identity)
        trimmed = name.strip()
        if not trimmed:
            raise BadRequestException("Staff member name is required")

        staff = StaffMember(vendor_id=vendor.id, name=trimmed, bio=bio, is_active=is_active)
        self.session.add(staff)
        self.session.commit()
        logger.info(f"Staff member {staff.id} created for vendor {vendor.id}")
        return staff

    def update_staff(self, identity: Identity, staff_id: UUID, **changes) -> StaffMember:
        vendor = require_vendor_for_identity(self.session, identity)
        staff = self._require_staff(vendor.id, staff_id)
        if changes.get("name") is not None:
            trimmed = changes["name"].strip()
            if not trimmed:
                raise BadRequestException("Staff member name is required")
            staff.name = trimmed
        if "bio" in changes:
            staff.bio = changes["bio"]
        if changes.get("is_active") is not None:
            staff.is_active = changes["is_active"]
        self.session.commit()
        return staff

    def archive_staff(self, identity: Identity, staff_id: UUID) -> None:
        vendor = require_vendor_for_identity(self.session, identity)
        staff = self._require_staff(vendor.id, staff_id)
        staff.is_active = False
        self.session.commit()
        logger.info(f"Staff member {staff_id} archived")

    # ===== Seats =====

    def list_seats(self, identity: Identity) -> List[SeatView]:
        vendor = require_vendor_for_identity(self.session, identity)
        seats = VendorRepository.list_seats(self.session, vendor.id, include_inactive=True)
        return [self._view(seat) for seat in seats]

    def create_seat(
        self,
        identity: Identity,
        label: str,
        capacity: int = 1,
        description: Optional[str] = None,
        staff_id: Optional[UUID] = None,
        service_ids: Optional[Sequence[UUID]] = None,
        is_active: bool = True,
    ) -> SeatView:
        vendor = require_vendor_for_identity(self.session, identity)

        trimmed = label.strip()
        if not trimmed:
            raise BadRequestException("Seat label is required")
        self._validate_capacity(capacity)
        if staff_id is not None:
            self._require_staff(vendor.id, staff_id)
        if service_ids:
            self._validate_service_ids(vendor.id, service_ids)

        seat = Seat(
            vendor_id=vendor.id,
            label=trimmed,
            description=description,
            capacity=capacity,
            staff_id=staff_id,
            is_active=is_active,
        )
        self.session.add(seat)
        self.session.flush()
        if service_ids:
            VendorRepository.replace_seat_services(self.session, seat.id, service_ids)
        self.session.commit()

        logger.info(f"Seat {seat.id} created for vendor {vendor.id} (capacity={capacity})")
        return self._view(seat)

    def update_seat(self, identity: Identity, seat_id: UUID, **changes) -> SeatView:
        """
        Partial seat update. ``staff_id`` may be cleared with None;
        ``service_ids`` replaces the eligibility set (empty = all services).
        """
        vendor = require_vendor_for_identity(self.session, identity)
        seat = self._require_seat(vendor.id, seat_id)

        if changes.get("label") is not None:
            trimmed = changes["label"].strip()
            if not trimmed:
                raise BadRequestException("Seat label is required")
            seat.label = trimmed
        if "description" in changes:
            seat.description = changes["description"]
        if changes.get("capacity") is not None:
            self._validate_capacity(changes["capacity"])
            seat.capacity = changes["capacity"]
        if "staff_id" in changes:
            if changes["staff_id"] is not None:
                self._require_staff(vendor.id, changes["staff_id"])
            seat.staff_id = changes["staff_id"]
        if changes.get("is_active") is not None:
            seat.is_active = changes["is_active"]
        if changes.get("service_ids") is not None:
            service_ids = changes["service_ids"]
            if service_ids:
                self._validate_service_ids(vendor.id, service_ids)
            VendorRepository.replace_seat_services(self.session, seat.id, service_ids)

        self.session.commit()
        return self._view(seat)

    def archive_seat(self, identity: Identity, seat_id: UUID) -> None:
        vendor = require_vendor_for_identity(self.session, identity)
        seat = self._require_seat(vendor.id, seat_id)
        seat.is_active = False
        self.session.commit()
        logger.info(f"Seat {seat_id} archived")

    # ===== Helpers =====

    def _view(self, seat: Seat) -> SeatView:
        return SeatView(seat=seat, service_ids=VendorRepository.get_seat_service_ids(self.session, seat.id))

    def _require_staff(self, vendor_id: UUID, staff_id: UUID) -> StaffMember:
        staff = VendorRepository.get_staff(self.session, vendor_id, staff_id)
        if staff is None:
            raise NotFoundException("Staff member", str(staff_id))
        return staff

    def _require_seat(self, vendor_id: UUID, seat_id: UUID) -> Seat:
        seat = VendorRepository.get_seat(self.session, vendor_id, seat_id)
        if seat is None:
            raise NotFoundException("Seat", str(seat_id))
        return seat

    @staticmethod
    def _validate_capacity(capacity: int) -> None:
        if not MIN_SEAT_CAPACITY <= capacity <= MAX_SEAT_CAPACITY:
            raise BadRequestException(
                f"Seat capacity must be between {MIN_SEAT_CAPACITY} and {MAX_SEAT_CAPACITY}"
            )

    def _validate_service_ids(self, vendor_id: UUID, service_ids: Sequence[UUID]) -> None:
        unique_ids = list(dict.fromkeys(service_ids))
        if len(unique_ids) > MAX_SEAT_SERVICES:
            raise BadRequestException(f"A seat can list at most {MAX_SEAT_SERVICES} services")
        found = ServiceRepository.count_vendor_services(self.session, vendor_id, unique_ids)
        if found != len(unique_ids):
            raise BadRequestException("Seat services must belong to this vendor")
