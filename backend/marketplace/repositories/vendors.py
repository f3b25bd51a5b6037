"""Vendor repository - vendors, staff members and seats"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, exists, or_
from sqlalchemy.orm import Session

from marketplace.models import Vendor, StaffMember, Seat, seat_services


class VendorRepository:
    """Repository for vendor, staff and seat database operations"""

    @staticmethod
    def get_vendor(db: Session, vendor_id: UUID) -> Optional[Vendor]:
        return db.get(Vendor, vendor_id)

    @staticmethod
    def get_vendor_for_user(db: Session, user_id: UUID) -> Optional[Vendor]:
        """Get the vendor owned by a user"""
        return db.execute(select(Vendor).where(Vendor.user_id == user_id)).scalar_one_or_none()

    @staticmethod
    def lock_vendor(db: Session, vendor_id: UUID) -> Optional[Vendor]:
        """
        Load the vendor row with ``SELECT ... FOR UPDATE``.

        Every booking write for a vendor takes this lock first, which
        serializes the overlap check and the insert that follows it.
        """
        return db.execute(
            select(Vendor).where(Vendor.id == vendor_id).with_for_update()
        ).scalar_one_or_none()

    # ===== Staff =====

    @staticmethod
    def list_staff(db: Session, vendor_id: UUID, include_inactive: bool = False) -> List[StaffMember]:
        stmt = select(StaffMember).where(StaffMember.vendor_id == vendor_id)
        if not include_inactive:
            stmt = stmt.where(StaffMember.is_active.is_(True))
        return list(db.execute(stmt.order_by(StaffMember.created_at, StaffMember.id)).scalars())

    @staticmethod
    def get_staff(db: Session, vendor_id: UUID, staff_id: UUID) -> Optional[StaffMember]:
        return db.execute(
            select(StaffMember).where(StaffMember.id == staff_id, StaffMember.vendor_id == vendor_id)
        ).scalar_one_or_none()

    # ===== Seats =====

    @staticmethod
    def list_seats(db: Session, vendor_id: UUID, include_inactive: bool = False) -> List[Seat]:
        stmt = select(Seat).where(Seat.vendor_id == vendor_id)
        if not include_inactive:
            stmt = stmt.where(Seat.is_active.is_(True))
        return list(db.execute(stmt.order_by(Seat.created_at, Seat.id)).scalars())

    @staticmethod
    def get_seat(db: Session, vendor_id: UUID, seat_id: UUID) -> Optional[Seat]:
        return db.execute(
            select(Seat).where(Seat.id == seat_id, Seat.vendor_id == vendor_id)
        ).scalar_one_or_none()

    @staticmethod
    def list_eligible_seats(db: Session, vendor_id: UUID, service_id: UUID) -> List[Seat]:
        """
        Active seats that may host a service, in creation order.

        A seat is eligible when it lists the service or lists no service
        at all.
        """
        restricted = exists().where(seat_services.c.seat_id == Seat.id)
        matches = exists().where(
            seat_services.c.seat_id == Seat.id,
            seat_services.c.service_id == service_id,
        )
        stmt = (
            select(Seat)
            .where(
                Seat.vendor_id == vendor_id,
                Seat.is_active.is_(True),
                or_(matches, ~restricted),
            )
            .order_by(Seat.created_at, Seat.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def get_seat_service_ids(db: Session, seat_id: UUID) -> List[UUID]:
        rows = db.execute(
            select(seat_services.c.service_id).where(seat_services.c.seat_id == seat_id)
        ).scalars()
        return list(rows)

    @staticmethod
    def replace_seat_services(db: Session, seat_id: UUID, service_ids: Iterable[UUID]) -> None:
        db.execute(seat_services.delete().where(seat_services.c.seat_id == seat_id))
        rows = [{"seat_id": seat_id, "service_id": sid} for sid in dict.fromkeys(service_ids)]
        if rows:
            db.execute(seat_services.insert(), rows)
