"""Booking repository - explicit queries over bookings"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from marketplace.models import Booking, BookingStatus, ACTIVE_BOOKING_STATUSES


def _overlapping(start: datetime, end: datetime):
    return (Booking.scheduled_start < end, Booking.scheduled_end > start)


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: UUID) -> Optional[Booking]:
        return db.get(Booking, booking_id)

    @staticmethod
    def lock_booking(db: Session, booking_id: UUID) -> Optional[Booking]:
        return db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        ).scalar_one_or_none()

    @staticmethod
    def get_many(db: Session, booking_ids: Sequence[UUID]) -> List[Booking]:
        if not booking_ids:
            return []
        stmt = select(Booking).where(Booking.id.in_(list(booking_ids))).order_by(Booking.scheduled_start)
        return list(db.execute(stmt).scalars())

    # ===== Capacity checks =====

    @staticmethod
    def find_vendor_overlap(
        db: Session,
        vendor_id: UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[UUID] = None,
        seatless_only: bool = False,
    ) -> Optional[Booking]:
        """First active booking of the vendor overlapping ``[start, end)``"""
        stmt = select(Booking).where(
            Booking.vendor_id == vendor_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            *_overlapping(start, end),
        )
        if seatless_only:
            stmt = stmt.where(Booking.seat_id.is_(None))
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        return db.execute(stmt.order_by(Booking.scheduled_start).limit(1)).scalar_one_or_none()

    @staticmethod
    def count_active_by_seat(
        db: Session,
        seat_ids: Sequence[UUID],
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> Dict[UUID, int]:
        """Active overlapping bookings per seat; seats with none are absent"""
        if not seat_ids:
            return {}
        stmt = (
            select(Booking.seat_id, func.count(Booking.id))
            .where(
                Booking.seat_id.in_(list(seat_ids)),
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                *_overlapping(start, end),
            )
            .group_by(Booking.seat_id)
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        return {seat_id: count for seat_id, count in db.execute(stmt).all()}

    # ===== Vendor queries =====

    @staticmethod
    def list_vendor_bookings(
        db: Session,
        vendor_id: UUID,
        status: Optional[BookingStatus] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
        take: int = 20,
        skip: int = 0,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.vendor_id == vendor_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if start_from is not None:
            stmt = stmt.where(Booking.scheduled_start >= start_from)
        if start_to is not None:
            stmt = stmt.where(Booking.scheduled_start <= start_to)
        stmt = stmt.order_by(Booking.scheduled_start.desc(), Booking.id).offset(skip).limit(take)
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_vendor_upcoming(db: Session, vendor_id: UUID, now: datetime, take: int) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.vendor_id == vendor_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.scheduled_end >= now,
            )
            .order_by(Booking.scheduled_start, Booking.id)
            .limit(take)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def count_vendor_by_status(
        db: Session,
        vendor_id: UUID,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> Dict[BookingStatus, int]:
        stmt = select(Booking.status, func.count(Booking.id)).where(Booking.vendor_id == vendor_id)
        if start_from is not None:
            stmt = stmt.where(Booking.scheduled_start >= start_from)
        if start_to is not None:
            stmt = stmt.where(Booking.scheduled_start <= start_to)
        return {status: count for status, count in db.execute(stmt.group_by(Booking.status)).all()}

    @staticmethod
    def sum_vendor_completed_sales(
        db: Session,
        vendor_id: UUID,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> int:
        stmt = select(func.coalesce(func.sum(Booking.price_minor), 0)).where(
            Booking.vendor_id == vendor_id,
            Booking.status == BookingStatus.COMPLETED,
        )
        if start_from is not None:
            stmt = stmt.where(Booking.scheduled_start >= start_from)
        if start_to is not None:
            stmt = stmt.where(Booking.scheduled_start <= start_to)
        return int(db.execute(stmt).scalar_one())

    @staticmethod
    def list_vendor_completable(
        db: Session, vendor_id: Optional[UUID], day_start: datetime, now: datetime
    ) -> List[Booking]:
        """CONFIRMED bookings that ended today (UTC) before ``now``; all vendors when vendor_id is None"""
        stmt = select(Booking).where(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.scheduled_end < now,
            Booking.scheduled_end >= day_start,
        )
        if vendor_id is not None:
            stmt = stmt.where(Booking.vendor_id == vendor_id)
        return list(db.execute(stmt.order_by(Booking.scheduled_end, Booking.id).with_for_update()).scalars())

    # ===== Customer queries =====

    @staticmethod
    def list_customer_upcoming(db: Session, user_id: UUID, now: datetime, take: int) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.customer_user_id == user_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.scheduled_end >= now,
            )
            .order_by(Booking.scheduled_start, Booking.id)
            .limit(take)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_customer_completed(db: Session, user_id: UUID, take: int) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.customer_user_id == user_id,
                Booking.status == BookingStatus.COMPLETED,
            )
            .order_by(Booking.scheduled_start.desc(), Booking.id)
            .limit(take)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_claimable(
        db: Session, email: Optional[str], phone: Optional[str], limit: int
    ) -> List[Booking]:
        """Bookings without a customer identity matching the contact snapshot"""
        conditions = []
        if email:
            conditions.append(Booking.customer_email == email)
        if phone:
            conditions.append(Booking.customer_phone == phone)
        if not conditions:
            return []
        stmt = (
            select(Booking)
            .where(Booking.customer_user_id.is_(None), or_(*conditions))
            .order_by(Booking.created_at, Booking.id)
            .limit(limit)
            .with_for_update()
        )
        return list(db.execute(stmt).scalars())

    # ===== Sweeps =====

    @staticmethod
    def list_due_reminders(db: Session, now: datetime, window_end: datetime) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.reminder_sent_at.is_(None),
                Booking.scheduled_start >= now,
                Booking.scheduled_start <= window_end,
            )
            .order_by(Booking.scheduled_start, Booking.id)
            .with_for_update()
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_stale_awaiting_payment(db: Session, created_before: datetime) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.status == BookingStatus.AWAITING_PAYMENT,
                Booking.created_at < created_before,
            )
            .order_by(Booking.created_at, Booking.id)
            .with_for_update()
        )
        return list(db.execute(stmt).scalars())
