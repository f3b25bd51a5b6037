"""
Customer reviews of completed bookings and vendor replies.
"""
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.lib.db import utcnow
from marketplace.lib.errors import BadRequestException, ForbiddenException, NotFoundException
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.models import Booking, BookingStatus, Review, Service, User, UserRole
from marketplace.repositories.vendors import VendorRepository
from marketplace.services.notification_service import NotificationService, get_notification_service
from marketplace.services.vendor_context import require_vendor_for_identity


logger = get_logger(__name__)

MAX_TEXT_LENGTH = 1000
DEFAULT_LIST_LIMIT = 5
MAX_LIST_LIMIT = 50


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise BadRequestException(f"Text must be at most {MAX_TEXT_LENGTH} characters")
    return text or None


class ReviewService:

    def __init__(
        self,
        session: Session,
        clock: Optional[Callable[[], datetime]] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.session = session
        self.clock = clock or utcnow
        self.notifications = notifications or get_notification_service()

    def create_review(
        self, identity: Identity, booking_id: UUID, rating: int, comment: Optional[str] = None
    ) -> Review:
        """
        Rate a completed booking the caller made.

        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: Caller did not make the booking
            BadRequestException: Booking not completed, already reviewed or
                rating outside 1-5
        """
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundException("Booking", str(booking_id))
        if booking.customer_user_id is None or booking.customer_user_id != identity.user_id:
            raise ForbiddenException("Only the customer who made the booking can review it")
        if booking.status != BookingStatus.COMPLETED:
            raise BadRequestException("Only completed bookings can be reviewed")
        if not 1 <= rating <= 5:
            raise BadRequestException("Rating must be between 1 and 5")

        vendor = VendorRepository.get_vendor(self.session, booking.vendor_id)
        if vendor is None or vendor.user_id is None:
            raise BadRequestException("Vendor account is not linked to an active user")

        existing = self.session.execute(
            select(Review.id).where(Review.booking_id == booking.id)
        ).scalar_one_or_none()
        if existing is not None:
            raise BadRequestException("A review already exists for this booking", details={"review_id": str(existing)})

        review = Review(
            booking_id=booking.id,
            vendor_id=booking.vendor_id,
            customer_user_id=identity.user_id,
            rating=rating,
            comment=_clean(comment),
        )
        self.session.add(review)
        self.session.commit()
        logger.info(f"Review {review.id} ({rating}/5) created for booking {booking.id}")

        vendor_user = self.session.get(User, vendor.user_id)
        if vendor_user is not None:
            self.notifications.send_email_sync(
                vendor_user.email,
                f"New {rating}-star review for {self._service_name(booking)} (booking {booking.reference}).",
                subject="New review",
            )
        return review

    def reply_to_review(self, identity: Identity, review_id: UUID, reply: str) -> Review:
        """Vendor reply; each review takes one reply."""
        review = self.session.get(Review, review_id)
        if review is None:
            raise NotFoundException("Review", str(review_id))
        vendor = VendorRepository.get_vendor(self.session, review.vendor_id)
        if identity.role != UserRole.VENDOR or vendor is None or vendor.user_id != identity.user_id:
            raise ForbiddenException("Only the vendor can reply to this review")
        if review.reply is not None:
            raise BadRequestException("This review already has a reply")
        text = _clean(reply)
        if text is None:
            raise BadRequestException("Reply cannot be empty")

        review.reply = text
        review.replied_at = self.clock()
        self.session.commit()
        logger.info(f"Vendor {vendor.id} replied to review {review.id}")

        customer = self.session.get(User, review.customer_user_id)
        booking = self.session.get(Booking, review.booking_id)
        if customer is not None and booking is not None:
            self.notifications.send_email_sync(
                customer.email,
                f"{vendor.business_name} replied to your review of {self._service_name(booking)}.",
                subject="Your review has a reply",
            )
        return review

    def list_vendor_reviews(
        self, identity: Identity, pending_only: bool = False, limit: Optional[int] = None
    ) -> List[Review]:
        """Newest reviews of the caller's vendor, optionally only those without a reply."""
        vendor = require_vendor_for_identity(self.session, identity)
        limit = min(max(limit or DEFAULT_LIST_LIMIT, 1), MAX_LIST_LIMIT)

        stmt = select(Review).where(Review.vendor_id == vendor.id)
        if pending_only:
            stmt = stmt.where(Review.reply.is_(None))
        stmt = stmt.order_by(Review.created_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def _service_name(self, booking: Booking) -> str:
        service = self.session.get(Service, booking.service_id)
        return service.name if service is not None else "your service"
