"""
Booking lifecycle.

Creates bookings and drives them through

    PENDING -> AWAITING_PAYMENT | CONFIRMED -> COMPLETED | NO_SHOW
    PENDING | AWAITING_PAYMENT | CONFIRMED -> CANCELLED

Every write runs in one ``UnitOfWork``: the vendor row is locked, the
requested slot is re-checked against the current schedule, the
allocator picks a seat and the booking is written before anything
commits. Events are staged in the same transaction and dispatched, with
the calendar projection, only after commit.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from marketplace.lib.db import UnitOfWork, utcnow
from marketplace.lib.errors import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    SLOT_UNAVAILABLE,
)
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger, log_with_context
from marketplace.lib.metrics import get_metrics_collector
from marketplace.lib.settings import settings
from marketplace.models import (
    Booking,
    BookingCancelActor,
    BookingEvent,
    BookingEventType,
    BookingSource,
    BookingStatus,
    PaymentIntent,
    PaymentProvider,
    PaymentStatus,
    Service,
    User,
    UserRole,
    Vendor,
)
from marketplace.repositories.bookings import BookingRepository
from marketplace.repositories.catalog import ServiceRepository
from marketplace.repositories.payments import PaymentIntentRepository
from marketplace.repositories.vendors import VendorRepository
from marketplace.scheduling.time_windows import start_of_day_utc
from marketplace.services.allocation import ResourceAllocator
from marketplace.services.availability_service import AvailabilityService
from marketplace.services.booking_events import PostCommitEffects, stage_event
from marketplace.services.gift_cards import GiftCardLedger, normalize_code
from marketplace.services.pricing import PricingService
from marketplace.services.vendor_context import require_bookable_vendor, require_vendor_for_identity


logger = get_logger(__name__)

CLAIM_LIMIT = 20
DEFAULT_VENDOR_PAGE = 20
MAX_VENDOR_PAGE = 100
DEFAULT_UPCOMING = 10
MAX_UPCOMING = 50
MAX_CUSTOMER_NAME_LENGTH = 120


def new_booking_reference() -> str:
    """Booking reference, also used as the payment provider reference."""
    return f"book_{uuid4().hex[:24]}"


def resolve_deposit_percent(deposit_percent: Optional[int]) -> int:
    """Unset means the full price is due up front; values are clamped to 0-100."""
    if deposit_percent is None:
        return 100
    return max(0, min(deposit_percent, 100))


def compute_deposit(price: int, deposit_percent: Optional[int]) -> int:
    return min(price, price * resolve_deposit_percent(deposit_percent) // 100)


def _clamp(value: Optional[int], default: int, upper: int) -> int:
    if value is None:
        return default
    return min(max(value, 1), upper)


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _require_aware(moment: datetime, field: str) -> None:
    if moment.tzinfo is None:
        raise BadRequestException(f"{field} must include a timezone offset")


@dataclass
class BookingRequest:
    """Input for creating a booking (public or manual)."""
    service_id: UUID
    start_at: datetime
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    seat_id: Optional[UUID] = None
    end_at: Optional[datetime] = None
    gift_card_code: Optional[str] = None


@dataclass
class BookingResult:
    booking: Booking
    payment_intent: Optional[PaymentIntent]


@dataclass
class VendorBookingStats:
    counts: Dict[BookingStatus, int]
    completed_sales_minor: int


class BookingService:
    """
    Booking lifecycle operations.

    ``clock`` is injectable so notice-window rules can be tested against
    a fixed time.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Callable[[], datetime]] = None,
        effects: Optional[PostCommitEffects] = None,
        ledger: Optional[GiftCardLedger] = None,
    ):
        self.session = session
        self.clock = clock or utcnow
        self.effects = effects or PostCommitEffects(session)
        self.ledger = ledger or GiftCardLedger(clock=self.clock)
        self.allocator = ResourceAllocator(session)
        self.availability = AvailabilityService(session, clock=self.clock)
        self.pricing = PricingService(session)

    # ===== Creation =====

    def create_public_booking(
        self, request: BookingRequest, identity: Optional[Identity] = None
    ) -> BookingResult:
        """Online booking; the deposit is always collected when one is due."""
        return self._create(
            request,
            customer_user_id=identity.user_id if identity else None,
            source=BookingSource.ONLINE,
            created_by_user_id=None,
            collect_deposit=True,
        )

    def create_manual_booking(
        self, identity: Identity, request: BookingRequest, collect_deposit: bool = False
    ) -> BookingResult:
        """Booking entered by the vendor owner on a customer's behalf."""
        return self._create(
            request,
            customer_user_id=None,
            source=BookingSource.MANUAL,
            created_by_user_id=identity.user_id,
            collect_deposit=collect_deposit,
            owner=identity,
        )

    def _create(
        self,
        request: BookingRequest,
        customer_user_id: Optional[UUID],
        source: BookingSource,
        created_by_user_id: Optional[UUID],
        collect_deposit: bool,
        owner: Optional[Identity] = None,
    ) -> BookingResult:
        _require_aware(request.start_at, "start_at")
        start = request.start_at.astimezone(timezone.utc)
        service, vendor = self._find_service_and_vendor(request.service_id)

        if owner is not None and (owner.role != UserRole.VENDOR or vendor.user_id != owner.user_id):
            raise ForbiddenException("You cannot create bookings for this service")

        end = start + timedelta(minutes=service.duration_minutes)
        if request.end_at is not None:
            _require_aware(request.end_at, "end_at")
            if request.end_at != end:
                raise BadRequestException("Selected slot duration no longer matches the service")

        customer_name = (request.customer_name or "").strip()
        if not customer_name:
            raise BadRequestException("Customer name is required")
        if len(customer_name) > MAX_CUSTOMER_NAME_LENGTH:
            raise BadRequestException(f"Customer name cannot exceed {MAX_CUSTOMER_NAME_LENGTH} characters")

        if service.price_minor <= 0:
            raise BadRequestException("Service price must be greater than zero")
        price = self.pricing.price_for(service.price_minor)
        deposit = compute_deposit(price, service.deposit_percent) if collect_deposit else 0
        balance = price - deposit

        customer_email, customer_phone = self._resolve_contact(request, customer_user_id)
        currency = settings.default_currency.upper()

        with UnitOfWork(self.session) as uow:
            VendorRepository.lock_vendor(self.session, vendor.id)
            self._ensure_slot_offered(service, start)
            allocation = self.allocator.allocate(
                vendor.id,
                service.id,
                start,
                end,
                requested_seat_id=request.seat_id,
            )

            booking = Booking(
                id=uuid4(),
                reference=new_booking_reference(),
                vendor_id=vendor.id,
                service_id=service.id,
                customer_user_id=customer_user_id,
                created_by_user_id=created_by_user_id,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                notes=_normalize(request.notes),
                scheduled_start=start,
                scheduled_end=end,
                seat_id=allocation.seat_id,
                staff_id=allocation.staff_id,
                price_minor=price,
                deposit_minor=deposit,
                balance_minor=balance,
                currency=currency,
                status=BookingStatus.PENDING,
                source=source,
            )
            self.session.add(booking)
            self.session.flush()

            deposit_due = deposit
            if request.gift_card_code:
                application = self.ledger.apply_balance(
                    self.session,
                    vendor.id,
                    currency,
                    request.gift_card_code,
                    deposit,
                    balance,
                    booking.id,
                )
                booking.gift_card_code = normalize_code(request.gift_card_code)
                booking.gift_card_deposit_applied = application.applied_deposit
                booking.gift_card_balance_applied = application.applied_balance
                deposit_due = application.remaining_deposit

            intent = None
            if deposit_due > 0:
                booking.status = BookingStatus.AWAITING_PAYMENT
                intent = PaymentIntent(
                    booking_id=booking.id,
                    provider=PaymentProvider.PAYSTACK,
                    provider_ref=booking.reference,
                    amount_minor=deposit_due,
                    currency=currency,
                    status=PaymentStatus.REQUIRES_PAYMENT_METHOD,
                    provider_metadata={
                        "booking_id": str(booking.id),
                        "vendor_id": str(vendor.id),
                        "service_id": str(service.id),
                        "customer_email": customer_email,
                        "source": source.value,
                        "created_by_user_id": str(created_by_user_id) if created_by_user_id else None,
                    },
                )
                self.session.add(intent)
            else:
                booking.status = BookingStatus.CONFIRMED

            events = [stage_event(self.session, booking, BookingEventType.CREATED, {"source": source.value})]
            follow_up = (
                BookingEventType.AWAITING_PAYMENT
                if booking.status == BookingStatus.AWAITING_PAYMENT
                else BookingEventType.CONFIRMED
            )
            events.append(stage_event(self.session, booking, follow_up))
            self.session.flush()
            uow.after_commit(lambda: self._record_created(booking))
            uow.after_commit(lambda: self.effects.run(events, [booking.id]))

        return BookingResult(booking=booking, payment_intent=intent)

    def _record_created(self, booking: Booking) -> None:
        get_metrics_collector().increment_bookings_created(booking.source.value, booking.status.value)
        log_with_context(
            logger,
            "info",
            "Booking created",
            booking_id=str(booking.id),
            reference=booking.reference,
            vendor_id=str(booking.vendor_id),
            seat_id=str(booking.seat_id) if booking.seat_id else None,
            status=booking.status.value,
            price_minor=booking.price_minor,
            deposit_minor=booking.deposit_minor,
        )

    # ===== Queries =====

    def get_booking(self, identity: Identity, booking_id: UUID) -> BookingResult:
        booking, vendor = self._load(booking_id)
        self._assert_can_manage(identity, booking, vendor)
        return BookingResult(booking, PaymentIntentRepository.get_for_booking(self.session, booking.id))

    def list_vendor_bookings(
        self,
        identity: Identity,
        status: Optional[BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        take: Optional[int] = None,
        skip: int = 0,
    ) -> List[Booking]:
        vendor = require_vendor_for_identity(self.session, identity)
        return BookingRepository.list_vendor_bookings(
            self.session,
            vendor.id,
            status=status,
            start_from=start_date,
            start_to=end_date,
            take=_clamp(take, DEFAULT_VENDOR_PAGE, MAX_VENDOR_PAGE),
            skip=max(skip, 0),
        )

    def list_vendor_upcoming(self, identity: Identity, take: Optional[int] = None) -> List[Booking]:
        vendor = require_vendor_for_identity(self.session, identity)
        return BookingRepository.list_vendor_upcoming(
            self.session, vendor.id, self.clock(), _clamp(take, DEFAULT_UPCOMING, MAX_UPCOMING)
        )

    def get_vendor_stats(
        self,
        identity: Identity,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> VendorBookingStats:
        vendor = require_vendor_for_identity(self.session, identity)
        counts = {status: 0 for status in BookingStatus}
        counts.update(BookingRepository.count_vendor_by_status(self.session, vendor.id, start_date, end_date))
        sales = BookingRepository.sum_vendor_completed_sales(self.session, vendor.id, start_date, end_date)
        return VendorBookingStats(counts=counts, completed_sales_minor=sales)

    def list_customer_upcoming(self, identity: Identity, take: Optional[int] = None) -> List[Booking]:
        return BookingRepository.list_customer_upcoming(
            self.session, identity.user_id, self.clock(), _clamp(take, DEFAULT_UPCOMING, MAX_UPCOMING)
        )

    def list_customer_completed(self, identity: Identity, take: Optional[int] = None) -> List[Booking]:
        return BookingRepository.list_customer_completed(
            self.session, identity.user_id, _clamp(take, DEFAULT_UPCOMING, MAX_UPCOMING)
        )

    # ===== Lifecycle transitions =====

    def reschedule(self, identity: Identity, booking_id: UUID, new_start: datetime) -> Booking:
        """
        Move a booking to another offered slot.

        Price and deposit never change. The booking's own row is excluded
        from the overlap check and its current seat is kept when free.
        """
        booking, vendor = self._load(booking_id)
        self._assert_can_manage(identity, booking, vendor)
        self._assert_notice(booking)
        if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.AWAITING_PAYMENT):
            raise BadRequestException("Only active bookings can be rescheduled")
        _require_aware(new_start, "start_at")
        new_start = new_start.astimezone(timezone.utc)

        service = ServiceRepository.get_service(self.session, booking.service_id)
        if service is None:
            raise NotFoundException("Service", str(booking.service_id))
        new_end = new_start + timedelta(minutes=service.duration_minutes)
        previous_start, previous_end = booking.scheduled_start, booking.scheduled_end

        with UnitOfWork(self.session) as uow:
            VendorRepository.lock_vendor(self.session, vendor.id)
            booking = BookingRepository.lock_booking(self.session, booking.id)
            if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.AWAITING_PAYMENT):
                raise BadRequestException("Only active bookings can be rescheduled")
            self._ensure_slot_offered(service, new_start)
            allocation = self.allocator.allocate(
                vendor.id,
                service.id,
                new_start,
                new_end,
                preferred_seat_id=booking.seat_id,
                exclude_booking_id=booking.id,
            )

            booking.scheduled_start = new_start
            booking.scheduled_end = new_end
            booking.seat_id = allocation.seat_id
            booking.staff_id = allocation.staff_id
            booking.rescheduled_at = self.clock()
            booking.reschedule_count = (booking.reschedule_count or 0) + 1

            event = stage_event(
                self.session,
                booking,
                BookingEventType.RESCHEDULED,
                {"previous_start": previous_start.isoformat(), "previous_end": previous_end.isoformat()},
            )
            uow.after_commit(lambda: self.effects.run([event], [booking.id]))

        logger.info(f"Booking {booking.id} rescheduled to {new_start.isoformat()}")
        return booking

    def cancel(self, identity: Identity, booking_id: UUID, reason: Optional[str] = None) -> Booking:
        booking, vendor = self._load(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise BadRequestException("Booking already cancelled")
        self._assert_can_manage(identity, booking, vendor)
        if not booking.is_active:
            raise BadRequestException("Only active bookings can be cancelled")
        self._assert_notice(booking)

        if vendor.user_id == identity.user_id:
            actor = BookingCancelActor.VENDOR
        elif booking.customer_user_id == identity.user_id:
            actor = BookingCancelActor.CUSTOMER
        else:
            actor = BookingCancelActor.SYSTEM

        with UnitOfWork(self.session) as uow:
            booking = BookingRepository.lock_booking(self.session, booking.id)
            if booking.status == BookingStatus.CANCELLED:
                raise BadRequestException("Booking already cancelled")
            event = self.cancel_locked(booking, actor, _normalize(reason), "Booking cancelled")
            uow.after_commit(lambda: self.effects.run([event], [booking.id]))

        logger.info(f"Booking {booking.id} cancelled by {actor.value}")
        return booking

    def cancel_locked(
        self,
        booking: Booking,
        actor: BookingCancelActor,
        reason: Optional[str],
        intent_note: str,
        extras: Optional[dict] = None,
        event_type: BookingEventType = BookingEventType.CANCELLED,
    ) -> BookingEvent:
        """
        Cancel a booking whose row the caller has locked.

        Gift-card redemptions are refunded and an unpaid intent is voided
        with ``intent_note``. Nothing is committed here.
        """
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = self.clock()
        booking.cancelled_by = actor
        booking.cancellation_reason = reason

        self.ledger.refund(self.session, booking.id)
        intent = PaymentIntentRepository.get_for_booking(self.session, booking.id)
        if intent is not None and intent.status == PaymentStatus.REQUIRES_PAYMENT_METHOD:
            intent.status = PaymentStatus.CANCELED
            intent.last_error = intent_note

        payload = {"reason": reason, "cancelled_by": actor.value}
        if extras:
            payload.update(extras)
        return stage_event(self.session, booking, event_type, payload)

    def mark_completed(self, identity: Identity, booking_id: UUID) -> Booking:
        return self._vendor_close(identity, booking_id, BookingStatus.COMPLETED)

    def mark_no_show(self, identity: Identity, booking_id: UUID) -> Booking:
        return self._vendor_close(identity, booking_id, BookingStatus.NO_SHOW)

    def _vendor_close(self, identity: Identity, booking_id: UUID, target: BookingStatus) -> Booking:
        booking, vendor = self._load(booking_id)
        self._assert_vendor_owner(identity, vendor)
        if booking.status != BookingStatus.CONFIRMED:
            label = "completed" if target == BookingStatus.COMPLETED else "a no-show"
            raise BadRequestException(f"Only confirmed bookings can be marked {label}")

        with UnitOfWork(self.session) as uow:
            booking = BookingRepository.lock_booking(self.session, booking.id)
            if booking.status != BookingStatus.CONFIRMED:
                raise BadRequestException("Booking is no longer confirmed")
            booking.status = target
            if target == BookingStatus.COMPLETED:
                booking.completed_at = self.clock()
                event_type = BookingEventType.COMPLETED
            else:
                booking.completed_at = None
                event_type = BookingEventType.NO_SHOW
            event = stage_event(self.session, booking, event_type, {"manual": True})
            uow.after_commit(lambda: self.effects.run([event], [booking.id]))

        logger.info(f"Booking {booking.id} marked {target.value}")
        return booking

    def complete_past_bookings_for_today(self, identity: Identity) -> int:
        vendor = require_vendor_for_identity(self.session, identity)
        return self.auto_complete(vendor.id)

    def auto_complete(self, vendor_id: Optional[UUID] = None) -> int:
        """
        Complete CONFIRMED bookings that ended earlier today (UTC).

        Returns:
            Number of bookings completed
        """
        now = self.clock()
        with UnitOfWork(self.session) as uow:
            candidates = BookingRepository.list_vendor_completable(
                self.session, vendor_id, start_of_day_utc(now), now
            )
            events = []
            for booking in candidates:
                booking.status = BookingStatus.COMPLETED
                booking.completed_at = now
                events.append(stage_event(self.session, booking, BookingEventType.COMPLETED, {"bulk_complete": True}))
            if events:
                booking_ids = [b.id for b in candidates]
                uow.after_commit(lambda: self.effects.run(events, booking_ids))

        if candidates:
            logger.info(f"Auto-completed {len(candidates)} bookings")
        return len(candidates)

    def mark_manual_booking_paid(self, identity: Identity, booking_id: UUID) -> Booking:
        """
        Settle a MANUAL booking paid outside the platform.

        The whole price counts as collected: balance becomes zero and the
        deposit equals the price.
        """
        booking, vendor = self._load(booking_id)
        if vendor.user_id != identity.user_id:
            raise ForbiddenException("You cannot manage this booking")
        if booking.source != BookingSource.MANUAL:
            raise BadRequestException("Only manual bookings can be marked paid here")
        if booking.status != BookingStatus.AWAITING_PAYMENT:
            raise BadRequestException("Only awaiting payment bookings can be marked paid")

        with UnitOfWork(self.session) as uow:
            booking = BookingRepository.lock_booking(self.session, booking.id)
            if booking.status != BookingStatus.AWAITING_PAYMENT:
                raise BadRequestException("Only awaiting payment bookings can be marked paid")
            now = self.clock()
            intent = PaymentIntentRepository.get_for_booking(self.session, booking.id)
            if intent is not None:
                intent.status = PaymentStatus.SUCCEEDED
                intent.confirmed_at = now
            booking.status = BookingStatus.CONFIRMED
            booking.paid_at = now
            booking.deposit_minor = booking.price_minor
            booking.balance_minor = 0
            event = stage_event(self.session, booking, BookingEventType.CONFIRMED, {"marked_paid_manually": True})
            uow.after_commit(lambda: self.effects.run([event], [booking.id]))

        logger.info(f"Manual booking {booking.id} marked paid")
        return booking

    def claim_bookings(
        self, identity: Identity, email: Optional[str] = None, phone: Optional[str] = None
    ) -> List[Booking]:
        """Attach unowned bookings whose contact snapshot matches the caller."""
        normalized_email = _normalize(email)
        if normalized_email is None:
            user = self.session.get(User, identity.user_id)
            normalized_email = user.email if user is not None else None
        normalized_email = normalized_email.lower() if normalized_email else None
        normalized_phone = _normalize(phone)
        if not normalized_email and not normalized_phone:
            raise BadRequestException("Provide an email or phone number to search for bookings")

        with UnitOfWork(self.session) as uow:
            matches = BookingRepository.list_claimable(
                self.session, normalized_email, normalized_phone, CLAIM_LIMIT
            )
            for booking in matches:
                booking.customer_user_id = identity.user_id
            if matches:
                booking_ids = [b.id for b in matches]
                uow.after_commit(lambda: self.effects.run([], booking_ids))

        if matches:
            logger.info(f"User {identity.user_id} claimed {len(matches)} bookings")
        return sorted(matches, key=lambda b: b.scheduled_start, reverse=True)

    def expire_stale_payments(self, hold_minutes: Optional[int] = None) -> int:
        """
        Cancel AWAITING_PAYMENT bookings older than the payment hold.

        Disabled when the hold is zero. Cancellations are recorded as
        SYSTEM and the open intent becomes CANCELED.
        """
        hold_minutes = settings.payment_hold_minutes if hold_minutes is None else hold_minutes
        if hold_minutes <= 0:
            return 0

        cutoff = self.clock() - timedelta(minutes=hold_minutes)
        with UnitOfWork(self.session) as uow:
            stale = BookingRepository.list_stale_awaiting_payment(self.session, cutoff)
            events = [
                self.cancel_locked(
                    booking,
                    BookingCancelActor.SYSTEM,
                    "Payment window expired",
                    "Payment window expired",
                    {"expired": True},
                )
                for booking in stale
            ]
            if events:
                booking_ids = [b.id for b in stale]
                uow.after_commit(lambda: self.effects.run(events, booking_ids))

        if stale:
            logger.info(f"Expired {len(stale)} unpaid bookings older than {hold_minutes} minutes")
        return len(stale)

    # ===== Helpers =====

    def _find_service_and_vendor(self, service_id: UUID):
        service = ServiceRepository.get_service(self.session, service_id)
        if service is None or not service.is_active:
            raise NotFoundException("Service", str(service_id))
        vendor = require_bookable_vendor(self.session, service.vendor_id)
        return service, vendor

    def _ensure_slot_offered(self, service: Service, start: datetime) -> None:
        slots = self.availability.slots_on_day(service, start)
        if not any(slot.start == start for slot in slots):
            get_metrics_collector().increment_conflicts(SLOT_UNAVAILABLE)
            raise ConflictException("Selected slot is no longer available", reason=SLOT_UNAVAILABLE)

    def _resolve_contact(self, request: BookingRequest, customer_user_id: Optional[UUID]):
        email = _normalize(request.customer_email)
        phone = _normalize(request.customer_phone)
        if customer_user_id is not None:
            user = self.session.get(User, customer_user_id)
            if user is not None:
                email = email or user.email
                phone = phone or _normalize(user.phone)
        return (email.lower() if email else None), phone

    def _load(self, booking_id: UUID):
        booking = BookingRepository.get_booking(self.session, booking_id)
        if booking is None:
            raise NotFoundException("Booking", str(booking_id))
        vendor = VendorRepository.get_vendor(self.session, booking.vendor_id)
        return booking, vendor

    @staticmethod
    def _assert_can_manage(identity: Identity, booking: Booking, vendor: Vendor) -> None:
        is_vendor_owner = identity.role == UserRole.VENDOR and vendor.user_id == identity.user_id
        is_customer_owner = booking.customer_user_id is not None and booking.customer_user_id == identity.user_id
        if not (is_vendor_owner or is_customer_owner):
            raise ForbiddenException("You cannot manage this booking")
        if vendor.user_id is None:
            raise BadRequestException("Vendor account is not linked to an active user")

    @staticmethod
    def _assert_vendor_owner(identity: Identity, vendor: Vendor) -> None:
        if identity.role != UserRole.VENDOR or vendor.user_id != identity.user_id:
            raise ForbiddenException("Only the vendor can change this booking")

    def _assert_notice(self, booking: Booking) -> None:
        notice = timedelta(hours=settings.modification_notice_hours)
        if booking.scheduled_start - self.clock() < notice:
            raise BadRequestException(
                f"Changes are only allowed {settings.modification_notice_hours}+ hours before the appointment",
                details={"scheduled_start": booking.scheduled_start.isoformat()},
            )
