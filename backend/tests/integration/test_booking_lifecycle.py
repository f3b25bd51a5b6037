"""
Integration tests for booking creation and lifecycle transitions.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from conftest import FIXED_NOW, at, identity_for
from marketplace.lib.errors import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    SLOT_UNAVAILABLE,
)
from marketplace.lib.metrics import get_metrics_collector
from marketplace.models import (
    AvailabilityOverride,
    BookingCancelActor,
    BookingEvent,
    BookingEventType,
    BookingSource,
    BookingStatus,
    CalendarEntry,
    OverrideType,
    PaymentStatus,
    UserRole,
    VendorStatus,
)
from marketplace.services.booking_service import BookingRequest, BookingService
from marketplace.services.pricing import PricingService

NEXT_MONDAY = 14


def request_for(service, start, **kwargs):
    kwargs.setdefault("customer_name", "Ama Mensah")
    kwargs.setdefault("customer_email", "Ama@Example.com")
    return BookingRequest(service_id=service.id, start_at=start, **kwargs)


def event_types(db, booking_id):
    rows = db.execute(
        select(BookingEvent).where(BookingEvent.booking_id == booking_id).order_by(BookingEvent.created_at)
    ).scalars()
    return [row.type for row in rows]


@pytest.fixture
def bookings(db, clock):
    return BookingService(db, clock=clock)


@pytest.mark.integration
def test_public_booking_awaits_full_deposit(db, bookable, bookings):
    owner, vendor, service = bookable

    result = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY)))
    booking, intent = result.booking, result.payment_intent

    assert booking.status == BookingStatus.AWAITING_PAYMENT
    assert booking.source == BookingSource.ONLINE
    assert booking.reference.startswith("book_")
    assert booking.customer_email == "ama@example.com"
    assert booking.scheduled_end == at(11, day=NEXT_MONDAY)
    assert (booking.price_minor, booking.deposit_minor, booking.balance_minor) == (10000, 10000, 0)

    assert intent.status == PaymentStatus.REQUIRES_PAYMENT_METHOD
    assert intent.provider_ref == booking.reference
    assert intent.amount_minor == 10000

    assert sorted(event_types(db, booking.id)) == sorted([BookingEventType.CREATED, BookingEventType.AWAITING_PAYMENT])
    assert get_metrics_collector().get_counter_value(
        "bookings_created_total", {"source": "ONLINE", "status": "AWAITING_PAYMENT"}
    ) == 1


@pytest.mark.integration
def test_zero_deposit_confirms_immediately(db, factory, bookable, bookings):
    owner, vendor, _ = bookable
    service = factory.service(vendor, deposit_percent=0)

    result = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY)))

    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.payment_intent is None
    assert sorted(event_types(db, result.booking.id)) == sorted([BookingEventType.CREATED, BookingEventType.CONFIRMED])


@pytest.mark.integration
def test_partial_deposit_and_markup(db, factory, bookable, bookings):
    owner, vendor, _ = bookable
    service = factory.service(vendor, price_minor=15000, deposit_percent=30)
    PricingService(db).set_markup_bps(1000)

    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking

    assert booking.price_minor == 16500
    assert booking.deposit_minor == 4950
    assert booking.balance_minor == 11550


@pytest.mark.integration
def test_second_customer_loses_the_same_slot(db, factory, bookable, bookings):
    """Two customers race for 09:00 at a vendor without seats; the second conflicts."""
    owner, vendor, service = bookable
    first = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY)))

    with pytest.raises(ConflictException) as exc_info:
        bookings.create_public_booking(
            request_for(service, at(9, day=NEXT_MONDAY), customer_name="Kofi", customer_email="kofi@example.com")
        )

    assert exc_info.value.reason == SLOT_UNAVAILABLE
    assert first.booking.status == BookingStatus.AWAITING_PAYMENT
    assert get_metrics_collector().get_counter_value("booking_conflicts_total", {"reason": SLOT_UNAVAILABLE}) == 1


@pytest.mark.integration
def test_start_not_on_a_slot_boundary_conflicts(bookable, bookings):
    _, _, service = bookable
    with pytest.raises(ConflictException) as exc_info:
        bookings.create_public_booking(request_for(service, at(10, day=NEXT_MONDAY)))
    assert exc_info.value.reason == SLOT_UNAVAILABLE


@pytest.mark.integration
def test_start_converted_from_offset_to_utc(bookable, bookings):
    _, _, service = bookable
    accra_plus_one = timezone(timedelta(hours=1))
    start = datetime(2030, 1, NEXT_MONDAY, 10, 0, tzinfo=accra_plus_one)

    booking = bookings.create_public_booking(request_for(service, start)).booking

    assert booking.scheduled_start == at(9, day=NEXT_MONDAY)


@pytest.mark.integration
def test_naive_start_rejected(bookable, bookings):
    _, _, service = bookable
    with pytest.raises(BadRequestException):
        bookings.create_public_booking(request_for(service, datetime(2030, 1, NEXT_MONDAY, 9, 0)))


@pytest.mark.integration
def test_end_must_match_service_duration(bookable, bookings):
    _, _, service = bookable
    with pytest.raises(BadRequestException):
        bookings.create_public_booking(
            request_for(service, at(9, day=NEXT_MONDAY), end_at=at(10, day=NEXT_MONDAY))
        )


@pytest.mark.integration
@pytest.mark.parametrize("name", ["   ", "x" * 121])
def test_customer_name_validated(bookable, bookings, name):
    _, _, service = bookable
    with pytest.raises(BadRequestException):
        bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY), customer_name=name))


@pytest.mark.integration
def test_unverified_vendor_cannot_take_bookings(db, factory, bookings):
    vendor = factory.vendor(status=VendorStatus.PENDING_REVIEW)
    factory.weekly(vendor)
    service = factory.service(vendor)

    with pytest.raises(ForbiddenException):
        bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY)))


@pytest.mark.integration
def test_signed_in_customer_contact_falls_back_to_profile(factory, bookable, bookings):
    _, _, service = bookable
    customer = factory.user(UserRole.CUSTOMER, email="efua@example.com", phone="+233244000000")

    booking = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY), customer_email=None),
        identity=identity_for(customer),
    ).booking

    assert booking.customer_user_id == customer.id
    assert booking.customer_email == "efua@example.com"
    assert booking.customer_phone == "+233244000000"


@pytest.mark.integration
def test_manual_booking_requires_vendor_owner(factory, bookable, bookings):
    owner, _, service = bookable
    stranger = factory.user(UserRole.VENDOR)

    with pytest.raises(ForbiddenException):
        bookings.create_manual_booking(identity_for(stranger), request_for(service, at(9, day=NEXT_MONDAY)))

    result = bookings.create_manual_booking(identity_for(owner), request_for(service, at(9, day=NEXT_MONDAY)))
    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.booking.source == BookingSource.MANUAL
    assert result.booking.created_by_user_id == owner.id
    assert (result.booking.deposit_minor, result.booking.balance_minor) == (0, 10000)


@pytest.mark.integration
def test_mark_manual_booking_paid(db, bookable, bookings):
    owner, _, service = bookable
    result = bookings.create_manual_booking(
        identity_for(owner), request_for(service, at(9, day=NEXT_MONDAY)), collect_deposit=True
    )
    assert result.booking.status == BookingStatus.AWAITING_PAYMENT

    booking = bookings.mark_manual_booking_paid(identity_for(owner), result.booking.id)

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.paid_at == FIXED_NOW
    assert (booking.deposit_minor, booking.balance_minor) == (booking.price_minor, 0)
    db.refresh(result.payment_intent)
    assert result.payment_intent.status == PaymentStatus.SUCCEEDED


@pytest.mark.integration
def test_blocked_slot_cannot_be_booked(db, bookable, bookings):
    _, vendor, service = bookable
    db.add(AvailabilityOverride(
        vendor_id=vendor.id,
        type=OverrideType.BLOCK,
        starts_at=at(11, day=NEXT_MONDAY),
        ends_at=at(12, day=NEXT_MONDAY),
    ))
    db.commit()

    with pytest.raises(ConflictException):
        bookings.create_public_booking(request_for(service, at(11, 30, day=NEXT_MONDAY)))


# ===== Reschedule / cancel =====


@pytest.mark.integration
def test_reschedule_moves_booking_and_keeps_price(db, factory, bookable, bookings):
    owner, _, service = bookable
    customer = factory.user(UserRole.CUSTOMER)
    booking = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY)), identity=identity_for(customer)
    ).booking

    moved = bookings.reschedule(identity_for(customer), booking.id, at(14, day=NEXT_MONDAY))

    assert moved.scheduled_start == at(14, day=NEXT_MONDAY)
    assert moved.scheduled_end == at(16, day=NEXT_MONDAY)
    assert moved.reschedule_count == 1
    assert moved.rescheduled_at == FIXED_NOW
    assert moved.price_minor == 10000
    assert event_types(db, booking.id)[-1] == BookingEventType.RESCHEDULED

    # The old 09:00 slot is free again
    other = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY), customer_email="kofi@example.com")
    )
    assert other.booking.status == BookingStatus.AWAITING_PAYMENT


@pytest.mark.integration
def test_reschedule_within_notice_window_rejected(db, factory, bookable):
    owner, _, service = bookable
    booking = BookingService(db, clock=lambda: FIXED_NOW).create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY))
    ).booking

    late_clock = BookingService(db, clock=lambda: at(12, day=NEXT_MONDAY - 1))
    with pytest.raises(BadRequestException) as exc_info:
        late_clock.reschedule(identity_for(owner), booking.id, at(14, day=NEXT_MONDAY))
    assert "hours before the appointment" in exc_info.value.message


def service_at(db, now):
    return BookingService(db, clock=lambda: now)


@pytest.mark.integration
def test_reschedule_exactly_at_notice_threshold(db, bookable, bookings):
    owner, _, service = bookable
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking

    moved = service_at(db, at(9, day=NEXT_MONDAY) - timedelta(hours=24)).reschedule(
        identity_for(owner), booking.id, at(14, day=NEXT_MONDAY)
    )

    assert moved.scheduled_start == at(14, day=NEXT_MONDAY)


@pytest.mark.integration
def test_reschedule_one_second_inside_notice_rejected(db, bookable, bookings):
    owner, _, service = bookable
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking
    now = at(9, day=NEXT_MONDAY) - timedelta(hours=24) + timedelta(seconds=1)

    with pytest.raises(BadRequestException):
        service_at(db, now).reschedule(identity_for(owner), booking.id, at(14, day=NEXT_MONDAY))


@pytest.mark.integration
def test_cancel_exactly_at_notice_threshold(db, bookable, bookings):
    owner, _, service = bookable
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking

    cancelled = service_at(db, at(9, day=NEXT_MONDAY) - timedelta(hours=24)).cancel(identity_for(owner), booking.id)

    assert cancelled.status == BookingStatus.CANCELLED


@pytest.mark.integration
def test_cancel_one_second_inside_notice_rejected(db, bookable, bookings):
    owner, _, service = bookable
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking
    now = at(9, day=NEXT_MONDAY) - timedelta(hours=24) + timedelta(seconds=1)

    with pytest.raises(BadRequestException) as exc_info:
        service_at(db, now).cancel(identity_for(owner), booking.id)

    assert "hours before the appointment" in exc_info.value.message
    db.refresh(booking)
    assert booking.status == BookingStatus.AWAITING_PAYMENT


@pytest.mark.integration
def test_reschedule_by_stranger_forbidden(factory, bookable, bookings):
    _, _, service = bookable
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking
    stranger = factory.user(UserRole.CUSTOMER)

    with pytest.raises(ForbiddenException):
        bookings.reschedule(identity_for(stranger), booking.id, at(14, day=NEXT_MONDAY))


@pytest.mark.integration
def test_customer_cancel_voids_intent(db, factory, bookable, bookings):
    _, _, service = bookable
    customer = factory.user(UserRole.CUSTOMER)
    result = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY)), identity=identity_for(customer)
    )

    cancelled = bookings.cancel(identity_for(customer), result.booking.id, reason="  Travelling  ")

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_by == BookingCancelActor.CUSTOMER
    assert cancelled.cancellation_reason == "Travelling"
    db.refresh(result.payment_intent)
    assert result.payment_intent.status == PaymentStatus.CANCELED

    with pytest.raises(BadRequestException) as exc_info:
        bookings.cancel(identity_for(customer), result.booking.id)
    assert exc_info.value.message == "Booking already cancelled"


@pytest.mark.integration
def test_vendor_cancel_recorded_as_vendor(bookable, bookings):
    owner, _, service = bookable
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking

    cancelled = bookings.cancel(identity_for(owner), booking.id)

    assert cancelled.cancelled_by == BookingCancelActor.VENDOR


@pytest.mark.integration
def test_completed_booking_cannot_be_cancelled(factory, bookable, bookings):
    owner, vendor, _ = bookable
    service = factory.service(vendor, deposit_percent=0)
    booking = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking
    bookings.mark_completed(identity_for(owner), booking.id)

    with pytest.raises(BadRequestException) as exc_info:
        bookings.cancel(identity_for(owner), booking.id)
    assert exc_info.value.message == "Only active bookings can be cancelled"


@pytest.mark.integration
def test_mark_completed_and_no_show_require_confirmed(db, factory, bookable, bookings):
    owner, vendor, service = bookable
    awaiting = bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY))).booking
    with pytest.raises(BadRequestException):
        bookings.mark_completed(identity_for(owner), awaiting.id)

    free = factory.service(vendor, deposit_percent=0)
    confirmed = bookings.create_public_booking(request_for(free, at(11, 30, day=NEXT_MONDAY))).booking
    no_show = bookings.mark_no_show(identity_for(owner), confirmed.id)

    assert no_show.status == BookingStatus.NO_SHOW
    assert event_types(db, confirmed.id)[-1] == BookingEventType.NO_SHOW


@pytest.mark.integration
def test_only_vendor_can_mark_completed(factory, bookable, bookings):
    _, vendor, _ = bookable
    service = factory.service(vendor, deposit_percent=0)
    customer = factory.user(UserRole.CUSTOMER)
    booking = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY)), identity=identity_for(customer)
    ).booking

    with pytest.raises(ForbiddenException):
        bookings.mark_completed(identity_for(customer), booking.id)


# ===== Queries and claims =====


@pytest.mark.integration
def test_claim_bookings_by_email(factory, bookable, bookings):
    _, _, service = bookable
    guest_booking = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY), customer_email="guest@example.com")
    ).booking
    customer = factory.user(UserRole.CUSTOMER, email="guest@example.com")

    claimed = bookings.claim_bookings(identity_for(customer))

    assert [b.id for b in claimed] == [guest_booking.id]
    assert claimed[0].customer_user_id == customer.id
    assert bookings.claim_bookings(identity_for(customer)) == []


@pytest.mark.integration
def test_vendor_stats_count_by_status(factory, bookable, bookings):
    owner, vendor, service = bookable
    free = factory.service(vendor, deposit_percent=0)
    bookings.create_public_booking(request_for(service, at(9, day=NEXT_MONDAY)))
    done = bookings.create_public_booking(request_for(free, at(11, 30, day=NEXT_MONDAY))).booking
    bookings.mark_completed(identity_for(owner), done.id)

    stats = bookings.get_vendor_stats(identity_for(owner))

    assert stats.counts[BookingStatus.AWAITING_PAYMENT] == 1
    assert stats.counts[BookingStatus.COMPLETED] == 1
    assert stats.counts[BookingStatus.CANCELLED] == 0
    assert stats.completed_sales_minor == 10000


@pytest.mark.integration
def test_calendar_projected_for_vendor_and_customer(db, factory, bookable, bookings):
    _, vendor, service = bookable
    customer = factory.user(UserRole.CUSTOMER)
    booking = bookings.create_public_booking(
        request_for(service, at(9, day=NEXT_MONDAY)), identity=identity_for(customer)
    ).booking

    entries = db.execute(select(CalendarEntry).where(CalendarEntry.booking_id == booking.id)).scalars().all()
    assert {e.owner_type.value for e in entries} == {"VENDOR", "CUSTOMER"}
    assert all(e.status == BookingStatus.AWAITING_PAYMENT for e in entries)

    bookings.cancel(identity_for(customer), booking.id)
    db.expire_all()
    entries = db.execute(select(CalendarEntry).where(CalendarEntry.booking_id == booking.id)).scalars().all()
    assert all(e.status == BookingStatus.CANCELLED for e in entries)
