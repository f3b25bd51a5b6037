"""
Integration tests for seat allocation and capacity.
"""
import pytest

from conftest import at, identity_for
from marketplace.lib.errors import (
    ConflictException,
    NO_SEAT_AVAILABLE,
    SEAT_AT_CAPACITY,
    SEAT_NOT_ELIGIBLE,
    SLOT_UNAVAILABLE,
)
from marketplace.models import BookingStatus, StaffMember
from marketplace.services.allocation import ResourceAllocator
from marketplace.services.booking_service import BookingRequest, BookingService

DAY = 14


def book(bookings, service, hour=9, minute=0, **kwargs):
    return bookings.create_public_booking(
        BookingRequest(
            service_id=service.id,
            start_at=at(hour, minute, day=DAY),
            customer_name="Akosua",
            customer_email="akosua@example.com",
            **kwargs,
        )
    ).booking


@pytest.fixture
def bookings(db, clock):
    return BookingService(db, clock=clock)


@pytest.mark.integration
def test_two_seats_take_two_parallel_bookings(factory, bookable, bookings):
    _, vendor, service = bookable
    chair_1 = factory.seat(vendor, "Chair 1")
    chair_2 = factory.seat(vendor, "Chair 2")

    first = book(bookings, service)
    second = book(bookings, service)

    assert {first.seat_id, second.seat_id} == {chair_1.id, chair_2.id}

    with pytest.raises(ConflictException) as exc_info:
        book(bookings, service)
    assert exc_info.value.reason == NO_SEAT_AVAILABLE


@pytest.mark.integration
def test_seat_capacity_allows_overlap(factory, bookable, bookings):
    _, vendor, service = bookable
    station = factory.seat(vendor, "Wash station", capacity=2)

    assert book(bookings, service).seat_id == station.id
    assert book(bookings, service).seat_id == station.id
    with pytest.raises(ConflictException):
        book(bookings, service)


@pytest.mark.integration
def test_seat_assignment_copies_staff(db, factory, bookable, bookings):
    _, vendor, service = bookable
    staff = StaffMember(vendor_id=vendor.id, name="Yaa")
    db.add(staff)
    db.commit()
    seat = factory.seat(vendor)
    seat.staff_id = staff.id
    db.commit()

    booking = book(bookings, service)

    assert booking.staff_id == staff.id


@pytest.mark.integration
def test_requested_seat_must_be_eligible(factory, bookable, bookings):
    _, vendor, service = bookable
    other_service = factory.service(vendor)
    factory.seat(vendor, "Braiding chair", services=[service])
    restricted = factory.seat(vendor, "Nail desk", services=[other_service])

    with pytest.raises(ConflictException) as exc_info:
        book(bookings, service, seat_id=restricted.id)
    assert exc_info.value.reason == SEAT_NOT_ELIGIBLE


@pytest.mark.integration
def test_requested_seat_at_capacity(factory, bookable, bookings):
    _, vendor, service = bookable
    seat = factory.seat(vendor)
    factory.seat(vendor, "Chair 2")
    book(bookings, service, seat_id=seat.id)

    with pytest.raises(ConflictException) as exc_info:
        book(bookings, service, seat_id=seat.id)
    assert exc_info.value.reason == SEAT_AT_CAPACITY


@pytest.mark.integration
def test_cancelled_booking_frees_its_seat(factory, bookable, bookings):
    owner, vendor, service = bookable
    seat = factory.seat(vendor)
    first = book(bookings, service)

    bookings.cancel(identity_for(owner), first.id)

    assert book(bookings, service).seat_id == seat.id


@pytest.mark.integration
def test_seatless_booking_blocks_new_seated_booking(db, factory, bookable, bookings):
    """A booking made before seats existed still occupies the vendor."""
    _, vendor, service = bookable
    legacy = book(bookings, service)
    assert legacy.seat_id is None

    factory.seat(vendor)
    with pytest.raises(ConflictException) as exc_info:
        ResourceAllocator(db).allocate(vendor.id, service.id, at(9, day=DAY), at(11, day=DAY))
    assert exc_info.value.reason == SLOT_UNAVAILABLE


@pytest.mark.integration
def test_reschedule_keeps_seat_when_free(factory, bookable, bookings):
    owner, vendor, service = bookable
    factory.seat(vendor, "Chair 1")
    factory.seat(vendor, "Chair 2")
    booking = book(bookings, service)
    original_seat = booking.seat_id

    moved = bookings.reschedule(identity_for(owner), booking.id, at(14, day=DAY))

    assert moved.seat_id == original_seat
    assert moved.status == BookingStatus.AWAITING_PAYMENT
