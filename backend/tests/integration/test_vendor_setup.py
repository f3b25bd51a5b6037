"""
Integration tests for vendor catalog, availability and resource management.
"""
from datetime import datetime, timedelta

import pytest

from conftest import FIXED_NOW, MONDAY, at, identity_for
from marketplace.lib.errors import (
    OVERLAPPING_WINDOWS,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from marketplace.models import OverrideType, UserRole, VendorStatus
from marketplace.services.availability_service import AvailabilityService, WindowInput
from marketplace.services.catalog_service import CatalogService
from marketplace.services.vendor_resources import VendorResourceService

DAY = 14


@pytest.fixture
def owner(factory):
    user = factory.user(UserRole.VENDOR)
    factory.vendor(user)
    return user


# ===== Catalog =====

@pytest.mark.integration
def test_create_and_update_service(db, owner):
    catalog = CatalogService(db)
    identity = identity_for(owner)

    service = catalog.create_service(identity, "  Box Braids ", 25000, 180, buffer_minutes=15, deposit_percent=20)
    assert service.name == "Box Braids"

    updated = catalog.update_service(identity, service.id, price_minor=30000, deposit_percent=None)
    assert updated.price_minor == 30000
    assert updated.deposit_percent is None
    assert updated.duration_minutes == 180
    assert [s.id for s in catalog.list_services(identity)] == [service.id]


@pytest.mark.integration
@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "X", "price_minor": 5000, "duration_minutes": 60},
        {"name": "Trim", "price_minor": 499, "duration_minutes": 60},
        {"name": "Trim", "price_minor": 5000, "duration_minutes": 10},
        {"name": "Trim", "price_minor": 5000, "duration_minutes": 60, "buffer_minutes": 181},
        {"name": "Trim", "price_minor": 5000, "duration_minutes": 60, "deposit_percent": 101},
    ],
)
def test_service_validation(db, owner, kwargs):
    with pytest.raises(BadRequestException):
        CatalogService(db).create_service(identity_for(owner), **kwargs)


@pytest.mark.integration
def test_customer_cannot_manage_services(db, factory):
    customer = factory.user()
    with pytest.raises(ForbiddenException):
        CatalogService(db).list_services(identity_for(customer))


@pytest.mark.integration
def test_vendor_without_onboarding(db, factory):
    user = factory.user(UserRole.VENDOR)
    with pytest.raises(BadRequestException):
        CatalogService(db).list_services(identity_for(user))


@pytest.mark.integration
def test_other_vendors_service_not_found(db, owner, bookable):
    _, _, service = bookable
    with pytest.raises(NotFoundException):
        CatalogService(db).get_service(identity_for(owner), service.id)


# ===== Weekly availability =====

@pytest.mark.integration
def test_weekly_schedule_replaced_and_sorted(db, owner):
    availability = AvailabilityService(db, clock=lambda: FIXED_NOW)
    identity = identity_for(owner)

    availability.set_weekly_availability(identity, [WindowInput(MONDAY, 540, 1020)])
    windows = availability.set_weekly_availability(
        identity,
        [WindowInput(3, 600, 900), WindowInput(MONDAY, 780, 1020), WindowInput(MONDAY, 540, 720)],
    )

    assert [(w.day_of_week, w.start_minute, w.end_minute) for w in windows] == [
        (MONDAY, 540, 720),
        (MONDAY, 780, 1020),
        (3, 600, 900),
    ]


@pytest.mark.integration
def test_overlapping_weekly_windows_conflict(db, owner):
    with pytest.raises(ConflictException) as exc_info:
        AvailabilityService(db).set_weekly_availability(
            identity_for(owner), [WindowInput(MONDAY, 540, 720), WindowInput(MONDAY, 700, 800)]
        )
    assert exc_info.value.reason == OVERLAPPING_WINDOWS
    assert exc_info.value.details["day_of_week"] == MONDAY


@pytest.mark.integration
@pytest.mark.parametrize(
    "window",
    [WindowInput(7, 0, 60), WindowInput(1, 600, 600), WindowInput(1, -1, 60), WindowInput(1, 0, 1441)],
)
def test_invalid_weekly_window(db, owner, window):
    with pytest.raises(BadRequestException):
        AvailabilityService(db).set_weekly_availability(identity_for(owner), [window])


@pytest.mark.integration
def test_empty_schedule_means_no_slots(db, bookable):
    owner, _, service = bookable
    availability = AvailabilityService(db, clock=lambda: FIXED_NOW)

    availability.set_weekly_availability(identity_for(owner), [])

    assert availability.list_slots(identity_for(owner), service.id, days=7) == []


# ===== Overrides =====

@pytest.mark.integration
def test_block_override_removes_slots(db, bookable):
    owner, _, service = bookable
    availability = AvailabilityService(db, clock=lambda: FIXED_NOW)
    identity = identity_for(owner)

    availability.create_override(identity, OverrideType.BLOCK, at(11, day=DAY), at(12, day=DAY), " dentist ")
    slots = availability.list_public_slots(service.id, at(0, day=DAY), days=1)

    assert [s.start for s in slots] == [at(9, day=DAY), at(12, day=DAY), at(14, 30, day=DAY)]
    assert availability.list_overrides(identity)[0].reason == "dentist"


@pytest.mark.integration
def test_extend_override_opens_closed_day(db, bookable):
    owner, _, service = bookable
    availability = AvailabilityService(db, clock=lambda: FIXED_NOW)

    availability.create_override(identity_for(owner), OverrideType.EXTEND, at(10, day=DAY + 1), at(13, day=DAY + 1))
    slots = availability.list_public_slots(service.id, at(0, day=DAY + 1), days=1)

    assert [s.start for s in slots] == [at(10, day=DAY + 1)]


@pytest.mark.integration
def test_override_validation(db, owner):
    availability = AvailabilityService(db)
    identity = identity_for(owner)

    with pytest.raises(BadRequestException):
        availability.create_override(identity, OverrideType.BLOCK, at(12), at(11))
    with pytest.raises(BadRequestException):
        availability.create_override(identity, OverrideType.BLOCK, at(9), at(9) + timedelta(days=8))
    with pytest.raises(BadRequestException):
        availability.create_override(identity, OverrideType.BLOCK, datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10))


@pytest.mark.integration
def test_delete_override(db, bookable):
    owner, _, service = bookable
    availability = AvailabilityService(db, clock=lambda: FIXED_NOW)
    identity = identity_for(owner)
    override = availability.create_override(identity, OverrideType.BLOCK, at(9, day=DAY), at(17, day=DAY))
    assert availability.list_public_slots(service.id, at(0, day=DAY), days=1) == []

    availability.delete_override(identity, override.id)

    assert len(availability.list_public_slots(service.id, at(0, day=DAY), days=1)) == 3
    with pytest.raises(NotFoundException):
        availability.delete_override(identity, override.id)


# ===== Slot listing =====

@pytest.mark.integration
def test_slot_range_limits(db, bookable):
    _, _, service = bookable
    availability = AvailabilityService(db, clock=lambda: FIXED_NOW)

    with pytest.raises(BadRequestException):
        availability.list_public_slots(service.id, days=0)
    with pytest.raises(BadRequestException):
        availability.list_public_slots(service.id, days=61)
    assert len(availability.list_public_slots(service.id, days=14)) == 6


@pytest.mark.integration
def test_public_slots_hidden_for_unverified_vendor(db, factory):
    vendor = factory.vendor(status=VendorStatus.PENDING_REVIEW)
    factory.weekly(vendor)
    service = factory.service(vendor)

    with pytest.raises(ForbiddenException):
        AvailabilityService(db).list_public_slots(service.id)


@pytest.mark.integration
def test_inactive_service_has_no_slots(db, bookable):
    owner, _, service = bookable
    CatalogService(db).update_service(identity_for(owner), service.id, is_active=False)

    with pytest.raises(NotFoundException):
        AvailabilityService(db).list_public_slots(service.id)


# ===== Staff and seats =====

@pytest.mark.integration
def test_seat_with_staff_and_services(db, bookable):
    owner, _, service = bookable
    resources = VendorResourceService(db)
    identity = identity_for(owner)

    staff = resources.create_staff(identity, " Ama ")
    view = resources.create_seat(identity, "Chair 1", capacity=2, staff_id=staff.id, service_ids=[service.id, service.id])

    assert staff.name == "Ama"
    assert view.seat.staff_id == staff.id
    assert view.service_ids == [service.id]

    cleared = resources.update_seat(identity, view.seat.id, staff_id=None, service_ids=[])
    assert cleared.seat.staff_id is None
    assert cleared.service_ids == []


@pytest.mark.integration
def test_seat_validation(db, bookable, factory):
    owner, _, _ = bookable
    resources = VendorResourceService(db)
    identity = identity_for(owner)
    foreign_service = factory.service(factory.vendor())

    with pytest.raises(BadRequestException):
        resources.create_seat(identity, "Chair", capacity=11)
    with pytest.raises(BadRequestException):
        resources.create_seat(identity, "   ")
    with pytest.raises(BadRequestException):
        resources.create_seat(identity, "Chair", service_ids=[foreign_service.id])


@pytest.mark.integration
def test_archive_keeps_rows(db, bookable):
    owner, _, _ = bookable
    resources = VendorResourceService(db)
    identity = identity_for(owner)
    staff = resources.create_staff(identity, "Kofi")
    seat = resources.create_seat(identity, "Chair 1").seat

    resources.archive_staff(identity, staff.id)
    resources.archive_seat(identity, seat.id)

    assert [s.is_active for s in resources.list_staff(identity)] == [False]
    assert [v.seat.is_active for v in resources.list_seats(identity)] == [False]
