"""
Shared fixtures: an in-memory SQLite database, seed helpers and a fixed
clock.

Environment overrides must be set before ``marketplace`` is imported so
the engine and settings pick them up.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_webhook_secret"
os.environ["PAYSTACK_PUBLIC_KEY"] = "pk_test_public"
os.environ["DEFAULT_CURRENCY"] = "GHS"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

import marketplace.models  # noqa: F401
from marketplace.lib.db import Base, SessionLocal, engine
from marketplace.lib.identity import Identity
from marketplace.lib.jwt import create_access_token
from marketplace.lib.metrics import reset_metrics
from marketplace.models import (
    Seat,
    Service,
    User,
    UserRole,
    Vendor,
    VendorStatus,
    WeeklyAvailabilityWindow,
    seat_services,
)


# Monday 7 January 2030, 08:00 UTC
FIXED_NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
MONDAY = 1


def at(hour: int, minute: int = 0, day: int = 7) -> datetime:
    """Aware UTC datetime on a January 2030 day (7th is a Monday)."""
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clear_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def database():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    """Fixed clock for notice-window and sweep rules."""
    return lambda: FIXED_NOW


@pytest.fixture
def client(database):
    from marketplace.api.app import app

    return TestClient(app)


class Factory:
    """Seed helpers; every helper commits so other sessions see the rows."""

    def __init__(self, session):
        self.session = session

    def user(self, role: UserRole = UserRole.CUSTOMER, email: Optional[str] = None, phone: Optional[str] = None) -> User:
        user = User(
            email=email or f"{uuid4().hex[:10]}@example.com",
            phone=phone,
            name="Test User",
            role=role,
        )
        self.session.add(user)
        self.session.commit()
        return user

    def vendor(self, owner: Optional[User] = None, status: VendorStatus = VendorStatus.VERIFIED) -> Vendor:
        owner = owner or self.user(UserRole.VENDOR)
        vendor = Vendor(user_id=owner.id, business_name="Glow Studio", status=status)
        self.session.add(vendor)
        self.session.commit()
        return vendor

    def service(
        self,
        vendor: Vendor,
        price_minor: int = 10000,
        duration_minutes: int = 120,
        buffer_minutes: int = 30,
        deposit_percent: Optional[int] = None,
    ) -> Service:
        service = Service(
            vendor_id=vendor.id,
            name="Silk Press",
            price_minor=price_minor,
            duration_minutes=duration_minutes,
            buffer_minutes=buffer_minutes,
            deposit_percent=deposit_percent,
        )
        self.session.add(service)
        self.session.commit()
        return service

    def weekly(self, vendor: Vendor, day_of_week: int = MONDAY, start_minute: int = 9 * 60, end_minute: int = 17 * 60):
        window = WeeklyAvailabilityWindow(
            vendor_id=vendor.id,
            day_of_week=day_of_week,
            start_minute=start_minute,
            end_minute=end_minute,
        )
        self.session.add(window)
        self.session.commit()
        return window

    def seat(self, vendor: Vendor, label: str = "Chair 1", capacity: int = 1, services: Iterable[Service] = ()) -> Seat:
        seat = Seat(vendor_id=vendor.id, label=label, capacity=capacity)
        self.session.add(seat)
        self.session.flush()
        for service in services:
            self.session.execute(seat_services.insert().values(seat_id=seat.id, service_id=service.id))
        self.session.commit()
        return seat


@pytest.fixture
def factory(db):
    return Factory(db)


def identity_for(user: User) -> Identity:
    return Identity(user_id=user.id, role=user.role)


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bookable(factory):
    """Verified vendor with a Monday 09:00-17:00 window and a 120+30 minute service."""
    owner = factory.user(UserRole.VENDOR)
    vendor = factory.vendor(owner)
    factory.weekly(vendor)
    service = factory.service(vendor)
    return owner, vendor, service
