"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from marketplace.models.users import User, UserRole
from marketplace.models.vendors import Vendor, VendorStatus, StaffMember, Seat, seat_services
from marketplace.models.services import Service
from marketplace.models.availability import WeeklyAvailabilityWindow, AvailabilityOverride, OverrideType
from marketplace.models.bookings import (
    Booking,
    BookingStatus,
    BookingSource,
    BookingCancelActor,
    ACTIVE_BOOKING_STATUSES,
    PAYMENT_PENDING_STATUSES,
)
from marketplace.models.gift_cards import GiftCard, GiftCardRedemption, GiftCardStatus
from marketplace.models.supply_orders import SupplyOrder, SupplyOrderStatus, SupplyOrderStatusChange
from marketplace.models.payments import PaymentIntent, PaymentProvider, PaymentStatus
from marketplace.models.calendar import CalendarEntry, CalendarOwnerType
from marketplace.models.booking_events import BookingEvent, BookingEventType
from marketplace.models.platform_settings import PlatformSetting, SERVICE_MARKUP_BPS
from marketplace.models.reviews import Review
from marketplace.models.jobs import Job, JobType, JobStatus

__all__ = [
    "User",
    "UserRole",
    "Vendor",
    "VendorStatus",
    "StaffMember",
    "Seat",
    "seat_services",
    "Service",
    "WeeklyAvailabilityWindow",
    "AvailabilityOverride",
    "OverrideType",
    "Booking",
    "BookingStatus",
    "BookingSource",
    "BookingCancelActor",
    "ACTIVE_BOOKING_STATUSES",
    "PAYMENT_PENDING_STATUSES",
    "GiftCard",
    "GiftCardRedemption",
    "GiftCardStatus",
    "SupplyOrder",
    "SupplyOrderStatus",
    "SupplyOrderStatusChange",
    "PaymentIntent",
    "PaymentProvider",
    "PaymentStatus",
    "CalendarEntry",
    "CalendarOwnerType",
    "BookingEvent",
    "BookingEventType",
    "PlatformSetting",
    "SERVICE_MARKUP_BPS",
    "Review",
    "Job",
    "JobType",
    "JobStatus",
]
