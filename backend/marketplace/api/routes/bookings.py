"""
Booking API routes.

Public creation, customer views, vendor management and the lifecycle
transitions (reschedule, cancel, complete, no-show, mark paid).
"""
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_current_identity, get_db, get_optional_identity, require_role
from marketplace.lib.identity import Identity
from marketplace.models import Booking, BookingCancelActor, BookingSource, BookingStatus, PaymentIntent, UserRole
from marketplace.services.booking_service import BookingRequest, BookingResult, BookingService
from marketplace.services.paystack import build_checkout_payload


# Pydantic schemas
class BookingCreate(BaseModel):
    service_id: UUID
    start_at: datetime
    end_at: Optional[datetime] = None
    seat_id: Optional[UUID] = None
    customer_name: str = Field(..., min_length=1, max_length=120)
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=32)
    notes: Optional[str] = Field(None, max_length=1000)
    gift_card_code: Optional[str] = Field(None, max_length=40)


class ManualBookingCreate(BookingCreate):
    collect_deposit: bool = False


class RescheduleRequest(BaseModel):
    start_at: datetime


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ClaimRequest(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)


class BookingResponse(BaseModel):
    id: UUID
    reference: str
    vendor_id: UUID
    service_id: UUID
    customer_user_id: Optional[UUID] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    scheduled_start: datetime
    scheduled_end: datetime
    seat_id: Optional[UUID] = None
    staff_id: Optional[UUID] = None
    price_minor: int
    deposit_minor: int
    balance_minor: int
    currency: str
    gift_card_code: Optional[str] = None
    gift_card_deposit_applied: int = 0
    gift_card_balance_applied: int = 0
    status: BookingStatus
    source: BookingSource
    cancelled_by: Optional[BookingCancelActor] = None
    cancellation_reason: Optional[str] = None
    reschedule_count: int = 0
    created_at: datetime
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CheckoutResponse(BaseModel):
    public_key: str
    reference: str
    amount_minor: int
    currency: str
    email: str
    channels: Optional[List[str]] = None
    metadata: Dict[str, object] = {}


class BookingWithPaymentResponse(BaseModel):
    booking: BookingResponse
    payment: Optional[CheckoutResponse] = None


class VendorStatsResponse(BaseModel):
    counts: Dict[str, int]
    completed_sales_minor: int


class CompletedCountResponse(BaseModel):
    completed: int


def _to_request(body: BookingCreate) -> BookingRequest:
    return BookingRequest(
        service_id=body.service_id,
        start_at=body.start_at,
        end_at=body.end_at,
        seat_id=body.seat_id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        notes=body.notes,
        gift_card_code=body.gift_card_code,
    )


def _checkout(booking: Booking, intent: Optional[PaymentIntent]) -> Optional[CheckoutResponse]:
    if intent is None or booking.status != BookingStatus.AWAITING_PAYMENT:
        return None
    payload = build_checkout_payload(
        intent,
        booking.customer_email,
        {"booking_id": str(booking.id), "reference": booking.reference},
    )
    return CheckoutResponse(**asdict(payload))


def _with_payment(result: BookingResult) -> BookingWithPaymentResponse:
    return BookingWithPaymentResponse(
        booking=BookingResponse.model_validate(result.booking),
        payment=_checkout(result.booking, result.payment_intent),
    )


# Router
router = APIRouter(tags=["bookings"])


# ===== Public / any authenticated caller =====

@router.post("/bookings", response_model=BookingWithPaymentResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    body: BookingCreate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> BookingWithPaymentResponse:
    """
    Book a slot.

    Returns the booking and, when a deposit is due, the checkout payload
    for the payment provider. 409 means the slot was taken; re-poll slots.
    """
    result = BookingService(db).create_public_booking(_to_request(body), identity)
    return _with_payment(result)


@router.get("/bookings/{booking_id}", response_model=BookingWithPaymentResponse)
def get_booking(
    booking_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> BookingWithPaymentResponse:
    return _with_payment(BookingService(db).get_booking(identity, booking_id))


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingResponse)
def reschedule_booking(
    booking_id: UUID,
    body: RescheduleRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = BookingService(db).reschedule(identity, booking_id, body.start_at)
    return BookingResponse.model_validate(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: UUID,
    body: Optional[CancelRequest] = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> BookingResponse:
    reason = body.reason if body else None
    booking = BookingService(db).cancel(identity, booking_id, reason)
    return BookingResponse.model_validate(booking)


# ===== Customer =====

@router.get("/me/bookings/upcoming", response_model=List[BookingResponse])
def list_my_upcoming(
    take: Optional[int] = Query(None, description="Max results (1-50, default 10)"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> List[BookingResponse]:
    bookings = BookingService(db).list_customer_upcoming(identity, take)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/me/bookings/completed", response_model=List[BookingResponse])
def list_my_completed(
    take: Optional[int] = Query(None, description="Max results (1-50, default 10)"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> List[BookingResponse]:
    bookings = BookingService(db).list_customer_completed(identity, take)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.post("/me/bookings/claim", response_model=List[BookingResponse])
def claim_bookings(
    body: ClaimRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> List[BookingResponse]:
    """Attach bookings made as a guest with the same email or phone."""
    bookings = BookingService(db).claim_bookings(identity, body.email, body.phone)
    return [BookingResponse.model_validate(b) for b in bookings]


# ===== Vendor =====

vendor_only = require_role(UserRole.VENDOR)


@router.get("/vendor/bookings", response_model=List[BookingResponse])
def list_vendor_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    take: Optional[int] = Query(None, description="Page size (1-100, default 20)"),
    skip: int = Query(0, ge=0),
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[BookingResponse]:
    bookings = BookingService(db).list_vendor_bookings(
        identity, status=status_filter, start_date=start_date, end_date=end_date, take=take, skip=skip
    )
    return [BookingResponse.model_validate(b) for b in bookings]


@router.post("/vendor/bookings", response_model=BookingWithPaymentResponse, status_code=status.HTTP_201_CREATED)
def create_manual_booking(
    body: ManualBookingCreate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> BookingWithPaymentResponse:
    result = BookingService(db).create_manual_booking(identity, _to_request(body), body.collect_deposit)
    return _with_payment(result)


@router.get("/vendor/bookings/upcoming", response_model=List[BookingResponse])
def list_vendor_upcoming(
    take: Optional[int] = Query(None, description="Max results (1-50, default 10)"),
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[BookingResponse]:
    bookings = BookingService(db).list_vendor_upcoming(identity, take)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/vendor/bookings/stats", response_model=VendorStatsResponse)
def vendor_booking_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> VendorStatsResponse:
    stats = BookingService(db).get_vendor_stats(identity, start_date, end_date)
    return VendorStatsResponse(
        counts={s.value: count for s, count in stats.counts.items()},
        completed_sales_minor=stats.completed_sales_minor,
    )


@router.post("/vendor/bookings/complete-today", response_model=CompletedCountResponse)
def complete_past_bookings_for_today(
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> CompletedCountResponse:
    return CompletedCountResponse(completed=BookingService(db).complete_past_bookings_for_today(identity))


@router.post("/vendor/bookings/{booking_id}/complete", response_model=BookingResponse)
def mark_completed(
    booking_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> BookingResponse:
    return BookingResponse.model_validate(BookingService(db).mark_completed(identity, booking_id))


@router.post("/vendor/bookings/{booking_id}/no-show", response_model=BookingResponse)
def mark_no_show(
    booking_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> BookingResponse:
    return BookingResponse.model_validate(BookingService(db).mark_no_show(identity, booking_id))


@router.post("/vendor/bookings/{booking_id}/mark-paid", response_model=BookingResponse)
def mark_manual_booking_paid(
    booking_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> BookingResponse:
    return BookingResponse.model_validate(BookingService(db).mark_manual_booking_paid(identity, booking_id))
