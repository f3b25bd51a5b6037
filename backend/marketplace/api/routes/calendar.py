"""
Calendar read-side routes.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_current_identity, get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import BookingStatus, CalendarOwnerType, UserRole
from marketplace.services.calendar_projector import CalendarProjector
from marketplace.services.vendor_context import require_vendor_for_identity


class CalendarEntryResponse(BaseModel):
    booking_id: UUID
    owner_type: CalendarOwnerType
    service_id: UUID
    scheduled_start: datetime
    scheduled_end: datetime
    status: BookingStatus

    model_config = {"from_attributes": True}


class RebuildResponse(BaseModel):
    bookings: int


router = APIRouter(tags=["calendar"])


@router.get("/calendar", response_model=List[CalendarEntryResponse])
def list_calendar(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> List[CalendarEntryResponse]:
    """The caller's calendar: the vendor view for vendors, the customer view otherwise."""
    entries = CalendarProjector(db).list_entries(identity, start, end)
    return [CalendarEntryResponse.model_validate(e) for e in entries]


@router.post("/vendor/calendar/rebuild", response_model=RebuildResponse)
def rebuild_calendar(
    identity: Identity = Depends(require_role(UserRole.VENDOR)),
    db: Session = Depends(get_db),
) -> RebuildResponse:
    vendor = require_vendor_for_identity(db, identity)
    return RebuildResponse(bookings=CalendarProjector(db).rebuild_vendor(vendor.id))
