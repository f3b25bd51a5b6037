"""
Availability API routes: weekly windows, overrides and slot listings.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import OverrideType, UserRole
from marketplace.scheduling.time_windows import Interval
from marketplace.services.availability_service import AvailabilityService, WindowInput


# Pydantic schemas
class WeeklyWindow(BaseModel):
    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_minute: int = Field(..., description="Minutes after midnight UTC (0-1439)")
    end_minute: int = Field(..., description="Minutes after midnight UTC (1-1440)")

    model_config = {"from_attributes": True}


class WeeklyAvailabilityUpdate(BaseModel):
    windows: List[WeeklyWindow]


class OverrideCreate(BaseModel):
    type: OverrideType
    starts_at: datetime
    ends_at: datetime
    reason: Optional[str] = None


class OverrideResponse(BaseModel):
    id: UUID
    type: OverrideType
    starts_at: datetime
    ends_at: datetime
    reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SlotResponse(BaseModel):
    start: datetime
    end: datetime


def _slots(intervals: List[Interval]) -> List[SlotResponse]:
    return [SlotResponse(start=i.start, end=i.end) for i in intervals]


# Router
router = APIRouter(tags=["availability"])

vendor_only = require_role(UserRole.VENDOR)


@router.get("/vendor/availability/weekly", response_model=List[WeeklyWindow])
def get_weekly_availability(
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[WeeklyWindow]:
    windows = AvailabilityService(db).get_weekly_availability(identity)
    return [WeeklyWindow.model_validate(w) for w in windows]


@router.put("/vendor/availability/weekly", response_model=List[WeeklyWindow])
def set_weekly_availability(
    body: WeeklyAvailabilityUpdate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[WeeklyWindow]:
    """Replace the whole weekly schedule. Overlapping windows on a day return 409."""
    windows = AvailabilityService(db).set_weekly_availability(
        identity,
        [WindowInput(w.day_of_week, w.start_minute, w.end_minute) for w in body.windows],
    )
    return [WeeklyWindow.model_validate(w) for w in windows]


@router.get("/vendor/availability/overrides", response_model=List[OverrideResponse])
def list_overrides(
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[OverrideResponse]:
    return [OverrideResponse.model_validate(o) for o in AvailabilityService(db).list_overrides(identity)]


@router.post(
    "/vendor/availability/overrides",
    response_model=OverrideResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_override(
    body: OverrideCreate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> OverrideResponse:
    override = AvailabilityService(db).create_override(
        identity, body.type, body.starts_at, body.ends_at, body.reason
    )
    return OverrideResponse.model_validate(override)


@router.delete("/vendor/availability/overrides/{override_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_override(
    override_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> None:
    AvailabilityService(db).delete_override(identity, override_id)


@router.get("/vendor/services/{service_id}/slots", response_model=List[SlotResponse])
def list_vendor_slots(
    service_id: UUID,
    start_date: Optional[datetime] = Query(None, description="Defaults to today (UTC)"),
    days: Optional[int] = Query(None, description="1-60, default 30"),
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[SlotResponse]:
    return _slots(AvailabilityService(db).list_slots(identity, service_id, start_date, days))


@router.get("/services/{service_id}/slots", response_model=List[SlotResponse])
def list_public_slots(
    service_id: UUID,
    start_date: Optional[datetime] = Query(None, description="Defaults to today (UTC)"),
    days: Optional[int] = Query(None, description="1-60, default 30"),
    db: Session = Depends(get_db),
) -> List[SlotResponse]:
    """Bookable slots for a verified vendor's active service."""
    return _slots(AvailabilityService(db).list_public_slots(service_id, start_date, days))
