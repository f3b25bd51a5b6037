"""
Vendor staff and seat API routes.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import UserRole
from marketplace.services.vendor_resources import SeatView, VendorResourceService


# Pydantic schemas
class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    bio: Optional[str] = Field(None, max_length=500)
    is_active: bool = True


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    bio: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class StaffResponse(BaseModel):
    id: UUID
    name: str
    bio: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SeatCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=80)
    description: Optional[str] = Field(None, max_length=255)
    capacity: int = 1
    staff_id: Optional[UUID] = None
    service_ids: Optional[List[UUID]] = Field(None, max_length=50)
    is_active: bool = True


class SeatUpdate(BaseModel):
    label: Optional[str] = Field(None, min_length=1, max_length=80)
    description: Optional[str] = Field(None, max_length=255)
    capacity: Optional[int] = None
    staff_id: Optional[UUID] = None
    service_ids: Optional[List[UUID]] = Field(None, max_length=50)
    is_active: Optional[bool] = None


class SeatResponse(BaseModel):
    id: UUID
    label: str
    description: Optional[str] = None
    capacity: int
    staff_id: Optional[UUID] = None
    service_ids: List[UUID] = []
    is_active: bool


def _seat(view: SeatView) -> SeatResponse:
    seat = view.seat
    return SeatResponse(
        id=seat.id,
        label=seat.label,
        description=seat.description,
        capacity=seat.capacity,
        staff_id=seat.staff_id,
        service_ids=view.service_ids,
        is_active=seat.is_active,
    )


# Router
router = APIRouter(prefix="/vendor", tags=["resources"])

vendor_only = require_role(UserRole.VENDOR)


@router.get("/staff", response_model=List[StaffResponse])
def list_staff(identity: Identity = Depends(vendor_only), db: Session = Depends(get_db)) -> List[StaffResponse]:
    return [StaffResponse.model_validate(s) for s in VendorResourceService(db).list_staff(identity)]


@router.post("/staff", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff(
    body: StaffCreate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> StaffResponse:
    staff = VendorResourceService(db).create_staff(identity, body.name, body.bio, body.is_active)
    return StaffResponse.model_validate(staff)


@router.patch("/staff/{staff_id}", response_model=StaffResponse)
def update_staff(
    staff_id: UUID,
    body: StaffUpdate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> StaffResponse:
    staff = VendorResourceService(db).update_staff(identity, staff_id, **body.model_dump(exclude_unset=True))
    return StaffResponse.model_validate(staff)


@router.delete("/staff/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_staff(staff_id: UUID, identity: Identity = Depends(vendor_only), db: Session = Depends(get_db)) -> None:
    VendorResourceService(db).archive_staff(identity, staff_id)


@router.get("/seats", response_model=List[SeatResponse])
def list_seats(identity: Identity = Depends(vendor_only), db: Session = Depends(get_db)) -> List[SeatResponse]:
    return [_seat(v) for v in VendorResourceService(db).list_seats(identity)]


@router.post("/seats", response_model=SeatResponse, status_code=status.HTTP_201_CREATED)
def create_seat(
    body: SeatCreate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> SeatResponse:
    """Create a seat. An empty or missing ``service_ids`` makes it eligible for every service."""
    view = VendorResourceService(db).create_seat(identity, **body.model_dump())
    return _seat(view)


@router.patch("/seats/{seat_id}", response_model=SeatResponse)
def update_seat(
    seat_id: UUID,
    body: SeatUpdate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> SeatResponse:
    view = VendorResourceService(db).update_seat(identity, seat_id, **body.model_dump(exclude_unset=True))
    return _seat(view)


@router.delete("/seats/{seat_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_seat(seat_id: UUID, identity: Identity = Depends(vendor_only), db: Session = Depends(get_db)) -> None:
    VendorResourceService(db).archive_seat(identity, seat_id)
