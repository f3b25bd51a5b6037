"""
Vendor service catalog API routes.
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
from marketplace.services.catalog_service import CatalogService


# Pydantic schemas
class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=80)
    description: Optional[str] = Field(None, max_length=500)
    price_minor: int = Field(..., description="Base price in minor currency units (min 500)")
    duration_minutes: int
    buffer_minutes: int = 0
    deposit_percent: Optional[int] = Field(None, description="0-100; unset collects the full price")
    is_active: bool = True


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=80)
    description: Optional[str] = Field(None, max_length=500)
    price_minor: Optional[int] = None
    duration_minutes: Optional[int] = None
    buffer_minutes: Optional[int] = None
    deposit_percent: Optional[int] = None
    is_active: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: UUID
    vendor_id: UUID
    name: str
    description: Optional[str] = None
    price_minor: int
    duration_minutes: int
    buffer_minutes: int
    deposit_percent: Optional[int] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# Router
router = APIRouter(prefix="/vendor/services", tags=["catalog"])

vendor_only = require_role(UserRole.VENDOR)


@router.get("", response_model=List[ServiceResponse])
def list_services(
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[ServiceResponse]:
    return [ServiceResponse.model_validate(s) for s in CatalogService(db).list_services(identity)]


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    body: ServiceCreate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> ServiceResponse:
    service = CatalogService(db).create_service(identity, **body.model_dump())
    return ServiceResponse.model_validate(service)


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(
    service_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> ServiceResponse:
    return ServiceResponse.model_validate(CatalogService(db).get_service(identity, service_id))


@router.patch("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: UUID,
    body: ServiceUpdate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> ServiceResponse:
    """
    Partial update. Only fields present in the body change; send
    ``deposit_percent: null`` to go back to full-price deposits.
    """
    changes = body.model_dump(exclude_unset=True)
    service = CatalogService(db).update_service(identity, service_id, **changes)
    return ServiceResponse.model_validate(service)
