"""
Vendor supply order routes.
"""
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import SupplyOrderStatus, UserRole
from marketplace.services.supply_orders import SupplyOrderService


class SupplyOrderCreate(BaseModel):
    total_minor: int
    description: Optional[str] = Field(None, max_length=255)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    email: Optional[str] = Field(None, max_length=255)


class SupplyOrderResponse(BaseModel):
    id: UUID
    vendor_id: UUID
    description: Optional[str] = None
    total_minor: int
    currency: str
    status: SupplyOrderStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class SupplyOrderCheckoutResponse(BaseModel):
    order: SupplyOrderResponse
    payment: Dict[str, object]


router = APIRouter(prefix="/vendor/supply-orders", tags=["supply-orders"])

vendor_only = require_role(UserRole.VENDOR)


@router.post("", response_model=SupplyOrderCheckoutResponse, status_code=status.HTTP_201_CREATED)
def create_supply_order(
    body: SupplyOrderCreate,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> SupplyOrderCheckoutResponse:
    order, payload = SupplyOrderService(db).create_order(identity, **body.model_dump())
    return SupplyOrderCheckoutResponse(order=SupplyOrderResponse.model_validate(order), payment=asdict(payload))


@router.get("/{order_id}", response_model=SupplyOrderResponse)
def get_supply_order(
    order_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> SupplyOrderResponse:
    return SupplyOrderResponse.model_validate(SupplyOrderService(db).get_order(identity, order_id))
