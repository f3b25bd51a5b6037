"""
Gift card API routes.
"""
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import GiftCardStatus, UserRole
from marketplace.services.gift_cards import GiftCardService


# Pydantic schemas
class GiftCardPurchase(BaseModel):
    vendor_id: UUID
    amount_minor: int
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    purchaser_name: str = Field(..., min_length=1, max_length=120)
    purchaser_email: str = Field(..., min_length=3, max_length=255)
    purchaser_phone: Optional[str] = Field(None, max_length=32)
    recipient_name: Optional[str] = Field(None, max_length=120)
    recipient_email: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None


class GiftCardLookup(BaseModel):
    code: str = Field(..., min_length=4, max_length=40)
    email: str = Field(..., min_length=3, max_length=255)


class GiftCardResponse(BaseModel):
    id: UUID
    vendor_id: UUID
    code: str
    currency: str
    value_minor: int
    balance_minor: int
    status: GiftCardStatus
    recipient_name: Optional[str] = None
    expires_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RedemptionResponse(BaseModel):
    booking_id: UUID
    amount_minor: int
    deposit_amount_minor: int
    balance_amount_minor: int
    refunded_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class GiftCardDetailResponse(GiftCardResponse):
    redemptions: List[RedemptionResponse] = []


class GiftCardCheckoutResponse(BaseModel):
    gift_card: GiftCardResponse
    payment: Dict[str, object]


# Router
router = APIRouter(tags=["gift-cards"])


@router.post("/gift-cards", response_model=GiftCardCheckoutResponse, status_code=status.HTTP_201_CREATED)
def purchase_gift_card(body: GiftCardPurchase, db: Session = Depends(get_db)) -> GiftCardCheckoutResponse:
    """Start a purchase; the card activates once the payment webhook confirms it."""
    card, payload = GiftCardService(db).purchase(**body.model_dump())
    return GiftCardCheckoutResponse(gift_card=GiftCardResponse.model_validate(card), payment=asdict(payload))


@router.post("/gift-cards/lookup", response_model=GiftCardResponse)
def lookup_gift_card(body: GiftCardLookup, db: Session = Depends(get_db)) -> GiftCardResponse:
    return GiftCardResponse.model_validate(GiftCardService(db).lookup(body.code, body.email))


vendor_only = require_role(UserRole.VENDOR)


@router.get("/vendor/gift-cards", response_model=List[GiftCardResponse])
def list_vendor_gift_cards(
    take: int = Query(20, description="1-100"),
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[GiftCardResponse]:
    return [GiftCardResponse.model_validate(c) for c in GiftCardService(db).list_vendor_cards(identity, take)]


@router.get("/vendor/gift-cards/{gift_card_id}", response_model=GiftCardDetailResponse)
def get_vendor_gift_card(
    gift_card_id: UUID,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> GiftCardDetailResponse:
    card, redemptions = GiftCardService(db).get_vendor_card(identity, gift_card_id)
    response = GiftCardDetailResponse.model_validate(card)
    response.redemptions = [RedemptionResponse.model_validate(r) for r in redemptions]
    return response
