"""
Review routes: customers rate completed bookings, vendors reply.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import UserRole
from marketplace.services.reviews import ReviewService


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewReply(BaseModel):
    reply: str = Field(..., min_length=1, max_length=1000)


class ReviewResponse(BaseModel):
    id: UUID
    booking_id: UUID
    vendor_id: UUID
    rating: int
    comment: Optional[str] = None
    reply: Optional[str] = None
    replied_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


router = APIRouter(tags=["reviews"])

customer_only = require_role(UserRole.CUSTOMER)
vendor_only = require_role(UserRole.VENDOR)


@router.post("/bookings/{booking_id}/review", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    booking_id: UUID,
    body: ReviewCreate,
    identity: Identity = Depends(customer_only),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    review = ReviewService(db).create_review(identity, booking_id, body.rating, body.comment)
    return ReviewResponse.model_validate(review)


@router.post("/reviews/{review_id}/reply", response_model=ReviewResponse)
def reply_to_review(
    review_id: UUID,
    body: ReviewReply,
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    return ReviewResponse.model_validate(ReviewService(db).reply_to_review(identity, review_id, body.reply))


@router.get("/vendor/reviews", response_model=List[ReviewResponse])
def list_vendor_reviews(
    pending_only: bool = Query(False),
    limit: int = Query(5, ge=1, le=50),
    identity: Identity = Depends(vendor_only),
    db: Session = Depends(get_db),
) -> List[ReviewResponse]:
    reviews = ReviewService(db).list_vendor_reviews(identity, pending_only=pending_only, limit=limit)
    return [ReviewResponse.model_validate(review) for review in reviews]
