"""
Admin platform settings routes.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketplace.api.dependencies import get_db, require_role
from marketplace.lib.identity import Identity
from marketplace.models import UserRole
from marketplace.services.pricing import MAX_MARKUP_BPS, PricingService


class MarkupResponse(BaseModel):
    basis_points: int
    max_basis_points: int = MAX_MARKUP_BPS


class MarkupUpdate(BaseModel):
    basis_points: int


router = APIRouter(prefix="/admin/platform", tags=["admin-platform"])

admin_only = require_role(UserRole.ADMIN)


@router.get("/markup", response_model=MarkupResponse)
def get_markup(identity: Identity = Depends(admin_only), db: Session = Depends(get_db)) -> MarkupResponse:
    return MarkupResponse(basis_points=PricingService(db).get_markup_bps())


@router.put("/markup", response_model=MarkupResponse)
def set_markup(
    body: MarkupUpdate,
    identity: Identity = Depends(admin_only),
    db: Session = Depends(get_db),
) -> MarkupResponse:
    """Values outside 0-5000 are clamped. Existing bookings keep their price."""
    setting = PricingService(db).set_markup_bps(body.basis_points, updated_by=identity.user_id)
    return MarkupResponse(basis_points=setting.int_value)
