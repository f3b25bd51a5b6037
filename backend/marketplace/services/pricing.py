"""
Platform markup on service prices.

``apply_markup`` is a pure function; ``PricingService`` resolves the
current basis points from the ``platform_settings`` table.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from marketplace.lib.errors import BadRequestException
from marketplace.lib.logging import get_logger
from marketplace.lib.settings import settings
from marketplace.models import PlatformSetting, SERVICE_MARKUP_BPS


logger = get_logger(__name__)

MIN_MARKUP_BPS = 0
MAX_MARKUP_BPS = 5000


def clamp_markup_bps(basis_points: int) -> int:
    return max(MIN_MARKUP_BPS, min(basis_points, MAX_MARKUP_BPS))


def apply_markup(amount: int, basis_points: int) -> int:
    """
    Apply a basis-point markup to an amount in minor units.

    Rounds half up and never returns less than 1.

    Raises:
        BadRequestException: If amount is not a positive integer
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise BadRequestException("Invalid amount for markup calculation")
    # Integer arithmetic keeps half-up rounding exact
    marked_up = (amount * (10000 + basis_points) + 5000) // 10000
    return max(1, marked_up)


class PricingService:
    """Reads and updates the platform markup setting."""

    def __init__(self, session: Session):
        self.session = session

    def get_markup_bps(self) -> int:
        setting = self.session.get(PlatformSetting, SERVICE_MARKUP_BPS)
        if setting is None or setting.int_value is None:
            return clamp_markup_bps(settings.service_markup_bps_default)
        return clamp_markup_bps(setting.int_value)

    def set_markup_bps(self, basis_points: int, updated_by: Optional[UUID] = None) -> PlatformSetting:
        """Store a new markup (clamped to 0-5000 bps) and commit."""
        clamped = clamp_markup_bps(basis_points)
        setting = self.session.get(PlatformSetting, SERVICE_MARKUP_BPS)
        if setting is None:
            setting = PlatformSetting(key=SERVICE_MARKUP_BPS)
            self.session.add(setting)
        setting.int_value = clamped
        setting.updated_by_user_id = updated_by
        self.session.commit()

        logger.info(f"Service markup set to {clamped} bps")
        return setting

    def price_for(self, base_price: int) -> int:
        """Customer-facing price for a service base price."""
        return apply_markup(base_price, self.get_markup_bps())
