"""
Supply orders - vendor purchases settled through payment intents.
"""
from typing import Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from marketplace.lib.errors import BadRequestException, NotFoundException
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.lib.settings import settings
from marketplace.models import (
    PaymentIntent,
    PaymentProvider,
    PaymentStatus,
    SupplyOrder,
    SupplyOrderStatus,
    SupplyOrderStatusChange,
)
from marketplace.services.paystack import CheckoutPayload, build_checkout_payload
from marketplace.services.vendor_context import require_vendor_for_identity


logger = get_logger(__name__)


def transition_order(session: Session, order: SupplyOrder, to_status: SupplyOrderStatus, note: str) -> None:
    """Change an order's status and record the change (no commit)."""
    session.add(
        SupplyOrderStatusChange(
            order_id=order.id,
            from_status=order.status,
            to_status=to_status,
            note=note,
        )
    )
    order.status = to_status


class SupplyOrderService:

    def __init__(self, session: Session):
        self.session = session

    def create_order(
        self,
        identity: Identity,
        total_minor: int,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Tuple[SupplyOrder, CheckoutPayload]:
        vendor = require_vendor_for_identity(self.session, identity)
        if total_minor <= 0:
            raise BadRequestException("Order total must be greater than zero")

        currency = (currency or settings.default_currency).upper()
        order = SupplyOrder(
            id=uuid4(),
            vendor_id=vendor.id,
            description=description,
            total_minor=total_minor,
            currency=currency,
            status=SupplyOrderStatus.REQUIRES_PAYMENT,
        )
        self.session.add(order)
        self.session.flush()
        self.session.add(
            SupplyOrderStatusChange(
                order_id=order.id,
                from_status=None,
                to_status=SupplyOrderStatus.REQUIRES_PAYMENT,
                note="Order created",
            )
        )
        intent = PaymentIntent(
            supply_order_id=order.id,
            provider=PaymentProvider.PAYSTACK,
            provider_ref=f"supp_{uuid4().hex[:24]}",
            amount_minor=total_minor,
            currency=currency,
            status=PaymentStatus.REQUIRES_PAYMENT_METHOD,
            provider_metadata={"type": "SUPPLY_ORDER", "supply_order_id": str(order.id), "vendor_id": str(vendor.id)},
        )
        self.session.add(intent)
        self.session.commit()

        logger.info(f"Supply order {order.id} created for vendor {vendor.id} ({total_minor} {currency})")
        payload = build_checkout_payload(
            intent,
            email or vendor.contact_email,
            {"type": "SUPPLY_ORDER", "supply_order_id": str(order.id), "vendor_id": str(vendor.id)},
        )
        return order, payload

    def get_order(self, identity: Identity, order_id: UUID) -> SupplyOrder:
        vendor = require_vendor_for_identity(self.session, identity)
        order = self.session.get(SupplyOrder, order_id)
        if order is None or order.vendor_id != vendor.id:
            raise NotFoundException("Supply order", str(order_id))
        return order
