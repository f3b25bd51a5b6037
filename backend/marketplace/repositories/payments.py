"""Payment intent repository"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.models import PaymentIntent


class PaymentIntentRepository:

    @staticmethod
    def lock_by_reference(db: Session, provider_ref: str) -> Optional[PaymentIntent]:
        """
        Load an intent by provider reference with a row lock so webhook
        deliveries for the same reference are processed one at a time.
        """
        return db.execute(
            select(PaymentIntent).where(PaymentIntent.provider_ref == provider_ref).with_for_update()
        ).scalar_one_or_none()

    @staticmethod
    def get_for_booking(db: Session, booking_id: UUID) -> Optional[PaymentIntent]:
        return db.execute(
            select(PaymentIntent)
            .where(PaymentIntent.booking_id == booking_id)
            .order_by(PaymentIntent.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    @staticmethod
    def get_for_gift_card(db: Session, gift_card_id: UUID) -> Optional[PaymentIntent]:
        return db.execute(
            select(PaymentIntent).where(PaymentIntent.gift_card_id == gift_card_id)
        ).scalar_one_or_none()

    @staticmethod
    def get_for_supply_order(db: Session, order_id: UUID) -> Optional[PaymentIntent]:
        return db.execute(
            select(PaymentIntent).where(PaymentIntent.supply_order_id == order_id)
        ).scalar_one_or_none()
