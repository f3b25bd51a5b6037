"""Gift card repository"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.models import GiftCard, GiftCardRedemption


class GiftCardRepository:

    @staticmethod
    def lock_by_code(db: Session, code: str) -> Optional[GiftCard]:
        return db.execute(select(GiftCard).where(GiftCard.code == code).with_for_update()).scalar_one_or_none()

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[GiftCard]:
        return db.execute(select(GiftCard).where(GiftCard.code == code)).scalar_one_or_none()

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.execute(select(GiftCard.id).where(GiftCard.code == code)).first() is not None

    @staticmethod
    def get_vendor_card(db: Session, vendor_id: UUID, gift_card_id: UUID) -> Optional[GiftCard]:
        return db.execute(
            select(GiftCard).where(GiftCard.id == gift_card_id, GiftCard.vendor_id == vendor_id)
        ).scalar_one_or_none()

    @staticmethod
    def list_vendor_cards(db: Session, vendor_id: UUID, take: int) -> List[GiftCard]:
        stmt = (
            select(GiftCard)
            .where(GiftCard.vendor_id == vendor_id)
            .order_by(GiftCard.created_at.desc(), GiftCard.id)
            .limit(take)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_redemptions(db: Session, gift_card_id: UUID) -> List[GiftCardRedemption]:
        stmt = (
            select(GiftCardRedemption)
            .where(GiftCardRedemption.gift_card_id == gift_card_id)
            .order_by(GiftCardRedemption.created_at, GiftCardRedemption.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_unrefunded_for_booking(db: Session, booking_id: UUID) -> List[GiftCardRedemption]:
        stmt = (
            select(GiftCardRedemption)
            .where(
                GiftCardRedemption.booking_id == booking_id,
                GiftCardRedemption.refunded_at.is_(None),
            )
            .order_by(GiftCardRedemption.created_at, GiftCardRedemption.id)
            .with_for_update()
        )
        return list(db.execute(stmt).scalars())
