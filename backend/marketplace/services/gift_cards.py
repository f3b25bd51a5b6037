"""
Gift cards - purchase, lookup and the redemption ledger applied at
booking time.
"""
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from marketplace.lib.db import utcnow
from marketplace.lib.errors import BadRequestException, NotFoundException
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.lib.settings import settings
from marketplace.models import (
    GiftCard,
    GiftCardRedemption,
    GiftCardStatus,
    PaymentIntent,
    PaymentProvider,
    PaymentStatus,
)
from marketplace.repositories.gift_cards import GiftCardRepository
from marketplace.services.paystack import CheckoutPayload, build_checkout_payload
from marketplace.services.vendor_context import require_bookable_vendor, require_vendor_for_identity


logger = get_logger(__name__)

MIN_GIFT_CARD_AMOUNT = 1000
CODE_ATTEMPTS = 5


def normalize_code(code: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", code).upper()


@dataclass(frozen=True)
class GiftCardApplication:
    """Result of applying a card: what it covered and what is still due."""
    gift_card_id: Optional[UUID]
    applied_deposit: int
    applied_balance: int
    remaining_deposit: int
    remaining_balance: int


class GiftCardLedger:
    """
    Balance application and refunds. Runs inside the caller's
    transaction and never commits.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or utcnow

    def is_expired(self, card: GiftCard) -> bool:
        return card.expires_at is not None and card.expires_at < self.clock()

    def apply_balance(
        self,
        session: Session,
        vendor_id: UUID,
        currency: str,
        code: str,
        deposit_due: int,
        balance_due: int,
        booking_id: UUID,
    ) -> GiftCardApplication:
        """
        Apply a card to the amounts due, deposit first.

        Rejections leave the card untouched; a card is marked DEPLETED only
        when a successful application empties it.

        Raises:
            NotFoundException: Unknown code
            BadRequestException: Wrong vendor or currency, expired,
                inactive or empty card
        """
        card = GiftCardRepository.lock_by_code(session, normalize_code(code))
        if card is None:
            raise NotFoundException("Gift card")
        if card.vendor_id != vendor_id:
            raise BadRequestException("Gift card does not belong to this vendor")
        if card.currency.upper() != currency.upper():
            raise BadRequestException("Gift card currency mismatch")
        if self.is_expired(card):
            raise BadRequestException("Gift card has expired")
        if card.status != GiftCardStatus.ACTIVE:
            raise BadRequestException("Gift card is not active")
        if card.balance_minor <= 0:
            raise BadRequestException("Gift card has no remaining balance")

        applied_deposit = min(card.balance_minor, deposit_due)
        applied_balance = min(card.balance_minor - applied_deposit, balance_due)
        total = applied_deposit + applied_balance

        card.balance_minor -= total
        card.status = GiftCardStatus.DEPLETED if card.balance_minor <= 0 else GiftCardStatus.ACTIVE
        session.add(
            GiftCardRedemption(
                gift_card_id=card.id,
                booking_id=booking_id,
                amount_minor=total,
                deposit_amount_minor=applied_deposit,
                balance_amount_minor=applied_balance,
            )
        )

        logger.info(f"Gift card {card.code} applied to booking {booking_id}: {total} (balance {card.balance_minor})")
        return GiftCardApplication(
            gift_card_id=card.id,
            applied_deposit=applied_deposit,
            applied_balance=applied_balance,
            remaining_deposit=deposit_due - applied_deposit,
            remaining_balance=balance_due - applied_balance,
        )

    def refund(self, session: Session, booking_id: UUID) -> int:
        """
        Return every unrefunded redemption of a booking to its card.

        Each redemption is refunded once; calling again is a no-op.

        Returns:
            Total amount restored
        """
        restored = 0
        now = self.clock()
        for redemption in GiftCardRepository.list_unrefunded_for_booking(session, booking_id):
            card = session.get(GiftCard, redemption.gift_card_id, with_for_update=True)
            card.balance_minor += redemption.amount_minor
            if card.status not in (GiftCardStatus.CANCELLED, GiftCardStatus.EXPIRED):
                card.status = GiftCardStatus.ACTIVE
            redemption.refunded_at = now
            restored += redemption.amount_minor

        if restored:
            logger.info(f"Refunded {restored} to gift cards for booking {booking_id}")
        return restored

    def activate(self, card: GiftCard) -> None:
        card.status = GiftCardStatus.ACTIVE
        card.activated_at = self.clock()

    def cancel(self, card: GiftCard) -> None:
        card.status = GiftCardStatus.CANCELLED
        card.balance_minor = 0


class GiftCardService:
    """Public purchase/lookup and vendor listing of gift cards."""

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        self.session = session
        self.clock = clock or utcnow
        self.ledger = GiftCardLedger(clock=self.clock)

    def purchase(
        self,
        vendor_id: UUID,
        amount_minor: int,
        purchaser_name: str,
        purchaser_email: str,
        currency: Optional[str] = None,
        purchaser_phone: Optional[str] = None,
        recipient_name: Optional[str] = None,
        recipient_email: Optional[str] = None,
        message: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Tuple[GiftCard, CheckoutPayload]:
        """Create a PENDING_PAYMENT card and the payment intent that activates it."""
        vendor = require_bookable_vendor(self.session, vendor_id)

        if amount_minor < MIN_GIFT_CARD_AMOUNT:
            raise BadRequestException(f"Gift card amount must be at least {MIN_GIFT_CARD_AMOUNT} minor units")
        if expires_at is not None and expires_at <= self.clock():
            raise BadRequestException("Expiry must be in the future")
        if not purchaser_name.strip():
            raise BadRequestException("Purchaser name is required")

        currency = (currency or settings.default_currency).upper()
        card = GiftCard(
            id=uuid4(),
            vendor_id=vendor.id,
            code=self._generate_unique_code(),
            currency=currency,
            value_minor=amount_minor,
            balance_minor=amount_minor,
            status=GiftCardStatus.PENDING_PAYMENT,
            purchaser_name=purchaser_name.strip(),
            purchaser_email=purchaser_email.strip().lower(),
            purchaser_phone=purchaser_phone.strip() if purchaser_phone else None,
            recipient_name=recipient_name.strip() if recipient_name else None,
            recipient_email=recipient_email.strip().lower() if recipient_email else None,
            message=message.strip() if message else None,
            expires_at=expires_at,
        )
        intent = PaymentIntent(
            gift_card_id=card.id,
            provider=PaymentProvider.PAYSTACK,
            provider_ref=f"gft_{uuid4().hex[:28]}",
            amount_minor=amount_minor,
            currency=currency,
            status=PaymentStatus.REQUIRES_PAYMENT_METHOD,
            provider_metadata={
                "type": "GIFT_CARD",
                "gift_card_id": str(card.id),
                "vendor_id": str(vendor.id),
                "purchaser_email": card.purchaser_email,
            },
        )
        self.session.add(card)
        self.session.flush()
        self.session.add(intent)
        self.session.commit()

        logger.info(f"Gift card {card.id} created for vendor {vendor.id} awaiting payment {intent.provider_ref}")
        payload = build_checkout_payload(
            intent,
            card.purchaser_email,
            {"type": "GIFT_CARD", "gift_card_id": str(card.id), "vendor_id": str(vendor.id)},
        )
        return card, payload

    def lookup(self, code: str, email: str) -> GiftCard:
        """Public balance lookup; the email must be the purchaser's or recipient's."""
        card = GiftCardRepository.get_by_code(self.session, normalize_code(code))
        if card is None:
            raise NotFoundException("Gift card")
        normalized_email = email.strip().lower()
        if normalized_email not in {card.purchaser_email, card.recipient_email}:
            raise BadRequestException("Email does not match this gift card")
        if self.ledger.is_expired(card):
            card.status = GiftCardStatus.EXPIRED
            self.session.commit()
            raise BadRequestException("Gift card has expired")
        return card

    def list_vendor_cards(self, identity: Identity, take: int = 20) -> List[GiftCard]:
        vendor = require_vendor_for_identity(self.session, identity)
        take = min(max(take, 1), 100)
        return GiftCardRepository.list_vendor_cards(self.session, vendor.id, take)

    def get_vendor_card(self, identity: Identity, gift_card_id: UUID) -> Tuple[GiftCard, List[GiftCardRedemption]]:
        vendor = require_vendor_for_identity(self.session, identity)
        card = GiftCardRepository.get_vendor_card(self.session, vendor.id, gift_card_id)
        if card is None:
            raise NotFoundException("Gift card", str(gift_card_id))
        return card, GiftCardRepository.list_redemptions(self.session, card.id)

    def _generate_unique_code(self) -> str:
        for _ in range(CODE_ATTEMPTS):
            segments = [secrets.token_hex(2).upper() for _ in range(3)]
            candidate = normalize_code("GL-" + "-".join(segments))
            if not GiftCardRepository.code_exists(self.session, candidate):
                return candidate
        raise RuntimeError("Unable to generate a unique gift card code")
