"""
Payment reconciliation for Paystack webhook events.

Webhooks arrive at-least-once and possibly out of order. Each event is
processed under a row lock on its payment intent, so a reference is
reconciled by one delivery at a time and a SUCCEEDED intent turns every
later delivery into a no-op.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from marketplace.lib.db import UnitOfWork, utcnow
from marketplace.lib.errors import PaymentMismatchError
from marketplace.lib.logging import get_logger, log_context, log_with_context
from marketplace.lib.metrics import get_metrics_collector
from marketplace.lib.settings import settings
from marketplace.models import (
    Booking,
    BookingCancelActor,
    BookingEvent,
    BookingEventType,
    BookingStatus,
    GiftCard,
    PaymentIntent,
    PaymentStatus,
    SupplyOrder,
    SupplyOrderStatus,
    PAYMENT_PENDING_STATUSES,
)
from marketplace.repositories.bookings import BookingRepository
from marketplace.repositories.payments import PaymentIntentRepository
from marketplace.services.booking_events import PostCommitEffects, stage_event
from marketplace.services.booking_service import BookingService
from marketplace.services.gift_cards import GiftCardLedger
from marketplace.services.supply_orders import transition_order


logger = get_logger(__name__)

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"
CHARGE_REVERSED = "charge.reversed"

# Outcomes (also the ``outcome`` label of the webhook metric)
OUTCOME_CONFIRMED = "confirmed"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_MISMATCH = "mismatch"
OUTCOME_FAILED = "failed"
OUTCOME_LATE_PAYMENT = "late_payment"
OUTCOME_UNKNOWN_REFERENCE = "unknown_reference"
OUTCOME_MALFORMED = "malformed"
OUTCOME_IGNORED = "ignored"


class PaymentReconciler:
    """Applies provider events to payment intents and what they pay for."""

    def __init__(
        self,
        session: Session,
        clock: Optional[Callable[[], datetime]] = None,
        effects: Optional[PostCommitEffects] = None,
    ):
        self.session = session
        self.clock = clock or utcnow
        self.effects = effects or PostCommitEffects(session)
        self.ledger = GiftCardLedger(clock=self.clock)
        self.bookings = BookingService(session, clock=self.clock, effects=self.effects, ledger=self.ledger)

    def handle_event(self, payload: Any) -> str:
        """
        Reconcile one decoded webhook body.

        Malformed and unrelated events are logged and ignored so the
        provider does not keep retrying them.

        Returns:
            Outcome label
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            logger.warning("Ignoring malformed payment webhook payload")
            return self._record("unknown", OUTCOME_MALFORMED)

        event = payload.get("event")
        data = payload["data"]
        if not isinstance(event, str):
            logger.warning("Ignoring payment webhook without an event name")
            return self._record("unknown", OUTCOME_MALFORMED)

        with log_context(payment_event=event, payment_reference=data.get("reference")):
            if event == CHARGE_SUCCESS:
                outcome = self._handle_success(data)
            elif event in (CHARGE_FAILED, CHARGE_REVERSED):
                outcome = self._handle_failure(event, data)
            else:
                logger.info(f"Ignoring Paystack event {event}")
                outcome = OUTCOME_IGNORED
        return self._record(event, outcome)

    # ===== charge.success =====

    def _handle_success(self, data: Dict[str, Any]) -> str:
        reference = data.get("reference")
        amount = data.get("amount")
        if not isinstance(reference, str) or not reference or not isinstance(amount, int) or isinstance(amount, bool):
            logger.warning("Ignoring charge.success without a reference or integer amount")
            return OUTCOME_MALFORMED
        currency = str(data.get("currency") or settings.default_currency).upper()

        events: List[BookingEvent] = []
        booking_ids: List = []
        with UnitOfWork(self.session) as uow:
            intent = PaymentIntentRepository.lock_by_reference(self.session, reference)
            if intent is None:
                logger.warning(f"No payment intent for Paystack reference {reference}")
                return OUTCOME_UNKNOWN_REFERENCE
            if intent.status == PaymentStatus.SUCCEEDED:
                logger.info(f"Duplicate charge.success for {reference}; already reconciled")
                return OUTCOME_DUPLICATE

            try:
                self._check_amount(intent, amount, currency)
            except PaymentMismatchError as e:
                log_with_context(
                    logger,
                    "warning",
                    str(e),
                    reference=reference,
                    expected_amount=e.expected_amount,
                    expected_currency=e.expected_currency,
                    amount=e.amount,
                    currency=e.currency,
                )
                reason = "Amount mismatch" if e.amount != e.expected_amount else "Currency mismatch"
                self._fail_intent(intent, reason, events, booking_ids)
                outcome = OUTCOME_MISMATCH
            else:
                outcome = self._succeed_intent(intent, data, events, booking_ids)

            if events or booking_ids:
                uow.after_commit(lambda: self.effects.run(events, booking_ids))

        return outcome

    @staticmethod
    def _check_amount(intent: PaymentIntent, amount: int, currency: str) -> None:
        if amount != intent.amount_minor or currency != intent.currency.upper():
            raise PaymentMismatchError(intent.amount_minor, intent.currency.upper(), amount, currency)

    def _succeed_intent(
        self, intent: PaymentIntent, data: Dict[str, Any], events: List[BookingEvent], booking_ids: List
    ) -> str:
        now = self.clock()
        intent.status = PaymentStatus.SUCCEEDED
        intent.confirmed_at = now
        intent.last_error = None
        intent.provider_metadata = {
            **(intent.provider_metadata or {}),
            "paystack_status": data.get("status"),
            "channel": data.get("channel"),
            "paid_at": data.get("paid_at") or data.get("paidAt"),
        }

        if intent.booking_id is not None:
            booking = BookingRepository.lock_booking(self.session, intent.booking_id)
            if booking is None:
                return OUTCOME_CONFIRMED
            booking_ids.append(booking.id)
            if booking.status in PAYMENT_PENDING_STATUSES:
                booking.status = BookingStatus.CONFIRMED
                booking.paid_at = now
                events.append(stage_event(self.session, booking, BookingEventType.CONFIRMED, {"paid": True}))
                logger.info(f"Booking {booking.id} confirmed by payment {intent.provider_ref}")
                return OUTCOME_CONFIRMED

            if booking.status != BookingStatus.CANCELLED:
                logger.info(f"Booking {booking.id} already {booking.status.value}; payment {intent.provider_ref} recorded")
                return OUTCOME_DUPLICATE

            # Paid after the booking was released
            intent.provider_metadata = {**intent.provider_metadata, "requires_refund": True}
            events.append(
                stage_event(
                    self.session,
                    booking,
                    BookingEventType.PAYMENT_AFTER_CANCEL,
                    {"amount_minor": intent.amount_minor, "currency": intent.currency},
                )
            )
            logger.warning(f"Payment {intent.provider_ref} arrived for {booking.status.value} booking {booking.id}")
            return OUTCOME_LATE_PAYMENT

        if intent.gift_card_id is not None:
            card = self.session.get(GiftCard, intent.gift_card_id, with_for_update=True)
            if card is not None:
                self.ledger.activate(card)
                logger.info(f"Gift card {card.id} activated by payment {intent.provider_ref}")
            return OUTCOME_CONFIRMED

        if intent.supply_order_id is not None:
            order = self.session.get(SupplyOrder, intent.supply_order_id, with_for_update=True)
            if order is not None and order.status == SupplyOrderStatus.REQUIRES_PAYMENT:
                transition_order(
                    self.session, order, SupplyOrderStatus.WAITING_ON_SUPPLIER, "Payment confirmed via Paystack."
                )
        return OUTCOME_CONFIRMED

    # ===== charge.failed / charge.reversed =====

    def _handle_failure(self, event: str, data: Dict[str, Any]) -> str:
        reference = data.get("reference")
        if not isinstance(reference, str) or not reference:
            logger.warning(f"Ignoring {event} without a reference")
            return OUTCOME_MALFORMED

        events: List[BookingEvent] = []
        booking_ids: List = []
        with UnitOfWork(self.session) as uow:
            intent = PaymentIntentRepository.lock_by_reference(self.session, reference)
            if intent is None:
                logger.warning(f"No payment intent for Paystack reference {reference}")
                return OUTCOME_UNKNOWN_REFERENCE
            if intent.status == PaymentStatus.SUCCEEDED:
                logger.warning(f"Ignoring {event} for {reference}; intent already succeeded")
                return OUTCOME_IGNORED
            self._fail_intent(intent, f"Paystack reported {event}", events, booking_ids)
            if events or booking_ids:
                uow.after_commit(lambda: self.effects.run(events, booking_ids))

        return OUTCOME_FAILED

    def _fail_intent(
        self, intent: PaymentIntent, reason: str, events: List[BookingEvent], booking_ids: List
    ) -> None:
        """Mark the intent FAILED and release whatever it was holding."""
        intent.status = PaymentStatus.FAILED
        intent.last_error = reason

        if intent.booking_id is not None:
            booking: Optional[Booking] = BookingRepository.lock_booking(self.session, intent.booking_id)
            if booking is not None and booking.status in PAYMENT_PENDING_STATUSES:
                events.append(
                    self.bookings.cancel_locked(
                        booking,
                        BookingCancelActor.SYSTEM,
                        reason,
                        reason,
                        extras={"slot_released": True},
                        event_type=BookingEventType.PAYMENT_FAILED,
                    )
                )
                booking_ids.append(booking.id)
                logger.info(f"Booking {booking.id} released after payment failure: {reason}")

        if intent.gift_card_id is not None:
            card = self.session.get(GiftCard, intent.gift_card_id, with_for_update=True)
            if card is not None:
                self.ledger.cancel(card)

        if intent.supply_order_id is not None:
            order = self.session.get(SupplyOrder, intent.supply_order_id, with_for_update=True)
            if order is not None and order.status == SupplyOrderStatus.REQUIRES_PAYMENT:
                transition_order(self.session, order, SupplyOrderStatus.CANCELLED, reason)

    @staticmethod
    def _record(event: str, outcome: str) -> str:
        get_metrics_collector().increment_webhooks(event, outcome)
        return outcome
