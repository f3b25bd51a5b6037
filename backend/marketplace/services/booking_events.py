"""
Booking event outbox and dispatcher.

Lifecycle operations stage a ``BookingEvent`` row in their own
transaction. Once that transaction commits, the dispatcher hands each
staged event to every registered listener. An event is marked dispatched
only when all listeners succeed; anything else stays in the outbox for
the redelivery sweep, so delivery is at-least-once.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from marketplace.lib.db import utcnow
from marketplace.lib.logging import get_logger, log_with_context
from marketplace.lib.metrics import get_metrics_collector
from marketplace.models import Booking, BookingEvent, BookingEventType
from marketplace.repositories.events import BookingEventRepository
from marketplace.services.calendar_projector import CalendarProjector
from marketplace.services.notification_service import NotificationService, get_notification_service


logger = get_logger(__name__)

MAX_DELIVERY_ATTEMPTS = 10


def stage_event(
    session: Session,
    booking: Booking,
    event_type: BookingEventType,
    extras: Optional[Dict[str, Any]] = None,
) -> BookingEvent:
    """
    Add an outbox row for ``booking`` to the current transaction.

    The payload snapshots the contact details and times so listeners
    never need to read the booking back.
    """
    payload: Dict[str, Any] = {
        "customer_name": booking.customer_name,
        "customer_email": booking.customer_email,
        "customer_phone": booking.customer_phone,
        "customer_user_id": str(booking.customer_user_id) if booking.customer_user_id else None,
        "scheduled_start": booking.scheduled_start.isoformat(),
        "scheduled_end": booking.scheduled_end.isoformat(),
    }
    if extras:
        payload.update(extras)

    event = BookingEvent(
        id=uuid4(),
        type=event_type,
        booking_id=booking.id,
        vendor_id=booking.vendor_id,
        service_id=booking.service_id,
        reference=booking.reference,
        status=booking.status.value,
        payload=payload,
    )
    session.add(event)
    return event


class BookingEventListener(ABC):
    """Receives dispatched booking events. Must be idempotent."""

    name: str = "listener"

    @abstractmethod
    def handle(self, event: BookingEvent) -> None:
        """Process one event; raise to have it redelivered later."""


class LoggingListener(BookingEventListener):
    name = "logging"

    def handle(self, event: BookingEvent) -> None:
        log_with_context(
            logger,
            "info",
            f"{event.type.value} | booking={event.booking_id} status={event.status}",
            event_id=str(event.id),
            booking_id=str(event.booking_id),
            vendor_id=str(event.vendor_id),
            service_id=str(event.service_id),
            reference=event.reference,
            payload=event.payload,
        )


class NotificationListener(BookingEventListener):
    name = "notification"

    def __init__(self, notification_service: Optional[NotificationService] = None):
        self.notification_service = notification_service or get_notification_service()

    def handle(self, event: BookingEvent) -> None:
        if not self.notification_service.notify_booking_event_sync(event):
            raise RuntimeError(f"Notification for {event.type.value} was not delivered")


def default_listeners() -> List[BookingEventListener]:
    return [LoggingListener(), NotificationListener()]


class BookingEventDispatcher:
    """Delivers staged outbox events to listeners after commit."""

    def __init__(self, session: Session, listeners: Optional[Sequence[BookingEventListener]] = None):
        self.session = session
        self.listeners = list(listeners) if listeners is not None else default_listeners()

    def dispatch(self, event_ids: Sequence[UUID]) -> int:
        """
        Deliver the given events. Never raises; failures stay in the outbox.

        Returns:
            Number of events fully dispatched
        """
        if not event_ids:
            return 0
        try:
            events = BookingEventRepository.get_many(self.session, event_ids)
            return self._deliver_all(events)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Event dispatch failed for {len(event_ids)} events: {e}", exc_info=True)
            return 0

    def redeliver_pending(self, limit: int = 100) -> int:
        """Retry undelivered events (used by the redelivery sweep)."""
        events = BookingEventRepository.list_undispatched(
            self.session, limit=limit, max_attempts=MAX_DELIVERY_ATTEMPTS
        )
        if events:
            logger.info(f"Redelivering {len(events)} booking events")
        return self._deliver_all(events)

    def _deliver_all(self, events: Sequence[BookingEvent]) -> int:
        delivered = 0
        for event in events:
            if event.dispatched_at is not None:
                continue
            if self._deliver(event):
                delivered += 1
        self.session.commit()
        return delivered

    def _deliver(self, event: BookingEvent) -> bool:
        event.attempts += 1
        errors = []
        for listener in self.listeners:
            try:
                listener.handle(event)
            except Exception as e:
                get_metrics_collector().increment_dispatch_failures(listener.name)
                logger.error(
                    f"Listener {listener.name} failed for event {event.id} ({event.type.value}): {e}",
                    exc_info=True,
                )
                errors.append(f"{listener.name}: {e}")

        if errors:
            event.last_error = "; ".join(errors)[:500]
            return False

        event.dispatched_at = utcnow()
        event.last_error = None
        return True


class PostCommitEffects:
    """
    Side effects of a committed lifecycle change. Staged events are
    dispatched before the calendar is projected.

    Event dispatch never raises. A calendar failure raises
    ``CalendarSyncError`` after the events went out.
    """

    def __init__(
        self,
        session: Session,
        dispatcher: Optional[BookingEventDispatcher] = None,
        projector: Optional[CalendarProjector] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher or BookingEventDispatcher(session)
        self.projector = projector or CalendarProjector(session)

    def run(self, events: Sequence[BookingEvent], booking_ids: Sequence[UUID]) -> None:
        metrics = get_metrics_collector()
        for event in events:
            metrics.increment_transitions(event.type.value)
        self.dispatcher.dispatch([event.id for event in events])
        self.projector.sync_bookings(list(dict.fromkeys(booking_ids)))
