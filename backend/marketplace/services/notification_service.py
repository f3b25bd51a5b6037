"""
Notification delivery for booking events.

Providers are pluggable per channel; the console providers log messages
instead of sending them and are used until real email/SMS gateways are
configured. Delivery is retried with exponential backoff; a message that
still fails is reported back to the caller, never raised.
"""
import asyncio
from abc import ABC, abstractmethod
import enum
from typing import Dict, Optional

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type, RetryError

from marketplace.lib.logging import get_logger
from marketplace.models import BookingEvent, BookingEventType


logger = get_logger(__name__)


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationDeliveryError(Exception):
    """A provider could not hand the message to its gateway."""


class NotificationProvider(ABC):
    """
    Abstract base class for notification delivery providers.
    """

    @abstractmethod
    async def send(self, to: str, message: str, **kwargs) -> bool:
        """
        Send notification via this provider.

        Args:
            to: Recipient identifier (email address, phone number)
            message: Message content to send
            **kwargs: Provider-specific parameters (subject, ...)

        Returns:
            True if sent successfully, False otherwise
        """
        pass

    @property
    @abstractmethod
    def channel(self) -> NotificationChannel:
        """Return the channel this provider supports."""
        pass


class ConsoleEmailProvider(NotificationProvider):
    """Logs emails instead of sending them (development/testing)."""

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.EMAIL

    async def send(self, to: str, message: str, **kwargs) -> bool:
        subject = kwargs.get("subject", "Booking update")
        logger.info(f"Email to {to}: [{subject}] {message}")
        return True


class ConsoleSMSProvider(NotificationProvider):
    """Logs text messages instead of sending them (development/testing)."""

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.SMS

    async def send(self, to: str, message: str, **kwargs) -> bool:
        logger.info(f"SMS to {to}: {message}")
        return True


SUBJECTS = {
    BookingEventType.CREATED: "Booking received",
    BookingEventType.AWAITING_PAYMENT: "Complete your deposit",
    BookingEventType.CONFIRMED: "Booking confirmed",
    BookingEventType.PAYMENT_FAILED: "Payment failed",
    BookingEventType.RESCHEDULED: "Booking rescheduled",
    BookingEventType.CANCELLED: "Booking cancelled",
    BookingEventType.COMPLETED: "Thanks for visiting",
    BookingEventType.NO_SHOW: "Missed appointment",
    BookingEventType.REMINDER: "Upcoming appointment",
}


def render_message(event: BookingEvent) -> Optional[str]:
    """Customer-facing text for an event, or None when nothing is sent."""
    payload = event.payload or {}
    name = payload.get("customer_name") or "there"
    start = payload.get("scheduled_start", "")
    ref = event.reference

    if event.type == BookingEventType.CREATED:
        return None
    if event.type == BookingEventType.AWAITING_PAYMENT:
        return f"Hi {name}, your booking {ref} for {start} is reserved. Pay the deposit to confirm it."
    if event.type == BookingEventType.CONFIRMED:
        return f"Hi {name}, your booking {ref} for {start} is confirmed."
    if event.type == BookingEventType.PAYMENT_FAILED:
        return f"Hi {name}, the payment for booking {ref} did not go through and the slot was released."
    if event.type == BookingEventType.RESCHEDULED:
        return f"Hi {name}, your booking {ref} has moved to {start}."
    if event.type == BookingEventType.CANCELLED:
        return f"Hi {name}, your booking {ref} for {start} was cancelled."
    if event.type == BookingEventType.COMPLETED:
        return f"Hi {name}, thanks for visiting. Booking {ref} is complete."
    if event.type == BookingEventType.NO_SHOW:
        return f"Hi {name}, we missed you for booking {ref} on {start}."
    if event.type == BookingEventType.REMINDER:
        return f"Hi {name}, reminder: booking {ref} starts at {start}."
    # payment_after_cancel goes to operations, not the customer
    return None


class NotificationService:
    """
    Sends booking notifications through the configured providers.

    Email is preferred; SMS is used when the booking has only a phone
    number.
    """

    def __init__(self, providers: Optional[Dict[NotificationChannel, NotificationProvider]] = None):
        if providers is None:
            providers = {
                NotificationChannel.EMAIL: ConsoleEmailProvider(),
                NotificationChannel.SMS: ConsoleSMSProvider(),
            }
        self._providers = providers

    def _get_provider(self, channel: NotificationChannel) -> Optional[NotificationProvider]:
        return self._providers.get(channel)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(NotificationDeliveryError),
        reraise=True,
    )
    async def _deliver(self, provider: NotificationProvider, to: str, message: str, **kwargs) -> None:
        sent = await provider.send(to, message, **kwargs)
        if not sent:
            raise NotificationDeliveryError(f"{provider.channel.value} provider refused message to {to}")

    async def send(self, channel: NotificationChannel, to: str, message: str, **kwargs) -> bool:
        """
        Deliver one message, retrying transient failures.

        Returns:
            True if delivered, False if the channel is unsupported or all
            attempts failed
        """
        provider = self._get_provider(channel)
        if provider is None:
            logger.warning(f"No notification provider for channel {channel.value}")
            return False
        try:
            await self._deliver(provider, to, message, **kwargs)
            return True
        except (NotificationDeliveryError, RetryError) as e:
            logger.error(f"Notification to {to} failed after retries: {e}", exc_info=True)
            return False

    async def notify_booking_event(self, event: BookingEvent) -> bool:
        """
        Notify the booking's customer about an event.

        Returns True when there was nothing to send or the send succeeded.
        """
        message = render_message(event)
        if message is None:
            return True

        payload = event.payload or {}
        subject = SUBJECTS.get(event.type, "Booking update")
        if payload.get("customer_email"):
            return await self.send(NotificationChannel.EMAIL, payload["customer_email"], message, subject=subject)
        if payload.get("customer_phone"):
            return await self.send(NotificationChannel.SMS, payload["customer_phone"], message)

        logger.info(f"Booking {event.booking_id} has no contact details; skipping {event.type.value}")
        return True

    def notify_booking_event_sync(self, event: BookingEvent) -> bool:
        """Blocking wrapper used by the synchronous event dispatcher."""
        return asyncio.run(self.notify_booking_event(event))

    def send_email_sync(self, to: str, message: str, subject: str) -> bool:
        """Blocking email send for messages that are not booking events (review activity)."""
        return asyncio.run(self.send(NotificationChannel.EMAIL, to, message, subject=subject))


# Default instance used by the event dispatcher
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
