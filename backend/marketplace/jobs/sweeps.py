"""
Background sweeps for the booking lifecycle.

- auto_complete: CONFIRMED bookings that ended earlier today become COMPLETED
- reminders: REMINDER events for bookings starting within the window
- payment_expiry: unpaid bookings past the payment hold are released
- outbox_redelivery: booking events whose listeners failed are retried

Every sweep runs under ``with_advisory_lock`` and is safe to run
concurrently with request traffic; each uses the same service methods
as the API.
"""
from typing import Any, Dict

from sqlalchemy.orm import Session

from marketplace.jobs.scheduler import SchedulerManager, with_advisory_lock
from marketplace.lib.logging import get_logger
from marketplace.lib.settings import settings
from marketplace.models import JobType
from marketplace.services.booking_events import BookingEventDispatcher
from marketplace.services.booking_service import BookingService
from marketplace.services.reminders import ReminderService

logger = get_logger(__name__)


@with_advisory_lock("auto_complete", JobType.AUTO_COMPLETE)
def auto_complete_job(db: Session) -> Dict[str, Any]:
    return {"completed": BookingService(db).auto_complete()}


@with_advisory_lock("reminders", JobType.REMINDERS)
def reminders_job(db: Session) -> Dict[str, Any]:
    return ReminderService(db).send_due_reminders()


@with_advisory_lock("payment_expiry", JobType.PAYMENT_EXPIRY)
def payment_expiry_job(db: Session) -> Dict[str, Any]:
    return {"expired": BookingService(db).expire_stale_payments()}


@with_advisory_lock("outbox_redelivery", JobType.OUTBOX_REDELIVERY)
def outbox_redelivery_job(db: Session) -> Dict[str, Any]:
    return {"redelivered": BookingEventDispatcher(db).redeliver_pending()}


def register_sweeps(manager: SchedulerManager) -> None:
    """Schedule every sweep on ``manager``."""
    manager.add_interval_job(auto_complete_job, "auto_complete", minutes=15)
    manager.add_interval_job(reminders_job, "reminders", minutes=30)
    manager.add_interval_job(outbox_redelivery_job, "outbox_redelivery", minutes=5)
    if settings.payment_hold_minutes > 0:
        manager.add_interval_job(payment_expiry_job, "payment_expiry", minutes=5)
    else:
        logger.info("Payment hold disabled; payment_expiry sweep not scheduled")
