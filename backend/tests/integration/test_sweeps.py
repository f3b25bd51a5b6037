"""
Integration tests for the background sweeps and the event outbox.
"""
from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import at
from marketplace.jobs.sweeps import outbox_redelivery_job, payment_expiry_job
from marketplace.lib.db import utcnow
from marketplace.lib.settings import settings
from marketplace.models import (
    Booking,
    BookingCancelActor,
    BookingEvent,
    BookingEventType,
    BookingStatus,
    Job,
    JobStatus,
    JobType,
    PaymentStatus,
)
from marketplace.services.booking_events import (
    BookingEventDispatcher,
    BookingEventListener,
    LoggingListener,
    PostCommitEffects,
)
from marketplace.services.booking_service import BookingRequest, BookingService
from marketplace.services.reminders import ReminderService

DAY = 14


class FailingListener(BookingEventListener):
    name = "failing"

    def handle(self, event):
        raise RuntimeError("provider down")


class RecordingListener(BookingEventListener):
    name = "recording"

    def __init__(self):
        self.seen = []

    def handle(self, event):
        self.seen.append(event.type)


def book(bookings, service, hour=9):
    return bookings.create_public_booking(
        BookingRequest(
            service_id=service.id,
            start_at=at(hour, day=DAY),
            customer_name="Efua",
            customer_email="efua@example.com",
        )
    )


@pytest.fixture
def free_service(factory, bookable):
    """Service with no deposit, so bookings confirm immediately."""
    _, vendor, _ = bookable
    return factory.service(vendor, deposit_percent=0)


@pytest.mark.integration
def test_auto_complete_finishes_todays_ended_bookings(db, free_service, clock):
    booking = book(BookingService(db, clock=clock), free_service).booking
    assert booking.status == BookingStatus.CONFIRMED

    evening = at(18, day=DAY)
    assert BookingService(db, clock=lambda: evening).auto_complete() == 1

    db.refresh(booking)
    assert booking.status == BookingStatus.COMPLETED
    assert booking.completed_at == evening


@pytest.mark.integration
def test_auto_complete_ignores_previous_days(db, free_service, clock):
    book(BookingService(db, clock=clock), free_service)

    next_morning = at(8, day=DAY + 1)
    assert BookingService(db, clock=lambda: next_morning).auto_complete() == 0


@pytest.mark.integration
def test_reminders_sent_once(db, free_service, clock):
    booking = book(BookingService(db, clock=clock), free_service).booking
    reminders = ReminderService(db, clock=lambda: at(12, day=DAY - 1))

    assert reminders.send_due_reminders() == {"reminders_sent": 1}
    assert reminders.send_due_reminders() == {"reminders_sent": 0}

    db.refresh(booking)
    assert booking.reminder_sent_at == at(12, day=DAY - 1)
    events = db.execute(
        select(BookingEvent).where(
            BookingEvent.booking_id == booking.id,
            BookingEvent.type == BookingEventType.REMINDER,
        )
    ).scalars().all()
    assert len(events) == 1


@pytest.mark.integration
def test_reminders_skip_bookings_outside_window(db, free_service, clock):
    book(BookingService(db, clock=clock), free_service)

    assert ReminderService(db, clock=clock).send_due_reminders() == {"reminders_sent": 0}


@pytest.mark.integration
def test_expire_stale_payments(db, bookable, clock):
    _, _, service = bookable
    result = book(BookingService(db, clock=clock), service)

    assert BookingService(db, clock=clock).expire_stale_payments(hold_minutes=30) == 1

    db.refresh(result.booking)
    db.refresh(result.payment_intent)
    assert result.booking.status == BookingStatus.CANCELLED
    assert result.booking.cancelled_by == BookingCancelActor.SYSTEM
    assert result.payment_intent.status == PaymentStatus.CANCELED
    assert result.payment_intent.last_error == "Payment window expired"


@pytest.mark.integration
def test_expire_stale_payments_disabled_by_default(db, bookable, clock):
    _, _, service = bookable
    book(BookingService(db, clock=clock), service)

    assert BookingService(db, clock=clock).expire_stale_payments() == 0


@pytest.mark.integration
def test_failed_listener_leaves_event_for_redelivery(db, free_service, clock):
    failing = PostCommitEffects(db, dispatcher=BookingEventDispatcher(db, listeners=[FailingListener()]))
    booking = book(BookingService(db, clock=clock, effects=failing), free_service).booking

    pending = db.execute(select(BookingEvent).where(BookingEvent.booking_id == booking.id)).scalars().all()
    assert len(pending) == 2
    assert all(e.dispatched_at is None for e in pending)
    assert all(e.attempts == 1 and "provider down" in e.last_error for e in pending)

    recorder = RecordingListener()
    assert BookingEventDispatcher(db, listeners=[LoggingListener(), recorder]).redeliver_pending() == 2
    assert sorted(t.value for t in recorder.seen) == sorted(
        [BookingEventType.CREATED.value, BookingEventType.CONFIRMED.value]
    )

    db.expire_all()
    delivered = db.execute(select(BookingEvent).where(BookingEvent.booking_id == booking.id)).scalars().all()
    assert all(e.dispatched_at is not None and e.last_error is None for e in delivered)
    assert BookingEventDispatcher(db, listeners=[recorder]).redeliver_pending() == 0


@pytest.mark.integration
def test_payment_expiry_job_records_run(db, bookable, clock, monkeypatch):
    _, _, service = bookable
    result = book(BookingService(db, clock=clock), service)
    result.booking.created_at = utcnow() - timedelta(hours=2)
    db.commit()
    monkeypatch.setattr(settings, "payment_hold_minutes", 30)

    assert payment_expiry_job() == {"expired": 1}

    db.expire_all()
    job = db.execute(select(Job).where(Job.type == JobType.PAYMENT_EXPIRY)).scalar_one()
    assert job.status == JobStatus.DONE
    assert job.payload["result"] == {"expired": 1}
    assert db.get(Booking, result.booking.id).status == BookingStatus.CANCELLED


@pytest.mark.integration
def test_job_record_reused_between_runs(db, database):
    outbox_redelivery_job()
    outbox_redelivery_job()

    jobs = db.execute(select(Job).where(Job.type == JobType.OUTBOX_REDELIVERY)).scalars().all()
    assert len(jobs) == 1
    assert jobs[0].attempts == 2
    assert jobs[0].status == JobStatus.DONE
