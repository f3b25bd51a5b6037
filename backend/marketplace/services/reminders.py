"""Upcoming-appointment reminders."""
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from marketplace.lib.db import UnitOfWork, utcnow
from marketplace.lib.logging import get_logger
from marketplace.lib.settings import settings
from marketplace.models import BookingEventType
from marketplace.repositories.bookings import BookingRepository
from marketplace.services.booking_events import PostCommitEffects, stage_event


logger = get_logger(__name__)


class ReminderService:

    def __init__(
        self,
        session: Session,
        clock: Optional[Callable[[], datetime]] = None,
        effects: Optional[PostCommitEffects] = None,
    ):
        self.session = session
        self.clock = clock or utcnow
        self.effects = effects or PostCommitEffects(session)

    def send_due_reminders(self, window_hours: Optional[int] = None) -> dict:
        """
        Stage a REMINDER event for each CONFIRMED booking starting within
        the window. ``reminder_sent_at`` makes this at-most-once per booking.
        """
        window_hours = window_hours or settings.reminder_window_hours
        now = self.clock()

        with UnitOfWork(self.session) as uow:
            due = BookingRepository.list_due_reminders(self.session, now, now + timedelta(hours=window_hours))
            events = []
            for booking in due:
                booking.reminder_sent_at = now
                events.append(
                    stage_event(self.session, booking, BookingEventType.REMINDER, {"window_hours": window_hours})
                )
            if events:
                booking_ids = [b.id for b in due]
                uow.after_commit(lambda: self.effects.run(events, booking_ids))

        if due:
            logger.info(f"Queued {len(due)} booking reminders ({window_hours}h window)")
        return {"reminders_sent": len(due)}
