"""Booking event outbox repository"""

from typing import List, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.models import BookingEvent


class BookingEventRepository:

    @staticmethod
    def get_many(db: Session, event_ids: Sequence[UUID]) -> List[BookingEvent]:
        if not event_ids:
            return []
        stmt = (
            select(BookingEvent)
            .where(BookingEvent.id.in_(list(event_ids)))
            .order_by(BookingEvent.created_at, BookingEvent.id)
        )
        return list(db.execute(stmt).scalars())

    @staticmethod
    def list_undispatched(db: Session, limit: int = 100, max_attempts: int = 10) -> List[BookingEvent]:
        stmt = (
            select(BookingEvent)
            .where(
                BookingEvent.dispatched_at.is_(None),
                BookingEvent.attempts < max_attempts,
            )
            .order_by(BookingEvent.created_at, BookingEvent.id)
            .limit(limit)
        )
        return list(db.execute(stmt).scalars())
