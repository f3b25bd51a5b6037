"""
Slot generation on top of the time-window algebra.
"""
from datetime import datetime, timedelta
from typing import List, Sequence

from marketplace.scheduling.time_windows import (
    Interval,
    OverrideLike,
    WeeklyWindowLike,
    compute_availability,
    start_of_day_utc,
)


def tile_window(window: Interval, duration_minutes: int, buffer_minutes: int) -> List[Interval]:
    """
    Tile one window with back-to-back slots separated by the buffer.

    Slot starts are exactly ``window.start + k * (duration + buffer)``;
    a slot is only emitted when it ends inside the window.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if buffer_minutes < 0:
        raise ValueError("buffer_minutes must not be negative")

    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=buffer_minutes)
    slots = []
    cursor = window.start
    while cursor + duration <= window.end:
        slots.append(Interval(cursor, cursor + duration))
        cursor += step
    return slots


def generate_slots(
    weekly: Sequence[WeeklyWindowLike],
    overrides: Sequence[OverrideLike],
    range_start: datetime,
    range_end: datetime,
    duration_minutes: int,
    buffer_minutes: int,
) -> List[Interval]:
    """
    Bookable slots within ``[range_start, range_end)``, ordered by start.

    Identical inputs always yield identical output; booking creation
    relies on this to re-check that a requested start is still offered.
    """
    slots: List[Interval] = []
    for day in compute_availability(weekly, overrides, range_start, range_end):
        for window in day.windows:
            slots.extend(tile_window(window, duration_minutes, buffer_minutes))
    return [s for s in slots if s.start >= range_start and s.end <= range_end]


def slots_for_day(
    weekly: Sequence[WeeklyWindowLike],
    overrides: Sequence[OverrideLike],
    moment: datetime,
    duration_minutes: int,
    buffer_minutes: int,
) -> List[Interval]:
    """All slots on the UTC day containing ``moment``."""
    day_start = start_of_day_utc(moment)
    return generate_slots(
        weekly,
        overrides,
        day_start,
        day_start + timedelta(days=1),
        duration_minutes,
        buffer_minutes,
    )
