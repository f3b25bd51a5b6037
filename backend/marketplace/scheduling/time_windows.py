"""
Time-window algebra.

Pure functions that turn a vendor's weekly recurring windows plus one-off
overrides into concrete UTC availability intervals. No I/O happens here;
callers load rows and pass them in.

Weekly windows are expressed as minute offsets from UTC midnight with
``day_of_week`` counting from Sunday (0) to Saturday (6).
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from itertools import groupby
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

MINUTES_PER_DAY = 24 * 60
MAX_OVERRIDE_DURATION = timedelta(days=7)

EXTEND = "EXTEND"
BLOCK = "BLOCK"


class WeeklyWindowLike(Protocol):
    day_of_week: int
    start_minute: int
    end_minute: int


class OverrideLike(Protocol):
    type: object
    starts_at: datetime
    ends_at: datetime


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open ``[start, end)`` interval of aware UTC datetimes."""
    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def clip(self, lower: datetime, upper: datetime) -> "Interval":
        return Interval(max(self.start, lower), min(self.end, upper))


@dataclass(frozen=True)
class DayAvailability:
    day: date
    windows: Tuple[Interval, ...]


def day_of_week(day: date) -> int:
    """Sunday-based weekday index (Sunday=0 ... Saturday=6)."""
    return (day.weekday() + 1) % 7


def start_of_day_utc(moment: datetime) -> datetime:
    """Midnight UTC of the calendar day containing ``moment``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


def _override_kind(override: OverrideLike) -> str:
    kind = override.type
    return getattr(kind, "value", kind)


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Union of intervals as a sorted list.

    Only real overlaps are joined. Touching windows stay separate so each
    one is tiled from its own start.
    """
    merged: List[Interval] = []
    for interval in sorted(i for i in intervals if not i.is_empty):
        if merged and interval.start < merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def subtract_interval(window: Interval, block: Interval) -> List[Interval]:
    """
    Remove ``block`` from ``window``.

    The result is empty when the block covers the window, one piece when
    it trims either edge, and two pieces when it falls strictly inside.
    """
    if block.end <= window.start or block.start >= window.end:
        return [window]
    pieces = [Interval(window.start, block.start), Interval(block.end, window.end)]
    return [piece for piece in pieces if not piece.is_empty]


def find_overlapping_windows(
    windows: Sequence[WeeklyWindowLike],
) -> Optional[Tuple[WeeklyWindowLike, WeeklyWindowLike]]:
    """Return the first pair of same-day windows that overlap, if any."""
    ordered = sorted(windows, key=lambda w: (w.day_of_week, w.start_minute, w.end_minute))
    for _, day_windows in groupby(ordered, key=lambda w: w.day_of_week):
        day_windows = list(day_windows)
        for current, following in zip(day_windows, day_windows[1:]):
            if current.end_minute > following.start_minute:
                return current, following
    return None


def weekly_windows_for_day(day: date, weekly: Sequence[WeeklyWindowLike]) -> List[Interval]:
    """Absolute intervals for the weekly windows that apply to ``day``."""
    midnight = datetime.combine(day, time.min, tzinfo=timezone.utc)
    dow = day_of_week(day)
    return sorted(
        Interval(
            midnight + timedelta(minutes=w.start_minute),
            midnight + timedelta(minutes=w.end_minute),
        )
        for w in weekly
        if w.day_of_week == dow and w.start_minute < w.end_minute
    )


def apply_overrides(
    base: Sequence[Interval],
    overrides: Sequence[OverrideLike],
    day_start: datetime,
    day_end: datetime,
) -> List[Interval]:
    """
    Apply overrides to one day's windows.

    Every EXTEND is unioned in before any BLOCK is subtracted, so a block
    wins wherever the two overlap regardless of row order.
    """
    extends: List[Interval] = []
    blocks: List[Interval] = []
    for override in overrides:
        clipped = Interval(override.starts_at, override.ends_at).clip(day_start, day_end)
        if clipped.is_empty:
            continue
        kind = _override_kind(override)
        if kind == EXTEND:
            extends.append(clipped)
        elif kind == BLOCK:
            blocks.append(clipped)

    windows = merge_intervals(list(base) + extends)
    for block in blocks:
        windows = [piece for window in windows for piece in subtract_interval(window, block)]
    return windows


def compute_availability(
    weekly: Sequence[WeeklyWindowLike],
    overrides: Sequence[OverrideLike],
    range_start: datetime,
    range_end: datetime,
) -> List[DayAvailability]:
    """
    Availability per UTC calendar day covering ``[range_start, range_end)``.

    A vendor without any weekly window has no availability at all;
    overrides alone never open a schedule.
    """
    if not weekly:
        return []

    days: List[DayAvailability] = []
    day_start = start_of_day_utc(range_start)
    while day_start < range_end:
        day_end = day_start + timedelta(days=1)
        day_overrides = [
            o for o in overrides
            if o.starts_at < day_end and o.ends_at > day_start
        ]
        windows = apply_overrides(
            weekly_windows_for_day(day_start.date(), weekly),
            day_overrides,
            day_start,
            day_end,
        )
        days.append(DayAvailability(day=day_start.date(), windows=tuple(windows)))
        day_start = day_end
    return days


def availability_by_day(days: Sequence[DayAvailability]) -> Dict[date, Tuple[Interval, ...]]:
    return {d.day: d.windows for d in days}
