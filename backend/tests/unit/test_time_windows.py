"""
Tests for the time-window algebra and slot tiling.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import pytest

from marketplace.scheduling.slots import generate_slots, slots_for_day, tile_window
from marketplace.scheduling.time_windows import (
    Interval,
    apply_overrides,
    compute_availability,
    day_of_week,
    find_overlapping_windows,
    merge_intervals,
    start_of_day_utc,
    subtract_interval,
)


@dataclass
class Window:
    day_of_week: int
    start_minute: int
    end_minute: int


@dataclass
class Override:
    type: str
    starts_at: datetime
    ends_at: datetime


def utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


MONDAY_9_TO_5 = [Window(day_of_week=1, start_minute=540, end_minute=1020)]


@pytest.mark.unit
def test_day_of_week_counts_from_sunday():
    assert day_of_week(date(2030, 1, 6)) == 0  # Sunday
    assert day_of_week(date(2030, 1, 7)) == 1
    assert day_of_week(date(2030, 1, 12)) == 6


@pytest.mark.unit
def test_start_of_day_utc_converts_offsets():
    moment = datetime(2030, 1, 8, 1, 30, tzinfo=timezone(timedelta(hours=3)))
    assert start_of_day_utc(moment) == utc(7, 0)


@pytest.mark.unit
def test_merge_intervals_joins_overlaps_only():
    merged = merge_intervals([
        Interval(utc(7, 12), utc(7, 14)),
        Interval(utc(7, 9), utc(7, 10)),
        Interval(utc(7, 10), utc(7, 11)),
        Interval(utc(7, 13), utc(7, 15)),
    ])
    assert merged == [
        Interval(utc(7, 9), utc(7, 10)),
        Interval(utc(7, 10), utc(7, 11)),
        Interval(utc(7, 12), utc(7, 15)),
    ]


@pytest.mark.unit
def test_touching_weekly_windows_tiled_separately():
    """09:00-12:00 and 12:00-17:00 tile from 09:00 and from 12:00, not as one 09:00-17:00 window."""
    weekly = [Window(1, 540, 720), Window(1, 720, 1020)]
    slots = generate_slots(weekly, [], utc(7, 0), utc(8, 0), 120, 30)
    assert [s.start for s in slots] == [utc(7, 9), utc(7, 12), utc(7, 14, 30)]


@pytest.mark.unit
def test_subtract_interval_shapes():
    window = Interval(utc(7, 9), utc(7, 17))
    assert subtract_interval(window, Interval(utc(7, 8), utc(7, 18))) == []
    assert subtract_interval(window, Interval(utc(7, 8), utc(7, 10))) == [Interval(utc(7, 10), utc(7, 17))]
    assert subtract_interval(window, Interval(utc(7, 11), utc(7, 12))) == [
        Interval(utc(7, 9), utc(7, 11)),
        Interval(utc(7, 12), utc(7, 17)),
    ]
    assert subtract_interval(window, Interval(utc(7, 17), utc(7, 18))) == [window]


@pytest.mark.unit
def test_find_overlapping_windows_same_day_only():
    windows = [Window(1, 540, 720), Window(2, 600, 700), Window(1, 700, 800)]
    first, second = find_overlapping_windows(windows)
    assert (first.start_minute, second.start_minute) == (540, 700)

    assert find_overlapping_windows([Window(1, 540, 720), Window(1, 720, 800)]) is None


@pytest.mark.unit
def test_no_weekly_windows_means_no_availability():
    extend = Override("EXTEND", utc(7, 9), utc(7, 12))
    assert compute_availability([], [extend], utc(7, 0), utc(8, 0)) == []


@pytest.mark.unit
def test_monday_window_tiled_with_buffer():
    """09:00-17:00 with 120 min service and 30 min buffer gives three slots."""
    slots = generate_slots(MONDAY_9_TO_5, [], utc(7, 0), utc(8, 0), 120, 30)
    assert [s.start for s in slots] == [utc(7, 9), utc(7, 11, 30), utc(7, 14)]
    assert all(s.end - s.start == timedelta(minutes=120) for s in slots)


@pytest.mark.unit
def test_block_override_removes_overlapping_slot():
    block = Override("BLOCK", utc(7, 11), utc(7, 12))
    slots = generate_slots(MONDAY_9_TO_5, [block], utc(7, 0), utc(8, 0), 120, 30)
    starts = [s.start for s in slots]
    assert utc(7, 11, 30) not in starts
    assert starts[0] == utc(7, 9)
    assert all(not s.overlaps(Interval(block.starts_at, block.ends_at)) for s in slots)


@pytest.mark.unit
def test_block_wins_over_extend_regardless_of_order():
    extend = Override("EXTEND", utc(7, 17), utc(7, 20))
    block = Override("BLOCK", utc(7, 18), utc(7, 19))
    for overrides in ([extend, block], [block, extend]):
        windows = apply_overrides(
            [Interval(utc(7, 9), utc(7, 17))], overrides, utc(7, 0), utc(8, 0)
        )
        assert windows == [
            Interval(utc(7, 9), utc(7, 17)),
            Interval(utc(7, 17), utc(7, 18)),
            Interval(utc(7, 19), utc(7, 20)),
        ]


@pytest.mark.unit
def test_extend_opens_time_on_a_scheduled_day_off():
    extend = Override("EXTEND", utc(8, 10), utc(8, 12))
    days = compute_availability(MONDAY_9_TO_5, [extend], utc(8, 0), utc(9, 0))
    assert days[0].windows == (Interval(utc(8, 10), utc(8, 12)),)


@pytest.mark.unit
def test_override_spanning_midnight_is_clipped_per_day():
    block = Override("BLOCK", utc(7, 16), utc(8, 10))
    weekly = MONDAY_9_TO_5 + [Window(2, 540, 1020)]
    days = compute_availability(weekly, [block], utc(7, 0), utc(9, 0))
    assert days[0].windows == (Interval(utc(7, 9), utc(7, 16)),)
    assert days[1].windows == (Interval(utc(8, 10), utc(8, 17)),)


@pytest.mark.unit
def test_tile_window_rejects_bad_durations():
    window = Interval(utc(7, 9), utc(7, 10))
    with pytest.raises(ValueError):
        tile_window(window, 0, 0)
    with pytest.raises(ValueError):
        tile_window(window, 30, -5)


@pytest.mark.unit
def test_slots_are_deterministic():
    first = slots_for_day(MONDAY_9_TO_5, [], utc(7, 13), 45, 15)
    second = slots_for_day(MONDAY_9_TO_5, [], utc(7, 8), 45, 15)
    assert first == second
    assert first[0].start == utc(7, 9)
    assert first[-1].end <= utc(7, 17)
