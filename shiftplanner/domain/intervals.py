"""
Interval logic behind conflict detection.

Pure functions over domain objects - no storage access, no I/O. Slot
intervals are half-open, leave periods are closed and widened to whole
days, availability windows are wall-clock times on a single local day.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pendulum import DateTime

from .models import Availability, LeaveRequest, ProposedSlot, TimeRange, TimeSlot


def overlapping_slots(window: TimeRange, slots: Iterable[TimeSlot]) -> List[TimeSlot]:
    """
    Return every slot whose interval intersects ``window``, sorted by start.

    Two intervals [a, b) and [c, d) overlap iff a < d and c < b.
    """
    return sorted(
        (slot for slot in slots if slot.time_range.overlaps(window)),
        key=lambda slot: (slot.start, slot.id),
    )


def envelope(ranges: Sequence[TimeRange]) -> TimeRange:
    """
    Smallest range covering all given ranges.

    Example: [09:00-10:00, 14:00-15:00] -> 09:00-15:00
    """
    if not ranges:
        raise ValueError("Cannot build the envelope of an empty list of ranges")
    return TimeRange(
        start=min(r.start for r in ranges),
        end=max(r.end for r in ranges),
    )


def group_by_employee(proposed: Iterable[ProposedSlot]) -> Dict[str, List[ProposedSlot]]:
    """Group proposed slots per employee, preserving submission order."""
    groups: Dict[str, List[ProposedSlot]] = OrderedDict()
    for slot in proposed:
        groups.setdefault(slot.employee_id, []).append(slot)
    return groups


def match_batch(
    proposed: Sequence[ProposedSlot],
    existing: Iterable[TimeSlot],
) -> List[Tuple[ProposedSlot, List[TimeSlot]]]:
    """
    Match one employee's proposed slots against stored slots.

    Two phases:
    1. Keep only stored slots overlapping the envelope of the batch
    2. Re-check every proposed slot against that reduced set

    Phase 1 is a pre-filter only: anything overlapping a proposed slot also
    overlaps the envelope, so the result equals a per-pair check. Proposed
    slots are never compared with each other.
    """
    if not proposed:
        return []

    bound = envelope([slot.time_range for slot in proposed])
    candidates = overlapping_slots(bound, existing)

    if not candidates:
        return []

    matches: List[Tuple[ProposedSlot, List[TimeSlot]]] = []
    for slot in proposed:
        hits = overlapping_slots(slot.time_range, candidates)
        if hits:
            matches.append((slot, hits))
    return matches


def availability_covers(availability: Availability, window: TimeRange, timezone: str) -> bool:
    """
    Check if a weekly availability window fully contains ``window``.

    The window must start and end on the same local day, on the declared
    weekday. Windows running past midnight are never covered.
    """
    local = window.in_timezone(timezone)
    start, end = local.start, local.end

    if start.weekday() != availability.weekday:
        return False
    if end.date() != start.date():
        return False

    return availability.start_time <= start.time() and end.time() <= availability.end_time


def find_covering_availability(
    availabilities: Iterable[Availability],
    window: TimeRange,
    timezone: str,
) -> Optional[Availability]:
    """Return the first declared availability containing ``window``, if any."""
    ordered = sorted(availabilities, key=lambda a: (a.start_time, a.end_time))
    for availability in ordered:
        if availability_covers(availability, window, timezone):
            return availability
    return None


def leave_search_bounds(window: TimeRange, timezone: str) -> Tuple[DateTime, DateTime]:
    """
    Bounds for querying leave that may block ``window``.

    A leave blocks every day it touches, so the window is widened to the
    start of its first local day and the end of its last.
    """
    local = window.in_timezone(timezone)
    return local.start.start_of("day"), local.end.end_of("day")


def leave_blocks(leave: LeaveRequest, window: TimeRange, timezone: str) -> bool:
    """
    Check if a leave period blocks ``window``.

    Leave boundaries are inclusive at day granularity: a leave ending on
    day X blocks all of day X.
    """
    leave_start = leave.period.start.in_timezone(timezone).start_of("day")
    leave_end = leave.period.end.in_timezone(timezone).end_of("day")
    return leave_start <= window.end and leave_end >= window.start


def leave_periods_intersect(first: TimeRange, second: TimeRange) -> bool:
    """Closed-interval intersection used between two leave periods."""
    return first.start <= second.end and second.start <= first.end
