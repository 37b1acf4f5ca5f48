"""
Minute arithmetic for hour summaries.
"""

from typing import Iterable, NamedTuple

from .models import TimeSlot


class HourSplit(NamedTuple):
    normal_hours: int
    remainder_minutes: int

    @property
    def total_minutes(self) -> int:
        return self.normal_hours * 60 + self.remainder_minutes


def total_minutes(slots: Iterable[TimeSlot]) -> int:
    """Sum slot durations. Every slot counts, whatever its status."""
    return sum(slot.duration_minutes for slot in slots)


def split_minutes(minutes: int) -> HourSplit:
    """
    Split a minute total into whole hours and leftover minutes.

    Example: 125 -> HourSplit(normal_hours=2, remainder_minutes=5)
    """
    if minutes < 0:
        raise ValueError(f"Minute total cannot be negative, got {minutes}")
    hours, remainder = divmod(minutes, 60)
    return HourSplit(normal_hours=hours, remainder_minutes=remainder)
