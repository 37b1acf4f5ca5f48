"""
Tests for the minute arithmetic of hour summaries.
"""

import pytest

from shiftplanner.domain.hours import split_minutes, total_minutes

from factories import make_slot


@pytest.mark.parametrize(
    "minutes, hours, remainder",
    [
        (0, 0, 0),
        (59, 0, 59),
        (60, 1, 0),
        (125, 2, 5),
        (480, 8, 0),
    ],
)
def test_split_minutes(minutes, hours, remainder):
    split = split_minutes(minutes)

    assert split.normal_hours == hours
    assert split.remainder_minutes == remainder
    assert split.total_minutes == minutes


def test_split_rejects_negative_totals():
    with pytest.raises(ValueError):
        split_minutes(-1)


def test_total_counts_every_slot():
    slots = [
        make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"),
        make_slot("s2", "2024-06-10 11:00", "2024-06-10 12:05"),
    ]

    assert total_minutes(slots) == 125
