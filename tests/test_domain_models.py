"""
Tests for domain models.
"""

from datetime import time

import pendulum
import pytest

from shiftplanner.domain.models import (
    Availability,
    HourSummary,
    LeaveStatus,
    LeaveType,
    SlotKind,
    TimeRange,
    coerce_enum,
)

from factories import at, make_slot, span


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = at("2024-06-10 09:00")
        end = at("2024-06-10 17:00")

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end
        assert tr.duration_minutes() == 480  # 8 hours

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            span("2024-06-10 17:00", "2024-06-10 09:00")

    def test_empty_time_range_raises_error(self):
        """A range that starts when it ends is rejected."""
        with pytest.raises(ValueError):
            span("2024-06-10 09:00", "2024-06-10 09:00")

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = span("2024-06-10 09:00", "2024-06-10 12:00")
        tr2 = span("2024-06-10 11:00", "2024-06-10 13:00")
        tr3 = span("2024-06-10 12:00", "2024-06-10 13:00")

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)  # touching ends do not overlap
        assert not tr3.overlaps(tr1)

    def test_overlaps_across_timezones(self):
        """Instants are compared, not wall-clock times."""
        paris = span("2024-06-10 09:00", "2024-06-10 12:00")
        utc = TimeRange(
            start=pendulum.parse("2024-06-10 09:30", tz="UTC"),
            end=pendulum.parse("2024-06-10 10:30", tz="UTC"),
        )

        # 09:30 UTC is 11:30 in Paris
        assert paris.overlaps(utc)

    def test_contains(self):
        outer = span("2024-06-10 08:00", "2024-06-10 18:00")

        assert outer.contains(span("2024-06-10 08:00", "2024-06-10 18:00"))
        assert not outer.contains(span("2024-06-10 07:59", "2024-06-10 12:00"))

    def test_str_format(self):
        tr = span("2024-06-10 09:00", "2024-06-10 12:30")

        assert str(tr) == "10.06.2024 09:00 - 12:30"


class TestTimeSlot:
    """Tests for TimeSlot model."""

    def test_duration_is_derived(self):
        slot = make_slot("s1", "2024-06-10 09:00", "2024-06-10 11:05")

        assert slot.duration_minutes == 125

    def test_to_dict_uses_labels(self):
        slot = make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00", kind=SlotKind.TRAINING)

        data = slot.to_dict()

        assert data["kind"] == "FORMATION"
        assert data["durationMinutes"] == 60
        assert data["startAt"].startswith("2024-06-10T09:00:00")


class TestAvailability:
    """Tests for Availability model."""

    def test_rejects_invalid_weekday(self):
        with pytest.raises(ValueError, match="Weekday"):
            Availability("a", "emp-1", weekday=7, start_time=time(8), end_time=time(12))

    def test_rejects_inverted_window(self):
        with pytest.raises(ValueError):
            Availability("a", "emp-1", weekday=0, start_time=time(12), end_time=time(8))


class TestHourSummary:
    def test_total_minutes(self):
        summary = HourSummary(
            planning_id="p",
            employee_id="e",
            normal_hours=2,
            remainder_minutes=5,
            period_from=at("2024-06-10 00:00"),
            period_to=at("2024-06-10 00:00"),
        )

        assert summary.total_minutes == 125
        assert summary.to_dict()["remainderMinutes"] == 5


class TestEnums:
    """Enum values are the stored labels; names are accepted on input."""

    def test_lookup_by_label(self):
        assert LeaveStatus("EN_ATTENTE") is LeaveStatus.PENDING

    def test_lookup_by_name(self):
        assert LeaveStatus("approved") is LeaveStatus.APPROVED
        assert coerce_enum(LeaveType, "SICK") is LeaveType.SICK

    def test_unknown_value(self):
        with pytest.raises(ValueError, match="Invalid LeaveType"):
            coerce_enum(LeaveType, "HOLIDAY")
