"""
Tests for leave request transitions and duration limits.
"""

import pytest

from shiftplanner.domain import leave_workflow
from shiftplanner.domain.exceptions import (
    LeaveTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from shiftplanner.domain.models import LeaveStatus, LeaveType

from factories import TZ, at, make_leave, span


NOW = at("2024-06-01 10:00")


class TestTransitions:
    """PENDING -> APPROVED | REJECTED | CANCELLED, APPROVED -> CANCELLED."""

    def test_approve_pending(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.PENDING)

        approved = leave_workflow.approve(leave, "mgr-1", NOW, "ok")

        assert approved.status is LeaveStatus.APPROVED
        assert approved.decided_by == "mgr-1"
        assert approved.decided_at == NOW
        assert approved.decision_comment == "ok"
        assert leave.status is LeaveStatus.PENDING  # original untouched

    def test_cannot_approve_own_leave(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.PENDING)

        with pytest.raises(PermissionDeniedError):
            leave_workflow.approve(leave, leave.employee_id, NOW)

    def test_cannot_reject_own_leave(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.PENDING)

        with pytest.raises(PermissionDeniedError):
            leave_workflow.reject(leave, leave.employee_id, NOW)

    def test_cannot_approve_twice(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.APPROVED)

        with pytest.raises(LeaveTransitionError):
            leave_workflow.approve(leave, "mgr-1", NOW)

    @pytest.mark.parametrize("status", [LeaveStatus.REJECTED, LeaveStatus.CANCELLED])
    def test_terminal_statuses(self, status):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=status)

        for target in LeaveStatus:
            assert not leave_workflow.can_transition(status, target)
        with pytest.raises(LeaveTransitionError):
            leave_workflow.cancel(leave, "mgr-1", NOW)

    def test_cancel_approved_before_start(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.APPROVED)

        cancelled = leave_workflow.cancel(leave, "emp-1", NOW)

        assert cancelled.status is LeaveStatus.CANCELLED

    def test_cannot_cancel_started_leave(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.APPROVED)

        with pytest.raises(LeaveTransitionError, match="already started"):
            leave_workflow.cancel(leave, "emp-1", at("2024-06-11 09:00"))

    def test_pending_leave_can_be_cancelled_after_start(self):
        leave = make_leave("l1", "2024-06-10 00:00", "2024-06-14 23:59", status=LeaveStatus.PENDING)

        cancelled = leave_workflow.cancel(leave, "emp-1", at("2024-06-11 09:00"))

        assert cancelled.status is LeaveStatus.CANCELLED


class TestDurationLimits:
    def test_count_working_days_skips_weekend(self):
        # Monday 10 June to Sunday 16 June
        assert leave_workflow.count_working_days(span("2024-06-10 00:00", "2024-06-16 23:59"), TZ) == 5

    def test_annual_leave_cap(self):
        # 2024-06-03 to 2024-07-05 spans 25 working days
        period = span("2024-06-03 00:00", "2024-07-05 23:59")

        with pytest.raises(ValidationError, match="24 working days"):
            leave_workflow.check_duration_limits(LeaveType.ANNUAL, period, TZ, 24, 90)

    def test_annual_leave_within_cap(self):
        period = span("2024-06-03 00:00", "2024-07-04 23:59")

        leave_workflow.check_duration_limits(LeaveType.ANNUAL, period, TZ, 24, 90)

    def test_sick_leave_capped_at_one_year(self):
        period = span("2024-01-01 00:00", "2025-01-02 00:00")

        with pytest.raises(ValidationError):
            leave_workflow.check_duration_limits(LeaveType.SICK, period, TZ, 24, 90)
