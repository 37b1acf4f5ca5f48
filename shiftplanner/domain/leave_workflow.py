"""
Leave request status transitions and duration rules.

PENDING  -> APPROVED | REJECTED | CANCELLED
APPROVED -> CANCELLED (only before the leave starts)
REJECTED, CANCELLED are terminal.
"""

from dataclasses import replace
from typing import Dict, FrozenSet, Optional

from pendulum import DateTime

from .exceptions import LeaveTransitionError, PermissionDeniedError, ValidationError
from .models import LeaveRequest, LeaveStatus, LeaveType, TimeRange


ALLOWED_TRANSITIONS: Dict[LeaveStatus, FrozenSet[LeaveStatus]] = {
    LeaveStatus.PENDING: frozenset(
        {LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}
    ),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLED}),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES: FrozenSet[LeaveStatus] = frozenset({LeaveStatus.PENDING, LeaveStatus.APPROVED})


def can_transition(current: LeaveStatus, target: LeaveStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _ensure_transition(leave: LeaveRequest, target: LeaveStatus) -> None:
    if not can_transition(leave.status, target):
        raise LeaveTransitionError(
            f"Leave request {leave.id} cannot move from {leave.status.name} to {target.name}"
        )


def approve(
    leave: LeaveRequest,
    actor_id: str,
    now: DateTime,
    comment: Optional[str] = None,
) -> LeaveRequest:
    """Approve a pending request. The requester cannot approve their own leave."""
    if leave.employee_id == actor_id:
        raise PermissionDeniedError("You cannot approve your own leave request")
    _ensure_transition(leave, LeaveStatus.APPROVED)
    return replace(
        leave,
        status=LeaveStatus.APPROVED,
        decided_by=actor_id,
        decided_at=now,
        decision_comment=comment,
    )


def reject(
    leave: LeaveRequest,
    actor_id: str,
    now: DateTime,
    comment: Optional[str] = None,
) -> LeaveRequest:
    """Reject a pending request. The requester cannot reject their own leave."""
    if leave.employee_id == actor_id:
        raise PermissionDeniedError("You cannot reject your own leave request")
    _ensure_transition(leave, LeaveStatus.REJECTED)
    return replace(
        leave,
        status=LeaveStatus.REJECTED,
        decided_by=actor_id,
        decided_at=now,
        decision_comment=comment,
    )


def cancel(
    leave: LeaveRequest,
    actor_id: str,
    now: DateTime,
    comment: Optional[str] = None,
) -> LeaveRequest:
    """Cancel a pending request, or an approved one that has not started yet."""
    _ensure_transition(leave, LeaveStatus.CANCELLED)
    if leave.status is LeaveStatus.APPROVED and leave.period.start <= now:
        raise LeaveTransitionError(
            f"Leave request {leave.id} has already started and can no longer be cancelled"
        )
    return replace(
        leave,
        status=LeaveStatus.CANCELLED,
        decided_by=actor_id,
        decided_at=now,
        decision_comment=comment,
    )


def count_working_days(period: TimeRange, timezone: str) -> int:
    """
    Count Monday-to-Friday days touched by a period, both ends included.
    """
    current = period.start.in_timezone(timezone).start_of("day")
    last = period.end.in_timezone(timezone).start_of("day")

    count = 0
    while current <= last:
        if current.weekday() < 5:
            count += 1
        current = current.add(days=1)
    return count


def check_duration_limits(
    leave_type: LeaveType,
    period: TimeRange,
    timezone: str,
    annual_working_days: int,
    parental_working_days: int,
    max_years: int = 1,
) -> None:
    """
    Enforce the per-type maximum length of a leave request.

    Annual and parental leave are capped in working days, sick and unpaid
    leave in calendar years.
    """
    if leave_type is LeaveType.ANNUAL:
        if count_working_days(period, timezone) > annual_working_days:
            raise ValidationError(
                f"Annual leave cannot exceed {annual_working_days} working days"
            )
    elif leave_type is LeaveType.PARENTAL:
        if count_working_days(period, timezone) > parental_working_days:
            raise ValidationError(
                f"Parental leave cannot exceed {parental_working_days} working days"
            )
    elif period.end > period.start.add(years=max_years):
        raise ValidationError(f"Leave cannot exceed {max_years} year(s)")
