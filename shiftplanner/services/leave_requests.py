"""
Request handlers for leave: submission and status transitions.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import pendulum
from pendulum import DateTime

from ..config import AppConfig
from ..domain import leave_workflow
from ..domain.exceptions import LeaveConflictError, NotFoundError, PermissionDeniedError
from ..domain.intervals import leave_periods_intersect
from ..domain.models import Employee, LeaveRequest, LeaveStatus, TimeRange, new_id
from ..domain.permissions import Permission
from .permissions import PermissionService
from .schemas import LeavePayload, parse_payload, window_of
from .store import ScheduleStore

logger = logging.getLogger(__name__)


def _utc_now() -> DateTime:
    return pendulum.now("UTC")


class LeaveRequestService:
    """
    Submit, approve, reject and cancel leave requests.

    Leave periods are whole days: the submitted start is moved to the start
    of its day and the end to the end of its day in the configured timezone.
    """

    def __init__(
        self,
        store: ScheduleStore,
        config: Optional[AppConfig] = None,
        permissions: Optional[PermissionService] = None,
        clock: Callable[[], DateTime] = _utc_now,
    ):
        self._store = store
        self._config = config or AppConfig()
        self._permissions = permissions or PermissionService(store, self._config.role_table())
        self._clock = clock

    @property
    def timezone(self) -> str:
        return self._config.timezone

    def submit(self, employee_id: str, payload) -> LeaveRequest:
        """
        Create a PENDING leave request for an employee.

        Raises:
            ValidationError: If the payload or the duration is invalid
            PermissionDeniedError: If the employee may not request leave
            LeaveConflictError: If a pending or approved leave already covers
                one of the requested days
        """
        request = parse_payload(LeavePayload, payload)
        period = self._whole_days(window_of(request.start_at, request.end_at, self.timezone))
        limits = self._config.leave_limits
        leave_workflow.check_duration_limits(
            request.leave_type,
            period,
            self.timezone,
            annual_working_days=limits.annual_working_days,
            parental_working_days=limits.parental_working_days,
            max_years=limits.max_years,
        )

        with self._store.transaction() as store:
            employee = self._require_employee(store, employee_id)
            self._permissions.require(employee, Permission.LEAVE_REQUEST, store)
            store.lock_employees([employee_id])

            overlapping = [
                leave
                for leave in store.list_active_leave(
                    employee_id, period.start, period.end, sorted(leave_workflow.ACTIVE_STATUSES)
                )
                if leave_periods_intersect(leave.period, period)
            ]
            if overlapping:
                raise LeaveConflictError(
                    "A leave request already exists for this period", overlapping
                )

            leave = LeaveRequest(
                id=new_id(),
                employee_id=employee_id,
                leave_type=request.leave_type,
                period=period,
                comment=request.comment,
                created_at=self._clock(),
            )
            store.add_leave(leave)

        logger.info(
            "Employee %s requested %s leave %s", employee_id, leave.leave_type.value, period
        )
        return leave

    def approve(self, leave_id: str, actor_id: str, comment: Optional[str] = None) -> LeaveRequest:
        """
        Approve a pending request.

        Raises:
            LeaveConflictError: If another approved leave of the same
                employee covers one of its days
        """
        with self._store.transaction() as store:
            actor = self._require_employee(store, actor_id)
            self._permissions.require(actor, Permission.LEAVE_APPROVE, store)
            leave = self._require_leave(store, leave_id)
            store.lock_employees([leave.employee_id])

            approved = leave_workflow.approve(leave, actor_id, self._clock(), comment)

            clashing = [
                other
                for other in store.list_active_leave(
                    leave.employee_id, leave.period.start, leave.period.end, [LeaveStatus.APPROVED]
                )
                if other.id != leave.id and leave_periods_intersect(other.period, leave.period)
            ]
            if clashing:
                raise LeaveConflictError(
                    "Another approved leave overlaps this period", clashing
                )

            store.save_leave(approved)

        logger.info("Leave request %s approved by %s", leave_id, actor_id)
        return approved

    def reject(self, leave_id: str, actor_id: str, comment: Optional[str] = None) -> LeaveRequest:
        with self._store.transaction() as store:
            actor = self._require_employee(store, actor_id)
            self._permissions.require(actor, Permission.LEAVE_APPROVE, store)
            leave = self._require_leave(store, leave_id)
            store.lock_employees([leave.employee_id])

            rejected = leave_workflow.reject(leave, actor_id, self._clock(), comment)
            store.save_leave(rejected)

        logger.info("Leave request %s rejected by %s", leave_id, actor_id)
        return rejected

    def cancel(self, leave_id: str, actor_id: str, comment: Optional[str] = None) -> LeaveRequest:
        """
        Cancel a request. Allowed for its owner and for leave approvers.
        """
        with self._store.transaction() as store:
            actor = self._require_employee(store, actor_id)
            leave = self._require_leave(store, leave_id)
            if actor.id != leave.employee_id and not self._permissions.has_permission(
                actor.role, Permission.LEAVE_APPROVE, store
            ):
                raise PermissionDeniedError("Only the requester or an approver can cancel leave")
            store.lock_employees([leave.employee_id])

            cancelled = leave_workflow.cancel(leave, actor_id, self._clock(), comment)
            store.save_leave(cancelled)

        logger.info("Leave request %s cancelled by %s", leave_id, actor_id)
        return cancelled

    def _whole_days(self, period: TimeRange) -> TimeRange:
        local = period.in_timezone(self.timezone)
        return TimeRange(start=local.start.start_of("day"), end=local.end.end_of("day"))

    @staticmethod
    def _require_employee(store: ScheduleStore, employee_id: str) -> Employee:
        employee = store.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    @staticmethod
    def _require_leave(store: ScheduleStore, leave_id: str) -> LeaveRequest:
        leave = store.get_leave(leave_id)
        if leave is None:
            raise NotFoundError("LeaveRequest", leave_id)
        return leave
