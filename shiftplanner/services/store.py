"""
Persistence protocol consumed by the engine and the request handlers.

Two adapters implement it: ``SqlScheduleStore`` (relational, SQLAlchemy)
and ``MemoryScheduleStore`` (in-memory, used by tests and mock mode).
"""

from __future__ import annotations

from typing import ContextManager, Iterable, List, Optional, Protocol, Sequence, Tuple

from pendulum import DateTime

from ..domain.models import (
    Availability,
    Employee,
    HourSummary,
    LeaveRequest,
    LeaveStatus,
    Planning,
    Task,
    TimeRange,
    TimeSlot,
)
from ..domain.permissions import RolePermissionTable


class ScheduleStore(Protocol):
    """
    Storage operations needed by the engine and the handlers.

    ``transaction()`` yields a store bound to one atomic unit of work: all
    writes made through it commit together or not at all.
    """

    def transaction(self) -> ContextManager["ScheduleStore"]:
        """Open an atomic unit of work."""

    def lock_employees(self, employee_ids: Iterable[str]) -> None:
        """Serialize concurrent writers on the given employees until commit."""

    # Engine reads -------------------------------------------------------

    def list_slots_for_employee(
        self,
        employee_id: str,
        exclude_planning_id: Optional[str] = None,
        exclude_slot_id: Optional[str] = None,
        window: Optional[TimeRange] = None,
    ) -> List[TimeSlot]:
        """Slots of an employee, optionally restricted to those overlapping ``window``."""

    def list_availability(self, employee_id: str, weekday: int) -> List[Availability]:
        """Declared availability windows of an employee for one weekday."""

    def list_active_leave(
        self,
        employee_id: str,
        window_start: DateTime,
        window_end: DateTime,
        statuses: Sequence[LeaveStatus],
    ) -> List[LeaveRequest]:
        """Leave in ``statuses`` intersecting the closed interval [start, end]."""

    def list_slots(self, planning_id: str, employee_id: Optional[str] = None) -> List[TimeSlot]:
        """Slots of a planning, optionally for one employee."""

    # Engine writes ------------------------------------------------------

    def upsert_summary(
        self,
        planning_id: str,
        employee_id: str,
        normal_hours: int,
        remainder_minutes: int,
        period: Optional[Tuple[DateTime, DateTime]] = None,
    ) -> HourSummary:
        """
        Create or update the summary of a (planning, employee) pair.

        Without ``period`` a new summary is stamped with the current time and
        an existing one keeps its period. The summary status follows the
        planning status.
        """

    def delete_summary(self, planning_id: str, employee_id: str) -> None:
        """Remove the summary of a pair, if any."""

    def get_summary(self, planning_id: str, employee_id: str) -> Optional[HourSummary]: ...

    def list_summaries(self, planning_id: str) -> List[HourSummary]: ...

    # Handler CRUD -------------------------------------------------------

    def get_employee(self, employee_id: str) -> Optional[Employee]: ...

    def add_employee(self, employee: Employee) -> None: ...

    def get_task(self, task_id: str) -> Optional[Task]: ...

    def add_task(self, task: Task) -> None: ...

    def get_planning(self, planning_id: str) -> Optional[Planning]: ...

    def add_planning(self, planning: Planning) -> None: ...

    def save_planning(self, planning: Planning) -> None:
        """Update a planning; its summaries take the planning status."""

    def delete_planning(self, planning_id: str) -> None:
        """Delete a planning together with its slots and summaries."""

    def get_slot(self, slot_id: str) -> Optional[TimeSlot]: ...

    def add_slot(self, slot: TimeSlot) -> None: ...

    def save_slot(self, slot: TimeSlot) -> None: ...

    def delete_slot(self, slot_id: str) -> None: ...

    def add_availability(self, availability: Availability) -> None: ...

    def get_leave(self, leave_id: str) -> Optional[LeaveRequest]: ...

    def add_leave(self, leave: LeaveRequest) -> None: ...

    def save_leave(self, leave: LeaveRequest) -> None: ...

    def load_role_permissions(self) -> Optional[RolePermissionTable]: ...

    def role_permissions_version(self) -> Optional[int]: ...

    def save_role_permissions(self, table: RolePermissionTable, expected_version: int) -> None:
        """Persist ``table`` if the stored version still equals ``expected_version``."""
