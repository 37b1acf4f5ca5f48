"""
In-memory schedule store for tests and mock mode.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import StaleConfigurationError, StorageError
from ..domain.models import (
    Availability,
    Employee,
    HourSummary,
    LeaveRequest,
    LeaveStatus,
    Planning,
    PlanningStatus,
    Task,
    TimeRange,
    TimeSlot,
)
from ..domain.permissions import RolePermissionTable
from .sample_data import load_sample_data, seed


class MemoryScheduleStore:
    """
    Schedule store holding everything in dictionaries.

    A transaction holds a re-entrant lock for its whole duration, so
    transactions run one at a time. On error the state captured when the
    outermost transaction began is restored.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._employees: Dict[str, Employee] = {}
        self._tasks: Dict[str, Task] = {}
        self._plannings: Dict[str, Planning] = {}
        self._slots: Dict[str, TimeSlot] = {}
        self._availabilities: Dict[str, Availability] = {}
        self._leaves: Dict[str, LeaveRequest] = {}
        self._summaries: Dict[Tuple[str, str], HourSummary] = {}
        self._role_table: Optional[RolePermissionTable] = None

    @classmethod
    def from_json(
        cls, path: Optional[Path] = None, timezone: str = "UTC"
    ) -> "MemoryScheduleStore":
        """Create a store seeded with sample data (the bundled file by default)."""
        store = cls()
        seed(store, load_sample_data(path), timezone=timezone)
        return store

    @contextmanager
    def transaction(self) -> Iterator["MemoryScheduleStore"]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = self._snapshot()
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._restore(snapshot)
                raise
            finally:
                self._depth = 0

    def lock_employees(self, employee_ids: Iterable[str]) -> None:
        # The transaction lock already serializes every writer.
        return None

    def _snapshot(self) -> dict:
        # Stored entities are replaced on write, never mutated, so copying
        # the dictionaries is enough.
        return {
            "employees": dict(self._employees),
            "tasks": dict(self._tasks),
            "plannings": dict(self._plannings),
            "slots": dict(self._slots),
            "availabilities": dict(self._availabilities),
            "leaves": dict(self._leaves),
            "summaries": dict(self._summaries),
            "role_table": self._role_table,
        }

    def _restore(self, snapshot: dict) -> None:
        self._employees = snapshot["employees"]
        self._tasks = snapshot["tasks"]
        self._plannings = snapshot["plannings"]
        self._slots = snapshot["slots"]
        self._availabilities = snapshot["availabilities"]
        self._leaves = snapshot["leaves"]
        self._summaries = snapshot["summaries"]
        self._role_table = snapshot["role_table"]

    # Engine reads -------------------------------------------------------

    def list_slots_for_employee(
        self,
        employee_id: str,
        exclude_planning_id: Optional[str] = None,
        exclude_slot_id: Optional[str] = None,
        window: Optional[TimeRange] = None,
    ) -> List[TimeSlot]:
        slots = [
            slot
            for slot in self._slots.values()
            if slot.employee_id == employee_id
            and slot.planning_id != exclude_planning_id
            and slot.id != exclude_slot_id
            and (window is None or slot.time_range.overlaps(window))
        ]
        return sorted(slots, key=lambda slot: (slot.start, slot.id))

    def list_availability(self, employee_id: str, weekday: int) -> List[Availability]:
        return sorted(
            (
                a
                for a in self._availabilities.values()
                if a.employee_id == employee_id and a.weekday == weekday
            ),
            key=lambda a: a.start_time,
        )

    def list_active_leave(
        self,
        employee_id: str,
        window_start: DateTime,
        window_end: DateTime,
        statuses: Sequence[LeaveStatus],
    ) -> List[LeaveRequest]:
        return sorted(
            (
                leave
                for leave in self._leaves.values()
                if leave.employee_id == employee_id
                and leave.status in statuses
                and leave.period.start <= window_end
                and leave.period.end >= window_start
            ),
            key=lambda leave: leave.period.start,
        )

    def list_slots(self, planning_id: str, employee_id: Optional[str] = None) -> List[TimeSlot]:
        slots = [
            slot
            for slot in self._slots.values()
            if slot.planning_id == planning_id
            and (employee_id is None or slot.employee_id == employee_id)
        ]
        return sorted(slots, key=lambda slot: (slot.start, slot.id))

    # Engine writes ------------------------------------------------------

    def upsert_summary(
        self,
        planning_id: str,
        employee_id: str,
        normal_hours: int,
        remainder_minutes: int,
        period: Optional[Tuple[DateTime, DateTime]] = None,
    ) -> HourSummary:
        with self.transaction():
            planning = self._plannings.get(planning_id)
            status = planning.status if planning else PlanningStatus.DRAFT
            existing = self._summaries.get((planning_id, employee_id))
            if existing is None:
                now = pendulum.now("UTC")
                period_from, period_to = period or (now, now)
                summary = HourSummary(
                    planning_id=planning_id,
                    employee_id=employee_id,
                    normal_hours=normal_hours,
                    remainder_minutes=remainder_minutes,
                    period_from=period_from,
                    period_to=period_to,
                    status=status,
                )
            else:
                period_from, period_to = period or (existing.period_from, existing.period_to)
                summary = HourSummary(
                    planning_id=planning_id,
                    employee_id=employee_id,
                    normal_hours=normal_hours,
                    remainder_minutes=remainder_minutes,
                    period_from=period_from,
                    period_to=period_to,
                    status=status,
                )
            self._summaries[(planning_id, employee_id)] = summary
            return summary

    def delete_summary(self, planning_id: str, employee_id: str) -> None:
        with self.transaction():
            self._summaries.pop((planning_id, employee_id), None)

    def get_summary(self, planning_id: str, employee_id: str) -> Optional[HourSummary]:
        return self._summaries.get((planning_id, employee_id))

    def list_summaries(self, planning_id: str) -> List[HourSummary]:
        return sorted(
            (s for (p, _), s in self._summaries.items() if p == planning_id),
            key=lambda s: s.employee_id,
        )

    # Handler CRUD -------------------------------------------------------

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        return self._employees.get(employee_id)

    def add_employee(self, employee: Employee) -> None:
        with self.transaction():
            self._insert(self._employees, employee.id, employee, "Employee")

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def add_task(self, task: Task) -> None:
        with self.transaction():
            self._insert(self._tasks, task.id, task, "Task")

    def get_planning(self, planning_id: str) -> Optional[Planning]:
        return self._plannings.get(planning_id)

    def add_planning(self, planning: Planning) -> None:
        with self.transaction():
            self._insert(self._plannings, planning.id, planning, "Planning")

    def save_planning(self, planning: Planning) -> None:
        with self.transaction():
            self._replace(self._plannings, planning.id, planning, "Planning")
            for key, summary in list(self._summaries.items()):
                if key[0] == planning.id:
                    self._summaries[key] = replace(summary, status=planning.status)

    def delete_planning(self, planning_id: str) -> None:
        with self.transaction():
            self._plannings.pop(planning_id, None)
            self._slots = {k: s for k, s in self._slots.items() if s.planning_id != planning_id}
            self._summaries = {k: s for k, s in self._summaries.items() if k[0] != planning_id}

    def get_slot(self, slot_id: str) -> Optional[TimeSlot]:
        return self._slots.get(slot_id)

    def add_slot(self, slot: TimeSlot) -> None:
        with self.transaction():
            if slot.planning_id not in self._plannings:
                raise StorageError(f"Planning {slot.planning_id} does not exist")
            self._insert(self._slots, slot.id, slot, "Slot")

    def save_slot(self, slot: TimeSlot) -> None:
        with self.transaction():
            self._replace(self._slots, slot.id, slot, "Slot")

    def delete_slot(self, slot_id: str) -> None:
        with self.transaction():
            self._slots.pop(slot_id, None)

    def add_availability(self, availability: Availability) -> None:
        with self.transaction():
            self._insert(self._availabilities, availability.id, availability, "Availability")

    def get_leave(self, leave_id: str) -> Optional[LeaveRequest]:
        return self._leaves.get(leave_id)

    def add_leave(self, leave: LeaveRequest) -> None:
        with self.transaction():
            self._insert(self._leaves, leave.id, leave, "Leave request")

    def save_leave(self, leave: LeaveRequest) -> None:
        with self.transaction():
            self._replace(self._leaves, leave.id, leave, "Leave request")

    def load_role_permissions(self) -> Optional[RolePermissionTable]:
        return self._role_table

    def role_permissions_version(self) -> Optional[int]:
        return self._role_table.version if self._role_table else None

    def save_role_permissions(self, table: RolePermissionTable, expected_version: int) -> None:
        with self.transaction():
            if self._role_table is not None and self._role_table.version != expected_version:
                raise StaleConfigurationError(
                    f"Role permissions are at version {self._role_table.version}, "
                    f"not {expected_version}"
                )
            self._role_table = table

    @staticmethod
    def _insert(table: dict, key: str, value, entity: str) -> None:
        if key in table:
            raise StorageError(f"{entity} {key} already exists")
        table[key] = value

    @staticmethod
    def _replace(table: dict, key: str, value, entity: str) -> None:
        if key not in table:
            raise StorageError(f"{entity} {key} no longer exists")
        table[key] = value
