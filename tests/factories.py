"""
Builders for domain objects used across the tests.
"""

from datetime import time

import pendulum

from shiftplanner.domain.models import (
    Availability,
    Employee,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    Planning,
    PlanningStatus,
    ProposedSlot,
    Role,
    SlotKind,
    Task,
    TimeRange,
    TimeSlot,
)

TZ = "Europe/Paris"


def at(value: str):
    return pendulum.parse(value, tz=TZ)


def span(start: str, end: str) -> TimeRange:
    return TimeRange(start=at(start), end=at(end))


def make_slot(
    slot_id: str,
    start: str,
    end: str,
    employee_id: str = "emp-1",
    planning_id: str = "plan-a",
    task_id: str = "task-1",
    kind: SlotKind = SlotKind.WORK,
) -> TimeSlot:
    return TimeSlot(
        id=slot_id,
        employee_id=employee_id,
        planning_id=planning_id,
        task_id=task_id,
        time_range=span(start, end),
        kind=kind,
    )


def make_proposed(
    start: str,
    end: str,
    employee_id: str = "emp-1",
    task_id: str = "task-1",
    slot_id=None,
) -> ProposedSlot:
    return ProposedSlot(
        id=slot_id,
        employee_id=employee_id,
        task_id=task_id,
        time_range=span(start, end),
    )


def make_leave(
    leave_id: str,
    start: str,
    end: str,
    employee_id: str = "emp-1",
    status: LeaveStatus = LeaveStatus.APPROVED,
    leave_type: LeaveType = LeaveType.ANNUAL,
) -> LeaveRequest:
    return LeaveRequest(
        id=leave_id,
        employee_id=employee_id,
        leave_type=leave_type,
        period=span(start, end),
        status=status,
    )


def make_availability(
    employee_id: str = "emp-1",
    weekday: int = 0,
    start: time = time(8, 0),
    end: time = time(18, 0),
    availability_id: str = "avail-1",
) -> Availability:
    return Availability(
        id=availability_id,
        employee_id=employee_id,
        weekday=weekday,
        start_time=start,
        end_time=end,
    )


def populate(store) -> None:
    """Employees, tasks and plannings shared by the service tests."""
    store.add_employee(Employee("emp-1", "Bruno", "Petit", "bruno@example.com"))
    store.add_employee(Employee("emp-2", "Chloe", "Durand", "chloe@example.com"))
    store.add_employee(
        Employee("mgr-1", "Alice", "Martin", "alice@example.com", role=Role.MANAGER)
    )
    store.add_employee(Employee("adm-1", "Sam", "Leroy", "sam@example.com", role=Role.ADMIN))

    store.add_task(Task("task-1", "Accueil", "emp-1"))
    store.add_task(Task("task-2", "Inventaire", "emp-2"))

    week = span("2024-06-10 00:00", "2024-06-16 23:59")
    store.add_planning(Planning("plan-a", "Semaine A", "mgr-1", week))
    store.add_planning(Planning("plan-b", "Semaine B", "mgr-1", week))
    store.add_planning(
        Planning("plan-locked", "Semaine validee", "mgr-1", week, status=PlanningStatus.VALID)
    )
