"""
Tests for the SQLAlchemy store on in-memory SQLite.
"""

from dataclasses import replace
from datetime import time

import pytest

from shiftplanner.adapters.sql_store import SqlScheduleStore
from shiftplanner.domain.exceptions import SlotConflictError, StaleConfigurationError
from shiftplanner.domain.models import LeaveStatus, PlanningStatus, Role
from shiftplanner.domain.permissions import Permission, RolePermissionTable
from shiftplanner.services.leave_requests import LeaveRequestService
from shiftplanner.services.scheduling import SchedulingService

from factories import at, make_availability, make_leave, make_slot, populate, span


@pytest.fixture
def sql_store() -> SqlScheduleStore:
    store = SqlScheduleStore("sqlite://")
    store.create_schema()
    populate(store)
    return store


class TestReadsAndWrites:
    def test_slot_round_trip(self, sql_store):
        slot = make_slot("s1", "2024-06-10 09:00", "2024-06-10 12:00")
        sql_store.add_slot(slot)

        loaded = sql_store.get_slot("s1")

        assert loaded == slot
        assert loaded.start.timezone_name == "UTC"
        assert loaded.duration_minutes == 180

    def test_list_slots_for_employee_filters(self, sql_store):
        sql_store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 12:00"))
        sql_store.add_slot(make_slot("s2", "2024-06-10 12:00", "2024-06-10 13:00", planning_id="plan-b"))
        sql_store.add_slot(make_slot("s3", "2024-06-11 09:00", "2024-06-11 10:00"))

        window = span("2024-06-10 11:00", "2024-06-10 12:30")

        assert [s.id for s in sql_store.list_slots_for_employee("emp-1", window=window)] == ["s1", "s2"]
        assert [
            s.id
            for s in sql_store.list_slots_for_employee("emp-1", exclude_planning_id="plan-a", window=window)
        ] == ["s2"]
        assert [
            s.id for s in sql_store.list_slots_for_employee("emp-1", exclude_slot_id="s2", window=window)
        ] == ["s1"]

    def test_list_active_leave_uses_closed_bounds(self, sql_store):
        sql_store.add_leave(make_leave("l1", "2024-06-10 00:00", "2024-06-14 00:00"))
        sql_store.add_leave(
            make_leave("l2", "2024-06-10 00:00", "2024-06-14 00:00", status=LeaveStatus.CANCELLED)
        )

        found = sql_store.list_active_leave(
            "emp-1",
            at("2024-06-14 00:00"),
            at("2024-06-14 00:00").end_of("day"),
            [LeaveStatus.PENDING, LeaveStatus.APPROVED],
        )

        assert [leave.id for leave in found] == ["l1"]

    def test_availability_by_weekday(self, sql_store):
        sql_store.add_availability(make_availability(weekday=0, start=time(8), end=time(12)))
        sql_store.add_availability(
            make_availability(weekday=1, start=time(9), end=time(17), availability_id="avail-2")
        )

        monday = sql_store.list_availability("emp-1", 0)

        assert len(monday) == 1
        assert monday[0].start_time == time(8)

    def test_summary_upsert_keeps_period(self, sql_store):
        period = (at("2024-06-10 09:00"), at("2024-06-12 17:00"))
        sql_store.upsert_summary("plan-a", "emp-1", 2, 5, period=period)

        summary = sql_store.upsert_summary("plan-a", "emp-1", 3, 0)

        assert (summary.normal_hours, summary.remainder_minutes) == (3, 0)
        assert (summary.period_from, summary.period_to) == period
        assert summary.status is PlanningStatus.DRAFT

        sql_store.delete_summary("plan-a", "emp-1")
        assert sql_store.get_summary("plan-a", "emp-1") is None

    def test_summary_status_follows_planning(self, sql_store):
        sql_store.upsert_summary("plan-locked", "emp-1", 1, 0)
        sql_store.upsert_summary("plan-a", "emp-1", 1, 0)
        assert sql_store.get_summary("plan-locked", "emp-1").status is PlanningStatus.VALID

        planning = sql_store.get_planning("plan-a")
        sql_store.save_planning(replace(planning, status=PlanningStatus.VALID))

        assert sql_store.get_summary("plan-a", "emp-1").status is PlanningStatus.VALID

    def test_delete_planning_cascades(self, sql_store):
        sql_store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 12:00"))
        sql_store.upsert_summary("plan-a", "emp-1", 3, 0)

        sql_store.delete_planning("plan-a")

        assert sql_store.get_planning("plan-a") is None
        assert sql_store.get_slot("s1") is None
        assert sql_store.list_summaries("plan-a") == []

    def test_employee_role_is_stored_as_label(self, sql_store):
        assert sql_store.get_employee("mgr-1").role is Role.MANAGER


class TestTransactions:
    def test_rollback_on_error(self, sql_store):
        with pytest.raises(RuntimeError):
            with sql_store.transaction() as tx:
                tx.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 12:00"))
                raise RuntimeError("boom")

        assert sql_store.get_slot("s1") is None

    def test_commit(self, sql_store):
        with sql_store.transaction() as tx:
            tx.lock_employees(["emp-1", "emp-2"])
            tx.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 12:00"))

        assert sql_store.get_slot("s1") is not None

    def test_role_permissions_are_versioned(self, sql_store):
        assert sql_store.load_role_permissions() is None

        table = RolePermissionTable().grant(Role.EMPLOYEE, Permission.EMPLOYEE_READ)
        sql_store.save_role_permissions(table, expected_version=1)

        assert sql_store.role_permissions_version() == 2
        assert sql_store.load_role_permissions() == table
        with pytest.raises(StaleConfigurationError):
            sql_store.save_role_permissions(table.grant(Role.EMPLOYEE, Permission.TEAM_ASSIGN), 1)


class TestServicesOnSql:
    def test_planning_lifecycle(self, sql_store, config):
        service = SchedulingService(sql_store, config)
        slot = {"employeeId": "emp-1", "taskId": "task-1", "startAt": "2024-06-10T09:00:00", "endAt": "2024-06-10T11:05:00"}

        planning = service.create_planning(
            {"name": "Semaine 24", "startAt": "2024-06-10T00:00:00", "endAt": "2024-06-16T00:00:00", "slots": [slot]},
            creator_id="mgr-1",
        )

        summary = sql_store.get_summary(planning.id, "emp-1")
        assert (summary.normal_hours, summary.remainder_minutes) == (2, 5)

        with pytest.raises(SlotConflictError):
            service.create_slot({**slot, "planningId": "plan-b"})

        service.delete_planning(planning.id)
        assert sql_store.list_slots_for_employee("emp-1") == []

    def test_leave_approval(self, sql_store, config):
        service = LeaveRequestService(sql_store, config, clock=lambda: at("2024-06-01 10:00"))

        leave = service.submit("emp-1", {"type": "ANNUEL", "startAt": "2024-06-10T00:00:00", "endAt": "2024-06-14T00:00:00"})
        approved = service.approve(leave.id, "mgr-1")

        assert approved.status is LeaveStatus.APPROVED
        assert sql_store.get_leave(leave.id).decided_by == "mgr-1"
