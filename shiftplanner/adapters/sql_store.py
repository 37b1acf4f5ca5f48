"""
Relational implementation of the schedule store on SQLAlchemy.

Concurrency:
- PostgreSQL runs at SERIALIZABLE isolation and ``lock_employees`` takes
  row locks (SELECT ... FOR UPDATE) on the employees involved.
- SQLite opens every transaction with BEGIN IMMEDIATE, which serializes
  writers on the whole database.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pendulum
from pendulum import DateTime
from sqlalchemy import create_engine, delete, event, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

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
from .orm import (
    AvailabilityRow,
    Base,
    EmployeeRow,
    HourSummaryRow,
    LeaveRequestRow,
    PlanningRow,
    RolePermissionRow,
    TaskRow,
    TimeSlotRow,
)

logger = logging.getLogger(__name__)

ROLE_PERMISSIONS_ROW_ID = 1


def create_engine_for(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine configured for serialized writers.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///shiftplanner.db`` or
            ``postgresql+psycopg://user@host/db``
        echo: Log emitted SQL
    """
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **options)

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself instead of pysqlite.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(connection):
            connection.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    if database_url.startswith("postgresql"):
        return create_engine(
            database_url, echo=echo, isolation_level="SERIALIZABLE", pool_pre_ping=True
        )

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def _storage_errors(method):
    """Translate SQLAlchemy failures into StorageError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Database operation %s failed: %s", method.__name__, exc)
            raise StorageError(f"Database operation {method.__name__} failed: {exc}") from exc

    return wrapper


class SqlScheduleStore:
    """
    Schedule store backed by a relational database.

    Outside ``transaction()`` every call runs in its own short transaction.
    Inside, calls share the transaction's session and commit together.
    """

    def __init__(self, engine: Union[Engine, str], session: Optional[Session] = None):
        if isinstance(engine, str):
            engine = create_engine_for(engine)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        self._session = session

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info(
            "Database schema ready on %s", self.engine.url.render_as_string(hide_password=True)
        )

    @contextmanager
    def transaction(self) -> Iterator["SqlScheduleStore"]:
        if self._session is not None:
            yield self
            return

        session = self._sessions()
        try:
            yield SqlScheduleStore(self.engine, session=session)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Transaction rolled back: %s", exc)
            raise StorageError(f"Transaction failed: {exc}") from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _unit(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        with self._sessions.begin() as session:
            yield session

    @_storage_errors
    def lock_employees(self, employee_ids: Iterable[str]) -> None:
        ids = sorted(set(employee_ids))
        if not ids or self._session is None:
            return
        # Sorted so that concurrent lockers always acquire rows in one order.
        self._session.execute(
            select(EmployeeRow.id)
            .where(EmployeeRow.id.in_(ids))
            .order_by(EmployeeRow.id)
            .with_for_update()
        ).all()

    # Engine reads -------------------------------------------------------

    @_storage_errors
    def list_slots_for_employee(
        self,
        employee_id: str,
        exclude_planning_id: Optional[str] = None,
        exclude_slot_id: Optional[str] = None,
        window: Optional[TimeRange] = None,
    ) -> List[TimeSlot]:
        query = select(TimeSlotRow).where(TimeSlotRow.employee_id == employee_id)
        if exclude_planning_id:
            query = query.where(TimeSlotRow.planning_id != exclude_planning_id)
        if exclude_slot_id:
            query = query.where(TimeSlotRow.id != exclude_slot_id)
        if window is not None:
            query = query.where(TimeSlotRow.start_at < window.end, TimeSlotRow.end_at > window.start)
        query = query.order_by(TimeSlotRow.start_at, TimeSlotRow.id)

        with self._unit() as session:
            return [_slot(row) for row in session.scalars(query)]

    @_storage_errors
    def list_availability(self, employee_id: str, weekday: int) -> List[Availability]:
        query = (
            select(AvailabilityRow)
            .where(AvailabilityRow.employee_id == employee_id, AvailabilityRow.weekday == weekday)
            .order_by(AvailabilityRow.start_time)
        )
        with self._unit() as session:
            return [_availability(row) for row in session.scalars(query)]

    @_storage_errors
    def list_active_leave(
        self,
        employee_id: str,
        window_start: DateTime,
        window_end: DateTime,
        statuses: Sequence[LeaveStatus],
    ) -> List[LeaveRequest]:
        query = (
            select(LeaveRequestRow)
            .where(
                LeaveRequestRow.employee_id == employee_id,
                LeaveRequestRow.status.in_(list(statuses)),
                LeaveRequestRow.start_at <= window_end,
                LeaveRequestRow.end_at >= window_start,
            )
            .order_by(LeaveRequestRow.start_at)
        )
        with self._unit() as session:
            return [_leave(row) for row in session.scalars(query)]

    @_storage_errors
    def list_slots(self, planning_id: str, employee_id: Optional[str] = None) -> List[TimeSlot]:
        query = select(TimeSlotRow).where(TimeSlotRow.planning_id == planning_id)
        if employee_id:
            query = query.where(TimeSlotRow.employee_id == employee_id)
        query = query.order_by(TimeSlotRow.start_at, TimeSlotRow.id)

        with self._unit() as session:
            return [_slot(row) for row in session.scalars(query)]

    # Engine writes ------------------------------------------------------

    @_storage_errors
    def upsert_summary(
        self,
        planning_id: str,
        employee_id: str,
        normal_hours: int,
        remainder_minutes: int,
        period: Optional[Tuple[DateTime, DateTime]] = None,
    ) -> HourSummary:
        with self._unit() as session:
            planning = session.get(PlanningRow, planning_id)
            row = session.get(HourSummaryRow, (planning_id, employee_id))
            if row is None:
                now = pendulum.now("UTC")
                period_from, period_to = period or (now, now)
                row = HourSummaryRow(
                    planning_id=planning_id,
                    employee_id=employee_id,
                    period_from=period_from,
                    period_to=period_to,
                )
                session.add(row)
            elif period is not None:
                row.period_from, row.period_to = period

            row.status = planning.status if planning else PlanningStatus.DRAFT
            row.normal_hours = normal_hours
            row.remainder_minutes = remainder_minutes
            session.flush()
            return _summary(row)

    @_storage_errors
    def delete_summary(self, planning_id: str, employee_id: str) -> None:
        with self._unit() as session:
            session.execute(
                delete(HourSummaryRow).where(
                    HourSummaryRow.planning_id == planning_id,
                    HourSummaryRow.employee_id == employee_id,
                )
            )

    @_storage_errors
    def get_summary(self, planning_id: str, employee_id: str) -> Optional[HourSummary]:
        with self._unit() as session:
            row = session.get(HourSummaryRow, (planning_id, employee_id))
            return _summary(row) if row else None

    @_storage_errors
    def list_summaries(self, planning_id: str) -> List[HourSummary]:
        query = (
            select(HourSummaryRow)
            .where(HourSummaryRow.planning_id == planning_id)
            .order_by(HourSummaryRow.employee_id)
        )
        with self._unit() as session:
            return [_summary(row) for row in session.scalars(query)]

    # Handler CRUD -------------------------------------------------------

    @_storage_errors
    def get_employee(self, employee_id: str) -> Optional[Employee]:
        with self._unit() as session:
            row = session.get(EmployeeRow, employee_id)
            return _employee(row) if row else None

    @_storage_errors
    def add_employee(self, employee: Employee) -> None:
        with self._unit() as session:
            session.add(
                EmployeeRow(
                    id=employee.id,
                    first_name=employee.first_name,
                    last_name=employee.last_name,
                    email=employee.email,
                    role=employee.role,
                    is_active=employee.is_active,
                )
            )
            session.flush()

    @_storage_errors
    def get_task(self, task_id: str) -> Optional[Task]:
        with self._unit() as session:
            row = session.get(TaskRow, task_id)
            return _task(row) if row else None

    @_storage_errors
    def add_task(self, task: Task) -> None:
        with self._unit() as session:
            session.add(
                TaskRow(
                    id=task.id,
                    label=task.label,
                    employee_id=task.employee_id,
                    status=task.status,
                    description=task.description,
                )
            )
            session.flush()

    @_storage_errors
    def get_planning(self, planning_id: str) -> Optional[Planning]:
        with self._unit() as session:
            row = session.get(PlanningRow, planning_id)
            return _planning(row) if row else None

    @_storage_errors
    def add_planning(self, planning: Planning) -> None:
        with self._unit() as session:
            row = PlanningRow(id=planning.id, created_at=planning.created_at)
            _fill_planning(row, planning)
            session.add(row)
            session.flush()

    @_storage_errors
    def save_planning(self, planning: Planning) -> None:
        with self._unit() as session:
            row = session.get(PlanningRow, planning.id)
            if row is None:
                raise StorageError(f"Planning {planning.id} no longer exists")
            _fill_planning(row, planning)
            session.execute(
                update(HourSummaryRow)
                .where(HourSummaryRow.planning_id == planning.id)
                .values(status=planning.status)
            )
            session.flush()

    @_storage_errors
    def delete_planning(self, planning_id: str) -> None:
        with self._unit() as session:
            session.execute(delete(HourSummaryRow).where(HourSummaryRow.planning_id == planning_id))
            session.execute(delete(TimeSlotRow).where(TimeSlotRow.planning_id == planning_id))
            session.execute(delete(PlanningRow).where(PlanningRow.id == planning_id))

    @_storage_errors
    def get_slot(self, slot_id: str) -> Optional[TimeSlot]:
        with self._unit() as session:
            row = session.get(TimeSlotRow, slot_id)
            return _slot(row) if row else None

    @_storage_errors
    def add_slot(self, slot: TimeSlot) -> None:
        with self._unit() as session:
            row = TimeSlotRow(id=slot.id)
            _fill_slot(row, slot)
            session.add(row)
            session.flush()

    @_storage_errors
    def save_slot(self, slot: TimeSlot) -> None:
        with self._unit() as session:
            row = session.get(TimeSlotRow, slot.id)
            if row is None:
                raise StorageError(f"Slot {slot.id} no longer exists")
            _fill_slot(row, slot)
            session.flush()

    @_storage_errors
    def delete_slot(self, slot_id: str) -> None:
        with self._unit() as session:
            session.execute(delete(TimeSlotRow).where(TimeSlotRow.id == slot_id))

    @_storage_errors
    def add_availability(self, availability: Availability) -> None:
        with self._unit() as session:
            session.add(
                AvailabilityRow(
                    id=availability.id,
                    employee_id=availability.employee_id,
                    weekday=availability.weekday,
                    start_time=availability.start_time,
                    end_time=availability.end_time,
                )
            )
            session.flush()

    @_storage_errors
    def get_leave(self, leave_id: str) -> Optional[LeaveRequest]:
        with self._unit() as session:
            row = session.get(LeaveRequestRow, leave_id)
            return _leave(row) if row else None

    @_storage_errors
    def add_leave(self, leave: LeaveRequest) -> None:
        with self._unit() as session:
            row = LeaveRequestRow(id=leave.id, employee_id=leave.employee_id, created_at=leave.created_at)
            _fill_leave(row, leave)
            session.add(row)
            session.flush()

    @_storage_errors
    def save_leave(self, leave: LeaveRequest) -> None:
        with self._unit() as session:
            row = session.get(LeaveRequestRow, leave.id)
            if row is None:
                raise StorageError(f"Leave request {leave.id} no longer exists")
            _fill_leave(row, leave)
            session.flush()

    @_storage_errors
    def load_role_permissions(self) -> Optional[RolePermissionTable]:
        with self._unit() as session:
            row = session.get(RolePermissionRow, ROLE_PERMISSIONS_ROW_ID)
            if row is None:
                return None
            return RolePermissionTable.from_dict({"version": row.version, "grants": row.grants})

    @_storage_errors
    def role_permissions_version(self) -> Optional[int]:
        with self._unit() as session:
            return session.scalar(
                select(RolePermissionRow.version).where(
                    RolePermissionRow.id == ROLE_PERMISSIONS_ROW_ID
                )
            )

    @_storage_errors
    def save_role_permissions(self, table: RolePermissionTable, expected_version: int) -> None:
        with self._unit() as session:
            row = session.scalar(
                select(RolePermissionRow)
                .where(RolePermissionRow.id == ROLE_PERMISSIONS_ROW_ID)
                .with_for_update()
            )
            if row is not None and row.version != expected_version:
                raise StaleConfigurationError(
                    f"Role permissions are at version {row.version}, not {expected_version}"
                )
            if row is None:
                row = RolePermissionRow(id=ROLE_PERMISSIONS_ROW_ID)
                session.add(row)
            data = table.to_dict()
            row.version = data["version"]
            row.grants = data["grants"]
            session.flush()


def _employee(row: EmployeeRow) -> Employee:
    return Employee(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        role=row.role,
        is_active=row.is_active,
    )


def _task(row: TaskRow) -> Task:
    return Task(
        id=row.id,
        label=row.label,
        employee_id=row.employee_id,
        status=row.status,
        description=row.description or "",
    )


def _planning(row: PlanningRow) -> Planning:
    return Planning(
        id=row.id,
        name=row.name,
        creator_id=row.creator_id,
        period=TimeRange(start=row.period_start, end=row.period_end),
        status=row.status,
        created_at=row.created_at,
    )


def _fill_planning(row: PlanningRow, planning: Planning) -> None:
    row.name = planning.name
    row.creator_id = planning.creator_id
    row.period_start = planning.period.start
    row.period_end = planning.period.end
    row.status = planning.status


def _slot(row: TimeSlotRow) -> TimeSlot:
    return TimeSlot(
        id=row.id,
        employee_id=row.employee_id,
        planning_id=row.planning_id,
        task_id=row.task_id,
        time_range=TimeRange(start=row.start_at, end=row.end_at),
        kind=row.kind,
        validated=row.validated,
        task_status=row.task_status,
        comment=row.comment,
    )


def _fill_slot(row: TimeSlotRow, slot: TimeSlot) -> None:
    row.employee_id = slot.employee_id
    row.planning_id = slot.planning_id
    row.task_id = slot.task_id
    row.start_at = slot.start
    row.end_at = slot.end
    row.kind = slot.kind
    row.validated = slot.validated
    row.task_status = slot.task_status
    row.comment = slot.comment


def _availability(row: AvailabilityRow) -> Availability:
    return Availability(
        id=row.id,
        employee_id=row.employee_id,
        weekday=row.weekday,
        start_time=row.start_time,
        end_time=row.end_time,
    )


def _leave(row: LeaveRequestRow) -> LeaveRequest:
    return LeaveRequest(
        id=row.id,
        employee_id=row.employee_id,
        leave_type=row.leave_type,
        period=TimeRange(start=row.start_at, end=row.end_at),
        status=row.status,
        comment=row.comment,
        created_at=row.created_at,
        decided_by=row.decided_by,
        decided_at=row.decided_at,
        decision_comment=row.decision_comment,
    )


def _fill_leave(row: LeaveRequestRow, leave: LeaveRequest) -> None:
    row.leave_type = leave.leave_type
    row.start_at = leave.period.start
    row.end_at = leave.period.end
    row.status = leave.status
    row.comment = leave.comment
    row.decided_by = leave.decided_by
    row.decided_at = leave.decided_at
    row.decision_comment = leave.decision_comment


def _summary(row: HourSummaryRow) -> HourSummary:
    return HourSummary(
        planning_id=row.planning_id,
        employee_id=row.employee_id,
        normal_hours=row.normal_hours,
        remainder_minutes=row.remainder_minutes,
        period_from=row.period_from,
        period_to=row.period_to,
        status=row.status or PlanningStatus.DRAFT,
    )
