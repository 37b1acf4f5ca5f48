"""
Domain models for plannings, time slots, leave and hour summaries.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Optional, Type, TypeVar

import pendulum
from pendulum import DateTime


E = TypeVar("E", bound=Enum)


class LabelledEnum(str, Enum):
    """
    String enum stored under its French label.

    Lookups also accept the English member name: ``LeaveStatus("PENDING")``
    is ``LeaveStatus.PENDING``.
    """

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.upper() in cls.__members__:
            return cls.__members__[value.upper()]
        return None


class SlotKind(LabelledEnum):
    WORK = "TRAVAIL"
    TRAINING = "FORMATION"
    MEETING = "REUNION"


class TaskStatus(LabelledEnum):
    TODO = "A_FAIRE"
    IN_PROGRESS = "EN_COURS"
    DONE = "TERMINEE"
    VALIDATED = "VALIDEE"
    CANCELLED = "ANNULEE"


class PlanningStatus(LabelledEnum):
    DRAFT = "BROUILLON"
    VALID = "VALIDE"
    REJECTED = "REJETE"
    CANCELLED = "ANNULE"


class LeaveStatus(LabelledEnum):
    PENDING = "EN_ATTENTE"
    APPROVED = "VALIDE"
    REJECTED = "REJETEE"
    CANCELLED = "ANNULEE"


class LeaveType(LabelledEnum):
    ANNUAL = "ANNUEL"
    SICK = "MALADIE"
    PARENTAL = "PARENTAL"
    UNPAID = "SANS_SOLDE"


class Role(LabelledEnum):
    EMPLOYEE = "EMPLOYE_BASE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


def coerce_enum(enum_cls: Type[E], value) -> E:
    """
    Resolve an enum member from either its value or its name.

    ``LeaveStatus`` accepts ``"EN_ATTENTE"`` as well as ``"PENDING"``.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}") from exc


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid.uuid4())


def as_datetime(value: datetime, timezone: str = "UTC") -> DateTime:
    """
    Convert a stdlib or pendulum datetime into a pendulum DateTime.

    Naive values are interpreted in ``timezone``.
    """
    if isinstance(value, DateTime):
        return value
    return pendulum.instance(value, tz=timezone)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges are half-open: one ending exactly when the other starts does
        not overlap it.
        """
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies entirely within this range."""
        return self.start <= other.start and other.end <= self.end

    def in_timezone(self, timezone: str) -> "TimeRange":
        return TimeRange(
            start=self.start.in_timezone(timezone),
            end=self.end.in_timezone(timezone),
        )

    def to_dict(self) -> dict:
        return {
            "start": self.start.to_iso8601_string(),
            "end": self.end.to_iso8601_string(),
        }

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class Employee:
    id: str
    first_name: str
    last_name: str
    email: str
    role: Role = Role.EMPLOYEE
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Task:
    id: str
    label: str
    employee_id: str
    status: TaskStatus = TaskStatus.TODO
    description: str = ""


@dataclass
class Planning:
    """
    A named scheduling unit covering a date range.

    Validated plannings are published and can no longer be deleted.
    """
    id: str
    name: str
    creator_id: str
    period: TimeRange
    status: PlanningStatus = PlanningStatus.DRAFT
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))

    @property
    def is_locked(self) -> bool:
        return self.status is PlanningStatus.VALID


@dataclass
class TimeSlot:
    """
    A scheduled interval assigned to one employee within one planning.

    The duration is derived from the time range and never stored.
    """
    id: str
    employee_id: str
    planning_id: str
    task_id: str
    time_range: TimeRange
    kind: SlotKind = SlotKind.WORK
    validated: bool = False
    task_status: TaskStatus = TaskStatus.TODO
    comment: Optional[str] = None

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    @property
    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "planningId": self.planning_id,
            "taskId": self.task_id,
            "startAt": self.start.to_iso8601_string(),
            "endAt": self.end.to_iso8601_string(),
            "durationMinutes": self.duration_minutes,
            "kind": self.kind.value,
            "validated": self.validated,
            "taskStatus": self.task_status.value,
            "comment": self.comment,
        }


@dataclass
class Availability:
    """
    An employee's declared recurring weekly working window.

    ``weekday`` follows ``datetime.weekday()``: 0=Monday, 6=Sunday.
    """
    id: str
    employee_id: str
    weekday: int
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.weekday not in range(7):
            raise ValueError(f"Weekday must be between 0 and 6, got {self.weekday}")
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Availability start {self.start_time} must be before end {self.end_time}"
            )

    def to_dict(self) -> dict:
        return {
            "weekday": self.weekday,
            "start": self.start_time.strftime("%H:%M"),
            "end": self.end_time.strftime("%H:%M"),
        }


@dataclass
class LeaveRequest:
    id: str
    employee_id: str
    leave_type: LeaveType
    period: TimeRange
    status: LeaveStatus = LeaveStatus.PENDING
    comment: Optional[str] = None
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    decided_by: Optional[str] = None
    decided_at: Optional[DateTime] = None
    decision_comment: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "type": self.leave_type.value,
            "period": self.period.to_dict(),
            "status": self.status.value,
            "comment": self.comment,
            "decidedBy": self.decided_by,
            "decidedAt": self.decided_at.to_iso8601_string() if self.decided_at else None,
            "decisionComment": self.decision_comment,
        }


@dataclass
class HourSummary:
    """
    Aggregate of scheduled minutes for one employee in one planning.

    ``normal_hours`` holds whole hours and ``remainder_minutes`` the minutes
    left over (``total // 60`` and ``total % 60``).
    """
    planning_id: str
    employee_id: str
    normal_hours: int
    remainder_minutes: int
    period_from: DateTime
    period_to: DateTime
    status: PlanningStatus = PlanningStatus.DRAFT

    @property
    def total_minutes(self) -> int:
        return self.normal_hours * 60 + self.remainder_minutes

    def to_dict(self) -> dict:
        return {
            "planningId": self.planning_id,
            "employeeId": self.employee_id,
            "normalHours": self.normal_hours,
            "remainderMinutes": self.remainder_minutes,
            "totalMinutes": self.total_minutes,
            "periodFrom": self.period_from.to_iso8601_string(),
            "periodTo": self.period_to.to_iso8601_string(),
            "status": self.status.value,
        }


@dataclass
class ProposedSlot:
    """
    A slot submitted for creation, before it has been persisted.

    ``id`` is set only when a planning update keeps an existing slot.
    """
    employee_id: str
    task_id: str
    time_range: TimeRange
    kind: SlotKind = SlotKind.WORK
    comment: Optional[str] = None
    validated: bool = False
    task_status: TaskStatus = TaskStatus.TODO
    id: Optional[str] = None

    def to_slot(self, planning_id: str, slot_id: Optional[str] = None) -> TimeSlot:
        return TimeSlot(
            id=slot_id or self.id or new_id(),
            employee_id=self.employee_id,
            planning_id=planning_id,
            task_id=self.task_id,
            time_range=self.time_range,
            kind=self.kind,
            validated=self.validated,
            task_status=self.task_status,
            comment=self.comment,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "taskId": self.task_id,
            "period": self.time_range.to_dict(),
            "kind": self.kind.value,
        }
