"""
SQLAlchemy table mappings for the relational store.

Timestamps are stored as naive UTC and come back as pendulum UTC
DateTimes. Enums are stored under their labels.
"""

from __future__ import annotations

from datetime import time
from typing import Optional

import pendulum
from pendulum import DateTime
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime as SqlDateTime
from sqlalchemy import Enum as SqlEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text, Time, TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..domain.models import (
    LeaveStatus,
    LeaveType,
    PlanningStatus,
    Role,
    SlotKind,
    TaskStatus,
    as_datetime,
)


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime persisted as naive UTC."""

    impl = SqlDateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_datetime(value, "UTC").in_timezone("UTC").naive()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return pendulum.instance(value, tz="UTC")


def _labels(enum_cls):
    return SqlEnum(
        enum_cls,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=20,
    )


class Base(DeclarativeBase):
    pass


class EmployeeRow(Base):
    __tablename__ = "employees"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True)
    role: Mapped[Role] = mapped_column(_labels(Role), default=Role.EMPLOYEE)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class TaskRow(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    label: Mapped[str] = mapped_column(String(200))
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"), index=True)
    status: Mapped[TaskStatus] = mapped_column(_labels(TaskStatus), default=TaskStatus.TODO)
    description: Mapped[str] = mapped_column(Text, default="")


class PlanningRow(Base):
    __tablename__ = "plannings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    creator_id: Mapped[str] = mapped_column(ForeignKey("employees.id"))
    period_start: Mapped[DateTime] = mapped_column(UTCDateTime)
    period_end: Mapped[DateTime] = mapped_column(UTCDateTime)
    status: Mapped[PlanningStatus] = mapped_column(
        _labels(PlanningStatus), default=PlanningStatus.DRAFT
    )
    created_at: Mapped[DateTime] = mapped_column(UTCDateTime)


class TimeSlotRow(Base):
    __tablename__ = "time_slots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"))
    planning_id: Mapped[str] = mapped_column(
        ForeignKey("plannings.id", ondelete="CASCADE"), index=True
    )
    task_id: Mapped[str] = mapped_column(ForeignKey("tasks.id"))
    start_at: Mapped[DateTime] = mapped_column(UTCDateTime)
    end_at: Mapped[DateTime] = mapped_column(UTCDateTime)
    kind: Mapped[SlotKind] = mapped_column(_labels(SlotKind), default=SlotKind.WORK)
    validated: Mapped[bool] = mapped_column(Boolean, default=False)
    task_status: Mapped[TaskStatus] = mapped_column(_labels(TaskStatus), default=TaskStatus.TODO)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("start_at < end_at", name="time_slot_positive_duration"),
        Index("ix_time_slots_employee_start", "employee_id", "start_at"),
    )


class AvailabilityRow(Base):
    __tablename__ = "availabilities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    employee_id: Mapped[str] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), index=True
    )
    # 0=Monday .. 6=Sunday
    weekday: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[time] = mapped_column(Time(timezone=False))
    end_time: Mapped[time] = mapped_column(Time(timezone=False))

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="availability_weekday"),
    )


class LeaveRequestRow(Base):
    __tablename__ = "leave_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"))
    leave_type: Mapped[LeaveType] = mapped_column(_labels(LeaveType))
    start_at: Mapped[DateTime] = mapped_column(UTCDateTime)
    end_at: Mapped[DateTime] = mapped_column(UTCDateTime)
    status: Mapped[LeaveStatus] = mapped_column(_labels(LeaveStatus), default=LeaveStatus.PENDING)
    comment: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(UTCDateTime)
    decided_by: Mapped[Optional[str]] = mapped_column(ForeignKey("employees.id"), nullable=True)
    decided_at: Mapped[Optional[DateTime]] = mapped_column(UTCDateTime, nullable=True)
    decision_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_leave_requests_employee_period", "employee_id", "start_at", "end_at"),
    )


class HourSummaryRow(Base):
    __tablename__ = "hour_summaries"

    planning_id: Mapped[str] = mapped_column(
        ForeignKey("plannings.id", ondelete="CASCADE"), primary_key=True
    )
    employee_id: Mapped[str] = mapped_column(ForeignKey("employees.id"), primary_key=True)
    normal_hours: Mapped[int] = mapped_column(Integer)
    remainder_minutes: Mapped[int] = mapped_column(Integer)
    period_from: Mapped[DateTime] = mapped_column(UTCDateTime)
    period_to: Mapped[DateTime] = mapped_column(UTCDateTime)
    status: Mapped[PlanningStatus] = mapped_column(
        _labels(PlanningStatus), default=PlanningStatus.DRAFT
    )

    __table_args__ = (
        CheckConstraint(
            "remainder_minutes >= 0 AND remainder_minutes < 60",
            name="hour_summary_remainder_range",
        ),
    )


class RolePermissionRow(Base):
    """Single-row table holding the current role/permission grants."""

    __tablename__ = "role_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version: Mapped[int] = mapped_column(Integer)
    grants: Mapped[dict] = mapped_column(JSON)
