"""
Request payloads validated with Pydantic.

Keys are accepted in snake_case or camelCase. Naive datetimes are read in
the configured timezone by the handlers.
"""

from datetime import datetime
from typing import Any, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..domain.exceptions import ValidationError
from ..domain.models import (
    LeaveType,
    PlanningStatus,
    ProposedSlot,
    SlotKind,
    TaskStatus,
    TimeRange,
    as_datetime,
)

P = TypeVar("P", bound=BaseModel)


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _check_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is None or end is None:
        return
    if (start.tzinfo is None) != (end.tzinfo is None):
        raise ValueError("start_at and end_at must both carry a timezone or neither")
    if start >= end:
        raise ValueError("end_at must be later than start_at")


def window_of(start: datetime, end: datetime, timezone: str) -> TimeRange:
    return TimeRange(start=as_datetime(start, timezone), end=as_datetime(end, timezone))


class ConflictCheckPayload(Payload):
    employee_id: str
    start_at: datetime
    end_at: datetime
    ignore_slot_id: Optional[str] = None
    planning_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "ConflictCheckPayload":
        _check_window(self.start_at, self.end_at)
        return self


class SlotPayload(Payload):
    planning_id: str
    employee_id: str
    task_id: str
    start_at: datetime
    end_at: datetime
    kind: SlotKind = SlotKind.WORK
    comment: Optional[str] = None
    validated: bool = False
    task_status: TaskStatus = TaskStatus.TODO

    @model_validator(mode="after")
    def validate_window(self) -> "SlotPayload":
        _check_window(self.start_at, self.end_at)
        return self


class SlotUpdatePayload(Payload):
    employee_id: Optional[str] = None
    task_id: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    kind: Optional[SlotKind] = None
    comment: Optional[str] = None
    validated: Optional[bool] = None
    task_status: Optional[TaskStatus] = None

    @model_validator(mode="after")
    def validate_window(self) -> "SlotUpdatePayload":
        _check_window(self.start_at, self.end_at)
        return self


class PlanningSlotPayload(Payload):
    id: Optional[str] = None
    employee_id: str
    task_id: str
    start_at: datetime
    end_at: datetime
    kind: SlotKind = SlotKind.WORK
    comment: Optional[str] = None
    validated: bool = False
    task_status: TaskStatus = TaskStatus.TODO

    @model_validator(mode="after")
    def validate_window(self) -> "PlanningSlotPayload":
        _check_window(self.start_at, self.end_at)
        return self

    def to_proposed(self, timezone: str) -> ProposedSlot:
        return ProposedSlot(
            id=self.id,
            employee_id=self.employee_id,
            task_id=self.task_id,
            time_range=window_of(self.start_at, self.end_at, timezone),
            kind=self.kind,
            comment=self.comment,
            validated=self.validated,
            task_status=self.task_status,
        )


class PlanningPayload(Payload):
    name: str = Field(min_length=3, max_length=100)
    start_at: datetime
    end_at: datetime
    slots: List[PlanningSlotPayload] = Field(min_length=1)
    status: PlanningStatus = PlanningStatus.DRAFT

    @model_validator(mode="after")
    def validate_window(self) -> "PlanningPayload":
        _check_window(self.start_at, self.end_at)
        return self


class PlanningUpdatePayload(Payload):
    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    status: Optional[PlanningStatus] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    slots: Optional[List[PlanningSlotPayload]] = None

    @model_validator(mode="after")
    def validate_window(self) -> "PlanningUpdatePayload":
        _check_window(self.start_at, self.end_at)
        return self


class LeavePayload(Payload):
    leave_type: LeaveType = Field(alias="type")
    start_at: datetime
    end_at: datetime
    comment: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def validate_window(self) -> "LeavePayload":
        _check_window(self.start_at, self.end_at)
        return self


def parse_payload(model: Type[P], payload: Any) -> P:
    """
    Validate a raw payload (mapping or model instance) into ``model``.

    Raises:
        ValidationError: If the payload does not match the model
    """
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=False)
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "Invalid request data",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc
