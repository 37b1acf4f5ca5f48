"""
Result types returned by the overlap checker.

A conflict report is advisory data: callers decide whether a conflict
rejects the request or only warns.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .models import Availability, LeaveType, PlanningStatus, ProposedSlot, SlotKind, TimeRange


class AvailabilityState(str, Enum):
    AVAILABLE = "DISPONIBLE"
    UNAVAILABLE = "NON_DISPONIBLE"


class LeaveState(str, Enum):
    ON_LEAVE = "EN_CONGE"
    NO_LEAVE = "AUCUN_CONGE"


NO_AVAILABILITY_REASON = "No declared availability covers this window"


@dataclass(frozen=True)
class SlotConflict:
    """An existing slot overlapping the checked window."""
    slot_id: str
    slot_kind: SlotKind
    planning_id: str
    planning_name: str
    planning_status: Optional[PlanningStatus]
    task_label: str
    period: TimeRange

    def to_dict(self) -> dict:
        return {
            "slotId": self.slot_id,
            "slotKind": self.slot_kind.value,
            "planningId": self.planning_id,
            "planningName": self.planning_name,
            "planningStatus": self.planning_status.value if self.planning_status else None,
            "taskLabel": self.task_label,
            "period": self.period.to_dict(),
        }


@dataclass(frozen=True)
class AvailabilityInfo:
    status: AvailabilityState
    window: Optional[Availability] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"status": self.status.value}
        if self.window is not None:
            payload["window"] = self.window.to_dict()
        if self.reason:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class LeaveInfo:
    status: LeaveState
    leave_type: Optional[LeaveType] = None
    period: Optional[TimeRange] = None

    def to_dict(self) -> dict:
        payload = {"status": self.status.value}
        if self.leave_type is not None:
            payload["type"] = self.leave_type.value
        if self.period is not None:
            payload["period"] = self.period.to_dict()
        return payload


@dataclass(frozen=True)
class ConflictReport:
    conflicts: List[SlotConflict] = field(default_factory=list)
    availability: AvailabilityInfo = field(
        default_factory=lambda: AvailabilityInfo(
            status=AvailabilityState.UNAVAILABLE, reason=NO_AVAILABILITY_REASON
        )
    )
    leave_status: LeaveInfo = field(default_factory=lambda: LeaveInfo(status=LeaveState.NO_LEAVE))

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> dict:
        return {
            "hasConflicts": self.has_conflicts,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "availability": self.availability.to_dict(),
            "leaveStatus": self.leave_status.to_dict(),
        }


@dataclass(frozen=True)
class BatchConflict:
    """A proposed slot of a batch together with the stored slots it overlaps."""
    proposed: ProposedSlot
    conflicts: List[SlotConflict]

    @property
    def employee_id(self) -> str:
        return self.proposed.employee_id

    def to_dict(self) -> dict:
        return {
            "employeeId": self.employee_id,
            "proposed": self.proposed.to_dict(),
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }
