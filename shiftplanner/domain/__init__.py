"""
Domain layer - Pure business logic without external dependencies.
"""

from .hours import HourSplit, split_minutes
from .models import (
    Availability,
    Employee,
    HourSummary,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    Planning,
    PlanningStatus,
    ProposedSlot,
    Role,
    SlotKind,
    Task,
    TaskStatus,
    TimeRange,
    TimeSlot,
)
from .permissions import Permission, RolePermissionTable
from .reports import (
    AvailabilityInfo,
    AvailabilityState,
    BatchConflict,
    ConflictReport,
    LeaveInfo,
    LeaveState,
    SlotConflict,
)

__all__ = [
    "Availability",
    "AvailabilityInfo",
    "AvailabilityState",
    "BatchConflict",
    "ConflictReport",
    "Employee",
    "HourSplit",
    "HourSummary",
    "LeaveInfo",
    "LeaveRequest",
    "LeaveState",
    "LeaveStatus",
    "LeaveType",
    "Permission",
    "Planning",
    "PlanningStatus",
    "ProposedSlot",
    "Role",
    "RolePermissionTable",
    "SlotConflict",
    "SlotKind",
    "Task",
    "TaskStatus",
    "TimeRange",
    "TimeSlot",
    "split_minutes",
]
