"""
Sample data loader used by mock mode and the ``load-sample`` command.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import pendulum

from ..domain.models import (
    Availability,
    Employee,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    Planning,
    PlanningStatus,
    Role,
    SlotKind,
    Task,
    TaskStatus,
    TimeRange,
    TimeSlot,
    coerce_enum,
    new_id,
)
from ..services.hour_aggregator import HourAggregator
from ..services.store import ScheduleStore

logger = logging.getLogger(__name__)

SAMPLE_DATA_FILE = Path(__file__).parent / "sample_data.json"


def load_sample_data(path: Optional[Path] = None) -> dict:
    """Read a sample data file (the bundled one by default)."""
    data_file = path or SAMPLE_DATA_FILE
    with open(data_file, "r", encoding="utf-8") as f:
        return json.load(f)


def _range(item: dict, timezone: str) -> TimeRange:
    return TimeRange(
        start=pendulum.parse(item["start"], tz=timezone),
        end=pendulum.parse(item["end"], tz=timezone),
    )


def seed(store: ScheduleStore, data: dict, timezone: str = "UTC") -> Dict[str, int]:
    """
    Insert sample data into a store and compute the hour summaries.

    Naive timestamps are read in ``timezone``.

    Returns:
        Number of records inserted per section
    """
    counts: Dict[str, int] = {}

    with store.transaction() as tx:
        for item in data.get("employees", []):
            tx.add_employee(
                Employee(
                    id=item["id"],
                    first_name=item["firstName"],
                    last_name=item["lastName"],
                    email=item["email"],
                    role=coerce_enum(Role, item.get("role", Role.EMPLOYEE)),
                    is_active=item.get("isActive", True),
                )
            )
        counts["employees"] = len(data.get("employees", []))

        for item in data.get("tasks", []):
            tx.add_task(
                Task(
                    id=item["id"],
                    label=item["label"],
                    employee_id=item["employeeId"],
                    status=coerce_enum(TaskStatus, item.get("status", TaskStatus.TODO)),
                    description=item.get("description", ""),
                )
            )
        counts["tasks"] = len(data.get("tasks", []))

        for item in data.get("plannings", []):
            tx.add_planning(
                Planning(
                    id=item["id"],
                    name=item["name"],
                    creator_id=item["creatorId"],
                    period=_range(item, timezone),
                    status=coerce_enum(PlanningStatus, item.get("status", PlanningStatus.DRAFT)),
                )
            )
        counts["plannings"] = len(data.get("plannings", []))

        for item in data.get("slots", []):
            tx.add_slot(
                TimeSlot(
                    id=item.get("id") or new_id(),
                    employee_id=item["employeeId"],
                    planning_id=item["planningId"],
                    task_id=item["taskId"],
                    time_range=_range(item, timezone),
                    kind=coerce_enum(SlotKind, item.get("kind", SlotKind.WORK)),
                    validated=item.get("validated", False),
                    comment=item.get("comment"),
                )
            )
        counts["slots"] = len(data.get("slots", []))

        for item in data.get("availabilities", []):
            tx.add_availability(
                Availability(
                    id=item.get("id") or new_id(),
                    employee_id=item["employeeId"],
                    weekday=item["weekday"],
                    start_time=pendulum.parse(item["start"], exact=True),
                    end_time=pendulum.parse(item["end"], exact=True),
                )
            )
        counts["availabilities"] = len(data.get("availabilities", []))

        for item in data.get("leaves", []):
            tx.add_leave(
                LeaveRequest(
                    id=item.get("id") or new_id(),
                    employee_id=item["employeeId"],
                    leave_type=coerce_enum(LeaveType, item["type"]),
                    period=_range(item, timezone),
                    status=coerce_enum(LeaveStatus, item.get("status", LeaveStatus.PENDING)),
                    comment=item.get("comment"),
                )
            )
        counts["leaves"] = len(data.get("leaves", []))

        aggregator = HourAggregator(tx)
        for item in data.get("plannings", []):
            aggregator.recompute_planning(item["id"])

    logger.info("Loaded sample data: %s", ", ".join(f"{n} {k}" for k, n in counts.items()))
    return counts
