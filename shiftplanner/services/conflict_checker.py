"""
Overlap checker: detects double-booking of an employee.

The checker reads slots, availability and leave through the store and
delegates the interval logic to ``domain.intervals``. It never writes and
never raises on conflicts: the result is a report for the caller to act on.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..domain import intervals
from ..domain.leave_workflow import ACTIVE_STATUSES
from ..domain.models import LeaveStatus, Planning, ProposedSlot, Task, TimeRange, TimeSlot
from ..domain.reports import (
    NO_AVAILABILITY_REASON,
    AvailabilityInfo,
    AvailabilityState,
    BatchConflict,
    ConflictReport,
    LeaveInfo,
    LeaveState,
    SlotConflict,
)
from .store import ScheduleStore

logger = logging.getLogger(__name__)


class OverlapChecker:
    """
    Finds stored slots overlapping a candidate window.

    Algorithm:
    1. Load the employee's slots minus the excluded slot / planning
    2. Keep those overlapping the window (half-open intervals)
    3. Look up a declared availability containing the window
    4. Look up active leave touching the window's days
    """

    def __init__(
        self,
        store: ScheduleStore,
        timezone: str = "UTC",
        blocking_statuses: Optional[Sequence[LeaveStatus]] = None,
    ):
        self._store = store
        self.timezone = timezone
        self.blocking_statuses = list(blocking_statuses or ACTIVE_STATUSES)
        self._plannings: Dict[str, Optional[Planning]] = {}
        self._tasks: Dict[str, Optional[Task]] = {}

    def find_conflicts(
        self,
        employee_id: str,
        window: TimeRange,
        exclude_slot_id: Optional[str] = None,
        exclude_planning_id: Optional[str] = None,
    ) -> ConflictReport:
        """
        Build the conflict report of ``window`` for an employee.

        Args:
            employee_id: Employee to check (existence is validated by the caller)
            window: Candidate interval
            exclude_slot_id: Slot to ignore, e.g. the slot being updated
            exclude_planning_id: Planning whose slots are ignored

        Returns:
            ConflictReport listing every overlapping slot
        """
        existing = self._store.list_slots_for_employee(
            employee_id,
            exclude_planning_id=exclude_planning_id,
            exclude_slot_id=exclude_slot_id,
            window=window,
        )
        overlapping = intervals.overlapping_slots(window, existing)

        if overlapping:
            logger.info(
                "Employee %s has %d slot(s) overlapping %s",
                employee_id,
                len(overlapping),
                window,
            )

        return ConflictReport(
            conflicts=[self._describe(slot) for slot in overlapping],
            availability=self.check_availability(employee_id, window),
            leave_status=self.check_leave(employee_id, window),
        )

    def find_batch_conflicts(
        self,
        proposed: Sequence[ProposedSlot],
        exclude_planning_id: Optional[str] = None,
    ) -> List[BatchConflict]:
        """
        Check a batch of proposed slots against stored slots.

        Slots of the batch are not compared with each other. For each
        employee, stored slots are fetched once for the envelope of that
        employee's batch and then matched slot by slot.
        """
        results: List[BatchConflict] = []

        for employee_id, employee_slots in intervals.group_by_employee(proposed).items():
            bound = intervals.envelope([slot.time_range for slot in employee_slots])
            existing = self._store.list_slots_for_employee(
                employee_id,
                exclude_planning_id=exclude_planning_id,
                window=bound,
            )

            for slot, hits in intervals.match_batch(employee_slots, existing):
                results.append(
                    BatchConflict(
                        proposed=slot,
                        conflicts=[self._describe(hit) for hit in hits],
                    )
                )

        if results:
            logger.info("Batch of %d slot(s) has %d conflict(s)", len(proposed), len(results))
        return results

    def check_availability(self, employee_id: str, window: TimeRange) -> AvailabilityInfo:
        weekday = window.start.in_timezone(self.timezone).weekday()
        declared = self._store.list_availability(employee_id, weekday)
        covering = intervals.find_covering_availability(declared, window, self.timezone)

        if covering is None:
            return AvailabilityInfo(
                status=AvailabilityState.UNAVAILABLE,
                reason=NO_AVAILABILITY_REASON,
            )
        return AvailabilityInfo(status=AvailabilityState.AVAILABLE, window=covering)

    def check_leave(self, employee_id: str, window: TimeRange) -> LeaveInfo:
        search_start, search_end = intervals.leave_search_bounds(window, self.timezone)
        candidates = self._store.list_active_leave(
            employee_id,
            search_start,
            search_end,
            self.blocking_statuses,
        )
        blocking = sorted(
            (
                leave
                for leave in candidates
                if leave.status in self.blocking_statuses
                and intervals.leave_blocks(leave, window, self.timezone)
            ),
            key=lambda leave: leave.period.start,
        )

        if not blocking:
            return LeaveInfo(status=LeaveState.NO_LEAVE)

        leave = blocking[0]
        return LeaveInfo(
            status=LeaveState.ON_LEAVE,
            leave_type=leave.leave_type,
            period=leave.period,
        )

    def _describe(self, slot: TimeSlot) -> SlotConflict:
        planning = self._planning(slot.planning_id)
        task = self._task(slot.task_id)
        return SlotConflict(
            slot_id=slot.id,
            slot_kind=slot.kind,
            planning_id=slot.planning_id,
            planning_name=planning.name if planning else "",
            planning_status=planning.status if planning else None,
            task_label=task.label if task else "",
            period=slot.time_range,
        )

    def _planning(self, planning_id: str) -> Optional[Planning]:
        if planning_id not in self._plannings:
            self._plannings[planning_id] = self._store.get_planning(planning_id)
        return self._plannings[planning_id]

    def _task(self, task_id: str) -> Optional[Task]:
        if task_id not in self._tasks:
            self._tasks[task_id] = self._store.get_task(task_id)
        return self._tasks[task_id]
