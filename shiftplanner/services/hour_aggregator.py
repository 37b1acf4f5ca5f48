"""
Hour aggregator: keeps one hour summary per (planning, employee) in step
with the slots.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from pendulum import DateTime

from ..domain.exceptions import AggregationFailure, StorageError
from ..domain.hours import split_minutes, total_minutes
from ..domain.models import HourSummary
from .store import ScheduleStore

logger = logging.getLogger(__name__)

Period = Tuple[DateTime, DateTime]


class HourAggregator:
    """
    Recomputes hour summaries from the stored slots.

    Every slot of the pair counts, whatever its kind or validation status.
    A pair without slots has no summary.
    """

    def __init__(self, store: ScheduleStore):
        self._store = store

    def recompute_summary(
        self,
        planning_id: str,
        employee_id: str,
        period: Optional[Period] = None,
    ) -> Optional[HourSummary]:
        """
        Recompute the summary of one (planning, employee) pair.

        Args:
            planning_id: Planning of the pair
            employee_id: Employee of the pair
            period: Explicit (from, to) stamped on the summary. When omitted a
                new summary gets the current time and an existing one keeps
                its period.

        Returns:
            The upserted summary, or None when no slots remain and the
            summary was deleted

        Raises:
            AggregationFailure: If the summary cannot be written or removed
        """
        try:
            slots = self._store.list_slots(planning_id, employee_id)
            minutes = total_minutes(slots)

            if minutes == 0:
                self._store.delete_summary(planning_id, employee_id)
                logger.debug(
                    "Removed hour summary of employee %s in planning %s", employee_id, planning_id
                )
                return None

            split = split_minutes(minutes)
            summary = self._store.upsert_summary(
                planning_id,
                employee_id,
                split.normal_hours,
                split.remainder_minutes,
                period=period,
            )
        except StorageError as exc:
            logger.error(
                "Hour summary update failed for employee %s in planning %s: %s",
                employee_id,
                planning_id,
                exc,
            )
            raise AggregationFailure(planning_id, employee_id, exc) from exc

        logger.debug(
            "Hour summary of employee %s in planning %s: %dh%02d",
            employee_id,
            planning_id,
            summary.normal_hours,
            summary.remainder_minutes,
        )
        return summary

    def recompute_planning(
        self,
        planning_id: str,
        period: Optional[Period] = None,
    ) -> Dict[str, Optional[HourSummary]]:
        """
        Recompute every summary of a planning after a bulk change.

        Employees who still have a summary but no longer any slot get their
        summary removed.
        """
        try:
            employees = {slot.employee_id for slot in self._store.list_slots(planning_id)}
            employees.update(s.employee_id for s in self._store.list_summaries(planning_id))
        except StorageError as exc:
            raise AggregationFailure(planning_id, "*", exc) from exc

        return {
            employee_id: self.recompute_summary(planning_id, employee_id, period=period)
            for employee_id in sorted(employees)
        }

    def list_summaries(self, planning_id: str) -> List[HourSummary]:
        return self._store.list_summaries(planning_id)
