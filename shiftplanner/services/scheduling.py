"""
Request handlers for time slots and plannings.

Each handler validates its payload, then runs the conflict check, the
write and (in inline mode) the hour aggregation inside one store
transaction. The involved employees stay locked until commit.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Tuple

from ..config import AggregationConfig, AppConfig
from ..domain.exceptions import (
    AggregationFailure,
    NotFoundError,
    PlanningLockedError,
    SlotConflictError,
    StorageError,
    ValidationError,
)
from ..domain.intervals import envelope
from ..domain.models import (
    Employee,
    HourSummary,
    Planning,
    ProposedSlot,
    Task,
    TimeRange,
    TimeSlot,
    as_datetime,
    new_id,
)
from ..domain.reports import ConflictReport
from .conflict_checker import OverlapChecker
from .hour_aggregator import HourAggregator, Period
from .schemas import (
    ConflictCheckPayload,
    PlanningPayload,
    PlanningUpdatePayload,
    SlotPayload,
    SlotUpdatePayload,
    parse_payload,
    window_of,
)
from .store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass
class AggregationJob:
    """
    A summary refresh to run.

    Without ``employee_id`` the whole planning is recomputed.
    """
    planning_id: str
    employee_id: Optional[str] = None
    period: Optional[Period] = None

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return self.planning_id, self.employee_id

    def run(self, store: ScheduleStore) -> None:
        aggregator = HourAggregator(store)
        if self.employee_id is None:
            aggregator.recompute_planning(self.planning_id, period=self.period)
        else:
            aggregator.recompute_summary(self.planning_id, self.employee_id, period=self.period)


class AggregationRunner:
    """
    Applies the configured aggregation policy.

    inline:   summaries are refreshed inside the slot transaction; a failure
              aborts the whole transaction.
    deferred: summaries are refreshed after the slot transaction commits, in
              their own transactions, with bounded retries. Jobs that still
              fail stay queued until ``flush`` succeeds.
    """

    def __init__(
        self,
        store: ScheduleStore,
        config: AggregationConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._config = config
        self._sleep = sleep
        self._pending: "OrderedDict[Tuple[str, Optional[str]], AggregationJob]" = OrderedDict()

    @property
    def deferred(self) -> bool:
        return self._config.mode == "deferred"

    @property
    def pending(self) -> List[AggregationJob]:
        return list(self._pending.values())

    def within(self, store: ScheduleStore, jobs: Iterable[AggregationJob]) -> List[AggregationJob]:
        """Run jobs inside the current transaction, or hand them back for later."""
        jobs = list(jobs)
        if self.deferred:
            return jobs
        for job in jobs:
            job.run(store)
        return []

    def after_commit(self, jobs: Iterable[AggregationJob]) -> None:
        queued = False
        for job in jobs:
            self._pending.pop(job.key, None)
            self._pending[job.key] = job
            queued = True
        if queued:
            self.flush()

    def flush(self) -> int:
        """Run every queued job. Returns the number of jobs still pending."""
        for key, job in list(self._pending.items()):
            if self._run_with_retries(job):
                del self._pending[key]
        if self._pending:
            logger.warning("%d hour summary update(s) left pending", len(self._pending))
        return len(self._pending)

    def _run_with_retries(self, job: AggregationJob) -> bool:
        for attempt in range(1, self._config.max_attempts + 1):
            try:
                with self._store.transaction() as store:
                    job.run(store)
                return True
            except (AggregationFailure, StorageError) as exc:
                logger.warning(
                    "Hour summary update for planning %s failed (attempt %d/%d): %s",
                    job.planning_id,
                    attempt,
                    self._config.max_attempts,
                    exc,
                )
                if attempt < self._config.max_attempts:
                    self._sleep(self._config.retry_delay_seconds)

        logger.error(
            "Giving up on hour summary update for planning %s, employee %s; queued for retry",
            job.planning_id,
            job.employee_id or "*",
        )
        return False


class SchedulingService:
    """
    Handlers for conflict checks, slot CRUD and planning CRUD.
    """

    def __init__(
        self,
        store: ScheduleStore,
        config: Optional[AppConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._config = config or AppConfig()
        self._aggregations = AggregationRunner(store, self._config.aggregation, sleep=sleep)

    @property
    def timezone(self) -> str:
        return self._config.timezone

    @property
    def pending_aggregations(self) -> List[AggregationJob]:
        return self._aggregations.pending

    def overlap_checker(self, store: Optional[ScheduleStore] = None) -> OverlapChecker:
        return OverlapChecker(
            store or self._store,
            timezone=self.timezone,
            blocking_statuses=self._config.leave_blocking_statuses,
        )

    # Conflicts ----------------------------------------------------------

    def check_conflicts(self, payload) -> ConflictReport:
        """Advisory conflict report for a window; never rejects on conflicts."""
        request = parse_payload(ConflictCheckPayload, payload)
        window = window_of(request.start_at, request.end_at, self.timezone)
        self._require_employee(self._store, request.employee_id)

        return self.overlap_checker().find_conflicts(
            request.employee_id,
            window,
            exclude_slot_id=request.ignore_slot_id,
            exclude_planning_id=request.planning_id,
        )

    # Slots --------------------------------------------------------------

    def create_slot(self, payload) -> TimeSlot:
        """
        Create one slot.

        Raises:
            NotFoundError: If the employee, task or planning does not exist
            SlotConflictError: If the slot overlaps a slot of another planning
        """
        request = parse_payload(SlotPayload, payload)
        window = window_of(request.start_at, request.end_at, self.timezone)

        with self._store.transaction() as store:
            store.lock_employees([request.employee_id])
            self._require_employee(store, request.employee_id)
            self._require_task(store, request.task_id)
            self._require_planning(store, request.planning_id)

            report = self.overlap_checker(store).find_conflicts(
                request.employee_id,
                window,
                exclude_planning_id=request.planning_id,
            )
            if report.has_conflicts:
                raise SlotConflictError("Slot conflicts detected", report.conflicts)

            slot = TimeSlot(
                id=new_id(),
                employee_id=request.employee_id,
                planning_id=request.planning_id,
                task_id=request.task_id,
                time_range=window,
                kind=request.kind,
                validated=request.validated,
                task_status=request.task_status,
                comment=request.comment,
            )
            store.add_slot(slot)
            logger.info("Created slot %s for employee %s (%s)", slot.id, slot.employee_id, window)

            deferred = self._aggregations.within(
                store, [AggregationJob(slot.planning_id, slot.employee_id)]
            )

        self._aggregations.after_commit(deferred)
        return slot

    def update_slot(self, slot_id: str, payload) -> TimeSlot:
        """
        Update one slot.

        The conflict check runs only when the window or the employee
        changes, and ignores the slot itself. Summaries are refreshed when
        the duration or the employee changes.
        """
        request = parse_payload(SlotUpdatePayload, payload)

        with self._store.transaction() as store:
            current = self._require_slot(store, slot_id)
            employee_id = request.employee_id or current.employee_id
            store.lock_employees({current.employee_id, employee_id})

            if request.employee_id:
                self._require_employee(store, request.employee_id)
            if request.task_id:
                self._require_task(store, request.task_id)

            window = self._merge_window(current.time_range, request)
            employee_changed = employee_id != current.employee_id

            if employee_changed or window != current.time_range:
                report = self.overlap_checker(store).find_conflicts(
                    employee_id,
                    window,
                    exclude_slot_id=slot_id,
                )
                if report.has_conflicts:
                    raise SlotConflictError("Slot conflicts detected", report.conflicts)

            updated = replace(
                current,
                employee_id=employee_id,
                task_id=request.task_id or current.task_id,
                time_range=window,
                kind=request.kind or current.kind,
                comment=request.comment if request.comment is not None else current.comment,
                validated=request.validated if request.validated is not None else current.validated,
                task_status=request.task_status or current.task_status,
            )
            store.save_slot(updated)

            jobs: List[AggregationJob] = []
            if employee_changed or updated.duration_minutes != current.duration_minutes:
                jobs.append(AggregationJob(updated.planning_id, updated.employee_id))
                if employee_changed:
                    jobs.append(AggregationJob(current.planning_id, current.employee_id))
            deferred = self._aggregations.within(store, jobs)

        self._aggregations.after_commit(deferred)
        return updated

    def delete_slot(self, slot_id: str) -> TimeSlot:
        with self._store.transaction() as store:
            slot = self._require_slot(store, slot_id)
            store.lock_employees([slot.employee_id])
            store.delete_slot(slot_id)
            logger.info("Deleted slot %s of employee %s", slot_id, slot.employee_id)

            deferred = self._aggregations.within(
                store, [AggregationJob(slot.planning_id, slot.employee_id)]
            )

        self._aggregations.after_commit(deferred)
        return slot

    def list_employee_slots(self, employee_id: str) -> List[TimeSlot]:
        self._require_employee(self._store, employee_id)
        slots = self._store.list_slots_for_employee(employee_id)
        return sorted(slots, key=lambda slot: slot.start)

    # Plannings ----------------------------------------------------------

    def create_planning(self, payload, creator_id: str) -> Planning:
        """
        Create a planning with its slots in one batch.

        Slots of the batch are checked against stored slots only, never
        against each other. Summaries are stamped with the envelope of the
        whole batch.
        """
        request = parse_payload(PlanningPayload, payload)
        period = window_of(request.start_at, request.end_at, self.timezone)
        proposed = [slot.to_proposed(self.timezone) for slot in request.slots]
        employee_ids = sorted({slot.employee_id for slot in proposed})

        with self._store.transaction() as store:
            store.lock_employees(employee_ids)
            self._require_employee(store, creator_id)
            self._require_references(store, proposed)

            conflicts = self.overlap_checker(store).find_batch_conflicts(proposed)
            if conflicts:
                raise SlotConflictError(f"{len(conflicts)} conflict(s) found", conflicts)

            planning = Planning(
                id=new_id(),
                name=request.name,
                creator_id=creator_id,
                period=period,
                status=request.status,
            )
            store.add_planning(planning)
            for slot in proposed:
                store.add_slot(slot.to_slot(planning.id, slot_id=new_id()))

            bounds = envelope([slot.time_range for slot in proposed])
            deferred = self._aggregations.within(
                store,
                [
                    AggregationJob(planning.id, employee_id, period=(bounds.start, bounds.end))
                    for employee_id in employee_ids
                ],
            )
            logger.info(
                "Created planning %s with %d slot(s) for %d employee(s)",
                planning.id,
                len(proposed),
                len(employee_ids),
            )

        self._aggregations.after_commit(deferred)
        return planning

    def update_planning(self, planning_id: str, payload) -> Planning:
        """
        Update a planning and optionally replace its slots.

        When ``slots`` is given it becomes the full slot list: entries with
        an ``id`` update that slot, entries without one are created, and
        stored slots missing from the list are deleted.
        Summaries are then rebuilt and stamped with the envelope of the
        submitted slots, as on creation.
        """
        request = parse_payload(PlanningUpdatePayload, payload)

        with self._store.transaction() as store:
            planning = self._require_planning(store, planning_id)
            updated = replace(
                planning,
                name=request.name or planning.name,
                status=request.status or planning.status,
                period=self._merge_window(planning.period, request),
            )

            jobs: List[AggregationJob] = []
            if request.slots is not None:
                proposed = [slot.to_proposed(self.timezone) for slot in request.slots]
                self._replace_slots(store, planning_id, proposed)
                period = None
                if proposed:
                    bounds = envelope([slot.time_range for slot in proposed])
                    period = (bounds.start, bounds.end)
                jobs.append(AggregationJob(planning_id, period=period))

            store.save_planning(updated)
            deferred = self._aggregations.within(store, jobs)

        self._aggregations.after_commit(deferred)
        return updated

    def delete_planning(self, planning_id: str) -> Planning:
        """
        Delete a planning with its slots and summaries.

        Raises:
            PlanningLockedError: If the planning is validated
        """
        with self._store.transaction() as store:
            planning = self._require_planning(store, planning_id)
            if planning.is_locked:
                raise PlanningLockedError(f"Cannot delete validated planning {planning_id}")
            store.delete_planning(planning_id)
            logger.info("Deleted planning %s", planning_id)
        return planning

    def planning_summaries(self, planning_id: str) -> List[HourSummary]:
        self._require_planning(self._store, planning_id)
        return HourAggregator(self._store).list_summaries(planning_id)

    def recompute_planning(self, planning_id: str) -> List[HourSummary]:
        with self._store.transaction() as store:
            self._require_planning(store, planning_id)
            results = HourAggregator(store).recompute_planning(planning_id)
        return [summary for summary in results.values() if summary is not None]

    def retry_pending_aggregations(self) -> int:
        """Retry deferred summary updates. Returns how many are still pending."""
        return self._aggregations.flush()

    # Helpers ------------------------------------------------------------

    def _replace_slots(
        self,
        store: ScheduleStore,
        planning_id: str,
        proposed: List[ProposedSlot],
    ) -> None:
        current_slots = store.list_slots(planning_id)
        current_ids = {slot.id for slot in current_slots}

        submitted = [slot.id for slot in proposed if slot.id]
        duplicates = sorted({slot_id for slot_id in submitted if submitted.count(slot_id) > 1})
        if duplicates:
            raise ValidationError("Duplicate slot id in payload", details=duplicates)

        for slot in proposed:
            if slot.id and slot.id not in current_ids:
                raise NotFoundError("Slot", slot.id)

        store.lock_employees(
            {slot.employee_id for slot in current_slots} | {slot.employee_id for slot in proposed}
        )
        self._require_references(store, proposed)

        conflicts = self.overlap_checker(store).find_batch_conflicts(
            proposed, exclude_planning_id=planning_id
        )
        if conflicts:
            raise SlotConflictError(f"{len(conflicts)} conflict(s) found", conflicts)

        kept = {slot.id for slot in proposed if slot.id}
        for slot in current_slots:
            if slot.id not in kept:
                store.delete_slot(slot.id)

        for slot in proposed:
            if slot.id:
                store.save_slot(slot.to_slot(planning_id))
            else:
                store.add_slot(slot.to_slot(planning_id, slot_id=new_id()))

        logger.info(
            "Replaced slots of planning %s: %d kept, %d created, %d deleted",
            planning_id,
            len(kept),
            len(proposed) - len(kept),
            len(current_ids - kept),
        )

    def _merge_window(self, current: TimeRange, request) -> TimeRange:
        start = as_datetime(request.start_at, self.timezone) if request.start_at else current.start
        end = as_datetime(request.end_at, self.timezone) if request.end_at else current.end
        try:
            return TimeRange(start=start, end=end)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def _require_references(self, store: ScheduleStore, proposed: Iterable[ProposedSlot]) -> None:
        proposed = list(proposed)
        for employee_id in sorted({slot.employee_id for slot in proposed}):
            self._require_employee(store, employee_id)
        for task_id in sorted({slot.task_id for slot in proposed}):
            self._require_task(store, task_id)

    @staticmethod
    def _require_employee(store: ScheduleStore, employee_id: str) -> Employee:
        employee = store.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    @staticmethod
    def _require_task(store: ScheduleStore, task_id: str) -> Task:
        task = store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    @staticmethod
    def _require_planning(store: ScheduleStore, planning_id: str) -> Planning:
        planning = store.get_planning(planning_id)
        if planning is None:
            raise NotFoundError("Planning", planning_id)
        return planning

    @staticmethod
    def _require_slot(store: ScheduleStore, slot_id: str) -> TimeSlot:
        slot = store.get_slot(slot_id)
        if slot is None:
            raise NotFoundError("Slot", slot_id)
        return slot
