"""
Tests for the HourAggregator.
"""

import pytest

from shiftplanner.domain.exceptions import AggregationFailure, StorageError
from shiftplanner.services.hour_aggregator import HourAggregator

from factories import at, make_slot


class TestRecomputeSummary:
    def test_splits_total_into_hours_and_minutes(self, store):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))
        store.add_slot(make_slot("s2", "2024-06-10 11:00", "2024-06-10 12:05"))

        summary = HourAggregator(store).recompute_summary("plan-a", "emp-1")

        assert summary.normal_hours == 2
        assert summary.remainder_minutes == 5
        assert store.get_summary("plan-a", "emp-1") == summary

    def test_recompute_is_idempotent(self, store):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 11:30"))
        aggregator = HourAggregator(store)

        first = aggregator.recompute_summary("plan-a", "emp-1")
        second = aggregator.recompute_summary("plan-a", "emp-1")

        assert first == second

    def test_no_slots_removes_summary(self, store):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))
        aggregator = HourAggregator(store)
        aggregator.recompute_summary("plan-a", "emp-1")

        store.delete_slot("s1")
        result = aggregator.recompute_summary("plan-a", "emp-1")

        assert result is None
        assert store.get_summary("plan-a", "emp-1") is None

    def test_only_counts_the_pair(self, store):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))
        store.add_slot(make_slot("s2", "2024-06-10 11:00", "2024-06-10 13:00", planning_id="plan-b"))
        store.add_slot(
            make_slot("s3", "2024-06-10 09:00", "2024-06-10 17:00", employee_id="emp-2", task_id="task-2")
        )

        summary = HourAggregator(store).recompute_summary("plan-a", "emp-1")

        assert summary.total_minutes == 60

    def test_explicit_period_is_stamped(self, store):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))
        period = (at("2024-06-10 09:00"), at("2024-06-12 17:00"))

        summary = HourAggregator(store).recompute_summary("plan-a", "emp-1", period=period)

        assert (summary.period_from, summary.period_to) == period

    def test_existing_period_is_kept_without_explicit_one(self, store):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))
        aggregator = HourAggregator(store)
        period = (at("2024-06-10 09:00"), at("2024-06-12 17:00"))
        aggregator.recompute_summary("plan-a", "emp-1", period=period)

        store.add_slot(make_slot("s2", "2024-06-11 09:00", "2024-06-11 10:00"))
        summary = aggregator.recompute_summary("plan-a", "emp-1")

        assert summary.normal_hours == 2
        assert (summary.period_from, summary.period_to) == period

    def test_storage_failure_is_wrapped(self, store, monkeypatch):
        store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))

        def broken(*args, **kwargs):
            raise StorageError("disk full")

        monkeypatch.setattr(store, "upsert_summary", broken)

        with pytest.raises(AggregationFailure) as exc_info:
            HourAggregator(store).recompute_summary("plan-a", "emp-1")

        assert exc_info.value.planning_id == "plan-a"
        assert isinstance(exc_info.value.cause, StorageError)


def test_recompute_planning_covers_stale_summaries(store):
    store.add_slot(make_slot("s1", "2024-06-10 09:00", "2024-06-10 10:00"))
    store.add_slot(
        make_slot("s2", "2024-06-10 09:00", "2024-06-10 11:00", employee_id="emp-2", task_id="task-2")
    )
    aggregator = HourAggregator(store)
    aggregator.recompute_planning("plan-a")

    store.delete_slot("s2")
    results = aggregator.recompute_planning("plan-a")

    assert set(results) == {"emp-1", "emp-2"}
    assert results["emp-2"] is None
    assert [s.employee_id for s in aggregator.list_summaries("plan-a")] == ["emp-1"]
