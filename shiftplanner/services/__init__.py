"""
Service layer: the conflict and aggregation engine plus the request
handlers that orchestrate it over a store.
"""

from .conflict_checker import OverlapChecker
from .hour_aggregator import HourAggregator
from .leave_requests import LeaveRequestService
from .permissions import PermissionService
from .scheduling import AggregationJob, AggregationRunner, SchedulingService
from .store import ScheduleStore

__all__ = [
    "AggregationJob",
    "AggregationRunner",
    "HourAggregator",
    "LeaveRequestService",
    "OverlapChecker",
    "PermissionService",
    "ScheduleStore",
    "SchedulingService",
]
