"""
Domain-specific exception hierarchy for the planning engine.

Every error carries an ``http_status`` hint so that a REST layer can map it
without inspecting the type hierarchy.
"""

from typing import Any, List, Optional


class ShiftPlannerError(Exception):
    """Base class for all application-level errors."""

    http_status = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(ShiftPlannerError):
    """Raised when a request payload or time window is malformed."""

    http_status = 400


class NotFoundError(ShiftPlannerError):
    """Raised when a referenced employee, task, planning, slot or leave does not exist."""

    http_status = 404

    def __init__(self, entity: str, identifier: str):
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class PermissionDeniedError(ShiftPlannerError):
    """Raised when an actor is not allowed to perform an operation."""

    http_status = 403


class PlanningLockedError(ShiftPlannerError):
    """Raised when a validated planning would be deleted."""

    http_status = 403


class SlotConflictError(ShiftPlannerError):
    """Raised by handlers that hard-reject a slot overlapping existing ones."""

    http_status = 409

    def __init__(self, message: str, conflicts: List[Any]):
        super().__init__(message, details=[conflict.to_dict() for conflict in conflicts])
        self.conflicts = conflicts


class LeaveConflictError(ShiftPlannerError):
    """Raised when a leave request overlaps another active leave."""

    http_status = 409

    def __init__(self, message: str, conflicts: List[Any]):
        super().__init__(message, details=[leave.to_dict() for leave in conflicts])
        self.conflicts = conflicts


class LeaveTransitionError(ShiftPlannerError):
    """Raised when a leave request cannot move to the requested status."""

    http_status = 400


class StaleConfigurationError(ShiftPlannerError):
    """Raised when the role/permission table changed since it was read."""

    http_status = 409


class StorageError(ShiftPlannerError):
    """Raised when the persistence layer fails."""


class AggregationFailure(ShiftPlannerError):
    """Raised when an hour summary cannot be written or removed."""

    def __init__(self, planning_id: str, employee_id: str, cause: Exception):
        super().__init__(
            f"Hour summary update failed for planning {planning_id}, employee {employee_id}: {cause}"
        )
        self.planning_id = planning_id
        self.employee_id = employee_id
        self.cause = cause
