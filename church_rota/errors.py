"""Exception taxonomy for the scheduling core."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for all scheduling errors."""


class ConfigurationError(SchedulerError, ValueError):
    """Malformed role catalog, group count, date or request payload."""


class DuplicateTargetError(SchedulerError):
    """A program for the same (activity type, date) is already published."""

    def __init__(self, activity_type_id: int, target_date, message: str | None = None):
        self.activity_type_id = activity_type_id
        self.target_date = target_date
        super().__init__(
            message
            or f"A published program already exists for activity {activity_type_id} on {target_date}"
        )


class SchedulingTimeoutError(SchedulerError, TimeoutError):
    """Snapshot, lock or per-target work exceeded its bound."""


class DuplicateAssignmentError(SchedulerError, ValueError):
    """A manual override would place the same person twice in one program."""


class ProgramNotFoundError(SchedulerError, LookupError):
    """No program with the given id."""


class ProgramStateError(SchedulerError, RuntimeError):
    """The operation is not allowed for the program's current status."""
