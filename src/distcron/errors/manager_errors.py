"""Construction and registration errors surfaced to callers."""

from __future__ import annotations

from distcron.errors.distcron_errors import DistCronError


class ConnectivityError(DistCronError):
    """The lock store could not be reached while building the manager."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="connectivity-error")


class ScheduleParseError(DistCronError):
    """A cron expression was rejected at registration time."""

    def __init__(self, expression: str, reason: str, *, task_name: str = "") -> None:
        prefix = f"task {task_name!r}: " if task_name else ""
        super().__init__(
            f"{prefix}invalid schedule {expression!r}: {reason}",
            code="schedule-parse-error",
        )
        self.expression = expression
        self.reason = reason
        self.task_name = task_name


class DuplicateTaskError(DistCronError):
    """A task name was registered twice on a registry that forbids overwrites."""

    def __init__(self, name: str) -> None:
        super().__init__(f"task {name!r} is already registered", code="duplicate-task")
        self.name = name


class ManagerStateError(DistCronError):
    """The task manager is in the wrong lifecycle state for the operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="manager-state")
