"""distcron — cluster-wide cron scheduling with Redlock-guarded execution.

Every node runs the same schedule locally; a firing executes only on the
node that wins the task's lease in the shared lock store.
"""

from __future__ import annotations

from distcron.config.settings import AppConfig
from distcron.errors.distcron_errors import DistCronError
from distcron.errors.lock_errors import LockContended, LockStoreUnavailable
from distcron.errors.manager_errors import (
    ConnectivityError,
    DuplicateTaskError,
    ManagerStateError,
    ScheduleParseError,
)
from distcron.lock.redlock import Lease, Redlock, ReleaseOutcome
from distcron.taskmanager import DistributedTaskManager, GuardedTask, TaskRegistry, TaskSchedule

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "ConnectivityError",
    "DistCronError",
    "DistributedTaskManager",
    "DuplicateTaskError",
    "GuardedTask",
    "Lease",
    "LockContended",
    "LockStoreUnavailable",
    "ManagerStateError",
    "Redlock",
    "ReleaseOutcome",
    "ScheduleParseError",
    "TaskRegistry",
    "TaskSchedule",
]
