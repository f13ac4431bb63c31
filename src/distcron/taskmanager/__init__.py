"""Task manager — lease-guarded cron scheduling across a cluster.

Provides ``DistributedTaskManager`` which fires each registered task on
every node's local timer but lets only the node holding the task's
Redlock lease execute a given firing.  ``TaskRegistry`` collects tasks up
front so they can be added in one batch.
"""

from __future__ import annotations

from distcron.taskmanager.guard import GuardedTask
from distcron.taskmanager.manager import DistributedTaskManager, ManagerState
from distcron.taskmanager.registry import TaskRegistry, TaskSchedule

__all__ = ["DistributedTaskManager", "GuardedTask", "ManagerState", "TaskRegistry", "TaskSchedule"]
