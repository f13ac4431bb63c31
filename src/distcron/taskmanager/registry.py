"""Task registry — named (schedule, task) pairs collected before dispatch.

A registry is plain bookkeeping: it is filled during setup and handed to
:meth:`DistributedTaskManager.add_registry`, which wraps every entry in a
guarded execution.  Registration and reads are serialized so a registry
can still be filled while firings run.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from distcron.errors.manager_errors import DuplicateTaskError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskSchedule:
    """A task body and the cron expression it fires on."""

    name: str
    cron: str
    task: Callable[[], Any]


class TaskRegistry:
    """Name-keyed collection of :class:`TaskSchedule` entries.

    By default the last registration under a name wins.  Pass
    ``overwrite=False`` to reject duplicates with :class:`DuplicateTaskError`.

    Usage::

        registry = TaskRegistry()
        registry.register("health-check", "*/10 * * * * *", check_health)

        @registry.task("data-sync", "0 */5 * * * *")
        async def sync() -> None: ...
    """

    def __init__(self, *, overwrite: bool = True) -> None:
        self._overwrite = overwrite
        self._tasks: dict[str, TaskSchedule] = {}
        self._lock = threading.Lock()

    def register(self, name: str, cron: str, task: Callable[[], Any]) -> TaskSchedule:
        """Store *task* under *name* with its *cron* expression.

        The expression is validated when the registry is added to a
        manager, not here.

        Raises:
            ValueError: If *name* is empty or *task* is not callable.
            DuplicateTaskError: If *name* exists and overwrites are disabled.
        """
        if not name:
            msg = "task name must not be empty"
            raise ValueError(msg)
        if not callable(task):
            msg = f"task {name!r} is not callable"
            raise ValueError(msg)
        schedule = TaskSchedule(name=name, cron=cron, task=task)
        with self._lock:
            if name in self._tasks:
                if not self._overwrite:
                    raise DuplicateTaskError(name)
                logger.debug("Task %r re-registered, replacing previous schedule", name)
            self._tasks[name] = schedule
        return schedule

    def task(self, name: str, cron: str) -> Callable[[Callable[[], Any]], Callable[[], Any]]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Callable[[], Any]) -> Callable[[], Any]:
            self.register(name, cron, func)
            return func

        return decorator

    def get(self, name: str) -> TaskSchedule | None:
        """Return the schedule registered under *name*, or None."""
        with self._lock:
            return self._tasks.get(name)

    def get_all(self) -> dict[str, TaskSchedule]:
        """Snapshot of every entry, in registration order."""
        with self._lock:
            return dict(self._tasks)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __iter__(self) -> Iterator[str]:
        return iter(self.get_all())
