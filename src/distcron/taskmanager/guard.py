"""Guarded execution — run a task body only while holding its lease.

Every firing of a :class:`GuardedTask` tries once to acquire
``prefix + name`` from the distributed mutex.  Losing the race is the
normal outcome on all but one node and only logs at info.  The winner runs
the body and always releases the lease afterwards, whether the body
returned, raised, or was cancelled.  Nothing is retried: the next firing is
the next attempt.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import TYPE_CHECKING, Any

from distcron.errors.lock_errors import LockContended
from distcron.lock.redlock import ReleaseOutcome
from distcron.metrics.collector import FIRING_ACQUIRED, FIRING_CONTENDED, FIRING_UNAVAILABLE

if TYPE_CHECKING:
    from collections.abc import Callable

    from distcron.lock.redlock import Lease, Redlock
    from distcron.metrics.collector import SchedulerMetrics

_default_logger = logging.getLogger(__name__)


class GuardedTask:
    """Lease-guarded wrapper around a zero-argument task body.

    Plain functions run in a worker thread so they never block the event
    loop; coroutine functions are awaited directly.  Calling the instance
    returns a coroutine for one firing, which never raises for lock or task
    failures.
    """

    def __init__(
        self,
        name: str,
        task: Callable[[], Any],
        *,
        mutex: Redlock,
        prefix: str,
        ttl: float,
        metrics: SchedulerMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.resource = f"{prefix}{name}"
        self._task = task
        self._mutex = mutex
        self._ttl = ttl
        self._metrics = metrics
        self._log = logger or _default_logger

    async def __call__(self) -> bool:
        """Run one firing.  Returns True if this node executed the body."""
        try:
            lease = await self._mutex.acquire(self.resource, self._ttl)
        except LockContended:
            self._log.info("Task %s: is running elsewhere, skipping execution", self.name)
            self._record_firing(FIRING_CONTENDED)
            return False
        except Exception as e:
            self._log.error(
                "Task %s: failed to acquire lock, skipping execution: %s", self.name, e
            )
            self._record_firing(FIRING_UNAVAILABLE)
            return False

        self._record_firing(FIRING_ACQUIRED)
        try:
            self._log.info("Task %s: lock acquired, starting execution", self.name)
            await self._run_body()
        finally:
            await self._release(lease)
        return True

    async def _run_body(self) -> None:
        start = time.monotonic()
        try:
            if self._metrics:
                with self._metrics.track_execution(self.name):
                    await self._invoke()
            else:
                await self._invoke()
        except Exception:
            self._log.exception("Task %s: failed after %.3fs", self.name, time.monotonic() - start)
            if self._metrics:
                self._metrics.record_failure(self.name)
            return
        self._log.info("Task %s: completed in %.3fs", self.name, time.monotonic() - start)

    async def _invoke(self) -> None:
        if inspect.iscoroutinefunction(self._task):
            await self._task()
            return
        result = await asyncio.to_thread(self._task)
        if inspect.isawaitable(result):
            await result

    async def _release(self, lease: Lease) -> None:
        # Shielded so a cancelled firing still gives its lease back.
        outcome = await asyncio.shield(self._mutex.release(lease))
        if self._metrics:
            self._metrics.record_release(self.name, outcome.value)
        if outcome is ReleaseOutcome.RELEASED:
            self._log.info("Task %s: lock released", self.name)
        elif outcome is ReleaseOutcome.ALREADY_EXPIRED:
            self._log.warning(
                "Task %s: lock already expired before release; "
                "the task may have overrun its %.1fs lease",
                self.name,
                self._ttl,
            )
        else:
            self._log.error("Task %s: failed to release lock, it will expire on its own", self.name)

    def _record_firing(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.record_firing(self.name, outcome)
