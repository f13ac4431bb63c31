"""Cron scheduler — asyncio loops driven by ``croniter``.

Each job runs its own loop task that sleeps until the next due time and
then dispatches the job's coroutine as an independent asyncio task, so a
slow firing never delays the next firing of the same or another job.
Dispatched firings are tracked until they finish so shutdown can drain
them.

Expressions have six fields with seconds first
(``sec min hour day-of-month month day-of-week``).  The Quartz ``?``
placeholder is accepted as ``*``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from croniter import croniter

from distcron.errors.manager_errors import ScheduleParseError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import tzinfo

logger = logging.getLogger(__name__)

_FIELD_COUNT = 6


def parse_schedule(expression: str, *, task_name: str = "") -> str:
    """Validate a six-field cron expression and return its normalized form.

    Raises:
        ScheduleParseError: If the expression is malformed.
    """
    fields = expression.split()
    if len(fields) != _FIELD_COUNT:
        raise ScheduleParseError(
            expression,
            f"expected {_FIELD_COUNT} fields, got {len(fields)}",
            task_name=task_name,
        )
    normalized = " ".join("*" if f == "?" else f for f in fields)
    try:
        croniter(normalized, datetime.now(ZoneInfo("UTC")), second_at_beginning=True)
    except (ValueError, KeyError) as e:
        raise ScheduleParseError(expression, str(e), task_name=task_name) from e
    return normalized


@dataclass
class CronJob:
    """A scheduled coroutine."""

    id: int
    name: str
    expression: str
    func: Callable[[], Awaitable[None]]
    last_fire: datetime | None = field(default=None, compare=False)

    def next_after(self, moment: datetime) -> datetime:
        """First due time strictly after *moment*."""
        base = moment if self.last_fire is None or moment > self.last_fire else self.last_fire
        return croniter(self.expression, base, second_at_beginning=True).get_next(datetime)


class CronScheduler:
    """Runs :class:`CronJob` loops on the current event loop.

    Usage::

        scheduler = CronScheduler()
        scheduler.add_job("sync", "*/10 * * * * *", do_sync)
        scheduler.start()
        ...
        await scheduler.stop()
        await scheduler.drain(timeout=30)
    """

    def __init__(self, *, timezone: str | tzinfo = "UTC") -> None:
        self._tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self._ids = itertools.count(1)
        self._jobs: dict[int, CronJob] = {}
        self._loops: dict[int, asyncio.Task[None]] = {}
        self._in_flight: set[asyncio.Task[None]] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> list[CronJob]:
        """Registered jobs in registration order."""
        return list(self._jobs.values())

    @property
    def in_flight(self) -> int:
        """Number of dispatched firings that have not finished yet."""
        return len(self._in_flight)

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def add_job(self, name: str, expression: str, func: Callable[[], Awaitable[None]]) -> int:
        """Schedule *func* on *expression*.  Can be called before or after start().

        Raises:
            ScheduleParseError: If the expression is malformed.
        """
        normalized = parse_schedule(expression, task_name=name)
        job = CronJob(id=next(self._ids), name=name, expression=normalized, func=func)
        self._jobs[job.id] = job
        if self._running:
            self._loops[job.id] = asyncio.create_task(self._run_loop(job))
        return job.id

    def start(self) -> None:
        """Start one loop per job on the running event loop."""
        if self._running:
            return
        self._running = True
        for job_id, job in self._jobs.items():
            self._loops[job_id] = asyncio.create_task(self._run_loop(job))
        logger.debug("CronScheduler started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """Cancel the job loops; no firing is dispatched after this returns.

        Firings that were already dispatched keep running; see :meth:`drain`.
        """
        if not self._running:
            return
        self._running = False
        for task in self._loops.values():
            task.cancel()
        results = await asyncio.gather(*self._loops.values(), return_exceptions=True)
        for r in results:
            if isinstance(r, Exception):
                logger.error("Cron loop error during shutdown: %s", r)
        self._loops.clear()
        logger.debug("CronScheduler stopped")

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for dispatched firings to finish.

        Returns False if *timeout* elapsed first; the unfinished firings
        are left running.
        """
        pending = set(self._in_flight)
        if not pending:
            return True
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running

    def dispatch(self, job: CronJob) -> asyncio.Task[None]:
        """Run one firing of *job* as an independent task."""
        task = asyncio.create_task(self._fire(job), name=f"cron:{job.name}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run_loop(self, job: CronJob) -> None:
        """Sleep until each due time of *job* and dispatch it."""
        while self._running:
            due = job.next_after(self.now())
            delay = (due - self.now()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
            if not self._running:
                break
            job.last_fire = due
            self.dispatch(job)

    async def _fire(self, job: CronJob) -> None:
        try:
            await job.func()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Cron job %r failed", job.name)
