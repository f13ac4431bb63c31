"""Distributed task manager lifecycle — create, add tasks, start, stop.

The ``DistributedTaskManager`` owns the lock stores, the Redlock mutex and
the local cron scheduler.  Every task it schedules is wrapped in a
:class:`GuardedTask`, so each firing runs on at most one node of the
cluster even though every node fires it locally.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Any, Self

from distcron.config.settings import AppConfig
from distcron.errors.manager_errors import (
    ConnectivityError,
    DuplicateTaskError,
    ManagerStateError,
)
from distcron.lock.redlock import Redlock
from distcron.scheduler.cron import CronScheduler, parse_schedule
from distcron.store.client import create_stores
from distcron.store.redis import RedisLockStore
from distcron.taskmanager.guard import GuardedTask

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from distcron.metrics.collector import SchedulerMetrics
    from distcron.store.client import LockStore
    from distcron.taskmanager.registry import TaskRegistry

_default_logger = logging.getLogger(__name__)


class ManagerState(enum.StrEnum):
    """Lifecycle states; ``STOPPED`` is terminal."""

    CONSTRUCTED = "constructed"
    STARTED = "started"
    STOPPED = "stopped"


class DistributedTaskManager:
    """Schedules lease-guarded cron tasks across a cluster.

    Usage::

        dtm = await DistributedTaskManager.create(AppConfig())
        dtm.add_task("data-sync", "*/10 * * * * *", sync)
        dtm.start()
        ...
        await dtm.stop()

    Build instances with :meth:`create`, which checks that every lock store
    is reachable before returning.
    """

    def __init__(
        self,
        config: AppConfig,
        stores: Sequence[LockStore],
        *,
        owns_stores: bool = True,
        logger: logging.Logger | None = None,
        metrics: SchedulerMetrics | None = None,
    ) -> None:
        self._config = config
        self._stores = list(stores)
        self._owns_stores = owns_stores
        self._log = logger or _default_logger
        self._metrics = metrics
        self._mutex = Redlock(
            self._stores,
            drift_factor=config.lock.drift_factor,
            drift_allowance=config.lock.drift_allowance,
            timeout_factor=config.lock.timeout_factor,
            store_timeout=config.store.operation_timeout,
        )
        self._scheduler = CronScheduler(timezone=config.scheduler.timezone)
        self._tasks: dict[str, GuardedTask] = {}
        self._cancel = asyncio.Event()
        self._state = ManagerState.CONSTRUCTED
        self._stopping: asyncio.Task[None] | None = None

    @classmethod
    async def create(
        cls,
        config: AppConfig | None = None,
        *,
        stores: Sequence[LockStore] | None = None,
        logger: logging.Logger | None = None,
        metrics: SchedulerMetrics | None = None,
    ) -> Self:
        """Build a manager after checking connectivity to every lock store.

        Stores passed in *stores* stay owned by the caller and are not
        closed by :meth:`stop`; stores built from *config* are.

        Raises:
            ConnectivityError: If any lock store cannot be reached.
        """
        config = config or AppConfig()
        log = logger or _default_logger
        owns_stores = stores is None
        resolved = create_stores(config.store) if stores is None else list(stores)
        try:
            await asyncio.gather(*(store.ping() for store in resolved))
        except Exception as e:
            if owns_stores:
                await _close_all(resolved, log)
            msg = f"failed to connect to lock store: {e}"
            raise ConnectivityError(msg) from e
        return cls(config, resolved, owns_stores=owns_stores, logger=log, metrics=metrics)

    # -- Accessors --

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Whether the manager is dispatching firings."""
        return self._state is ManagerState.STARTED

    @property
    def stores(self) -> list[LockStore]:
        """Lock stores backing the mutex, for advanced external use."""
        return list(self._stores)

    @property
    def redis(self) -> Any:
        """Client of the first Redis store, or None for other backends."""
        for store in self._stores:
            if isinstance(store, RedisLockStore):
                return store.client
        return None

    @property
    def mutex(self) -> Redlock:
        return self._mutex

    @property
    def cancel_event(self) -> asyncio.Event:
        """Set once :meth:`stop` begins; tasks may poll it to finish early."""
        return self._cancel

    @property
    def tasks(self) -> dict[str, GuardedTask]:
        """Scheduled guarded tasks (name → GuardedTask)."""
        return dict(self._tasks)

    @property
    def in_flight(self) -> int:
        """Firings dispatched but not yet finished."""
        return self._scheduler.in_flight

    # -- Registration --

    def add_task(self, name: str, cron: str, task: Callable[[], Any]) -> GuardedTask:
        """Schedule *task* under *name*, guarded by the distributed lock.

        Raises:
            ScheduleParseError: If *cron* is malformed.
            DuplicateTaskError: If *name* is already scheduled.
            ManagerStateError: If the manager has been stopped.
        """
        self._ensure_not_stopped("add_task")
        if name in self._tasks:
            raise DuplicateTaskError(name)
        parse_schedule(cron, task_name=name)
        return self._schedule(name, cron, task)

    def add_registry(self, registry: TaskRegistry) -> list[GuardedTask]:
        """Schedule every entry of *registry*.

        All expressions are validated first; if one is malformed nothing
        from the registry is scheduled and the error names that entry.

        Raises:
            ScheduleParseError: For the first malformed entry.
            DuplicateTaskError: If an entry name is already scheduled.
            ManagerStateError: If the manager has been stopped.
        """
        self._ensure_not_stopped("add_registry")
        entries = registry.get_all()
        for name, entry in entries.items():
            if name in self._tasks:
                raise DuplicateTaskError(name)
            parse_schedule(entry.cron, task_name=name)
        return [self._schedule(name, entry.cron, entry.task) for name, entry in entries.items()]

    def _schedule(self, name: str, cron: str, task: Callable[[], Any]) -> GuardedTask:
        guarded = GuardedTask(
            name,
            task,
            mutex=self._mutex,
            prefix=self._config.lock.prefix,
            ttl=self._config.lock.expiry,
            metrics=self._metrics,
            logger=self._log,
        )
        self._scheduler.add_job(name, cron, guarded)
        self._tasks[name] = guarded
        self._log.info("Added distributed task: %s, schedule: %s", name, cron)
        return guarded

    # -- Lifecycle --

    def start(self) -> None:
        """Start firing every scheduled task on the running event loop."""
        self._ensure_not_stopped("start")
        if self._state is ManagerState.STARTED:
            return
        self._scheduler.start()
        self._state = ManagerState.STARTED
        self._log.info("Distributed task manager started with %d tasks", len(self._tasks))

    async def stop(self) -> None:
        """Stop firing, drain in-flight firings, then close the lock stores.

        In-flight task bodies are never interrupted.  With
        ``scheduler.drain_timeout`` set, stop gives up waiting after that
        many seconds and logs the firings left behind; their lease release
        may then fail and the leases expire on their own.

        Every call blocks until that shutdown has finished, including calls
        made while another ``stop()`` is still draining.
        """
        if self._stopping is None:
            self._log.info("Stopping distributed task manager...")
            self._state = ManagerState.STOPPED
            self._cancel.set()
            self._stopping = asyncio.create_task(self._shutdown())
        await asyncio.shield(self._stopping)

    async def _shutdown(self) -> None:
        await self._scheduler.stop()

        timeout = self._config.scheduler.drain_timeout
        if not await self._scheduler.drain(timeout):
            self._log.warning(
                "%d firings still running after %.1fs drain timeout",
                self._scheduler.in_flight,
                timeout,
            )

        if self._owns_stores:
            await _close_all(self._stores, self._log)

        self._log.info("Distributed task manager stopped")

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    def _ensure_not_stopped(self, operation: str) -> None:
        if self._state is ManagerState.STOPPED:
            msg = f"cannot {operation}: task manager is stopped"
            raise ManagerStateError(msg)


async def _close_all(stores: Sequence[LockStore], log: logging.Logger) -> None:
    for store in stores:
        try:
            await store.close()
        except Exception as e:
            log.error("Error closing lock store connection: %s", e)
