"""Run one cluster node.  Start several copies against the same Redis:
each firing of every task executes on exactly one of them.

    DISTCRON_STORE__URLS='["redis://localhost:6379/0"]' python examples/cluster_node.py
"""

from __future__ import annotations

import asyncio
import logging
import signal

from distcron import AppConfig, DistributedTaskManager, TaskRegistry

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("cluster_node")

registry = TaskRegistry()


@registry.task("health-check", "*/10 * * * * ?")
async def health_check() -> None:
    logger.info("=== Health Check ===")
    await asyncio.sleep(1)


@registry.task("data-sync", "*/10 * * * * ?")
def data_sync() -> None:
    # Blocking work is fine: plain functions run in a worker thread.
    import time

    logger.info("=== Data Sync ===")
    time.sleep(3)


async def main() -> None:
    config = AppConfig(lock={"prefix": "myapp:lock:", "expiry": 60})
    dtm = await DistributedTaskManager.create(config)
    dtm.add_registry(registry)
    dtm.add_task("simple-job", "*/10 * * * * ?", lambda: logger.info("=== Simple Job ==="))

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with dtm:
        await stop.wait()
        logger.info("Shutting down...")


if __name__ == "__main__":
    asyncio.run(main())
