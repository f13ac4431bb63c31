"""Lock store protocol and the factory that builds stores from config."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from distcron.config.settings import StoreConfig


class LockStore(Protocol):
    """Protocol for lock store implementations.

    Both lock operations must be atomic on the backend side. A store that
    cannot be reached raises from the call; ``False`` always means the
    store answered.
    """

    async def ping(self) -> None: ...
    async def set_if_absent(self, key: str, token: str, ttl: float) -> bool: ...
    async def delete_if_owner(self, key: str, token: str) -> bool: ...
    async def close(self) -> None: ...


def create_stores(config: StoreConfig) -> list[LockStore]:
    """Build one lock store per configured endpoint.

    Cluster and sentinel modes produce a single store for all their URLs.

    Raises:
        ValueError: If the store engine or mode is not supported.
    """
    from distcron.store.memory import MemoryLockStore
    from distcron.store.redis import RedisLockStore

    engine = config.engine.lower()
    mode = config.mode.lower()

    if engine == "redis" and mode == "cluster":
        return [
            RedisLockStore.cluster(
                config.urls,
                password=config.password or None,
                max_connections=config.max_connections,
                socket_timeout=config.socket_timeout,
            )
        ]
    if engine == "redis" and mode == "sentinel":
        return [
            RedisLockStore.sentinel(
                config.urls,
                config.master_name,
                password=config.password or None,
                socket_timeout=config.socket_timeout,
            )
        ]
    if engine == "redis" and mode == "standalone":
        return [
            RedisLockStore(
                url,
                password=config.password or None,
                max_connections=config.max_connections,
                socket_timeout=config.socket_timeout,
            )
            for url in config.urls
        ]
    if engine == "memory":
        return [MemoryLockStore()]
    msg = f"Unsupported store engine: {engine}"
    raise ValueError(msg)
