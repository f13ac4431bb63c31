"""Redis lock store backend."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from redis.asyncio import Redis
from redis.asyncio.cluster import ClusterNode, RedisCluster
from redis.asyncio.sentinel import Sentinel

if TYPE_CHECKING:
    from collections.abc import Sequence

# Compare-and-delete must run server side so a lease re-acquired by another
# node after expiry is never removed by a late release.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_REDIS_PORT = 6379
_SENTINEL_PORT = 26379


def _host_port(url: str, default_port: int) -> tuple[str, int]:
    """Split ``redis://host:port`` (or bare ``host:port``) into its address."""
    parts = urlsplit(url if "//" in url else f"//{url}")
    return parts.hostname or "localhost", parts.port or default_port


class RedisLockStore:
    """Redis-based lock store using redis-py's asyncio client.

    The client owns a connection pool, so one store is safe to share
    between concurrently running firings.  :meth:`cluster` and
    :meth:`sentinel` build a store over a whole Redis Cluster or a
    Sentinel-managed master; each still counts as one store.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        password: str | None = None,
        max_connections: int = 10,
        socket_timeout: float | None = 1.0,
        client: Any = None,
    ) -> None:
        """Initialize the Redis lock store.

        Args:
            url: Redis URL (``redis://[user:pass@]host:port/db``).
            password: Optional password overriding the URL's.
            max_connections: Connection pool size.
            socket_timeout: Socket timeout in seconds.
            client: Pre-built ``redis.asyncio`` client (takes precedence).
        """
        self._url = url
        if client is None:
            kwargs: dict[str, Any] = {
                "decode_responses": True,
                "max_connections": max_connections,
                "socket_timeout": socket_timeout,
            }
            if password:
                kwargs["password"] = password
            client = Redis.from_url(url, **kwargs)
        self._redis = client
        self._release = client.register_script(_RELEASE_SCRIPT)
        self._sentinels: list[Any] = []
        self._closed = False

    @classmethod
    def cluster(
        cls,
        urls: Sequence[str],
        *,
        password: str | None = None,
        max_connections: int = 10,
        socket_timeout: float | None = 1.0,
    ) -> RedisLockStore:
        """Build a store over the Redis Cluster reachable from the *urls* seeds."""
        nodes = [ClusterNode(*_host_port(url, _REDIS_PORT)) for url in urls]
        client = RedisCluster(
            startup_nodes=nodes,
            decode_responses=True,
            password=password or None,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )
        return cls(",".join(urls), client=client)

    @classmethod
    def sentinel(
        cls,
        urls: Sequence[str],
        master_name: str,
        *,
        password: str | None = None,
        socket_timeout: float | None = 1.0,
    ) -> RedisLockStore:
        """Build a store over the master the sentinels at *urls* elect."""
        kwargs: dict[str, Any] = {"socket_timeout": socket_timeout}
        if password:
            kwargs["password"] = password
        sentinel = Sentinel(
            [_host_port(url, _SENTINEL_PORT) for url in urls],
            sentinel_kwargs={"socket_timeout": socket_timeout},
            **kwargs,
        )
        client = sentinel.master_for(master_name, decode_responses=True)
        store = cls(f"sentinel://{master_name}", client=client)
        store._sentinels = list(sentinel.sentinels)
        return store

    @property
    def url(self) -> str:
        """Endpoint this store talks to."""
        return self._url

    @property
    def client(self) -> Any:
        """Underlying ``redis.asyncio`` client, for advanced use."""
        return self._redis

    async def ping(self) -> None:
        """Round-trip to the server.

        Raises:
            ConnectionError: If Redis cannot be reached.
        """
        try:
            await self._redis.ping()
        except Exception as e:
            msg = f"Failed to connect to Redis at {self._url}"
            raise ConnectionError(msg) from e

    async def set_if_absent(self, key: str, token: str, ttl: float) -> bool:
        """``SET key token NX PX ttl``; True if the key was created."""
        ttl_ms = max(1, int(ttl * 1000))
        result = await self._redis.set(key, token, nx=True, px=ttl_ms)
        return bool(result)

    async def delete_if_owner(self, key: str, token: str) -> bool:
        """Delete *key* only while it still holds *token*."""
        result = await self._release(keys=[key], args=[token])
        return bool(result)

    async def close(self) -> None:
        """Close the Redis connection pool (idempotent)."""
        if self._closed:
            return
        self._closed = True
        await self._redis.aclose()
        for client in self._sentinels:
            await client.aclose()
