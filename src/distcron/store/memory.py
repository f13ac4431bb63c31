"""In-memory lock store with TTL support."""

from __future__ import annotations

import asyncio
import time


class MemoryLockStore:
    """In-process lock store.

    Several task managers sharing one instance behave like nodes sharing a
    Redis server, which makes it the store of choice for tests and
    single-instance deployments.
    """

    def __init__(self) -> None:
        # Format: {key: (token, expiry_monotonic)}
        self._leases: dict[str, tuple[str, float]] = {}
        self._guard = asyncio.Lock()
        self._closed = False

    def _live(self, key: str, now: float) -> tuple[str, float] | None:
        entry = self._leases.get(key)
        if entry is not None and now >= entry[1]:
            del self._leases[key]
            return None
        return entry

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "MemoryLockStore is closed"
            raise ConnectionError(msg)

    async def ping(self) -> None:
        """Fail only once the store has been closed."""
        self._ensure_open()

    async def set_if_absent(self, key: str, token: str, ttl: float) -> bool:
        """Store *token* under *key* for *ttl* seconds unless a live lease exists."""
        self._ensure_open()
        async with self._guard:
            now = time.monotonic()
            if self._live(key, now) is not None:
                return False
            self._leases[key] = (token, now + ttl)
            return True

    async def delete_if_owner(self, key: str, token: str) -> bool:
        """Remove *key* if it still holds *token*."""
        self._ensure_open()
        async with self._guard:
            entry = self._live(key, time.monotonic())
            if entry is None or entry[0] != token:
                return False
            del self._leases[key]
            return True

    async def get(self, key: str) -> str | None:
        """Token currently stored under *key*, if the lease is live."""
        async with self._guard:
            entry = self._live(key, time.monotonic())
            return entry[0] if entry else None

    async def close(self) -> None:
        """Mark the store closed; later operations raise ``ConnectionError``."""
        self._closed = True
