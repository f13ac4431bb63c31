"""Redlock — lease-based mutual exclusion over independent lock stores.

Each acquisition writes a fresh random token to every store with
``SET NX`` semantics and succeeds only when a strict majority accepted it
while enough of the TTL remains to cover clock drift.  Release deletes the
key on every store where it still holds that token, so a late release can
never remove a lease someone else acquired after expiry.

Acquisition is try-once: contention and store failures are reported as
typed errors immediately and the caller decides whether to try again.
"""

from __future__ import annotations

import asyncio
import base64
import enum
import logging
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from distcron.errors.lock_errors import LockContended, LockStoreUnavailable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from distcron.store.client import LockStore

logger = logging.getLogger(__name__)

# 16 random bytes = 128 bits of entropy per token
_TOKEN_BYTES = 16


class ReleaseOutcome(enum.StrEnum):
    """Result of releasing a lease."""

    RELEASED = "released"
    ALREADY_EXPIRED = "already_expired"
    FAILED = "failed"


@dataclass(frozen=True)
class Lease:
    """A granted claim on *resource*, authorized by *token*."""

    resource: str
    token: str
    ttl: float
    acquired_at: float  # time.monotonic() when the attempt started
    validity: float  # seconds of guaranteed ownership left after acquisition

    @property
    def expires_at(self) -> float:
        """Monotonic deadline after which the lease must be treated as lost."""
        return self.acquired_at + self.ttl

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


def generate_token() -> str:
    """Return a URL-safe random token."""
    return base64.urlsafe_b64encode(secrets.token_bytes(_TOKEN_BYTES)).decode("ascii")


class Redlock:
    """Distributed mutex over ``len(stores)`` independent lock stores.

    Usage::

        mutex = Redlock([RedisLockStore("redis://localhost:6379/0")])
        lease = await mutex.acquire("app:lock:sync", ttl=5.0)
        try:
            ...
        finally:
            await mutex.release(lease)
    """

    def __init__(
        self,
        stores: Sequence[LockStore],
        *,
        drift_factor: float = 0.01,
        drift_allowance: float = 0.002,
        timeout_factor: float = 0.05,
        store_timeout: float | None = None,
    ) -> None:
        if not stores:
            msg = "Redlock requires at least one lock store"
            raise ValueError(msg)
        self._stores = list(stores)
        self._drift_factor = drift_factor
        self._drift_allowance = drift_allowance
        self._timeout_factor = timeout_factor
        self._store_timeout = store_timeout

    @property
    def stores(self) -> list[LockStore]:
        return list(self._stores)

    @property
    def quorum(self) -> int:
        """Strict majority of the configured stores."""
        return len(self._stores) // 2 + 1

    def drift(self, ttl: float) -> float:
        """Clock drift margin subtracted from a lease's validity."""
        return ttl * self._drift_factor + self._drift_allowance

    def store_budget(self, ttl: float) -> float:
        """Seconds a single store may take to answer for a *ttl* lease.

        An explicit ``store_timeout`` wins; otherwise the budget scales with
        the lease as ``ttl * timeout_factor``.
        """
        if self._store_timeout is not None:
            return self._store_timeout
        return ttl * self._timeout_factor

    async def acquire(self, resource: str, ttl: float) -> Lease:
        """Try once to acquire *resource* for *ttl* seconds.

        Raises:
            LockContended: Another holder owns the lease on a majority.
            LockStoreUnavailable: Store errors prevented a decision, or the
                attempt consumed the whole lease validity.
        """
        if ttl <= 0:
            msg = f"ttl must be positive, got {ttl}"
            raise ValueError(msg)

        token = generate_token()
        budget = self.store_budget(ttl)
        start = time.monotonic()
        acquired, errors = await self._on_all(
            lambda store: store.set_if_absent(resource, token, ttl), budget
        )
        elapsed = time.monotonic() - start
        validity = ttl - elapsed - self.drift(ttl)

        if acquired >= self.quorum and validity > 0:
            logger.debug(
                "Acquired %s on %d/%d stores (validity %.3fs)",
                resource,
                acquired,
                len(self._stores),
                validity,
            )
            return Lease(
                resource=resource,
                token=token,
                ttl=ttl,
                acquired_at=start,
                validity=validity,
            )

        # A store that timed out may still have applied the SET.
        if acquired or errors:
            await self._on_all(lambda store: store.delete_if_owner(resource, token), budget)

        if acquired >= self.quorum:
            raise LockStoreUnavailable(resource, f"acquisition took {elapsed:.3f}s of {ttl}s ttl")
        if acquired + errors < self.quorum:
            raise LockContended(resource)
        raise LockStoreUnavailable(
            resource,
            f"{errors} of {len(self._stores)} stores failed, quorum is {self.quorum}",
        )

    async def release(self, lease: Lease) -> ReleaseOutcome:
        """Release *lease* on every store still holding its token.

        Never raises for store failures; they are reported as
        ``ReleaseOutcome.FAILED``.
        """
        deleted, errors = await self._on_all(
            lambda store: store.delete_if_owner(lease.resource, lease.token),
            self.store_budget(lease.ttl),
        )
        if deleted >= self.quorum:
            return ReleaseOutcome.RELEASED
        if errors and deleted + errors >= self.quorum:
            return ReleaseOutcome.FAILED
        return ReleaseOutcome.ALREADY_EXPIRED

    async def _on_all(
        self, op: Callable[[LockStore], Awaitable[bool]], budget: float
    ) -> tuple[int, int]:
        """Run *op* on every store concurrently; return ``(successes, errors)``."""
        results = await asyncio.gather(
            *(asyncio.wait_for(op(store), timeout=budget) for store in self._stores),
            return_exceptions=True,
        )
        successes = 0
        errors = 0
        for store, result in zip(self._stores, results, strict=True):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                errors += 1
                logger.debug("Lock store %r failed: %r", store, result)
            elif result:
                successes += 1
        return successes, errors
