"""Lease acquisition errors raised by the distributed mutex."""

from __future__ import annotations

from distcron.errors.distcron_errors import DistCronError


class LockError(DistCronError):
    """A lease on *resource* could not be acquired."""

    def __init__(self, resource: str, message: str, *, code: str = "lock-error") -> None:
        super().__init__(message, code=code)
        self.resource = resource


class LockContended(LockError):
    """Another holder owns the lease; the expected outcome on losing nodes."""

    def __init__(self, resource: str) -> None:
        super().__init__(resource, f"lock {resource!r} is held elsewhere", code="lock-contended")


class LockStoreUnavailable(LockError):
    """The lock stores could not decide the acquisition.

    Raised when store errors or timeouts prevent a quorum, or when the
    attempt took so long that no lease validity remains.
    """

    def __init__(self, resource: str, reason: str) -> None:
        super().__init__(
            resource,
            f"lock store unavailable for {resource!r}: {reason}",
            code="lock-store-unavailable",
        )
        self.reason = reason
