"""DistCronError — base exception class for all distcron errors."""

from __future__ import annotations


class DistCronError(Exception):
    """Base error for all distcron operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "distcron-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
