"""Exception types raised by the lock client and runner."""

from __future__ import annotations

from typing import Any, Optional


class KvLockError(Exception):
    """Base class for kvlock errors."""


class InvalidArgument(KvLockError, ValueError):
    """A lock operation was called with a malformed argument."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details = details
        for name, value in details.items():
            setattr(self, name, value)


class StoreError(KvLockError):
    """The backing key-value store failed to execute a command."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class LockUnobtainable(KvLockError):
    """Every optimistic attempt found the lock already held."""

    def __init__(self, resource: str, ttl_ms: int, max_attempts: int, wait_ms: int) -> None:
        super().__init__("unable to obtain lock")
        self.resource = resource
        self.ttl_ms = ttl_ms
        self.max_attempts = max_attempts
        self.wait_ms = wait_ms

    def __str__(self) -> str:
        return (
            f"unable to obtain lock {self.resource!r} after {self.max_attempts} attempts "
            f"(ttl={self.ttl_ms}ms, wait={self.wait_ms}ms)"
        )
