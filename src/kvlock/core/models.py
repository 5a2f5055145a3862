"""Data models shared by the lock client and runner."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LockEvent(str, Enum):
    """Observations emitted around a protected execution."""

    ACQUIRING = "lock.acquiring"
    ACQUIRED = "lock.acquired"
    ACQUIRE_SLOW = "lock.acquire_slow"
    ACQUIRE_FAILED = "lock.acquire_failed"
    RELEASED = "lock.released"
    RELEASE_LOST = "lock.release_lost"
    RELEASE_FAILED = "lock.release_failed"
    TASK_SLOW = "lock.task_slow"


@dataclass(slots=True, frozen=True)
class LockResult:
    """Outcome of a single acquisition attempt.

    ``id`` is the ownership token written to the store. It is only meaningful
    to the caller when ``acquired`` is true; a false ``acquired`` means the key
    was already held by someone else.
    """

    resource: str
    key: str
    id: str
    acquired: bool
    ttl_ms: int
