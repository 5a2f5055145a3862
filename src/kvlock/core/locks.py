"""Abstract interfaces the lock client and runner depend on."""

from __future__ import annotations

from typing import Any, Optional, Protocol


class LockStore(Protocol):
    """Atomic key-value operations needed to implement a lease lock.

    Every method must be atomic on the store side. Implementations raise
    :class:`~kvlock.core.exceptions.StoreError` when the store itself fails.
    """

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """Write ``value`` with an expiry unless ``key`` exists. True iff written."""
        ...

    async def compare_and_delete(self, key: str, value: str) -> int:
        """Delete ``key`` if it holds ``value``. Returns 1 if deleted, else 0."""
        ...

    async def compare_and_extend(self, key: str, value: str, ttl_ms: int) -> int:
        """Reset the expiry of ``key`` if it holds ``value``. Returns 1 or 0."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def remaining_ttl(self, key: str) -> Optional[int]:
        """Milliseconds until ``key`` expires, None if absent or persistent."""
        ...

    async def close(self) -> None: ...


class EventSink(Protocol):
    """Leveled, structured observations. Used for visibility only."""

    def debug(self, event: str, **context: Any) -> None: ...

    def warning(self, event: str, **context: Any) -> None: ...

    def error(self, event: str, **context: Any) -> None: ...
