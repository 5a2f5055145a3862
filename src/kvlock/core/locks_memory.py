"""In-process lock store with the same atomic semantics as the Redis store."""

from __future__ import annotations

import asyncio
import math
import time
from typing import Callable, Dict, Optional, Tuple

from .exceptions import StoreError


class InMemoryLockStore:
    """Lock store kept in a dict, for tests and single-process deployments.

    Each operation runs under one asyncio lock, which makes it atomic with
    respect to every other coroutine using the same store.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[str, float]] = {}  # key -> (value, expires_at)
        self._lock = asyncio.Lock()
        self._clock = clock
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError("InMemoryLockStore is closed")

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def _expiry(self, ttl_ms: int) -> float:
        return self._clock() + ttl_ms / 1000.0

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        self._check_open()
        async with self._lock:
            if self._live_value(key) is not None:
                return False
            self._entries[key] = (value, self._expiry(ttl_ms))
            return True

    async def compare_and_delete(self, key: str, value: str) -> int:
        self._check_open()
        async with self._lock:
            if self._live_value(key) != value:
                return 0
            del self._entries[key]
            return 1

    async def compare_and_extend(self, key: str, value: str, ttl_ms: int) -> int:
        self._check_open()
        async with self._lock:
            if self._live_value(key) != value:
                return 0
            self._entries[key] = (value, self._expiry(ttl_ms))
            return 1

    async def exists(self, key: str) -> bool:
        self._check_open()
        async with self._lock:
            return self._live_value(key) is not None

    async def remaining_ttl(self, key: str) -> Optional[int]:
        self._check_open()
        async with self._lock:
            if self._live_value(key) is None:
                return None
            _, expires_at = self._entries[key]
            return max(0, math.ceil((expires_at - self._clock()) * 1000))

    async def close(self) -> None:
        self._closed = True
        async with self._lock:
            self._entries.clear()
