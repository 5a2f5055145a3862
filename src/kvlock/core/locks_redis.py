"""Redis-backed lock store using SET NX PX and Lua compare-and-mutate scripts."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .exceptions import StoreError
from .lua_scripts import COMPARE_AND_DELETE_SCRIPT, COMPARE_AND_EXTEND_SCRIPT

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


@contextmanager
def _store_errors(command: str) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        raise StoreError(f"Redis {command} failed: {exc}", cause=exc) from exc


class RedisLockStore:
    """Lock store over a single Redis endpoint.

    The connection is shared by every lock operation issued through this
    instance. Both scripts are registered once, here, and executed with
    EVALSHA (falling back to loading them if the server lost its script cache).
    """

    def __init__(self, redis: Optional[Redis] = None, *, url: Optional[str] = None) -> None:
        self._redis = redis or Redis.from_url(url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL))
        self._compare_and_delete = self._redis.register_script(COMPARE_AND_DELETE_SCRIPT)
        self._compare_and_extend = self._redis.register_script(COMPARE_AND_EXTEND_SCRIPT)

    @property
    def redis(self) -> Redis:
        return self._redis

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        with _store_errors("SET"):
            return bool(await self._redis.set(key, value, px=ttl_ms, nx=True))

    async def compare_and_delete(self, key: str, value: str) -> int:
        with _store_errors("EVALSHA compare-and-delete"):
            return int(await self._compare_and_delete(keys=[key], args=[value]))

    async def compare_and_extend(self, key: str, value: str, ttl_ms: int) -> int:
        with _store_errors("EVALSHA compare-and-extend"):
            return int(await self._compare_and_extend(keys=[key], args=[value, ttl_ms]))

    async def exists(self, key: str) -> bool:
        with _store_errors("EXISTS"):
            return bool(await self._redis.exists(key))

    async def remaining_ttl(self, key: str) -> Optional[int]:
        with _store_errors("PTTL"):
            ttl = int(await self._redis.pttl(key))
        # -2: missing key, -1: no expiry
        return ttl if ttl >= 0 else None

    async def close(self) -> None:
        await self._redis.aclose()
