"""Lease lock primitive over an atomic key-value store."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from .exceptions import InvalidArgument, LockUnobtainable
from .locks import LockStore
from .models import LockResult


def _check_resource(resource: Any, **details: Any) -> None:
    if not isinstance(resource, str) or not resource:
        raise InvalidArgument("lock key must be string", resource=resource, **details)


def _check_ttl(ttl_ms: Any, **details: Any) -> None:
    # bool is an int subclass but never a meaningful ttl
    if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, int) or ttl_ms <= 0:
        raise InvalidArgument("lock ttl must be a positive integer of milliseconds", ttl_ms=ttl_ms, **details)


class LockClient:
    """Acquire, release and extend locks stored as ``<resource>:lock`` keys.

    The client keeps no lock state of its own. The caller holds the ownership
    token returned by :meth:`lock` or :meth:`optimistic` and presents it to
    :meth:`unlock` and :meth:`touch`, which only act when the stored token
    still matches.
    """

    def __init__(self, store: LockStore) -> None:
        self.store = store

    @staticmethod
    def make_key(resource: str) -> str:
        return f"{resource}:lock"

    @staticmethod
    def new_token() -> str:
        return str(uuid.uuid4())

    async def lock(self, resource: str, ttl_ms: int) -> LockResult:
        """Try once to take the lock.

        Contention is not an error: the result comes back with
        ``acquired=False`` and the existing lock is left untouched.
        """
        _check_resource(resource)
        _check_ttl(ttl_ms, resource=resource)
        key = self.make_key(resource)
        token = self.new_token()
        acquired = await self.store.set_if_absent(key, token, ttl_ms)
        return LockResult(resource=resource, key=key, id=token, acquired=acquired, ttl_ms=ttl_ms)

    async def unlock(self, resource: str, token: str) -> int:
        """Delete the lock if ``token`` still owns it. Returns 1 or 0."""
        _check_resource(resource, id=token)
        return await self.store.compare_and_delete(self.make_key(resource), token)

    async def release(self, result: LockResult) -> int:
        """Unlock using the result of :meth:`lock`."""
        if not result.acquired:
            return 0
        return await self.unlock(result.resource, result.id)

    async def touch(self, resource: str, token: str, ttl_ms: int) -> int:
        """Reset the lock expiry to ``ttl_ms`` if ``token`` still owns it."""
        _check_resource(resource, id=token, ttl_ms=ttl_ms)
        _check_ttl(ttl_ms, resource=resource, id=token)
        return await self.store.compare_and_extend(self.make_key(resource), token, ttl_ms)

    async def optimistic(self, resource: str, ttl_ms: int, max_attempts: int, wait_ms: int) -> str:
        """Poll :meth:`lock` at a fixed interval until it succeeds.

        Returns the ownership token. Raises :class:`LockUnobtainable` after
        ``max_attempts`` contended attempts. Store errors end the loop at once.

        Cancelling the awaiting task stops further attempts, but an attempt that
        already reached the store may still have taken the lock; such a lock is
        only freed by its ttl.
        """
        if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
            raise InvalidArgument("max_attempts must be a positive integer", max_attempts=max_attempts)
        if isinstance(wait_ms, bool) or not isinstance(wait_ms, (int, float)) or wait_ms < 0:
            raise InvalidArgument("wait must be a non-negative number of milliseconds", wait_ms=wait_ms)

        attempts = 0
        while True:
            attempts += 1
            result = await self.lock(resource, ttl_ms)
            if result.acquired:
                return result.id
            if attempts >= max_attempts:
                raise LockUnobtainable(resource, ttl_ms, max_attempts, wait_ms)
            await asyncio.sleep(wait_ms / 1000.0)
