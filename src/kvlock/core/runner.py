"""Run a unit of work while holding a lock, with latency observations."""

from __future__ import annotations

import inspect
import time
import traceback
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from .client import LockClient
from .locks import EventSink, LockStore
from .models import LockEvent

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 9999
DEFAULT_WAIT_MS = 5
DEFAULT_THRESHOLD_MS = 3000

Work = Callable[[], Union[T, Awaitable[T]]]


def _caller_stack(limit: int = 8) -> str:
    frames = [
        frame
        for frame in traceback.extract_stack()
        if frame.filename != __file__ and not frame.filename.endswith("contextlib.py")
    ]
    return "".join(traceback.format_list(frames[-limit:]))


def _elapsed_ms(start: float, end: Optional[float] = None) -> int:
    return int(((end if end is not None else time.monotonic()) - start) * 1000)


class LockRunner:
    """Acquire a lock, run work, and always release it.

    Observations go to the injected :class:`EventSink`:

    * ``lock.acquiring`` before the first attempt;
    * ``lock.acquired``, or ``lock.acquire_slow`` when acquisition took longer
      than ``acquire_threshold_ms``;
    * ``lock.acquire_failed`` when the lock could not be taken (the work never
      runs);
    * ``lock.released`` after the release, plus ``lock.release_lost`` if the
      lease had already expired or changed hands;
    * ``lock.release_failed`` if the release itself raised;
    * ``lock.task_slow`` when more than ``release_threshold_ms`` passed between
      acquisition and a successful release.
    """

    def __init__(
        self,
        client: LockClient,
        sink: EventSink,
        *,
        acquire_threshold_ms: int = DEFAULT_THRESHOLD_MS,
        release_threshold_ms: int = DEFAULT_THRESHOLD_MS,
        capture_stack: bool = True,
    ) -> None:
        self.client = client
        self.acquire_threshold_ms = acquire_threshold_ms
        self.release_threshold_ms = release_threshold_ms
        self.capture_stack = capture_stack
        self._sink = sink

    @classmethod
    def from_store(cls, store: LockStore, sink: EventSink, **kwargs) -> "LockRunner":
        return cls(LockClient(store), sink, **kwargs)

    @asynccontextmanager
    async def hold(
        self,
        resource: str,
        ttl_ms: int,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait_ms: int = DEFAULT_WAIT_MS,
    ) -> AsyncIterator[str]:
        """Hold ``resource`` for the duration of the ``async with`` block.

        Yields the ownership token. Errors raised inside the block propagate
        unchanged once the lock has been released.
        """
        stack = _caller_stack() if self.capture_stack else None
        start = time.monotonic()
        self._sink.debug(LockEvent.ACQUIRING.value, resource=resource, stack=stack)

        try:
            token = await self.client.optimistic(resource, ttl_ms, max_attempts, wait_ms)
        except Exception as exc:
            self._sink.error(LockEvent.ACQUIRE_FAILED.value, resource=resource, stack=stack, message=str(exc))
            raise

        acquired_at = time.monotonic()
        acquire_ms = _elapsed_ms(start, acquired_at)
        if acquire_ms > self.acquire_threshold_ms:
            self._sink.warning(LockEvent.ACQUIRE_SLOW.value, resource=resource, stack=stack, elapsed_ms=acquire_ms)
        else:
            self._sink.debug(LockEvent.ACQUIRED.value, resource=resource, stack=stack, elapsed_ms=acquire_ms)

        try:
            yield token
        except BaseException:
            # the work error wins; a failed release is only reported
            await self._release(resource, token, stack, raise_errors=False)
            raise
        await self._release(resource, token, stack, raise_errors=True)

        task_ms = _elapsed_ms(acquired_at)
        if task_ms > self.release_threshold_ms:
            self._sink.warning(LockEvent.TASK_SLOW.value, resource=resource, stack=stack, elapsed_ms=task_ms)

    async def acquire_and_run(
        self,
        resource: str,
        ttl_ms: int,
        fn: Work[T],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait_ms: int = DEFAULT_WAIT_MS,
    ) -> T:
        """Run ``fn`` under the lock and return its result.

        ``fn`` may be a plain callable or return an awaitable.
        """
        async with self.hold(resource, ttl_ms, max_attempts=max_attempts, wait_ms=wait_ms):
            result = fn()
            if inspect.isawaitable(result):
                result = await result
        return result

    async def quit(self) -> None:
        """Close the underlying store connection."""
        await self.client.store.close()

    async def _release(self, resource: str, token: str, stack: Optional[str], *, raise_errors: bool) -> None:
        try:
            released = await self.client.unlock(resource, token)
        except Exception as exc:
            self._sink.error(LockEvent.RELEASE_FAILED.value, resource=resource, stack=stack, message=str(exc))
            if raise_errors:
                raise
            return
        self._sink.debug(LockEvent.RELEASED.value, resource=resource, stack=stack, released=released)
        if not released:
            self._sink.warning(LockEvent.RELEASE_LOST.value, resource=resource, stack=stack)
