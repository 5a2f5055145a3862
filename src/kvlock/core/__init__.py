"""Lock primitives for coordinating processes through a shared key-value store."""

from .client import LockClient
from .exceptions import InvalidArgument, KvLockError, LockUnobtainable, StoreError
from .locks import EventSink, LockStore
from .locks_memory import InMemoryLockStore
from .locks_redis import RedisLockStore
from .models import LockEvent, LockResult
from .runner import LockRunner

__all__ = [
    "LockClient",
    "LockRunner",
    "LockStore",
    "EventSink",
    "InMemoryLockStore",
    "RedisLockStore",
    "LockEvent",
    "LockResult",
    "KvLockError",
    "InvalidArgument",
    "LockUnobtainable",
    "StoreError",
]
