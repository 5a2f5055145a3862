"""Distributed mutual-exclusion locks on a shared Redis."""

from .core import (
    InMemoryLockStore,
    InvalidArgument,
    KvLockError,
    LockClient,
    LockEvent,
    LockResult,
    LockRunner,
    LockUnobtainable,
    RedisLockStore,
    StoreError,
)

__all__ = [
    "__version__",
    "InMemoryLockStore",
    "InvalidArgument",
    "KvLockError",
    "LockClient",
    "LockEvent",
    "LockResult",
    "LockRunner",
    "LockUnobtainable",
    "RedisLockStore",
    "StoreError",
]

__version__ = "0.1.0"
