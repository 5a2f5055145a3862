"""Settings loader and factories for stores and runners."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from kvlock.core.client import LockClient
from kvlock.core.locks import EventSink, LockStore
from kvlock.core.locks_memory import InMemoryLockStore
from kvlock.core.locks_redis import DEFAULT_REDIS_URL, RedisLockStore
from kvlock.core.runner import DEFAULT_MAX_ATTEMPTS, DEFAULT_THRESHOLD_MS, DEFAULT_WAIT_MS, LockRunner
from kvlock.utils.env import get_bool_env, get_env, get_int_env
from kvlock.utils.logging import LoggerEventSink, get_logger


class LockSettings(BaseModel):
    backend: Literal["redis", "memory"] = "redis"
    redis_url: str = DEFAULT_REDIS_URL
    default_ttl_ms: int = Field(default=30000, gt=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    wait_ms: int = Field(default=DEFAULT_WAIT_MS, ge=0)
    acquire_threshold_ms: int = Field(default=DEFAULT_THRESHOLD_MS, ge=0)
    release_threshold_ms: int = Field(default=DEFAULT_THRESHOLD_MS, ge=0)
    capture_stack: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc

    @classmethod
    def from_env(cls) -> "LockSettings":
        defaults = cls.model_fields
        data = {
            "backend": get_env("KVLOCK_BACKEND", default=defaults["backend"].default),
            "redis_url": get_env("REDIS_URL", default=DEFAULT_REDIS_URL),
            "default_ttl_ms": get_int_env("KVLOCK_DEFAULT_TTL_MS", default=defaults["default_ttl_ms"].default),
            "max_attempts": get_int_env("KVLOCK_MAX_ATTEMPTS", default=DEFAULT_MAX_ATTEMPTS),
            "wait_ms": get_int_env("KVLOCK_WAIT_MS", default=DEFAULT_WAIT_MS),
            "acquire_threshold_ms": get_int_env("KVLOCK_ACQUIRE_THRESHOLD_MS", default=DEFAULT_THRESHOLD_MS),
            "release_threshold_ms": get_int_env("KVLOCK_RELEASE_THRESHOLD_MS", default=DEFAULT_THRESHOLD_MS),
            "capture_stack": get_bool_env("KVLOCK_CAPTURE_STACK", default=True),
            "log_level": get_env("KVLOCK_LOG_LEVEL", default="INFO"),
        }
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings from environment: {exc}") from exc


def create_store(settings: LockSettings) -> LockStore:
    if settings.backend == "memory":
        return InMemoryLockStore()
    return RedisLockStore(url=settings.redis_url)


def create_runner(settings: LockSettings, sink: Optional[EventSink] = None) -> LockRunner:
    if sink is None:
        sink = LoggerEventSink(get_logger("kvlock", settings.log_level.upper()))
    return LockRunner(
        LockClient(create_store(settings)),
        sink,
        acquire_threshold_ms=settings.acquire_threshold_ms,
        release_threshold_ms=settings.release_threshold_ms,
        capture_stack=settings.capture_stack,
    )
