from __future__ import annotations

import asyncio
import os
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from kvlock.core.client import LockClient
from kvlock.core.exceptions import LockUnobtainable, StoreError
from kvlock.core.locks_redis import RedisLockStore
from kvlock.core.lua_scripts import COMPARE_AND_DELETE_SCRIPT, COMPARE_AND_EXTEND_SCRIPT
from kvlock.core.runner import LockRunner


class NullSink:
    def debug(self, event, **context):
        return None

    warning = debug
    error = debug


def _mock_redis():
    redis = MagicMock()
    delete_script = AsyncMock(return_value=1)
    extend_script = AsyncMock(return_value=0)
    redis.register_script.side_effect = [delete_script, extend_script]
    return redis, delete_script, extend_script


def test_scripts_registered_once():
    redis, _, _ = _mock_redis()
    RedisLockStore(redis)
    assert [c.args[0] for c in redis.register_script.call_args_list] == [
        COMPARE_AND_DELETE_SCRIPT,
        COMPARE_AND_EXTEND_SCRIPT,
    ]


@pytest.mark.asyncio
async def test_set_if_absent_uses_nx_px():
    redis, _, _ = _mock_redis()
    redis.set = AsyncMock(return_value=None)
    store = RedisLockStore(redis)

    assert await store.set_if_absent("a:lock", "tok", 1500) is False
    redis.set.assert_awaited_once_with("a:lock", "tok", px=1500, nx=True)


@pytest.mark.asyncio
async def test_scripts_receive_key_and_args():
    redis, delete_script, extend_script = _mock_redis()
    store = RedisLockStore(redis)

    assert await store.compare_and_delete("a:lock", "tok") == 1
    delete_script.assert_awaited_once_with(keys=["a:lock"], args=["tok"])

    assert await store.compare_and_extend("a:lock", "tok", 900) == 0
    extend_script.assert_awaited_once_with(keys=["a:lock"], args=["tok", 900])


@pytest.mark.asyncio
@pytest.mark.parametrize("pttl,expected", [(-2, None), (-1, None), (0, 0), (750, 750)])
async def test_remaining_ttl_maps_sentinels(pttl, expected):
    redis, _, _ = _mock_redis()
    redis.pttl = AsyncMock(return_value=pttl)
    assert await RedisLockStore(redis).remaining_ttl("a:lock") == expected


@pytest.mark.asyncio
async def test_redis_errors_become_store_errors():
    redis, delete_script, _ = _mock_redis()
    cause = RedisConnectionError("Connection refused")
    redis.set = AsyncMock(side_effect=cause)
    delete_script.side_effect = ResponseError("NOSCRIPT")
    store = RedisLockStore(redis)

    with pytest.raises(StoreError, match="SET") as excinfo:
        await store.set_if_absent("a:lock", "tok", 100)
    assert excinfo.value.__cause__ is cause

    with pytest.raises(StoreError):
        await LockClient(store).unlock("a", "tok")


@pytest.mark.asyncio
async def test_optimistic_aborts_on_redis_error():
    redis, _, _ = _mock_redis()
    redis.set = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    with pytest.raises(StoreError):
        await LockClient(RedisLockStore(redis)).optimistic("a", 100, 50, 0)
    assert redis.set.await_count == 1


@pytest.mark.asyncio
async def test_close_closes_connection():
    redis, _, _ = _mock_redis()
    redis.aclose = AsyncMock()
    await RedisLockStore(redis).close()
    redis.aclose.assert_awaited_once()


# Integration tests against a live server, enabled by REDIS_URL.

async def _live_store() -> RedisLockStore:
    url = os.getenv("REDIS_URL")
    if not url:
        pytest.skip("REDIS_URL not set")
    redis = Redis.from_url(url)
    try:
        await redis.ping()
    except Exception as exc:  # pragma: no cover - depends on environment
        await redis.aclose()
        pytest.skip(f"Redis not reachable: {exc}")
    return RedisLockStore(redis)


def _resource(name: str) -> str:
    return f"kvlock-test:{name}:{uuid.uuid4().hex}"


@pytest.mark.asyncio
async def test_live_lock_unlock_scenario():
    store = await _live_store()
    client = LockClient(store)
    resource = _resource("orderA")
    try:
        first = await client.lock(resource, 1000)
        assert first.acquired
        assert not (await client.lock(resource, 1000)).acquired
        assert await client.unlock(resource, "wrong") == 0
        assert await client.unlock(resource, first.id) == 1
        assert await store.exists(client.make_key(resource)) is False
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_live_mutual_exclusion_and_ttl():
    store = await _live_store()
    client = LockClient(store)
    resource = _resource("race")
    key = client.make_key(resource)
    try:
        results = await asyncio.gather(*(client.lock(resource, 5000) for _ in range(20)))
        assert sum(r.acquired for r in results) == 1
        before = await store.remaining_ttl(key)
        await asyncio.sleep(0.01)
        assert not (await client.lock(resource, 5000)).acquired
        assert await store.remaining_ttl(key) <= before
        winner = next(r for r in results if r.acquired)
        assert await client.release(winner) == 1
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_live_touch():
    store = await _live_store()
    client = LockClient(store)
    resource = _resource("touch")
    key = client.make_key(resource)
    try:
        result = await client.lock(resource, 1000)
        before = await store.remaining_ttl(key)
        assert await client.touch(resource, "wrong", 5000) == 0
        assert await store.remaining_ttl(key) <= before
        assert await client.touch(resource, result.id, 5000) == 1
        assert await store.remaining_ttl(key) > before
        assert await client.unlock(resource, result.id) == 1
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_live_optimistic_exhaustion():
    store = await _live_store()
    client = LockClient(store)
    resource = _resource("busy")
    try:
        held = await client.lock(resource, 5000)
        with pytest.raises(LockUnobtainable):
            await client.optimistic(resource, 1000, 2, 50)
        await client.release(held)
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_live_runner_releases_on_failure():
    store = await _live_store()
    runner = LockRunner.from_store(store, NullSink())
    resource = _resource("errorLock")
    key = runner.client.make_key(resource)

    async def work():
        assert await store.exists(key)
        raise RuntimeError("Critical section failed")

    with pytest.raises(RuntimeError, match="Critical section failed"):
        await runner.acquire_and_run(resource, 1000, work)
    try:
        assert await store.exists(key) is False
    finally:
        await runner.quit()
