"""Tests for KeyedLock."""

import asyncio

import pytest

from app.core.locks import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLock()
    order = []

    async def worker(name, delay):
        async with locks.hold("whatsapp:1:2"):
            order.append(f"{name}-start")
            await asyncio.sleep(delay)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a", 0.02), worker("b", 0))
    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = KeyedLock()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def first():
        async with locks.hold("k1"):
            inside.set()
            await release.wait()

    async def second():
        await inside.wait()
        async with locks.hold("k2"):
            assert locks.is_locked("k1")
            release.set()

    await asyncio.wait_for(asyncio.gather(first(), second()), timeout=1)


@pytest.mark.asyncio
async def test_idle_locks_are_dropped():
    locks = KeyedLock()
    async with locks.hold("k"):
        assert len(locks) == 1
    assert len(locks) == 0
    assert not locks.is_locked("k")


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")
    assert len(locks) == 0
