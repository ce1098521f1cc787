"""
Tests for the per-key lock registry.
"""

import asyncio

import pytest

from openday.core.exceptions import TransactionAborted
from openday.services.locks import KeyedLockRegistry, activity_lock_key, subject_lock_key


@pytest.mark.asyncio
async def test_same_key_serializes():
    locks = KeyedLockRegistry(timeout=1.0)
    order = []

    async def worker(name):
        async with locks.hold([activity_lock_key("simlab")]):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (
        ["a-in", "a-out", "b-in", "b-out"],
        ["b-in", "b-out", "a-in", "a-out"],
    )


@pytest.mark.asyncio
async def test_different_keys_do_not_block():
    locks = KeyedLockRegistry(timeout=1.0)
    inside = asyncio.Event()

    async def holder():
        async with locks.hold([activity_lock_key("simlab")]):
            await inside.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)

    async with locks.hold([activity_lock_key("robotics")]):
        inside.set()

    await task


@pytest.mark.asyncio
async def test_timeout_raises_transaction_aborted():
    locks = KeyedLockRegistry(timeout=0.05)
    release = asyncio.Event()

    async def holder():
        async with locks.hold([activity_lock_key("simlab")]):
            await release.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)

    with pytest.raises(TransactionAborted):
        async with locks.hold([activity_lock_key("simlab")]):
            pass

    release.set()
    await task


@pytest.mark.asyncio
async def test_registry_cleans_up_released_keys():
    locks = KeyedLockRegistry()
    async with locks.hold([subject_lock_key("s1"), activity_lock_key("b"), activity_lock_key("a")]):
        assert len(locks) == 3
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_duplicate_keys_are_taken_once():
    locks = KeyedLockRegistry(timeout=0.1)
    async with locks.hold([activity_lock_key("a"), activity_lock_key("a")]):
        assert len(locks) == 1


@pytest.mark.asyncio
async def test_overlapping_sets_do_not_deadlock():
    """Sorted acquisition: opposite request orders still complete."""
    locks = KeyedLockRegistry(timeout=1.0)

    async def worker(keys):
        for _ in range(5):
            async with locks.hold(keys):
                await asyncio.sleep(0)

    await asyncio.gather(
        worker([activity_lock_key("a"), activity_lock_key("b")]),
        worker([activity_lock_key("b"), activity_lock_key("a")]),
    )
    assert len(locks) == 0
