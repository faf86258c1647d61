import asyncio

import pytest

from parley.lib.locks import FifoLock


@pytest.mark.asyncio
async def test_waiters_acquire_in_arrival_order():
    lock = FifoLock()
    order = []

    async def worker(n):
        async with lock:
            order.append(n)
            await asyncio.sleep(0)

    await lock.acquire()
    tasks = [asyncio.create_task(worker(n)) for n in range(5)]
    await asyncio.sleep(0)
    assert lock.waiting == 5
    lock.release()
    await asyncio.gather(*tasks)

    assert order == [0, 1, 2, 3, 4]
    assert not lock.locked


@pytest.mark.asyncio
async def test_late_arrival_cannot_barge():
    lock = FifoLock()
    order = []

    async def hold(name):
        async with lock:
            order.append(name)

    await lock.acquire()
    first = asyncio.create_task(hold("queued"))
    await asyncio.sleep(0)
    lock.release()
    second = asyncio.create_task(hold("late"))
    await asyncio.gather(first, second)

    assert order == ["queued", "late"]


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_queue():
    lock = FifoLock()
    await lock.acquire()

    cancelled = asyncio.create_task(lock.acquire())
    await asyncio.sleep(0)
    cancelled.cancel()
    with pytest.raises(asyncio.CancelledError):
        await cancelled

    lock.release()
    assert not lock.locked
    await asyncio.wait_for(lock.acquire(), timeout=1)
    lock.release()


def test_release_unheld_raises():
    with pytest.raises(RuntimeError):
        FifoLock().release()
