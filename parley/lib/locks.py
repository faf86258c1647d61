"""Strict FIFO lock for serialising read-modify-write cycles."""

import asyncio
from collections import deque


class FifoLock:
    """Async mutual exclusion that hands ownership to waiters in arrival order.

    Release passes the lock directly to the oldest live waiter, so a caller
    arriving between a release and the waiter's wake-up cannot barge ahead.
    """

    def __init__(self):
        self._locked = False
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> None:
        if not self._locked:
            self._locked = True
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Ownership was handed over just before cancellation; pass it on.
                self.release()
            raise

    def release(self) -> None:
        if not self._locked:
            raise RuntimeError("FifoLock released while not held")
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._locked = False

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()
