"""Worker budget: counting-semaphore limit on concurrent fetch units."""

import asyncio


class WorkerBudget:
    """Fixed number of slots shared by the fetch units of one pipeline.

    A unit acquires a slot before it starts and releases it when it finishes,
    successfully or not. ``drain`` waits until every slot is free again, which
    is the barrier between two pipelines.

    ``active`` and ``peak`` count slots in use, so tests can assert the
    concurrency bound.

    Args:
        capacity: Maximum number of units running at once
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self.active = 0
        self.peak = 0
        self.completed = 0

    async def acquire(self) -> None:
        """Take a slot, waiting while all slots are in use."""
        await self._semaphore.acquire()
        self.active += 1
        self.peak = max(self.peak, self.active)

    def release(self) -> None:
        """Return a slot taken with ``acquire``."""
        self.active -= 1
        self.completed += 1
        self._semaphore.release()

    async def drain(self) -> None:
        """Wait until no unit holds a slot.

        Takes every slot, then hands them all back.
        """
        taken = 0
        try:
            for _ in range(self.capacity):
                await self._semaphore.acquire()
                taken += 1
        finally:
            for _ in range(taken):
                self._semaphore.release()
