"""
Admission gate bounding how many downloads are in flight at once.
"""

import asyncio

import structlog

logger = structlog.get_logger(__name__)


class AdmissionGate:
    """Counting gate over asyncio.Semaphore that records its own occupancy.

    ``acquire`` suspends the calling task while all permits are taken; it
    never blocks the event loop. Every acquire must be paired with exactly one
    release, which ``async with gate:`` guarantees on every exit path.
    """

    def __init__(self, capacity: int = 3):
        if capacity < 1:
            raise ValueError(f"Gate capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self.in_flight = 0
        self.peak = 0
        self.acquired = 0
        self.released = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    async def acquire(self):
        await self._semaphore.acquire()
        self.in_flight += 1
        self.acquired += 1
        self.peak = max(self.peak, self.in_flight)
        logger.debug("gate_acquired", in_flight=self.in_flight, capacity=self._capacity)

    def release(self):
        if self.in_flight == 0:
            raise RuntimeError("AdmissionGate released more times than acquired")
        self.in_flight -= 1
        self.released += 1
        self._semaphore.release()
        logger.debug("gate_released", in_flight=self.in_flight, capacity=self._capacity)

    async def __aenter__(self) -> "AdmissionGate":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info):
        self.release()
