"""
Admission gate for bounded request concurrency.
"""

import asyncio
import logging
from collections import deque
from typing import Deque

logger = logging.getLogger(__name__)


class AdmissionGate:
    """An asyncio counting gate with in-flight tracking that can be closed.

    Behaves like a semaphore of ``permits`` slots. Once closed, waiting and
    future ``acquire`` calls return False instead of admitting new work.
    Must be used from a single event loop.
    """

    def __init__(self, permits: int):
        """Initialize the gate with the given number of permits.

        Args:
            permits: Maximum number of concurrently admitted requests
        """
        if permits < 1:
            raise ValueError(f"AdmissionGate needs at least one permit, got {permits}")
        self._permits = permits
        self._max_permits = permits
        self._in_flight = 0
        self._peak_in_flight = 0
        self._admitted = 0
        self._closed = False
        self._waiters: Deque[asyncio.Future] = deque()

        logger.debug(f"Initialized AdmissionGate with {permits} permits")

    async def acquire(self) -> bool:
        """Wait for a free slot.

        Returns:
            True if a slot was acquired, False if the gate is (or became) closed
        """
        while not self._closed and self._permits <= 0:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                # Woken but cancelled before running: hand the wakeup on
                if waiter.done() and not waiter.cancelled():
                    self._wake_next()
                raise
            finally:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)

        if self._closed:
            return False

        self._permits -= 1
        self._in_flight += 1
        self._admitted += 1
        self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
        return True

    def _wake_next(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                break

    def release(self) -> None:
        """Return a slot and wake one waiter."""
        if self._in_flight <= 0:
            logger.warning("Attempted to release AdmissionGate when in_flight is 0")
            return
        self._in_flight -= 1
        self._permits += 1
        self._wake_next()

    def close(self) -> None:
        """Stop admitting work and wake every waiter."""
        if self._closed:
            return
        self._closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
        logger.debug(f"AdmissionGate closed with {self._in_flight} in flight")

    @property
    def closed(self) -> bool:
        return self._closed

    def in_flight(self) -> int:
        return self._in_flight

    def peak_in_flight(self) -> int:
        """Highest number of simultaneously admitted requests so far."""
        return self._peak_in_flight

    def admitted(self) -> int:
        return self._admitted

    def available_permits(self) -> int:
        return self._permits

    def max_permits(self) -> int:
        return self._max_permits

    def __repr__(self) -> str:
        return (f"AdmissionGate(permits={self._permits}/{self._max_permits}, "
                f"in_flight={self._in_flight}, closed={self._closed})")
