"""
Async worker pool with bounded admission and a graceful drain.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from hurley.common.admission import AdmissionGate

logger = logging.getLogger(__name__)


class WorkerPool:
    """Runs one asyncio task per admitted unit of work, at most ``concurrency`` at a time.

    Callers alternate ``await admit()`` and ``spawn(...)``. A task that raises
    is treated as fatal: admission is closed and the error is kept in
    ``fatal_error`` for the caller to surface after draining.
    """

    def __init__(self, concurrency: int):
        """Initialize the worker pool.

        Args:
            concurrency: Maximum number of tasks in flight
        """
        self.concurrency = concurrency
        self.gate = AdmissionGate(concurrency)
        self.tasks: Set[asyncio.Task] = set()
        self.started = 0
        self.fatal_error: Optional[BaseException] = None

        logger.debug(f"Initialized WorkerPool with concurrency {concurrency}")

    async def admit(self) -> bool:
        """Wait until a slot is free. Returns False once the pool is stopped."""
        return await self.gate.acquire()

    def spawn(self, fn: Callable[..., Awaitable[Any]], *args) -> asyncio.Task:
        """Start ``fn(*args)`` in its own task using a slot taken by ``admit``."""
        task = asyncio.create_task(self._run(fn, *args))
        self.tasks.add(task)
        task.add_done_callback(self._on_task_done)
        self.started += 1
        return task

    async def _run(self, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        try:
            return await fn(*args)
        finally:
            self.gate.release()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self.tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and self.fatal_error is None:
            self.fatal_error = error
            logger.error(f"Worker task failed, stopping admission: {error!r}")
            self.gate.close()

    def stop(self) -> None:
        """Stop admitting new work. In-flight tasks keep running."""
        self.gate.close()

    def in_flight(self) -> int:
        return self.gate.in_flight()

    def peak_in_flight(self) -> int:
        return self.gate.peak_in_flight()

    async def drain(self, grace_seconds: Optional[float] = None,
                    interrupt: Optional[asyncio.Event] = None) -> int:
        """Wait for in-flight tasks to finish.

        Without ``interrupt`` the grace period applies right away. With it,
        tasks are awaited without a limit until the event is set, and the
        grace period starts from that moment.

        Args:
            grace_seconds: How long to wait before cancelling stragglers (None = no limit)
            interrupt: Event that switches the drain to the bounded grace period

        Returns:
            Number of tasks cancelled because they outlived the grace period
        """
        pending = {task for task in self.tasks if not task.done()}
        if not pending:
            return 0

        logger.info(f"Draining {len(pending)} in-flight requests")
        if interrupt is not None and not interrupt.is_set():
            interrupted = asyncio.ensure_future(interrupt.wait())
            try:
                while pending and not interrupted.done():
                    _, pending = await asyncio.wait(
                        pending | {interrupted}, return_when=asyncio.FIRST_COMPLETED
                    )
                    pending.discard(interrupted)
            finally:
                interrupted.cancel()

        if pending:
            _, pending = await asyncio.wait(pending, timeout=grace_seconds)

        if pending:
            logger.warning(
                f"Cancelling {len(pending)} requests still in flight after "
                f"{grace_seconds:.1f}s grace period"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        return len(pending)

    def __repr__(self) -> str:
        return (f"WorkerPool(concurrency={self.concurrency}, started={self.started}, "
                f"in_flight={self.in_flight()})")
