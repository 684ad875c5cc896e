"""
Tests for the async worker pool.
"""

import unittest
import sys
import os
import asyncio

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hurley.common.worker_pool import WorkerPool


class TestWorkerPool(unittest.IsolatedAsyncioTestCase):
    """Test bounded spawning, fatal errors and draining."""

    async def test_concurrency_is_bounded(self):
        pool = WorkerPool(3)
        active = 0
        peak = 0

        async def work():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        for _ in range(20):
            self.assertTrue(await pool.admit())
            pool.spawn(work)

        self.assertEqual(await pool.drain(), 0)
        self.assertEqual(pool.started, 20)
        self.assertLessEqual(peak, 3)
        self.assertEqual(pool.peak_in_flight(), 3)
        self.assertEqual(pool.in_flight(), 0)
        self.assertIsNone(pool.fatal_error)

    async def test_task_error_stops_admission(self):
        pool = WorkerPool(2)

        async def boom():
            raise RuntimeError("boom")

        await pool.admit()
        pool.spawn(boom)
        await pool.drain()

        self.assertIsInstance(pool.fatal_error, RuntimeError)
        self.assertFalse(await pool.admit())
        self.assertEqual(pool.in_flight(), 0)

    async def test_stop_rejects_new_work(self):
        pool = WorkerPool(1)
        pool.stop()
        self.assertFalse(await pool.admit())

    async def test_drain_cancels_stragglers_after_grace(self):
        pool = WorkerPool(2)
        finished = []

        async def slow():
            await asyncio.sleep(10)
            finished.append(True)

        async def fast():
            await asyncio.sleep(0.01)
            finished.append(True)

        await pool.admit()
        pool.spawn(slow)
        await pool.admit()
        pool.spawn(fast)

        dropped = await pool.drain(grace_seconds=0.1)
        self.assertEqual(dropped, 1)
        self.assertEqual(finished, [True])
        self.assertEqual(pool.in_flight(), 0)
        self.assertIsNone(pool.fatal_error)

    async def test_drain_waits_until_interrupted(self):
        """With an interrupt event the grace period starts only once it is set."""
        pool = WorkerPool(1)
        interrupt = asyncio.Event()

        async def slow():
            await asyncio.sleep(10)

        await pool.admit()
        pool.spawn(slow)

        drain = asyncio.create_task(pool.drain(grace_seconds=0.05, interrupt=interrupt))
        await asyncio.sleep(0.2)
        self.assertFalse(drain.done())

        interrupt.set()
        self.assertEqual(await asyncio.wait_for(drain, timeout=2), 1)

    async def test_drain_with_interrupt_finishes_normally(self):
        pool = WorkerPool(2)
        interrupt = asyncio.Event()

        async def work():
            await asyncio.sleep(0.02)

        for _ in range(2):
            await pool.admit()
            pool.spawn(work)

        self.assertEqual(await pool.drain(grace_seconds=0.01, interrupt=interrupt), 0)


if __name__ == '__main__':
    unittest.main()
