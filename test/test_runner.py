"""
Integration tests for the performance runner using an in-memory transport.
"""

import unittest
import sys
import os
import json

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hurley.common.phase_manager import RunPhase
from hurley.errors import EmptyDataset, InvalidConfig, RunAborted, TransportInitError
from hurley.http.request import HttpMethod
from hurley.perf.dataset import Dataset, RequestTemplate, load
from hurley.perf.runner import PerfRunner, RunConfig

from fakes import FailingTransport, FakeTransport, RecordingExporter

BASE_URL = "http://service.test"
HEALTH = RequestTemplate(HttpMethod.GET, "/health")


def _factory(transport):
    created = []

    def factory(config):
        created.append(config)
        return transport

    factory.created = created
    return factory


class TestRunConfig(unittest.TestCase):
    """Test configuration validation."""

    def test_valid_config(self):
        RunConfig(BASE_URL, concurrency=1, total_requests=1, template=HEALTH).validate()

    def test_invalid_configs(self):
        dataset = Dataset([HEALTH])
        cases = [
            dict(concurrency=0, total_requests=10, template=HEALTH),
            dict(concurrency=2, total_requests=0, template=HEALTH),
            dict(concurrency=2, total_requests=10),
            dict(concurrency=2, total_requests=10, template=HEALTH, dataset=dataset),
            dict(concurrency=2, total_requests=10, template=HEALTH, timeout=0),
            dict(concurrency=2, total_requests=10, template=HEALTH, run_timeout=-1),
            dict(concurrency=2, total_requests=10, template=HEALTH, drain_grace_seconds=-1),
        ]
        for kwargs in cases:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(InvalidConfig):
                    RunConfig(BASE_URL, **kwargs).validate()


class TestPerfRunner(unittest.IsolatedAsyncioTestCase):
    """Test dispatch counts, concurrency bounds, cancellation and errors."""

    async def test_single_template_run(self):
        """100 requests at concurrency 10 against a 50ms endpoint."""
        transport = FakeTransport(status=200, delay=0.05)
        config = RunConfig(BASE_URL, concurrency=10, total_requests=100, template=HEALTH)
        runner = PerfRunner(config, transport_factory=_factory(transport))

        snapshot = await runner.run()

        self.assertTrue(snapshot.completed)
        self.assertEqual(snapshot.total, 100)
        self.assertEqual(snapshot.failed, 0)
        self.assertEqual(len(transport.calls), 100)
        self.assertLessEqual(transport.peak_in_flight, 10)
        self.assertEqual(runner.pool.peak_in_flight(), 10)
        self.assertEqual([stats.key for stats in snapshot.endpoints], ["GET /health"])
        self.assertGreaterEqual(snapshot.overall.min_ms, 45.0)
        self.assertGreaterEqual(snapshot.overall.p50_ms, snapshot.overall.min_ms)
        self.assertGreaterEqual(snapshot.overall.p50_ms, 45.0)
        self.assertLessEqual(snapshot.overall.p50_ms, 100.0)
        self.assertGreater(snapshot.overall.throughput_rps, 0)
        self.assertTrue(runner.phase_manager.is_phase(RunPhase.COMPLETE))
        self.assertTrue(transport.entered)
        self.assertTrue(transport.exited)
        self.assertTrue(all(call['url'] == BASE_URL + "/health" for call in transport.calls))

    async def test_dataset_run(self):
        """50 requests at concurrency 5 drawn from a two-entry dataset."""
        dataset = load(json.dumps([
            {"method": "GET", "path": "/users"},
            {"method": "POST", "path": "/users", "body": {"name": "test"}},
        ]))
        transport = FakeTransport(status=201, delay=0.005)
        config = RunConfig(BASE_URL, concurrency=5, total_requests=50, dataset=dataset, seed=11)

        snapshot = await PerfRunner(config, transport_factory=_factory(transport)).run()

        self.assertEqual(snapshot.total, 50)
        self.assertLessEqual(transport.peak_in_flight, 5)
        keys = {stats.key for stats in snapshot.endpoints}
        self.assertEqual(keys, {"GET /users", "POST /users"})
        self.assertEqual(sum(stats.total for stats in snapshot.endpoints), 50)
        for call in transport.calls:
            if call['method'] == "POST":
                self.assertEqual(json.loads(call['body']), {"name": "test"})
            else:
                self.assertIsNone(call['body'])

    async def test_seeded_runs_pick_the_same_entries(self):
        dataset = load('[{"method": "GET", "path": "/a"}, {"method": "GET", "path": "/b"}]')
        urls = []
        for _ in range(2):
            transport = FakeTransport()
            config = RunConfig(BASE_URL, concurrency=1, total_requests=30, dataset=dataset, seed=5)
            await PerfRunner(config, transport_factory=_factory(transport)).run()
            urls.append([call['url'] for call in transport.calls])
        self.assertEqual(urls[0], urls[1])

    async def test_all_server_errors(self):
        transport = FakeTransport(status=500)
        config = RunConfig(BASE_URL, concurrency=4, total_requests=40, template=HEALTH)

        snapshot = await PerfRunner(config, transport_factory=_factory(transport)).run()

        self.assertTrue(snapshot.completed)
        self.assertEqual(snapshot.total, 40)
        self.assertEqual(snapshot.failed, 40)
        self.assertEqual(snapshot.overall.error_rate, 1.0)
        self.assertEqual(snapshot.overall.failures_by_reason, {"http_status": 40})
        self.assertEqual(snapshot.overall.status_codes, {500: 40})

    async def test_cancel_mid_run(self):
        """Cancelling after the 30th of 100 requests at concurrency 1."""
        runner = None

        def on_send(count):
            if count == 30:
                runner.cancel()

        transport = FakeTransport(delay=0.001, on_send=on_send)
        config = RunConfig(BASE_URL, concurrency=1, total_requests=100, template=HEALTH)
        runner = PerfRunner(config, transport_factory=_factory(transport))

        snapshot = await runner.run()

        self.assertFalse(snapshot.completed)
        self.assertEqual(snapshot.total, 30)
        self.assertEqual(len(transport.calls), 30)
        self.assertEqual(runner.dispatched, 30)
        self.assertTrue(runner.cancelled)
        self.assertTrue(runner.phase_manager.is_phase(RunPhase.COMPLETE))

    async def test_cancel_before_run(self):
        transport = FakeTransport()
        config = RunConfig(BASE_URL, concurrency=2, total_requests=10, template=HEALTH)
        runner = PerfRunner(config, transport_factory=_factory(transport))
        runner.cancel()

        snapshot = await runner.run()

        self.assertFalse(snapshot.completed)
        self.assertEqual(snapshot.total, 0)
        self.assertEqual(transport.calls, [])

    async def test_cancel_drops_stragglers_after_grace(self):
        runner = None

        def on_send(count):
            if count == 1:
                runner.cancel()

        transport = FakeTransport(delay=5, on_send=on_send)
        config = RunConfig(BASE_URL, concurrency=3, total_requests=10, template=HEALTH,
                           drain_grace_seconds=0.05)
        runner = PerfRunner(config, transport_factory=_factory(transport))

        snapshot = await runner.run()

        self.assertFalse(snapshot.completed)
        self.assertEqual(snapshot.total, 0)
        self.assertEqual(runner.dropped, runner.dispatched)
        self.assertGreaterEqual(runner.dispatched, 1)

    async def test_run_timeout(self):
        transport = FakeTransport(delay=0.01)
        config = RunConfig(BASE_URL, concurrency=1, total_requests=10_000, template=HEALTH,
                           run_timeout=0.2)

        snapshot = await PerfRunner(config, transport_factory=_factory(transport)).run()

        self.assertFalse(snapshot.completed)
        self.assertGreater(snapshot.total, 0)
        self.assertLess(snapshot.total, 10_000)

    async def test_invalid_config_dispatches_nothing(self):
        transport = FakeTransport()
        factory = _factory(transport)
        config = RunConfig(BASE_URL, concurrency=0, total_requests=10, template=HEALTH)

        with self.assertRaises(InvalidConfig):
            await PerfRunner(config, transport_factory=factory).run()
        self.assertEqual(factory.created, [])
        self.assertEqual(transport.calls, [])

    async def test_empty_dataset_dispatches_nothing(self):
        """An empty dataset fails before the transport is opened or anything is sent."""
        transport = FakeTransport()
        factory = _factory(transport)
        with self.assertRaises(EmptyDataset):
            config = RunConfig(BASE_URL, concurrency=2, total_requests=10, dataset=Dataset([]))
            await PerfRunner(config, transport_factory=factory).run()

        with self.assertRaises(EmptyDataset):
            config = RunConfig(BASE_URL, concurrency=2, total_requests=10, dataset=load("[]"))
            await PerfRunner(config, transport_factory=factory).run()

        self.assertEqual(factory.created, [])
        self.assertEqual(transport.calls, [])
        self.assertFalse(transport.entered)

    async def test_transport_init_failure(self):
        def broken_factory(config):
            raise ValueError("bad connector settings")

        config = RunConfig(BASE_URL, concurrency=1, total_requests=1, template=HEALTH)
        with self.assertRaises(TransportInitError):
            await PerfRunner(config, transport_factory=broken_factory).run()

        with self.assertRaises(TransportInitError):
            await PerfRunner(config, transport_factory=lambda c: FailingTransport()).run()

    async def test_single_entry_dataset_matches_single_mode(self):
        results = []
        for source in (dict(template=HEALTH), dict(dataset=Dataset([HEALTH]))):
            transport = FakeTransport(status=204)
            config = RunConfig(BASE_URL, concurrency=3, total_requests=25, **source)
            snapshot = await PerfRunner(config, transport_factory=_factory(transport)).run()
            results.append((
                snapshot.total, snapshot.failed, [s.key for s in snapshot.endpoints],
                snapshot.overall.status_codes, [c['url'] for c in transport.calls],
            ))
        self.assertEqual(results[0], results[1])

    async def test_default_headers_are_merged(self):
        dataset = load('[{"method": "GET", "path": "/a", "headers": {"X-Env": "template"}}]')
        transport = FakeTransport()
        config = RunConfig(BASE_URL, concurrency=1, total_requests=2, dataset=dataset,
                           default_headers={"x-env": "cli", "Authorization": "Bearer t"})

        await PerfRunner(config, transport_factory=_factory(transport)).run()

        headers = {k.lower(): v for k, v in transport.calls[0]['headers'].items()}
        self.assertEqual(headers['x-env'], "template")
        self.assertEqual(headers['authorization'], "Bearer t")

    async def test_exporter_receives_outcomes(self):
        exporter = RecordingExporter()
        transport = FakeTransport(delay=0.001)
        config = RunConfig(BASE_URL, concurrency=2, total_requests=12, template=HEALTH)

        await PerfRunner(config, transport_factory=_factory(transport), exporter=exporter).run()

        self.assertEqual(len(exporter.outcomes), 12)
        # One update per admission, one per completion and the final reset
        self.assertEqual(len(exporter.in_flight_updates), 2 * 12 + 1)
        self.assertEqual(exporter.in_flight_updates[-2:], [0, 0])
        self.assertTrue(all(count >= 0 for count in exporter.in_flight_updates))
        self.assertLessEqual(max(exporter.in_flight_updates), 2)

    async def test_fatal_error_aborts_run(self):
        exporter = RecordingExporter(fail=True)
        transport = FakeTransport()
        config = RunConfig(BASE_URL, concurrency=2, total_requests=20, template=HEALTH)
        runner = PerfRunner(config, transport_factory=_factory(transport), exporter=exporter)

        with self.assertRaises(RunAborted):
            await runner.run()
        self.assertLess(runner.dispatched, 20)
        self.assertTrue(runner.phase_manager.is_phase(RunPhase.COMPLETE))
        self.assertTrue(transport.exited)

    async def test_run_only_once(self):
        transport = FakeTransport()
        config = RunConfig(BASE_URL, concurrency=1, total_requests=1, template=HEALTH)
        runner = PerfRunner(config, transport_factory=_factory(transport))
        await runner.run()
        with self.assertRaises(RuntimeError):
            await runner.run()


if __name__ == '__main__':
    unittest.main()
