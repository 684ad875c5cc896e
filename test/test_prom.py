"""
Tests for the Prometheus exporter.
"""

import unittest
import sys
import os
from unittest import mock

from prometheus_client import CollectorRegistry

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hurley.observability.prom import PrometheusExporter
from hurley.perf.outcome import FailureReason, Outcome


class TestPrometheusExporter(unittest.TestCase):
    """Test metric updates against a private registry."""

    def setUp(self):
        self.registry = CollectorRegistry()
        self.exporter = PrometheusExporter(port=9999, registry=self.registry)

    def test_record_outcome(self):
        self.exporter.record_outcome(Outcome.success("GET /a", 0.02, 200))
        self.exporter.record_outcome(Outcome.success("GET /a", 0.04, 200))
        self.exporter.record_outcome(Outcome.failure("GET /a", 0.5, FailureReason.TIMEOUT))

        sample = self.registry.get_sample_value
        self.assertEqual(sample('hurley_requests_total', {'endpoint': 'GET /a', 'result': 'success'}), 2.0)
        self.assertEqual(sample('hurley_requests_total', {'endpoint': 'GET /a', 'result': 'failure'}), 1.0)
        self.assertEqual(sample('hurley_request_duration_seconds_count', {'endpoint': 'GET /a'}), 3.0)
        self.assertAlmostEqual(sample('hurley_request_duration_seconds_sum', {'endpoint': 'GET /a'}), 0.56)

    def test_in_flight_gauge(self):
        self.exporter.update_in_flight(7)
        self.assertEqual(self.registry.get_sample_value('hurley_in_flight_requests'), 7.0)
        self.exporter.update_in_flight(0)
        self.assertEqual(self.registry.get_sample_value('hurley_in_flight_requests'), 0.0)

    def test_exporters_do_not_collide(self):
        PrometheusExporter(registry=CollectorRegistry())
        PrometheusExporter(registry=CollectorRegistry())

    def test_start_server(self):
        with mock.patch('hurley.observability.prom.start_http_server') as start:
            self.assertTrue(self.exporter.start_server())
            self.assertTrue(self.exporter.start_server())
        start.assert_called_once_with(9999, registry=self.registry)

    def test_start_server_failure_is_logged(self):
        with mock.patch('hurley.observability.prom.start_http_server',
                        side_effect=OSError("address in use")):
            with self.assertLogs('hurley.observability.prom', level='ERROR'):
                self.assertFalse(self.exporter.start_server())


if __name__ == '__main__':
    unittest.main()
