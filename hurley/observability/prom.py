"""
Prometheus metrics exporter for live performance runs.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from hurley.configuration import DEFAULT_PROMETHEUS_PORT
from hurley.perf.outcome import Outcome

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Publishes per-request outcomes while a run is in progress.

    Metrics live in their own registry so several exporters (e.g. in tests)
    never collide. Failures are logged and never interrupt the run.
    """

    def __init__(self, port: int = DEFAULT_PROMETHEUS_PORT,
                 registry: Optional[CollectorRegistry] = None):
        self.port = port
        self.registry = registry or CollectorRegistry()
        self.server_started = False

        self.requests_total = Counter(
            'hurley_requests_total', 'Total requests by endpoint and result',
            ['endpoint', 'result'], registry=self.registry,
        )
        self.request_duration = Histogram(
            'hurley_request_duration_seconds', 'Request duration',
            ['endpoint'], registry=self.registry,
        )
        self.in_flight = Gauge(
            'hurley_in_flight_requests', 'Requests currently in flight',
            registry=self.registry,
        )

    def start_server(self) -> bool:
        """Start the Prometheus HTTP server. Returns True if it is running."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Prometheus server started on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus server: {e}")
        return self.server_started

    def record_outcome(self, outcome: Outcome) -> None:
        """Record one request outcome."""
        try:
            self.requests_total.labels(
                endpoint=outcome.endpoint_key, result=outcome.result.value
            ).inc()
            self.request_duration.labels(endpoint=outcome.endpoint_key).observe(outcome.latency)
        except Exception as e:
            logger.error(f"Failed to record request metric: {e}")

    def update_in_flight(self, count: int) -> None:
        try:
            self.in_flight.set(count)
        except Exception as e:
            logger.error(f"Failed to update in-flight metric: {e}")
