"""
Performance test runner with bounded concurrency.

The runner moves through Idle -> Running -> Draining -> Complete. While
running it admits at most ``concurrency`` requests at a time until exactly
``total_requests`` have been started, then waits for the in-flight ones.
Cancellation (operator interrupt or whole-run timeout) closes admission
early and drains with a bounded grace period; the snapshot is then marked
incomplete.
"""

import asyncio
import contextlib
import random
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from hurley.common.phase_manager import PhaseManager, RunPhase
from hurley.common.worker_pool import WorkerPool
from hurley.configuration import DRAIN_GRACE_SECONDS, PROGRESS_INTERVAL
from hurley.errors import InvalidConfig, RunAborted, TransportInitError
from hurley.http.client import HttpTransport
from hurley.perf.dataset import Dataset, JsonBody, RequestTemplate
from hurley.perf.executor import RequestExecutor
from hurley.perf.metrics import MetricsAggregator, MetricsSnapshot
from hurley.perf.outcome import Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunConfig:
    """Parameters of one performance run. Exactly one request source must be set."""

    base_url: str
    concurrency: int
    total_requests: int
    template: Optional[RequestTemplate] = None
    dataset: Optional[Dataset] = None
    timeout: Optional[float] = None
    run_timeout: Optional[float] = None
    drain_grace_seconds: float = DRAIN_GRACE_SECONDS
    default_headers: Dict[str, str] = field(default_factory=dict)
    default_body: Optional[JsonBody] = None
    follow_redirects: bool = True
    seed: Optional[int] = None

    def validate(self) -> None:
        """Check the configuration before anything is dispatched.

        Raises:
            InvalidConfig: On any invalid parameter
        """
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise InvalidConfig(f"concurrency must be an integer >= 1, got {self.concurrency!r}")
        if not isinstance(self.total_requests, int) or self.total_requests < 1:
            raise InvalidConfig(
                f"total request count must be an integer >= 1, got {self.total_requests!r}"
            )
        if (self.template is None) == (self.dataset is None):
            raise InvalidConfig("exactly one of a request template or a dataset is required")
        if not self.base_url:
            raise InvalidConfig("base URL is required")
        for name in ("timeout", "run_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise InvalidConfig(f"{name} must be positive, got {value!r}")
        if self.drain_grace_seconds < 0:
            raise InvalidConfig(
                f"drain grace period must not be negative, got {self.drain_grace_seconds!r}"
            )


def default_transport_factory(config: RunConfig) -> HttpTransport:
    return HttpTransport(
        max_connections=config.concurrency,
        timeout=config.timeout,
        follow_redirects=config.follow_redirects,
    )


class PerfRunner:
    """Turns a RunConfig into a load test and returns its metrics snapshot."""

    def __init__(self, config: RunConfig,
                 transport_factory: Callable[[RunConfig], object] = None,
                 exporter=None):
        """Initialize the runner.

        Args:
            config: Run parameters
            transport_factory: Builds the async-context-manager transport (default: aiohttp)
            exporter: Optional live metrics exporter (see ``hurley.observability.prom``)
        """
        self.config = config
        self.transport_factory = transport_factory or default_transport_factory
        self.exporter = exporter
        self.phase_manager = PhaseManager()
        self.aggregator = MetricsAggregator()
        self.pool: Optional[WorkerPool] = None
        self.dispatched = 0
        self.dropped = 0
        self.cancelled = False
        self._rng = random.Random(config.seed)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._cancel_event: Optional[asyncio.Event] = None

    def _next_template(self) -> RequestTemplate:
        if self.config.dataset is not None:
            return self.config.dataset.choose(self._rng)
        return self.config.template

    def cancel(self) -> None:
        """Stop admitting requests and drain. Safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self._cancel()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._cancel()
        else:
            loop.call_soon_threadsafe(self._cancel)

    def _cancel(self) -> None:
        if self.cancelled or self.phase_manager.is_phase(RunPhase.COMPLETE):
            return
        self.cancelled = True
        logger.warning(f"Run cancelled after {self.dispatched} dispatched requests")
        if self.pool is not None:
            self.pool.stop()
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def run(self) -> MetricsSnapshot:
        """Execute the performance test.

        Returns:
            Frozen metrics snapshot; ``completed`` is False if the run was cancelled

        Raises:
            InvalidConfig: If the configuration is invalid (nothing is dispatched)
            TransportInitError: If the HTTP transport cannot be created
            RunAborted: If a fatal error stops the run
        """
        if not self.phase_manager.is_phase(RunPhase.IDLE):
            raise RuntimeError("PerfRunner.run() can only be called once")
        self.config.validate()
        self._loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        if self.cancelled:
            self._cancel_event.set()

        async with contextlib.AsyncExitStack() as stack:
            try:
                transport = await stack.enter_async_context(self.transport_factory(self.config))
            except Exception as e:
                raise TransportInitError(f"Failed to create HTTP transport: {e}") from e
            return await self._run_with_transport(transport)

    async def _run_with_transport(self, transport) -> MetricsSnapshot:
        config = self.config
        executor = RequestExecutor(
            transport, config.base_url, timeout=config.timeout,
            default_headers=config.default_headers, default_body=config.default_body,
        )
        self.pool = WorkerPool(config.concurrency)
        if self.cancelled:
            self.pool.stop()

        run_timer = None
        if config.run_timeout is not None:
            run_timer = self._loop.call_later(config.run_timeout, self._on_run_timeout)

        if config.dataset is not None:
            source = f"dataset of {len(config.dataset)} requests"
        else:
            source = config.template.endpoint_key
        logger.info(
            f"Starting run: {config.total_requests} requests, concurrency {config.concurrency}, "
            f"source: {source}"
        )

        self.phase_manager.begin_phase(RunPhase.RUNNING)
        self.aggregator.start()
        try:
            while self.dispatched < config.total_requests:
                if not await self.pool.admit():
                    break
                self.pool.spawn(self._dispatch, executor, self._next_template())
                self.dispatched += 1
                if self.exporter is not None:
                    self.exporter.update_in_flight(self.pool.in_flight())

            self.phase_manager.begin_phase(RunPhase.DRAINING)
            self.dropped = await self.pool.drain(
                config.drain_grace_seconds, interrupt=self._cancel_event
            )
        finally:
            if run_timer is not None:
                run_timer.cancel()
            self.aggregator.finish()
            self.aggregator.freeze()
            if self.phase_manager.is_phase(RunPhase.RUNNING):
                self.phase_manager.begin_phase(RunPhase.DRAINING)
            self.phase_manager.begin_phase(RunPhase.COMPLETE)
            if self.exporter is not None:
                self.exporter.update_in_flight(0)

        if self.pool.fatal_error is not None:
            raise RunAborted(f"Run aborted: {self.pool.fatal_error}") from self.pool.fatal_error

        completed = not self.cancelled and self.aggregator.total_recorded() == config.total_requests
        snapshot = self.aggregator.snapshot(completed=completed)
        logger.info(
            f"Run {'completed' if completed else 'incomplete'}: {snapshot.total}/"
            f"{config.total_requests} requests in {snapshot.duration_seconds:.2f}s "
            f"({snapshot.overall.throughput_rps:.1f} req/s, "
            f"{snapshot.overall.error_rate:.1%} errors)"
        )
        if self.dropped:
            logger.warning(f"{self.dropped} in-flight requests were dropped at drain")
        return snapshot

    def _on_run_timeout(self) -> None:
        logger.warning(f"Run timeout of {self.config.run_timeout}s reached")
        self._cancel()

    async def _dispatch(self, executor: RequestExecutor, template: RequestTemplate) -> Outcome:
        outcome = await executor.execute(template)
        self.aggregator.record(outcome)
        if self.exporter is not None:
            self.exporter.record_outcome(outcome)
            # This request still holds its slot until the task returns
            self.exporter.update_in_flight(max(0, self.pool.in_flight() - 1))

        recorded = self.aggregator.total_recorded()
        if recorded % PROGRESS_INTERVAL == 0:
            logger.info(f"Progress: {recorded}/{self.config.total_requests} requests completed")
        return outcome
