"""
Metrics aggregator for performance test outcomes.

Keeps one bucket for the whole run plus one per endpoint key. Outcomes are
reduced into counters and a latency histogram as they arrive, so memory does
not grow with the number of requests.
"""

import time
import threading
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from hdrh.histogram import HdrHistogram

from hurley.configuration import (
    HISTOGRAM_HIGHEST_US,
    HISTOGRAM_LOWEST_US,
    HISTOGRAM_SIGNIFICANT_FIGURES,
    MICROSECONDS_PER_SECOND,
    MILLISECONDS_PER_SECOND,
    OVERALL_BUCKET_KEY,
    REPORTED_QUANTILES,
)
from hurley.perf.outcome import Outcome

logger = logging.getLogger(__name__)


class MetricsBucket:
    """Running totals and latency distribution for one endpoint (or the whole run).

    Not synchronized on its own; the aggregator serializes all updates.
    """

    def __init__(self, key: str):
        self.key = key
        self.total = 0
        self.successful = 0
        self.failed = 0
        self.cumulative_latency = 0.0  # seconds
        self.min_latency: Optional[float] = None
        self.max_latency: Optional[float] = None
        self.histogram = HdrHistogram(
            HISTOGRAM_LOWEST_US, HISTOGRAM_HIGHEST_US, HISTOGRAM_SIGNIFICANT_FIGURES
        )
        self.failures_by_reason: Counter = Counter()
        self.status_codes: Counter = Counter()

    def add(self, outcome: Outcome) -> None:
        self.total += 1
        if outcome.is_success:
            self.successful += 1
        else:
            self.failed += 1
            self.failures_by_reason[outcome.reason.value] += 1
        if outcome.status is not None:
            self.status_codes[outcome.status] += 1

        latency = outcome.latency
        self.cumulative_latency += latency
        if self.min_latency is None or latency < self.min_latency:
            self.min_latency = latency
        if self.max_latency is None or latency > self.max_latency:
            self.max_latency = latency
        # Out-of-range values are rejected by the histogram, so clamp into its range
        micros = round(latency * MICROSECONDS_PER_SECOND)
        self.histogram.record_value(min(max(micros, HISTOGRAM_LOWEST_US), HISTOGRAM_HIGHEST_US))

    def stats(self, duration_seconds: float) -> "BucketStats":
        """Reduce the bucket into its reported statistics."""
        to_ms = MILLISECONDS_PER_SECOND

        if self.total:
            min_ms = self.min_latency * to_ms
            max_ms = self.max_latency * to_ms
            avg_ms = self.cumulative_latency / self.total * to_ms
        else:
            min_ms = max_ms = avg_ms = 0.0

        percentiles = {}
        for name, quantile in REPORTED_QUANTILES:
            value_ms = 0.0
            if self.total:
                micros = self.histogram.get_value_at_percentile(quantile * 100)
                # The histogram works in whole microseconds; keep exact bounds
                value_ms = min(max(micros / MICROSECONDS_PER_SECOND * to_ms, min_ms), max_ms)
            percentiles[name] = value_ms

        return BucketStats(
            key=self.key,
            total=self.total,
            successful=self.successful,
            failed=self.failed,
            error_rate=self.failed / self.total if self.total else 0.0,
            duration_seconds=duration_seconds,
            throughput_rps=self.total / duration_seconds if duration_seconds > 0 else 0.0,
            min_ms=min_ms,
            max_ms=max_ms,
            avg_ms=avg_ms,
            p50_ms=percentiles["p50"],
            p95_ms=percentiles["p95"],
            p99_ms=percentiles["p99"],
            failures_by_reason=dict(sorted(self.failures_by_reason.items())),
            status_codes=dict(sorted(self.status_codes.items())),
        )


@dataclass(frozen=True)
class BucketStats:
    """Reported statistics for one bucket. Latencies are in milliseconds."""

    key: str
    total: int
    successful: int
    failed: int
    error_rate: float
    duration_seconds: float
    throughput_rps: float
    min_ms: float
    max_ms: float
    avg_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    failures_by_reason: Dict[str, int] = field(default_factory=dict)
    status_codes: Dict[int, int] = field(default_factory=dict)

    @property
    def error_rate_percent(self) -> float:
        return self.error_rate * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "total_requests": self.total,
            "successful_requests": self.successful,
            "failed_requests": self.failed,
            "error_rate": self.error_rate,
            "duration_seconds": self.duration_seconds,
            "requests_per_second": self.throughput_rps,
            "latency_min_ms": self.min_ms,
            "latency_max_ms": self.max_ms,
            "latency_avg_ms": self.avg_ms,
            "latency_p50_ms": self.p50_ms,
            "latency_p95_ms": self.p95_ms,
            "latency_p99_ms": self.p99_ms,
            "failures_by_reason": dict(self.failures_by_reason),
            # JSON object keys are strings
            "status_codes": {str(code): count for code, count in self.status_codes.items()},
        }


@dataclass(frozen=True)
class MetricsSnapshot:
    """Frozen result of a run: overall stats, per-endpoint stats and run metadata."""

    overall: BucketStats
    endpoints: Tuple[BucketStats, ...]
    duration_seconds: float
    completed: bool

    @property
    def total(self) -> int:
        return self.overall.total

    @property
    def failed(self) -> int:
        return self.overall.failed

    def endpoint(self, key: str) -> Optional[BucketStats]:
        for stats in self.endpoints:
            if stats.key == key:
                return stats
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": self.completed,
            "duration_seconds": self.duration_seconds,
            "overall": self.overall.to_dict(),
            "endpoints": [stats.to_dict() for stats in self.endpoints],
        }


class MetricsAggregator:
    """Concurrency-safe accumulator of outcomes, bucketed per endpoint key."""

    def __init__(self):
        """Initialize the aggregator with an empty overall bucket."""
        self.overall = MetricsBucket(OVERALL_BUCKET_KEY)
        self.buckets: Dict[str, MetricsBucket] = {}  # insertion order = first seen
        self.lock = threading.Lock()
        self.start_ts: Optional[float] = None
        self.end_ts: Optional[float] = None
        self.frozen = False

        logger.debug("Initialized MetricsAggregator")

    def start(self, timestamp: Optional[float] = None) -> None:
        """Mark the start of the measured run window."""
        with self.lock:
            self.start_ts = timestamp if timestamp is not None else time.perf_counter()

    def finish(self, timestamp: Optional[float] = None) -> None:
        """Mark the end of the measured run window."""
        with self.lock:
            self.end_ts = timestamp if timestamp is not None else time.perf_counter()

    def record(self, outcome: Outcome) -> None:
        """Record one outcome into the overall and endpoint buckets.

        Both buckets are updated under the same lock so no reader can see one
        updated without the other.

        Raises:
            RuntimeError: If the aggregator has been frozen
        """
        with self.lock:
            if self.frozen:
                raise RuntimeError("MetricsAggregator is frozen; no more outcomes can be recorded")
            bucket = self.buckets.get(outcome.endpoint_key)
            if bucket is None:
                bucket = self.buckets[outcome.endpoint_key] = MetricsBucket(outcome.endpoint_key)
                logger.debug(f"New endpoint bucket: {outcome.endpoint_key}")
            self.overall.add(outcome)
            bucket.add(outcome)

    def freeze(self) -> None:
        """Reject any further outcomes."""
        with self.lock:
            self.frozen = True

    def duration_seconds(self) -> float:
        with self.lock:
            return self._duration()

    def _duration(self) -> float:
        if self.start_ts is None:
            return 0.0
        end = self.end_ts if self.end_ts is not None else time.perf_counter()
        return max(0.0, end - self.start_ts)

    def total_recorded(self) -> int:
        with self.lock:
            return self.overall.total

    def snapshot(self, completed: bool = True) -> MetricsSnapshot:
        """Produce a read-only view of everything recorded so far.

        Args:
            completed: False when the run was cancelled before all requests finished

        Returns:
            MetricsSnapshot with overall and per-endpoint statistics
        """
        with self.lock:
            duration = self._duration()
            overall = self.overall.stats(duration)
            endpoints: List[BucketStats] = [
                bucket.stats(duration) for bucket in self.buckets.values()
            ]

        logger.debug(
            f"Snapshot: {overall.total} requests over {duration:.3f}s, "
            f"{len(endpoints)} endpoints, {overall.error_rate:.1%} error rate"
        )
        return MetricsSnapshot(
            overall=overall,
            endpoints=tuple(endpoints),
            duration_seconds=duration,
            completed=completed,
        )
