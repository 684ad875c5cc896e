"""
Performance testing: datasets, bounded-concurrency runner, metrics and reports.
"""

from .dataset import Dataset, JsonBody, RequestTemplate, load, load_ndjson
from .metrics import BucketStats, MetricsAggregator, MetricsSnapshot
from .outcome import FailureReason, Outcome, OutcomeResult
from .report import PerfReport
from .runner import PerfRunner, RunConfig

__all__ = [
    'Dataset', 'JsonBody', 'RequestTemplate', 'load', 'load_ndjson',
    'BucketStats', 'MetricsAggregator', 'MetricsSnapshot',
    'FailureReason', 'Outcome', 'OutcomeResult',
    'PerfReport', 'PerfRunner', 'RunConfig',
]
