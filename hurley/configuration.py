"""
Configuration constants for hurley.

This module contains all configuration parameters including:
- HTTP client defaults (timeouts, redirects)
- Performance test defaults (concurrency, request counts, drain grace period)
- Latency histogram bounds and precision
- Report and observability settings
"""

import os
import logging
from typing import Tuple

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: int = getattr(logging, os.getenv("HURLEY_LOG_LEVEL", "INFO").upper(), logging.INFO)
LOG_FORMAT: str = "%(asctime)s - %(levelname)s - %(message)s"

# =============================================================================
# HTTP CLIENT CONFIGURATION
# =============================================================================

# Per-request timeout (seconds), applies to both one-shot and perf mode
DEFAULT_TIMEOUT_SECONDS: float = float(os.getenv("HURLEY_TIMEOUT", "30"))

# Redirect limit when -L/--location is given
MAX_REDIRECTS: int = 10

SUPPORTED_METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD")
DEFAULT_METHOD: str = "GET"

JSON_CONTENT_TYPE: str = "application/json"

# =============================================================================
# HTTP STATUS CODES
# =============================================================================

# Responses in [HTTP_ERROR_STATUS_MIN, HTTP_ERROR_STATUS_MAX] count as failures
HTTP_ERROR_STATUS_MIN: int = 400
HTTP_ERROR_STATUS_MAX: int = 599

# =============================================================================
# PERFORMANCE TEST CONFIGURATION
# =============================================================================

DEFAULT_CONCURRENCY: int = 1
DEFAULT_TOTAL_REQUESTS: int = 1

# How long in-flight requests may finish after a cancellation (seconds)
DRAIN_GRACE_SECONDS: float = float(os.getenv("HURLEY_DRAIN_GRACE", "5"))

PROGRESS_INTERVAL: int = 100  # Log progress every N completed requests

# Dataset files with these suffixes are parsed as newline-delimited JSON
NDJSON_SUFFIXES: Tuple[str, ...] = (".ndjson", ".jsonl")

# =============================================================================
# LATENCY HISTOGRAM
# =============================================================================

# Latencies are tracked in microseconds: 1us .. 60s with 3 significant digits
HISTOGRAM_LOWEST_US: int = 1
HISTOGRAM_HIGHEST_US: int = 60_000_000
HISTOGRAM_SIGNIFICANT_FIGURES: int = 3

MICROSECONDS_PER_SECOND: int = 1_000_000
MILLISECONDS_PER_SECOND: int = 1_000

# Quantiles reported for every bucket
REPORTED_QUANTILES: Tuple[Tuple[str, float], ...] = (
    ("p50", 0.50),
    ("p95", 0.95),
    ("p99", 0.99),
)

# =============================================================================
# REPORT CONFIGURATION
# =============================================================================

OUTPUT_FORMATS: Tuple[str, ...] = ("text", "json", "csv")
DEFAULT_OUTPUT_FORMAT: str = "text"

OVERALL_BUCKET_KEY: str = "overall"

# =============================================================================
# OBSERVABILITY
# =============================================================================

DEFAULT_PROMETHEUS_PORT: int = 9100
