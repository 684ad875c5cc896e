"""
Performance report formatting.

Renders a MetricsSnapshot as colored text, JSON or CSV. All three formats
carry the same fields: per bucket counts, error rate, duration, throughput,
latency distribution, failure reasons and status codes, plus the run
duration and whether the run completed.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import pandas as pd
from rich.console import Console
from rich.text import Text

from hurley.configuration import OUTPUT_FORMATS
from hurley.errors import InvalidConfig
from hurley.perf.metrics import BucketStats, MetricsSnapshot

logger = logging.getLogger(__name__)

RULE = "═" * 59

# Table columns in display order
COLUMNS = [
    "endpoint", "total", "successful", "failed", "error_rate_pct", "duration_s",
    "rps", "min_ms", "max_ms", "avg_ms", "p50_ms", "p95_ms", "p99_ms",
    "failures", "status_codes",
]


def _format_counts(counts: Dict[Any, int]) -> str:
    if not counts:
        return "-"
    return ", ".join(f"{key}={count}" for key, count in counts.items())


def _row(stats: BucketStats) -> Dict[str, Any]:
    return {
        "endpoint": stats.key,
        "total": stats.total,
        "successful": stats.successful,
        "failed": stats.failed,
        "error_rate_pct": round(stats.error_rate_percent, 2),
        "duration_s": round(stats.duration_seconds, 3),
        "rps": round(stats.throughput_rps, 2),
        "min_ms": round(stats.min_ms, 2),
        "max_ms": round(stats.max_ms, 2),
        "avg_ms": round(stats.avg_ms, 2),
        "p50_ms": round(stats.p50_ms, 2),
        "p95_ms": round(stats.p95_ms, 2),
        "p99_ms": round(stats.p99_ms, 2),
        "failures": _format_counts(stats.failures_by_reason),
        "status_codes": _format_counts(stats.status_codes),
    }


class PerfReport:
    """Formats metrics snapshots for humans (text) or tools (json, csv)."""

    @staticmethod
    def to_frame(snapshot: MetricsSnapshot) -> pd.DataFrame:
        """One row for the whole run followed by one row per endpoint."""
        rows: List[Dict[str, Any]] = [_row(snapshot.overall)]
        rows.extend(_row(stats) for stats in snapshot.endpoints)
        return pd.DataFrame(rows, columns=COLUMNS)

    @staticmethod
    def render_json(snapshot: MetricsSnapshot) -> str:
        return json.dumps(snapshot.to_dict(), indent=2)

    @staticmethod
    def render_csv(snapshot: MetricsSnapshot) -> str:
        df = PerfReport.to_frame(snapshot)
        df.insert(0, "completed", snapshot.completed)
        df.insert(1, "run_duration_s", round(snapshot.duration_seconds, 3))
        return df.to_csv(index=False)

    @staticmethod
    def text_lines(snapshot: MetricsSnapshot) -> List[Text]:
        """The text report as rich Text lines (styles are dropped for plain output)."""
        overall = snapshot.overall
        lines = [
            Text(""),
            Text(RULE, style="cyan"),
            Text("PERFORMANCE RESULTS".center(len(RULE)), style="bold cyan"),
            Text(RULE, style="cyan"),
            Text(""),
        ]

        if not snapshot.completed:
            lines.append(Text("Run cancelled: results are partial", style="bold yellow"))
            lines.append(Text(""))

        def field(label: str, value: str, style: Optional[str] = None) -> Text:
            line = Text(f"   {label + ':':<21}")
            line.append(value, style=style)
            return line

        lines.append(Text("Request Summary", style="bold"))
        lines.append(field("Total Requests", str(overall.total), "cyan"))
        lines.append(field("Successful", str(overall.successful), "green"))
        lines.append(field("Failed", str(overall.failed), "red" if overall.failed else "green"))
        lines.append(field("Error Rate", f"{overall.error_rate_percent:.2f}%"))
        lines.append(field("Failure Reasons", _format_counts(overall.failures_by_reason)))
        lines.append(field("Status Codes", _format_counts(overall.status_codes)))
        lines.append(Text(""))

        lines.append(Text("Timing", style="bold"))
        lines.append(field("Total Duration", f"{snapshot.duration_seconds * 1000:.2f} ms"))
        lines.append(field("Requests/sec", f"{overall.throughput_rps:.2f}", "bold yellow"))
        lines.append(field("Completed", "yes" if snapshot.completed else "no"))
        lines.append(Text(""))

        lines.append(Text("Latency Distribution", style="bold"))
        lines.append(field("Min", f"{overall.min_ms:.2f} ms"))
        lines.append(field("Max", f"{overall.max_ms:.2f} ms"))
        lines.append(field("Avg", f"{overall.avg_ms:.2f} ms"))
        lines.append(field("p50 (Median)", f"{overall.p50_ms:.2f} ms"))
        lines.append(field("p95", f"{overall.p95_ms:.2f} ms"))
        lines.append(field("p99", f"{overall.p99_ms:.2f} ms"))
        lines.append(Text(""))

        if snapshot.endpoints:
            lines.append(Text("Per Endpoint", style="bold"))
            table = PerfReport.to_frame(snapshot).iloc[1:]
            for row in table.to_string(index=False).splitlines():
                lines.append(Text(f"   {row}"))
            lines.append(Text(""))

        lines.append(Text(RULE, style="cyan"))
        return lines

    @staticmethod
    def render_text(snapshot: MetricsSnapshot) -> str:
        return "\n".join(line.plain for line in PerfReport.text_lines(snapshot))

    @staticmethod
    def render(snapshot: MetricsSnapshot, fmt: str = "text") -> str:
        """Render a snapshot in the given format.

        Args:
            snapshot: Frozen run metrics
            fmt: One of "text", "json", "csv" (case-insensitive)

        Returns:
            The rendered report (uncolored)

        Raises:
            InvalidConfig: If the format is unknown
        """
        fmt = fmt.lower()
        if fmt == "json":
            return PerfReport.render_json(snapshot)
        if fmt == "csv":
            return PerfReport.render_csv(snapshot)
        if fmt == "text":
            return PerfReport.render_text(snapshot)
        raise InvalidConfig(f"Unknown output format {fmt!r}, expected one of {', '.join(OUTPUT_FORMATS)}")

    @staticmethod
    def print(snapshot: MetricsSnapshot, fmt: str = "text", console: Optional[Console] = None) -> None:
        """Print a snapshot to a rich console; text output is colorized."""
        console = console or Console()
        if fmt.lower() == "text":
            for line in PerfReport.text_lines(snapshot):
                console.print(line, soft_wrap=True)
            return
        console.print(PerfReport.render(snapshot, fmt), markup=False, highlight=False,
                      soft_wrap=True, end="")
        if fmt.lower() == "json":
            console.print()
