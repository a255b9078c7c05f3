"""
p2pcheck/metrics.py

Prometheus metrics collection for p2pcheck.

Provides metrics for probe outcomes, ephemeral session churn, and the
latencies seen while probing.
"""

import time
import logging
from typing import TYPE_CHECKING, Dict, List, Tuple, Any

if TYPE_CHECKING:
    from .session import SessionManager

logger = logging.getLogger("p2pcheck.metrics")

VERSION = "1.0.0"


class _Histogram:
    """Cumulative histogram with fixed buckets."""

    def __init__(self, buckets: List[float]):
        self.buckets = buckets
        self.counts = {b: 0 for b in buckets}
        self.counts[float('inf')] = 0
        self.sum = 0.0
        self.count = 0

    def observe(self, value: float) -> None:
        self.sum += value
        self.count += 1
        for bucket in self.buckets:
            if value <= bucket:
                self.counts[bucket] += 1
        self.counts[float('inf')] += 1

    def render(self, name: str, help_text: str) -> List[str]:
        lines = [f"# HELP {name} {help_text}", f"# TYPE {name} histogram"]
        # counts are already cumulative, observe() bumps every bucket >= value
        for bucket in self.buckets:
            lines.append(f'{name}_bucket{{le="{bucket}"}} {self.counts[bucket]}')
        lines.append(f'{name}_bucket{{le="+Inf"}} {self.counts[float("inf")]}')
        lines.append(f"{name}_sum {self.sum}")
        lines.append(f"{name}_count {self.count}")
        return lines


class MetricsCollector:
    """
    Prometheus metrics collector for p2pcheck.

    Usage:
        from p2pcheck.session import SessionManager
        from p2pcheck.metrics import MetricsCollector

        sessions = SessionManager()
        metrics = MetricsCollector(sessions)

        metrics.record_probe("identify", "ok", 0.42)

        # Get metrics in Prometheus format
        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "p2pcheck_probes_total": {
            "type": "counter",
            "help": "Probes run, by kind and outcome",
        },
        "p2pcheck_sessions_acquired_total": {
            "type": "counter",
            "help": "Ephemeral sessions successfully created",
        },
        "p2pcheck_sessions_released_total": {
            "type": "counter",
            "help": "Ephemeral sessions torn down",
        },
        "p2pcheck_sessions_failed_total": {
            "type": "counter",
            "help": "Ephemeral sessions that could not be created or bootstrapped",
        },
        "p2pcheck_sessions_active": {
            "type": "gauge",
            "help": "Ephemeral sessions currently alive",
        },
        "p2pcheck_uptime_seconds": {
            "type": "counter",
            "help": "Service uptime in seconds",
        },
    }

    PING_BUCKETS = [0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
    DURATION_BUCKETS = [0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0]

    def __init__(self, sessions: "SessionManager"):
        """
        Initialize metrics collector.

        Args:
            sessions: SessionManager whose counters are exported
        """
        self.sessions = sessions
        self._start_time = time.time()

        self._probe_counts: Dict[Tuple[str, str], int] = {}
        self._ping_latency = _Histogram(self.PING_BUCKETS)
        self._probe_duration = _Histogram(self.DURATION_BUCKETS)

    def record_probe(self, kind: str, outcome: str, duration_seconds: float) -> None:
        """Record one finished probe."""
        key = (kind, outcome)
        self._probe_counts[key] = self._probe_counts.get(key, 0) + 1
        self._probe_duration.observe(duration_seconds)

    def record_ping_latency(self, latency_seconds: float) -> None:
        """Record a ping latency measurement."""
        self._ping_latency.observe(latency_seconds)

    def probe_count(self, kind: str, outcome: str) -> int:
        return self._probe_counts.get((kind, outcome), 0)

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        def add_header(name: str):
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")

        def add_metric(name: str, value: float):
            add_header(name)
            lines.append(f"{name} {value}")

        try:
            add_header("p2pcheck_probes_total")
            for (kind, outcome), count in sorted(self._probe_counts.items()):
                lines.append(f'p2pcheck_probes_total{{kind="{kind}",outcome="{outcome}"}} {count}')

            add_metric("p2pcheck_sessions_acquired_total", self.sessions.acquired)
            add_metric("p2pcheck_sessions_released_total", self.sessions.released)
            add_metric("p2pcheck_sessions_failed_total", self.sessions.failed)
            add_metric("p2pcheck_sessions_active", self.sessions.active)
            add_metric("p2pcheck_uptime_seconds", time.time() - self._start_time)

            lines.append("# HELP p2pcheck_info Service information")
            lines.append("# TYPE p2pcheck_info gauge")
            lines.append(f'p2pcheck_info{{version="{VERSION}"}} 1')

            if self._ping_latency.count > 0:
                lines.extend(self._ping_latency.render(
                    "p2pcheck_ping_latency_seconds", "Ping latency in seconds"))

            if self._probe_duration.count > 0:
                lines.extend(self._probe_duration.render(
                    "p2pcheck_probe_duration_seconds", "Wall time of one probe in seconds"))

        except Exception as e:
            logger.error(f"Error collecting metrics: {e}")
            lines.append(f"# Error collecting metrics: {e}")

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON API).

        Returns:
            Dictionary of metric values
        """
        return {
            "probes": {f"{kind}/{outcome}": count for (kind, outcome), count in self._probe_counts.items()},
            "sessions_acquired": self.sessions.acquired,
            "sessions_released": self.sessions.released,
            "sessions_failed": self.sessions.failed,
            "sessions_active": self.sessions.active,
            "uptime_seconds": time.time() - self._start_time,
        }
