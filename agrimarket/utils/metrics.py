"""
Metrics Collection for the chat pipeline and gateway.

Counters are process-local and reported on the health endpoint.
"""

import threading
from datetime import datetime
from typing import Any, Dict

COUNTERS = (
    "streams_started_total",
    "streams_completed_total",
    "streams_failed_total",
    "streams_cancelled_total",
    "stream_deltas_total",
    "stream_fragments_skipped_total",
    "persistence_errors_total",
)


class MetricsCollector:
    """Collects counters for streamed replies and gateway failures."""

    def __init__(self):
        self.counters: Dict[str, int] = {name: 0 for name in COUNTERS}
        self.lock = threading.Lock()
        self.started_at = datetime.utcnow()

    def increment_counter(self, metric_name: str, value: int = 1):
        with self.lock:
            self.counters[metric_name] = self.counters.get(metric_name, 0) + value

    def get_metrics(self) -> Dict[str, Any]:
        """Snapshot of all counters with the collection window."""
        with self.lock:
            return {
                "counters": dict(self.counters),
                "since": self.started_at.isoformat(),
                "timestamp": datetime.utcnow().isoformat(),
            }

    def reset(self):
        with self.lock:
            self.counters = {name: 0 for name in COUNTERS}
            self.started_at = datetime.utcnow()

    def stream_started(self):
        self.increment_counter("streams_started_total")

    def stream_completed(self):
        self.increment_counter("streams_completed_total")

    def stream_failed(self):
        self.increment_counter("streams_failed_total")

    def stream_cancelled(self):
        self.increment_counter("streams_cancelled_total")

    def delta_received(self):
        self.increment_counter("stream_deltas_total")

    def fragment_skipped(self):
        self.increment_counter("stream_fragments_skipped_total")

    def persistence_error(self):
        self.increment_counter("persistence_errors_total")


metrics_collector = MetricsCollector()
