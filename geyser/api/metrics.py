"""Ranking metrics for the HTTP service.

Counts ranking requests per kind ("user" for article predictions, "item"
for advertising) and tracks their latency.
"""

import threading
from typing import Dict


class MetricsService:
    """Thread-safe counters and latency statistics per ranking kind."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {}
        self._total_latency_ms: Dict[str, float] = {}
        self._max_latency_ms: Dict[str, float] = {}
        self._errors = 0

    def record_ranking(self, kind: str, latency_ms: float) -> None:
        """Record a ranking call with its latency.

        Args:
            kind: "user" or "item"
            latency_ms: Latency in milliseconds
        """
        with self._lock:
            self._counts[kind] = self._counts.get(kind, 0) + 1
            self._total_latency_ms[kind] = (
                self._total_latency_ms.get(kind, 0.0) + latency_ms
            )
            self._max_latency_ms[kind] = max(
                self._max_latency_ms.get(kind, 0.0), latency_ms
            )

    def record_error(self) -> None:
        """Count a failed ranking request, including model loading failures."""
        with self._lock:
            self._errors += 1

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with the total error count and, per ranking kind,
            the number of calls and their average and maximum latency.
        """
        with self._lock:
            rankings = {
                kind: {
                    "count": count,
                    "average_latency_ms": round(self._total_latency_ms[kind] / count, 2),
                    "max_latency_ms": round(self._max_latency_ms[kind], 2),
                }
                for kind, count in self._counts.items()
            }
            return {"rankings": rankings, "errors": self._errors}

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._counts.clear()
            self._total_latency_ms.clear()
            self._max_latency_ms.clear()
            self._errors = 0


# Shared instance used by the routes
metrics_service = MetricsService()
