"""Aggregation Engine

Rolling statistics over sample windows and the dashboard snapshot built from
them. Snapshots are computed on demand and never stored.
"""

import math
import time
import logging
from typing import Dict, List, Any, Sequence

import psutil

from ..storage.metric_store import MetricStore
from ..storage.models import is_numeric

logger = logging.getLogger(__name__)

FIVE_MINUTES_MS = 5 * 60 * 1000
ONE_HOUR_MS = 60 * 60 * 1000

# snapshot key -> metric name
PERFORMANCE_FAMILIES = {
    "pageLoad": "page_load_time",
    "search": "search_response_time",
    "api": "api_response_time",
}


def percentile(values: Sequence[float], pct: float) -> float:
    """Nearest-rank percentile; 0 for an empty sequence"""
    if not values:
        return 0
    ordered = sorted(values)
    index = math.ceil((pct / 100) * len(ordered)) - 1
    index = min(max(index, 0), len(ordered) - 1)
    return ordered[index]


def calculate_stats(values: Sequence[float]) -> Dict[str, float]:
    """Summary statistics; all zeros for an empty sequence"""
    if not values:
        return {"count": 0, "avg": 0, "min": 0, "max": 0, "p95": 0}

    return {
        "count": len(values),
        "avg": sum(values) / len(values),
        "min": min(values),
        "max": max(values),
        "p95": percentile(values, 95)
    }


class AggregationEngine:
    """Computes rolling statistics and dashboard snapshots"""

    def __init__(self, store: MetricStore):
        self.store = store
        self._process = psutil.Process()

    def stats(self, values: Sequence[float]) -> Dict[str, float]:
        return calculate_stats(values)

    def process_info(self) -> Dict[str, Any]:
        """Memory usage and uptime of the current process"""
        memory = self._process.memory_info()
        return {
            "memoryUsage": {
                "rss": memory.rss,
                "vms": memory.vms
            },
            "uptime": max(time.time() - self._process.create_time(), 0.0)
        }

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time aggregated view of the store

        Per-family statistics cover the trailing five minutes.
        """
        now = self.store.now()
        recent_samples = self.store.recent(None, now - FIVE_MINUTES_MS)
        hourly_count = len(self.store.recent(None, now - ONE_HOUR_MS))

        values_by_name: Dict[str, List[float]] = {}
        for sample in recent_samples:
            if is_numeric(sample.value):
                values_by_name.setdefault(sample.name, []).append(sample.value)

        recent_alerts = sum(
            1 for alert in self.store.alerts
            if alert.received_at > now - ONE_HOUR_MS
        )

        return {
            "timestamp": now,
            "activeSessions": len(self.store.sessions),
            "totalMetrics": len(self.store.historical),
            "recentAlerts": recent_alerts,
            "performance": {
                key: calculate_stats(values_by_name.get(metric_name, []))
                for key, metric_name in PERFORMANCE_FAMILIES.items()
            },
            "system": self.process_info(),
            "timeRanges": {
                "last5Minutes": len(recent_samples),
                "lastHour": hourly_count
            }
        }

    def log_aggregates(self) -> Dict[str, int]:
        """Emit the periodic aggregation log line"""
        summary = {
            "sessions": len(self.store.sessions),
            "total_metrics": len(self.store.historical),
            "alerts": len(self.store.alerts)
        }
        logger.info(
            f"Aggregated metrics - Active sessions: {summary['sessions']}, "
            f"Total metrics: {summary['total_metrics']}, Alerts: {summary['alerts']}"
        )
        return summary
