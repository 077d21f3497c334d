"""Retention Manager

Periodic purge of telemetry older than the configured retention window.
Request handlers never purge; only this component removes aged data.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .metric_store import MetricStore

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


@dataclass
class PurgeResult:
    """Outcome of a retention pass"""
    cutoff: int
    samples_removed: int = 0
    realtime_samples_removed: int = 0
    sessions_removed: int = 0
    alerts_removed: int = 0

    @property
    def total_removed(self) -> int:
        return (
            self.samples_removed
            + self.realtime_samples_removed
            + self.sessions_removed
            + self.alerts_removed
        )


class RetentionManager:
    """Removes samples, sessions and alerts older than the retention window"""

    def __init__(self, store: MetricStore, retention_days: float = 7):
        self.store = store
        self.retention_days = retention_days

    @property
    def retention_ms(self) -> int:
        return int(self.retention_days * DAY_MS)

    def purge(self, now: Optional[int] = None) -> PurgeResult:
        """Purge everything older than ``now - retention window``

        Samples and alerts are aged by receive time, sessions by last activity.

        Args:
            now: Reference time in epoch milliseconds (defaults to store clock)
        """
        reference = self.store.now() if now is None else now
        cutoff = reference - self.retention_ms

        removed = self.store.prune(cutoff)
        result = PurgeResult(
            cutoff=cutoff,
            samples_removed=removed["samples"],
            realtime_samples_removed=removed["realtime_samples"],
            sessions_removed=removed["sessions"],
            alerts_removed=removed["alerts"]
        )

        logger.info(
            f"Cleaned up old data - Retention: {self.retention_days} days "
            f"(samples={result.samples_removed}, sessions={result.sessions_removed}, "
            f"alerts={result.alerts_removed})"
        )
        return result
