"""In-Memory Metric Store

Bounded, process-local holder of metric samples, client sessions and alerts.
The store is an explicitly owned handle: the service creates one instance and
passes it to every component that reads or mutates telemetry state. All
mutation happens on the event loop thread, so no locking is performed.
"""

import time
import uuid
import logging
from collections import deque
from dataclasses import replace
from typing import Callable, Deque, Dict, List, Optional

from .models import Sample, Session, Alert

logger = logging.getLogger(__name__)


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class MetricStore:
    """Bounded in-memory store for samples, sessions and alerts"""

    def __init__(
        self,
        realtime_buffer_size: int = 1000,
        max_alerts: int = 1000,
        clock: Optional[Callable[[], int]] = None
    ):
        """Initialize the metric store

        Args:
            realtime_buffer_size: Maximum samples kept per metric name in the
                realtime buffer
            max_alerts: Maximum alerts kept in the alert log
            clock: Callable returning the current time in epoch milliseconds
        """
        self.realtime_buffer_size = realtime_buffer_size
        self.max_alerts = max_alerts
        self.clock = clock or system_clock

        self._realtime: Dict[str, Deque[Sample]] = {}
        self.historical: List[Sample] = []
        self.sessions: Dict[str, Session] = {}
        self.alerts: Deque[Alert] = deque(maxlen=max_alerts)

        logger.info(
            f"Metric store initialized (buffer={realtime_buffer_size}, max_alerts={max_alerts})"
        )

    def now(self) -> int:
        return int(self.clock())

    def append(self, sample: Sample) -> Sample:
        """Store a sample, stamping its receive time

        Pushes onto the per-name realtime ring buffer, appends to the
        historical log and creates or updates the sample's session.

        Returns:
            The stamped sample as stored
        """
        now = self.now()
        stored = replace(sample, received_at=now)

        buffer = self._realtime.get(stored.name)
        if buffer is None:
            buffer = deque(maxlen=self.realtime_buffer_size)
            self._realtime[stored.name] = buffer
        buffer.append(stored)

        self.historical.append(stored)

        session_id = stored.session_id
        if session_id:
            session = self.sessions.get(session_id)
            if session is None:
                session = Session(
                    session_id=session_id,
                    start_time=now,
                    last_activity=now,
                    user_agent=stored.tags.get("userAgent"),
                    url=stored.tags.get("url")
                )
                self.sessions[session_id] = session
                logger.debug(f"New session tracked: {session_id}")
            session.record(stored)

        return stored

    def append_alert(self, alert: Alert, id_prefix: str = "alert") -> Alert:
        """Store an alert, stamping id, receive time and acknowledgement state

        The oldest alert is evicted once the log holds ``max_alerts`` entries.
        """
        now = self.now()
        alert.id = f"{id_prefix}_{now}_{uuid.uuid4().hex[:8]}"
        alert.received_at = now
        alert.acknowledged = False
        alert.acknowledged_at = None
        if alert.timestamp is None:
            alert.timestamp = now

        self.alerts.append(alert)
        return alert

    def realtime(self, name: str) -> List[Sample]:
        """Samples currently held in the realtime buffer for ``name``"""
        return list(self._realtime.get(name, ()))

    def realtime_names(self) -> List[str]:
        return list(self._realtime.keys())

    def recent(self, name: Optional[str], since_ms: int) -> List[Sample]:
        """Historical samples received strictly after ``since_ms``

        Args:
            name: Metric name to match, or None for every name
            since_ms: Window start in epoch milliseconds
        """
        return [
            s for s in self.historical
            if s.received_at > since_ms and (name is None or s.name == name)
        ]

    def find_alert(self, alert_id: str) -> Optional[Alert]:
        for alert in self.alerts:
            if alert.id == alert_id:
                return alert
        return None

    def prune(self, cutoff_ms: int) -> Dict[str, int]:
        """Drop everything at or older than ``cutoff_ms``

        Returns:
            Counts of removed samples, realtime samples, sessions and alerts
        """
        before = len(self.historical)
        self.historical = [s for s in self.historical if s.received_at > cutoff_ms]
        removed_samples = before - len(self.historical)

        removed_realtime = 0
        for name in list(self._realtime.keys()):
            buffer = self._realtime[name]
            kept = [s for s in buffer if s.received_at > cutoff_ms]
            removed_realtime += len(buffer) - len(kept)
            if kept:
                self._realtime[name] = deque(kept, maxlen=self.realtime_buffer_size)
            else:
                del self._realtime[name]

        stale_sessions = [
            session_id for session_id, session in self.sessions.items()
            if session.last_activity <= cutoff_ms
        ]
        for session_id in stale_sessions:
            del self.sessions[session_id]

        before = len(self.alerts)
        self.alerts = deque(
            (a for a in self.alerts if a.received_at > cutoff_ms),
            maxlen=self.max_alerts
        )
        removed_alerts = before - len(self.alerts)

        return {
            "samples": removed_samples,
            "realtime_samples": removed_realtime,
            "sessions": len(stale_sessions),
            "alerts": removed_alerts
        }

    def get_statistics(self) -> Dict[str, int]:
        return {
            "metric_names": len(self._realtime),
            "realtime_samples": sum(len(b) for b in self._realtime.values()),
            "historical_samples": len(self.historical),
            "sessions": len(self.sessions),
            "alerts": len(self.alerts)
        }
