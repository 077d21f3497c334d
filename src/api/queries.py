"""Query API

Read entry points for dashboard snapshots, alerts, sessions, history and
health. Responses reflect whatever the store holds at call time.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..monitoring.aggregation_engine import AggregationEngine
from ..storage.metric_store import MetricStore

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000

TIME_RANGES = {
    "1h": HOUR_MS,
    "6h": 6 * HOUR_MS,
    "24h": 24 * HOUR_MS,
    "7d": 7 * 24 * HOUR_MS,
}
DEFAULT_TIME_RANGE = "1h"

USER_AGENT_DISPLAY_LENGTH = 50


class QueryAPI:
    """Synchronous read access to telemetry state"""

    def __init__(
        self,
        store: MetricStore,
        aggregation_engine: AggregationEngine,
        session_timeout_minutes: float = 30
    ):
        self.store = store
        self.aggregation_engine = aggregation_engine
        self.session_timeout_ms = session_timeout_minutes * 60 * 1000

    def dashboard_metrics(self) -> Dict[str, Any]:
        return self.aggregation_engine.snapshot()

    def recent_alerts(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Alerts newest first, at most ``limit`` of them"""
        ordered = sorted(self.store.alerts, key=lambda a: a.received_at, reverse=True)
        return [alert.to_dict() for alert in ordered[:max(limit, 0)]]

    def active_sessions(self) -> List[Dict[str, Any]]:
        """Sessions with activity inside the session timeout"""
        now = self.store.now()
        sessions = []

        for session in self.store.sessions.values():
            if not session.is_active(now, self.session_timeout_ms):
                continue

            user_agent = session.user_agent
            sessions.append({
                "sessionId": session.session_id,
                "startTime": session.start_time,
                "lastActivity": session.last_activity,
                "duration": now - session.start_time,
                "metricCount": len(session.metrics),
                "truncatedUserAgent": (
                    f"{str(user_agent)[:USER_AGENT_DISPLAY_LENGTH]}..." if user_agent else None
                ),
                "url": session.url
            })

        return sessions

    def historical_data(self, metric_name: str, time_range: Optional[str] = DEFAULT_TIME_RANGE) -> List[Dict[str, Any]]:
        """Time-ordered ``{timestamp, value}`` points for one metric

        Unrecognized ranges fall back to one hour.
        """
        window = TIME_RANGES.get(time_range, TIME_RANGES[DEFAULT_TIME_RANGE])
        start = self.store.now() - window

        return [
            {"timestamp": sample.received_at, "value": sample.value}
            for sample in self.store.recent(metric_name, start)
        ]

    def health(self) -> Dict[str, Any]:
        info = self.aggregation_engine.process_info()
        return {
            "status": "healthy",
            "uptime": info["uptime"],
            "memory": info["memoryUsage"],
            "timestamp": datetime.now().isoformat()
        }
