"""Threshold Alert Engine

Scheduled threshold evaluation over the trailing five-minute window, plus the
pass-through path for alerts submitted by clients and operator acknowledgement.

Evaluation applies no suppression window: while a breach persists, every
evaluation tick raises a fresh alert.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config.config_manager import AlertThresholdConfig
from ..error_handling.error_manager import (
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    UnknownResourceError
)
from ..storage.metric_store import MetricStore
from ..storage.models import Alert, is_numeric
from .aggregation_engine import FIVE_MINUTES_MS

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Dict[str, Any]], Awaitable[int]]


@dataclass
class AlertRule:
    """Average-over-window threshold for a single metric family"""
    metric_name: str
    threshold: float
    window_ms: int = FIVE_MINUTES_MS

    @property
    def alert_type(self) -> str:
        return f"high_{self.metric_name}"


def default_rules(thresholds: AlertThresholdConfig) -> List[AlertRule]:
    """Rules for the monitored latency families"""
    return [
        AlertRule("page_load_time", thresholds.page_load_time),
        AlertRule("search_response_time", thresholds.search_response_time),
        AlertRule("api_response_time", thresholds.api_response_time),
    ]


class AlertEngine:
    """Evaluates alert rules and records system and external alerts"""

    def __init__(
        self,
        store: MetricStore,
        rules: Optional[List[AlertRule]] = None,
        publisher: Optional[Publisher] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        """Initialize the alert engine

        Args:
            store: Metric store to read samples from and append alerts to
            rules: Threshold rules (defaults to the standard latency families)
            publisher: Coroutine function ``(event_type, data)`` that fans an
                event out to subscribers
            error_handler: Shared error handler; acknowledging an unknown
                alert id is recorded there and never raised
        """
        self.store = store
        self.rules = rules if rules is not None else default_rules(AlertThresholdConfig())
        self.publisher = publisher
        self.error_handler = error_handler or ErrorHandler()

        logger.info(f"Alert engine initialized with {len(self.rules)} rules")

    async def _publish(self, alert: Alert) -> None:
        if self.publisher is not None:
            await self.publisher("alert", alert.to_dict())

    async def evaluate(self) -> List[Alert]:
        """Check every rule against the trailing window

        Returns:
            Alerts raised by this pass
        """
        now = self.store.now()
        triggered = []

        for rule in self.rules:
            values = [
                s.value for s in self.store.recent(rule.metric_name, now - rule.window_ms)
                if is_numeric(s.value)
            ]
            if not values:
                continue

            average = sum(values) / len(values)
            if average > rule.threshold:
                alert = await self.trigger(
                    rule.alert_type,
                    {"average": average, "threshold": rule.threshold}
                )
                triggered.append(alert)

        return triggered

    async def trigger(self, alert_type: str, data: Dict[str, Any]) -> Alert:
        """Record and broadcast a system alert"""
        alert = self.store.append_alert(
            Alert(type=alert_type, data=data, source="system"),
            id_prefix="system_alert"
        )
        logger.warning(f"System alert triggered: {alert_type} {data}")
        await self._publish(alert)
        return alert

    async def submit_external(self, payload: Any) -> Alert:
        """Record and broadcast a client-submitted alert

        Raises:
            MalformedPayloadError: If the payload lacks a usable type
        """
        alert = self.store.append_alert(Alert.from_payload(payload))
        session_suffix = alert.session_id[-8:] if isinstance(alert.session_id, str) else None
        logger.info(f"Alert received: {alert.type} from session {session_suffix}")
        await self._publish(alert)
        return alert

    async def acknowledge(self, alert_id: Any) -> bool:
        """Mark an alert acknowledged and broadcast the change

        Unknown ids are recorded as a low severity unknown resource and
        otherwise ignored.

        Returns:
            True if an alert was acknowledged
        """
        alert = self.store.find_alert(alert_id) if isinstance(alert_id, str) else None
        if alert is None:
            self.error_handler.handle_error(
                UnknownResourceError(f"Unknown alert id: {alert_id}"),
                ErrorContext(component="alert_engine", operation="acknowledge"),
                ErrorCategory.UNKNOWN_RESOURCE,
                ErrorSeverity.LOW
            )
            return False

        alert.acknowledged = True
        alert.acknowledged_at = self.store.now()

        if self.publisher is not None:
            await self.publisher("alert", {**alert.to_dict(), "type": "alert_acknowledged"})

        logger.info(f"Alert acknowledged: {alert_id}")
        return True
