"""Ingestion API

Write-only entry points for client metrics and alerts.

This is a fire-and-forget telemetry sink: every submission is acknowledged
with ``{"status": "received"}`` whatever its content, and no failure is ever
surfaced to the caller. Invalid payloads are recorded through the error
handler and dropped. Callers needing delivery guarantees must re-send.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..error_handling.error_manager import (
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    MalformedPayloadError
)
from ..monitoring.alert_engine import AlertEngine
from ..storage.metric_store import MetricStore
from ..storage.models import Sample

logger = logging.getLogger(__name__)

RECEIVED = {"status": "received"}

Publisher = Callable[[str, Dict[str, Any]], Awaitable[int]]


class IngestionAPI:
    """Best-effort boundary for submitted metrics and alerts"""

    def __init__(
        self,
        store: MetricStore,
        alert_engine: AlertEngine,
        publisher: Optional[Publisher] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.store = store
        self.alert_engine = alert_engine
        self.publisher = publisher
        self.error_handler = error_handler or ErrorHandler()

        self.metrics_accepted = 0
        self.alerts_accepted = 0
        self.rejected = 0

    async def submit_metric(self, body: Any) -> Dict[str, str]:
        """Store and broadcast a metric sample; always acknowledges"""
        try:
            sample = self.store.append(Sample.from_payload(body))
            self.metrics_accepted += 1
            if self.publisher is not None:
                await self.publisher("metric", sample.to_dict())
        except Exception as e:
            self.reject(e, "submit_metric", body)
        return dict(RECEIVED)

    async def submit_alert(self, body: Any) -> Dict[str, str]:
        """Store and broadcast a client alert; always acknowledges"""
        try:
            await self.alert_engine.submit_external(body)
            self.alerts_accepted += 1
        except Exception as e:
            self.reject(e, "submit_alert", body)
        return dict(RECEIVED)

    def reject(self, error: Exception, operation: str, body: Any = None) -> Dict[str, str]:
        """Record a rejected submission; the caller still gets an acknowledgement"""
        self.rejected += 1
        if isinstance(error, MalformedPayloadError):
            category, severity = ErrorCategory.MALFORMED_PAYLOAD, ErrorSeverity.MEDIUM
        else:
            category, severity = ErrorCategory.SYSTEM, ErrorSeverity.HIGH

        self.error_handler.handle_error(
            error,
            ErrorContext(
                component="ingestion",
                operation=operation,
                additional_data={"payload_type": type(body).__name__}
            ),
            category,
            severity
        )
        return dict(RECEIVED)

    def get_statistics(self) -> Dict[str, int]:
        return {
            "metrics_accepted": self.metrics_accepted,
            "alerts_accepted": self.alerts_accepted,
            "rejected": self.rejected
        }
