"""Telemetry Service

Owns every telemetry core component for the lifetime of the process. The
service is created once at start-up and handed by reference to the HTTP app,
the push channel and the scheduled tasks; nothing is persisted on stop.
"""

import logging
from typing import Callable, Optional

from .api.ingestion import IngestionAPI
from .api.queries import QueryAPI
from .config.config_manager import Config
from .error_handling.error_manager import ErrorHandler
from .monitoring.aggregation_engine import AggregationEngine
from .monitoring.alert_engine import AlertEngine, default_rules
from .monitoring.scheduler import Scheduler
from .storage.metric_store import MetricStore
from .storage.retention_manager import RetentionManager
from .streaming.broadcast_hub import BroadcastHub

logger = logging.getLogger(__name__)


class TelemetryService:
    """Wires the store, engines, push channel and scheduler together"""

    def __init__(self, config: Optional[Config] = None, clock: Optional[Callable[[], int]] = None):
        self.config = config or Config()
        self.error_handler = ErrorHandler()

        retention = self.config.retention
        self.store = MetricStore(
            realtime_buffer_size=retention.realtime_buffer_size,
            max_alerts=retention.max_alerts,
            clock=clock
        )
        self.retention_manager = RetentionManager(self.store, retention.metrics_retention_days)
        self.aggregation_engine = AggregationEngine(self.store)
        self.query_api = QueryAPI(
            self.store,
            self.aggregation_engine,
            session_timeout_minutes=retention.session_timeout_minutes
        )

        self.hub = BroadcastHub(
            snapshot_provider=self.aggregation_engine.snapshot,
            history_provider=self.query_api.historical_data,
            config=self.config.websocket,
            error_handler=self.error_handler
        )
        self.alert_engine = AlertEngine(
            self.store,
            rules=default_rules(self.config.alert_thresholds),
            publisher=self.hub.publish,
            error_handler=self.error_handler
        )
        self.hub.acknowledge_handler = self.alert_engine.acknowledge

        self.ingestion_api = IngestionAPI(
            self.store,
            self.alert_engine,
            publisher=self.hub.publish,
            error_handler=self.error_handler
        )

        intervals = self.config.scheduler
        self.scheduler = Scheduler(self.error_handler)
        self.scheduler.add_task("aggregation", intervals.aggregation_interval, self.aggregation_engine.log_aggregates)
        self.scheduler.add_task("retention", intervals.cleanup_interval, self.retention_manager.purge)
        self.scheduler.add_task("alert_evaluation", intervals.alert_check_interval, self.alert_engine.evaluate)

        self.running = False

    async def start(self, serve_push_channel: bool = True) -> None:
        """Start the scheduler and, optionally, the push channel listener"""
        if self.running:
            return

        if serve_push_channel:
            await self.hub.start()
        await self.scheduler.start()

        self.running = True
        logger.info("Telemetry service started")

    async def stop(self) -> None:
        if not self.running:
            return

        await self.scheduler.stop()
        await self.hub.stop()

        self.running = False
        logger.info("Telemetry service stopped")
