"""
Performance Monitoring and Alerting

This package provides the analytical half of the telemetry core:

Key Components:
- AggregationEngine: rolling statistics and dashboard snapshots
- AlertEngine: scheduled threshold evaluation and alert acknowledgement
- Scheduler: periodic task loops on the running event loop

Usage:
    from src.storage import MetricStore
    from src.monitoring import AggregationEngine, AlertEngine

    store = MetricStore()
    engine = AggregationEngine(store)
    snapshot = engine.snapshot()
"""

from .aggregation_engine import (
    AggregationEngine,
    calculate_stats,
    percentile,
    PERFORMANCE_FAMILIES
)

from .alert_engine import (
    AlertEngine,
    AlertRule,
    default_rules
)

from .scheduler import (
    Scheduler,
    ScheduledTask
)

__all__ = [
    'AggregationEngine',
    'calculate_stats',
    'percentile',
    'PERFORMANCE_FAMILIES',
    'AlertEngine',
    'AlertRule',
    'default_rules',
    'Scheduler',
    'ScheduledTask'
]
