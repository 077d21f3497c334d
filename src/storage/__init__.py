"""
In-Memory Telemetry Storage

Bounded process-local storage for performance samples, client sessions and
alerts, plus the retention sweep that ages them out.
"""

from .models import Sample, Session, Alert, is_numeric
from .metric_store import MetricStore, system_clock
from .retention_manager import RetentionManager, PurgeResult

__all__ = [
    'Sample',
    'Session',
    'Alert',
    'is_numeric',
    'MetricStore',
    'system_clock',
    'RetentionManager',
    'PurgeResult'
]
