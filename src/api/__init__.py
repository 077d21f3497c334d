"""
Ingestion and Query Boundaries

Transport-independent write and read entry points. The FastAPI surface in
``endpoints`` and the push channel both delegate to these.
"""

from .ingestion import IngestionAPI, RECEIVED
from .queries import QueryAPI, TIME_RANGES

__all__ = [
    'IngestionAPI',
    'RECEIVED',
    'QueryAPI',
    'TIME_RANGES'
]
