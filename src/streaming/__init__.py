"""
Push Channel Streaming

WebSocket fan-out of live telemetry events to dashboard subscribers.
"""

from .broadcast_hub import (
    BroadcastHub,
    WebSocketConnection,
    ConnectionMetrics,
    MessageType
)

__all__ = [
    'BroadcastHub',
    'WebSocketConnection',
    'ConnectionMetrics',
    'MessageType'
]
