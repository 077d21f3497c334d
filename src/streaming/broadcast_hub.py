"""
Real-Time Broadcast Hub for the Performance Dashboard
Maintains dashboard subscriber connections, fans out metric and alert events,
and answers on-demand history requests on the requesting connection only.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from dataclasses import dataclass, field
from enum import Enum
from functools import partial

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from ..config.config_manager import WebSocketConfig
from ..error_handling.error_manager import (
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    MalformedPayloadError,
    TransportFailureError
)

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], Dict[str, Any]]
HistoryProvider = Callable[[str, Optional[str]], List[Dict[str, Any]]]
AcknowledgeHandler = Callable[[str], Awaitable[Any]]


class MessageType(Enum):
    """Push channel message types"""
    INITIAL = "initial"
    METRIC = "metric"
    ALERT = "alert"
    METRIC_HISTORY = "metric_history"
    ACKNOWLEDGE_ALERT = "acknowledge_alert"
    REQUEST_METRIC_HISTORY = "request_metric_history"
    ERROR = "error"


@dataclass
class ConnectionMetrics:
    """Metrics for an individual subscriber connection"""
    connection_id: str
    client_ip: str
    connected_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)
    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    send_failures: int = 0
    events_skipped: int = 0

    @property
    def connection_duration(self) -> float:
        return (datetime.now() - self.connected_at).total_seconds()


class WebSocketConnection:
    """Subscriber connection wrapper with send-side failure isolation"""

    def __init__(self, websocket, connection_id: str, client_ip: str = "unknown"):
        self.websocket = websocket
        self.connection_id = connection_id
        self.client_ip = client_ip
        self.metrics = ConnectionMetrics(connection_id=connection_id, client_ip=client_ip)
        self.is_alive = True
        self.sends_in_progress = 0

    @property
    def is_open(self) -> bool:
        """Whether the connection is still established"""
        if not self.is_alive:
            return False
        return getattr(self.websocket, "state", State.OPEN) not in (State.CLOSING, State.CLOSED)

    @property
    def is_writable(self) -> bool:
        """Open and not stuck on an earlier write"""
        return self.is_open and self.sends_in_progress == 0

    async def send_text(self, text: str) -> bool:
        """Send an already serialized message

        Returns:
            True if the transport accepted the message
        """
        try:
            if not self.is_open:
                return False

            self.sends_in_progress += 1
            try:
                await self.websocket.send(text)
            finally:
                self.sends_in_progress -= 1

            self.metrics.messages_sent += 1
            self.metrics.bytes_sent += len(text.encode('utf-8'))
            self.metrics.last_activity = datetime.now()
            return True

        except (ConnectionClosed, WebSocketException) as e:
            logger.debug(f"Connection {self.connection_id} closed during send: {e}")
            self.is_alive = False
            self.metrics.send_failures += 1
            return False
        except Exception as e:
            logger.error(f"Error sending message to {self.connection_id}: {e}")
            self.metrics.send_failures += 1
            return False

    async def send_message(self, message: Dict[str, Any]) -> bool:
        return await self.send_text(json.dumps(message, default=str))

    async def send_error(self, error_message: str) -> None:
        await self.send_message({
            "type": MessageType.ERROR.value,
            "error": error_message,
            "timestamp": datetime.now().isoformat()
        })

    def record_received(self, raw: Any) -> None:
        self.metrics.messages_received += 1
        if isinstance(raw, (bytes, bytearray)):
            self.metrics.bytes_received += len(raw)
        else:
            self.metrics.bytes_received += len(str(raw).encode('utf-8'))
        self.metrics.last_activity = datetime.now()

    async def close(self):
        self.is_alive = False
        try:
            await self.websocket.close()
        except Exception as e:
            logger.debug(f"Error closing connection {self.connection_id}: {e}")


class BroadcastHub:
    """Push channel server fanning telemetry events out to dashboard viewers"""

    def __init__(
        self,
        snapshot_provider: SnapshotProvider,
        history_provider: HistoryProvider,
        acknowledge_handler: Optional[AcknowledgeHandler] = None,
        config: Optional[WebSocketConfig] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        """Initialize the hub

        Args:
            snapshot_provider: Returns the dashboard snapshot sent on connect
            history_provider: ``(metric_name, time_range)`` -> history points
            acknowledge_handler: Coroutine function acknowledging an alert id
            config: Push channel listen configuration
            error_handler: Shared error handler for transport/payload failures
        """
        self.config = config or WebSocketConfig()
        self.snapshot_provider = snapshot_provider
        self.history_provider = history_provider
        self.acknowledge_handler = acknowledge_handler
        self.error_handler = error_handler or ErrorHandler()

        self.connections: Dict[str, WebSocketConnection] = {}

        self.server = None
        self.is_running = False
        self.start_time = datetime.now()
        self.total_connections = 0
        self.events_published = 0
        self._pending_sends: Set[asyncio.Task] = set()

        self.message_handlers: Dict[str, Callable[[WebSocketConnection, Dict[str, Any]], Awaitable[None]]] = {
            MessageType.ACKNOWLEDGE_ALERT.value: self._handle_acknowledge_alert,
            MessageType.REQUEST_METRIC_HISTORY.value: self._handle_request_metric_history,
        }

    async def start(self) -> None:
        """Start listening for subscriber connections"""
        logger.info(f"Starting WebSocket server on {self.config.host}:{self.config.port}")

        self.server = await websockets.serve(
            self._handle_connection,
            self.config.host,
            self.config.port,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
            max_size=self.config.max_message_size,
            compression=None
        )

        self.is_running = True
        self.start_time = datetime.now()
        logger.info(f"WebSocket server running on port {self.config.port}")

    async def stop(self) -> None:
        """Close every connection and stop the server"""
        logger.info("Stopping WebSocket server...")
        self.is_running = False

        pending = list(self._pending_sends)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending_sends.clear()

        close_tasks =[connection.close() for connection in list(self.connections.values())]
        if close_tasks:
            await asyncio.gather(*close_tasks, return_exceptions=True)
        self.connections.clear()

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        logger.info("WebSocket server stopped")

    async def _handle_connection(self, websocket) -> None:
        """Serve one subscriber for the lifetime of its connection"""
        connection = await self.register(websocket)
        try:
            await self._message_loop(connection)
        except Exception as e:
            logger.error(f"Error handling connection {connection.connection_id}: {e}")
        finally:
            self.unregister(connection.connection_id)

    async def register(self, websocket) -> WebSocketConnection:
        """Track a new subscriber and send it the initial snapshot"""
        remote = getattr(websocket, "remote_address", None)
        client_ip = remote[0] if remote else "unknown"
        connection = WebSocketConnection(websocket, str(uuid.uuid4()), client_ip)

        self.connections[connection.connection_id] = connection
        self.total_connections += 1
        logger.info(f"Dashboard client connected: {connection.connection_id} from {client_ip}")

        try:
            snapshot = self.snapshot_provider()
        except Exception as e:
            logger.error(f"Failed to build initial snapshot: {e}")
            snapshot = {}

        await connection.send_message({
            "type": MessageType.INITIAL.value,
            "data": snapshot
        })
        return connection

    def unregister(self, connection_id: str) -> None:
        if self.connections.pop(connection_id, None) is not None:
            logger.info(f"Dashboard client disconnected: {connection_id}")

    async def _message_loop(self, connection: WebSocketConnection) -> None:
        try:
            async for raw in connection.websocket:
                connection.record_received(raw)
                await self.handle_message(connection, raw)
        except (ConnectionClosed, WebSocketException) as e:
            logger.debug(f"Connection {connection.connection_id} closed: {e}")
        finally:
            connection.is_alive = False

    async def handle_message(self, connection: WebSocketConnection, raw: Any) -> None:
        """Parse and dispatch one inbound message

        Malformed payloads and handler failures are logged and reported to the
        sender; they never close the connection.
        """
        try:
            try:
                message = json.loads(raw)
            except (TypeError, ValueError) as e:
                raise MalformedPayloadError(f"Invalid JSON: {e}")

            if not isinstance(message, dict):
                raise MalformedPayloadError("Message must be a JSON object")

            message_type = message.get("type")
            handler = self.message_handlers.get(message_type)
            if handler is None:
                raise MalformedPayloadError(f"Unknown message type: {message_type}")

            await handler(connection, message)

        except MalformedPayloadError as e:
            self._record(e, connection, "handle_message", ErrorCategory.MALFORMED_PAYLOAD)
            await connection.send_error(str(e))
        except Exception as e:
            self._record(e, connection, "handle_message", ErrorCategory.SYSTEM, ErrorSeverity.HIGH)
            await connection.send_error("Internal server error")

    async def _handle_acknowledge_alert(self, connection: WebSocketConnection, message: Dict[str, Any]) -> None:
        if self.acknowledge_handler is not None:
            await self.acknowledge_handler(message.get("alertId"))

    async def _handle_request_metric_history(self, connection: WebSocketConnection, message: Dict[str, Any]) -> None:
        metric_name = message.get("metricName")
        if not isinstance(metric_name, str):
            raise MalformedPayloadError("metricName must be a string")

        history = self.history_provider(metric_name, message.get("timeRange"))
        await connection.send_message({
            "type": MessageType.METRIC_HISTORY.value,
            "metric": metric_name,
            "data": history
        })

    async def publish(self, event_type: str, data: Dict[str, Any]) -> int:
        """Hand an event to every writable connection

        Sends run as background tasks so the caller never waits on a
        subscriber. Closed connections are pruned, and a connection still
        stuck on an earlier write misses this event. Nothing is queued or
        retried.

        Returns:
            Number of connections the event was dispatched to
        """
        message = json.dumps({"type": event_type, "data": data}, default=str)
        self.events_published += 1

        dispatched = 0
        for connection in list(self.connections.values()):
            if not connection.is_open:
                continue
            if not connection.is_writable:
                connection.metrics.events_skipped += 1
                logger.debug(f"Skipping {event_type} for stalled connection {connection.connection_id}")
                continue

            task = asyncio.create_task(connection.send_text(message))
            self._pending_sends.add(task)
            task.add_done_callback(partial(self._on_send_done, connection))
            dispatched += 1

        self._prune_dead()
        return dispatched

    def _on_send_done(self, connection: WebSocketConnection, task: asyncio.Task) -> None:
        self._pending_sends.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is None and task.result() is True:
            return

        self._record(
            error or TransportFailureError(f"Send to {connection.connection_id} failed"),
            connection,
            "publish",
            ErrorCategory.TRANSPORT_FAILURE,
            ErrorSeverity.LOW
        )
        if not connection.is_open:
            self.unregister(connection.connection_id)

    async def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight publish sends to finish, up to ``timeout`` seconds"""
        if self._pending_sends:
            await asyncio.wait(list(self._pending_sends), timeout=timeout)

    def _prune_dead(self) -> None:
        for connection_id, connection in list(self.connections.items()):
            if not connection.is_open:
                self.unregister(connection_id)

    def _record(
        self,
        error: Exception,
        connection: WebSocketConnection,
        operation: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM
    ) -> None:
        self.error_handler.handle_error(
            error,
            ErrorContext(
                component="broadcast_hub",
                operation=operation,
                additional_data={"connection_id": connection.connection_id}
            ),
            category,
            severity
        )

    def get_connection_details(self) -> List[Dict[str, Any]]:
        return [
            {
                "connection_id": connection.connection_id,
                "client_ip": connection.client_ip,
                "connected_at": connection.metrics.connected_at.isoformat(),
                "connection_duration": connection.metrics.connection_duration,
                "messages_sent": connection.metrics.messages_sent,
                "messages_received": connection.metrics.messages_received,
                "bytes_sent": connection.metrics.bytes_sent,
                "bytes_received": connection.metrics.bytes_received,
                "send_failures": connection.metrics.send_failures,
                "events_skipped": connection.metrics.events_skipped
            }
            for connection in self.connections.values()
        ]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_connections": len(self.connections),
            "total_connections": self.total_connections,
            "events_published": self.events_published,
            "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
            "server_info": {
                "host": self.config.host,
                "port": self.config.port,
                "is_running": self.is_running
            }
        }
