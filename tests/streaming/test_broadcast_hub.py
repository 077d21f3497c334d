"""Tests for the WebSocket broadcast hub"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from src.api.queries import QueryAPI
from src.config import WebSocketConfig
from src.error_handling import ErrorHandler
from src.monitoring import AggregationEngine
from src.storage import Sample
from src.streaming import BroadcastHub, MessageType


def make_websocket(port=12345):
    websocket = AsyncMock()
    websocket.remote_address = ("127.0.0.1", port)
    websocket.state = State.OPEN
    return websocket


def sent_messages(websocket):
    return [json.loads(call.args[0]) for call in websocket.send.await_args_list]


class TestBroadcastHub:
    """Subscriber registration, fan-out and inbound commands"""

    @pytest.fixture
    def error_handler(self):
        return ErrorHandler()

    @pytest.fixture
    def acknowledge_handler(self):
        return AsyncMock(return_value=True)

    @pytest.fixture
    def hub(self, store, error_handler, acknowledge_handler):
        aggregation = AggregationEngine(store)
        queries = QueryAPI(store, aggregation)
        return BroadcastHub(
            snapshot_provider=aggregation.snapshot,
            history_provider=queries.historical_data,
            acknowledge_handler=acknowledge_handler,
            config=WebSocketConfig(host="127.0.0.1", port=8766),
            error_handler=error_handler
        )

    @pytest.mark.asyncio
    async def test_register_sends_initial_snapshot(self, hub):
        websocket = make_websocket()

        connection = await hub.register(websocket)

        assert connection.connection_id in hub.connections
        assert connection.client_ip == "127.0.0.1"
        assert hub.total_connections == 1
        messages = sent_messages(websocket)
        assert len(messages) == 1
        assert messages[0]["type"] == "initial"
        assert messages[0]["data"]["totalMetrics"] == 0

    @pytest.mark.asyncio
    async def test_register_survives_snapshot_failure(self, hub):
        hub.snapshot_provider = MagicMock(side_effect=RuntimeError("boom"))
        websocket = make_websocket()

        await hub.register(websocket)

        assert sent_messages(websocket) == [{"type": "initial", "data": {}}]

    @pytest.mark.asyncio
    async def test_publish_reaches_every_open_connection(self, hub):
        websockets = [make_websocket(12345 + i) for i in range(3)]
        for websocket in websockets:
            await hub.register(websocket)
            websocket.send.reset_mock()

        sent = await hub.publish("metric", {"name": "page_load_time", "value": 1})
        await hub.flush()

        assert sent == 3
        for websocket in websockets:
            assert sent_messages(websocket) == [
                {"type": "metric", "data": {"name": "page_load_time", "value": 1}}
            ]

    @pytest.mark.asyncio
    async def test_publish_skips_and_prunes_closed_connections(self, hub):
        websockets = [make_websocket(12345 + i) for i in range(3)]
        connections = [await hub.register(websocket) for websocket in websockets]
        for websocket in websockets:
            websocket.send.reset_mock()

        websockets[1].state = State.CLOSED
        sent = await hub.publish("alert", {"id": "a"})
        await hub.flush()

        assert sent == 2
        websockets[1].send.assert_not_awaited()
        websockets[0].send.assert_awaited_once()
        websockets[2].send.assert_awaited_once()
        assert connections[1].connection_id not in hub.connections
        assert len(hub.connections) == 2

    @pytest.mark.asyncio
    async def test_send_failure_is_isolated(self, hub, error_handler):
        websockets = [make_websocket(12345 + i) for i in range(3)]
        connections = [await hub.register(websocket) for websocket in websockets]

        websockets[0].send.side_effect = ConnectionClosed(None, None)
        websockets[2].send.side_effect = RuntimeError("socket buffer full")

        sent = await hub.publish("metric", {"value": 1})
        await hub.flush()

        assert sent == 3
        assert connections[0].connection_id not in hub.connections
        assert connections[1].connection_id in hub.connections
        assert connections[2].metrics.send_failures == 1
        stats = error_handler.get_error_statistics()
        assert stats["error_by_category"]["transport_failure"]["low"] == 2

    @pytest.mark.asyncio
    async def test_stalled_subscriber_does_not_block_publish(self, hub):
        stalled_ws, healthy_ws = make_websocket(1), make_websocket(2)
        stalled = await hub.register(stalled_ws)
        await hub.register(healthy_ws)
        healthy_ws.send.reset_mock()

        release = asyncio.Event()

        async def hang(_):
            await release.wait()

        stalled_ws.send.side_effect = hang

        first = await asyncio.wait_for(hub.publish("metric", {"value": 1}), timeout=1.0)
        await hub.flush(timeout=0.05)
        assert stalled.sends_in_progress == 1
        assert not stalled.is_writable

        second = await asyncio.wait_for(hub.publish("metric", {"value": 2}), timeout=1.0)
        await hub.flush(timeout=0.05)

        assert first == 2
        assert second == 1
        assert stalled.metrics.events_skipped == 1
        assert [m["data"]["value"] for m in sent_messages(healthy_ws)] == [1, 2]
        assert stalled.connection_id in hub.connections

        release.set()
        await hub.flush()
        assert stalled.is_writable
        assert hub.get_connection_details()[0]["events_skipped"] == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_sends(self, hub):
        websocket = make_websocket()
        connection = await hub.register(websocket)

        async def hang(_):
            await asyncio.Event().wait()

        websocket.send.side_effect = hang
        await hub.publish("metric", {"value": 1})
        await hub.flush(timeout=0.05)
        assert connection.sends_in_progress == 1

        await asyncio.wait_for(hub.stop(), timeout=1.0)

        assert hub._pending_sends == set()
        assert connection.sends_in_progress == 0
        assert hub.connections == {}

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self, hub):
        assert await hub.publish("metric", {}) == 0
        assert hub.events_published == 1

    @pytest.mark.asyncio
    async def test_invalid_json_gets_error_reply(self, hub, error_handler):
        websocket = make_websocket()
        connection = await hub.register(websocket)
        websocket.send.reset_mock()

        await hub.handle_message(connection, "{not json")

        messages = sent_messages(websocket)
        assert messages[0]["type"] == MessageType.ERROR.value
        assert "Invalid JSON" in messages[0]["error"]
        websocket.close.assert_not_awaited()
        assert connection.connection_id in hub.connections
        assert "malformed_payload" in error_handler.get_error_statistics()["error_by_category"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ['["list"]', '{"type": "subscribe"}', '{"no_type": 1}'])
    async def test_unusable_messages_get_error_reply(self, hub, raw):
        websocket = make_websocket()
        connection = await hub.register(websocket)
        websocket.send.reset_mock()

        await hub.handle_message(connection, raw)

        assert sent_messages(websocket)[0]["type"] == "error"

    @pytest.mark.asyncio
    async def test_acknowledge_alert_command(self, hub, acknowledge_handler):
        connection = await hub.register(make_websocket())

        await hub.handle_message(connection, json.dumps({"type": "acknowledge_alert", "alertId": "alert_1"}))

        acknowledge_handler.assert_awaited_once_with("alert_1")

    @pytest.mark.asyncio
    async def test_handler_failure_gets_generic_error(self, hub, acknowledge_handler):
        acknowledge_handler.side_effect = RuntimeError("boom")
        websocket = make_websocket()
        connection = await hub.register(websocket)
        websocket.send.reset_mock()

        await hub.handle_message(connection, json.dumps({"type": "acknowledge_alert", "alertId": "x"}))

        assert sent_messages(websocket)[0]["error"] == "Internal server error"

    @pytest.mark.asyncio
    async def test_metric_history_replies_to_requester_only(self, hub, store):
        store.append(Sample(name="page_load_time", value=1200))
        requester, bystander = make_websocket(1), make_websocket(2)
        connection = await hub.register(requester)
        await hub.register(bystander)
        requester.send.reset_mock()
        bystander.send.reset_mock()

        await hub.handle_message(connection, json.dumps({
            "type": "request_metric_history",
            "metricName": "page_load_time",
            "timeRange": "6h"
        }))

        reply = sent_messages(requester)[0]
        assert reply["type"] == "metric_history"
        assert reply["metric"] == "page_load_time"
        assert [point["value"] for point in reply["data"]] == [1200]
        bystander.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metric_history_requires_metric_name(self, hub):
        websocket = make_websocket()
        connection = await hub.register(websocket)
        websocket.send.reset_mock()

        await hub.handle_message(connection, json.dumps({"type": "request_metric_history"}))

        assert sent_messages(websocket)[0]["type"] == "error"

    @pytest.mark.asyncio
    async def test_connection_lifecycle(self, hub, acknowledge_handler):
        websocket = make_websocket()
        websocket.__aiter__.return_value = [
            json.dumps({"type": "acknowledge_alert", "alertId": "a1"}),
            "garbage"
        ]

        await hub._handle_connection(websocket)

        acknowledge_handler.assert_awaited_once_with("a1")
        types = [message["type"] for message in sent_messages(websocket)]
        assert types == ["initial", "error"]
        assert hub.connections == {}
        assert hub.total_connections == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self, hub):
        server = MagicMock()
        server.wait_closed = AsyncMock()

        with patch("src.streaming.broadcast_hub.websockets") as mock_websockets:
            mock_websockets.serve = AsyncMock(return_value=server)
            await hub.start()

            assert hub.is_running
            mock_websockets.serve.assert_awaited_once()
            assert mock_websockets.serve.await_args.args[1:] == ("127.0.0.1", 8766)

            websocket = make_websocket()
            await hub.register(websocket)
            await hub.stop()

        assert not hub.is_running
        assert hub.connections == {}
        websocket.close.assert_awaited_once()
        server.close.assert_called_once()
        server.wait_closed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stats_and_connection_details(self, hub):
        await hub.register(make_websocket())
        await hub.publish("metric", {"value": 1})
        await hub.flush()

        stats = hub.get_stats()
        assert stats["active_connections"] == 1
        assert stats["events_published"] == 1
        assert stats["server_info"]["port"] == 8766

        details = hub.get_connection_details()
        assert details[0]["messages_sent"] == 2
        assert details[0]["client_ip"] == "127.0.0.1"
