"""Tests for threshold evaluation, external alerts and acknowledgement"""

from unittest.mock import AsyncMock

import pytest

from src.config import AlertThresholdConfig
from src.error_handling import ErrorHandler, MalformedPayloadError
from src.monitoring import AlertEngine, AlertRule, default_rules
from src.storage import Sample

MINUTE_MS = 60 * 1000


@pytest.fixture
def publisher():
    return AsyncMock(return_value=1)


@pytest.fixture
def error_handler():
    return ErrorHandler()


@pytest.fixture
def engine(store, publisher, error_handler):
    return AlertEngine(store, publisher=publisher, error_handler=error_handler)


class TestAlertRules:

    def test_default_rules_follow_thresholds(self):
        rules = default_rules(AlertThresholdConfig(page_load_time=1, search_response_time=2, api_response_time=3))

        assert [(r.metric_name, r.threshold) for r in rules] == [
            ("page_load_time", 1),
            ("search_response_time", 2),
            ("api_response_time", 3),
        ]
        assert rules[0].alert_type == "high_page_load_time"
        assert rules[0].window_ms == 5 * MINUTE_MS


class TestAlertEvaluation:
    """Scheduled threshold checks"""

    @pytest.mark.asyncio
    async def test_breach_raises_system_alert(self, engine, store, publisher):
        store.append(Sample(name="page_load_time", value=5000))

        triggered = await engine.evaluate()

        assert len(triggered) == 1
        alert = triggered[0]
        assert alert.type == "high_page_load_time"
        assert alert.source == "system"
        assert alert.data == {"average": 5000, "threshold": 3000}
        assert alert.id.startswith("system_alert_")
        assert list(store.alerts) == [alert]

        publisher.assert_awaited_once()
        event_type, payload = publisher.await_args.args
        assert event_type == "alert"
        assert payload["type"] == "high_page_load_time"
        assert payload["id"] == alert.id

    @pytest.mark.asyncio
    async def test_average_at_threshold_does_not_alert(self, engine, store):
        store.append(Sample(name="search_response_time", value=400))
        store.append(Sample(name="search_response_time", value=600))

        assert await engine.evaluate() == []

    @pytest.mark.asyncio
    async def test_uses_average_not_peak(self, engine, store):
        store.append(Sample(name="api_response_time", value=3000))
        store.append(Sample(name="api_response_time", value=100))

        assert await engine.evaluate() == []

    @pytest.mark.asyncio
    async def test_non_numeric_values_ignored(self, engine, store):
        store.append(Sample(name="page_load_time", value=1000))
        store.append(Sample(name="page_load_time", value={"ms": 90000}))
        store.append(Sample(name="page_load_time", value="90000"))

        assert await engine.evaluate() == []

        store.append(Sample(name="search_response_time", value=[1, 2]))
        assert await engine.evaluate() == []

    @pytest.mark.asyncio
    async def test_no_samples_no_alert(self, engine, publisher):
        assert await engine.evaluate() == []
        publisher.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_samples_outside_window_ignored(self, engine, store, clock):
        store.append(Sample(name="page_load_time", value=10000))
        clock.advance(5 * MINUTE_MS)

        assert await engine.evaluate() == []

    @pytest.mark.asyncio
    async def test_persistent_breach_alerts_every_pass(self, engine, store):
        store.append(Sample(name="page_load_time", value=5000))

        await engine.evaluate()
        await engine.evaluate()

        assert [a.type for a in store.alerts] == ["high_page_load_time", "high_page_load_time"]

    @pytest.mark.asyncio
    async def test_custom_rules(self, store):
        engine = AlertEngine(store, rules=[AlertRule("memory_usage", 100)])
        store.append(Sample(name="memory_usage", value=150))

        triggered = await engine.evaluate()

        assert [a.type for a in triggered] == ["high_memory_usage"]


class TestExternalAlerts:

    @pytest.mark.asyncio
    async def test_submit_external_stores_and_publishes(self, engine, store, publisher):
        alert = await engine.submit_external({"type": "slow_page", "data": {"ms": 9000}, "sessionId": "abcdefgh12345678"})

        assert alert.id.startswith("alert_")
        assert alert.source == "client"
        assert store.find_alert(alert.id) is alert
        publisher.assert_awaited_once_with("alert", alert.to_dict())

    @pytest.mark.asyncio
    async def test_submit_external_rejects_malformed(self, engine, store, publisher):
        with pytest.raises(MalformedPayloadError):
            await engine.submit_external({"data": 1})

        assert len(store.alerts) == 0
        publisher.assert_not_awaited()


class TestAcknowledge:

    @pytest.mark.asyncio
    async def test_acknowledge_marks_and_broadcasts(self, engine, store, clock, publisher):
        alert = await engine.submit_external({"type": "slow_page"})
        publisher.reset_mock()
        clock.advance(1000)

        assert await engine.acknowledge(alert.id) is True

        assert alert.acknowledged is True
        assert alert.acknowledged_at == clock.now
        event_type, payload = publisher.await_args.args
        assert event_type == "alert"
        assert payload["type"] == "alert_acknowledged"
        assert payload["id"] == alert.id
        assert payload["acknowledged"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("alert_id", ["does-not-exist", None, 12])
    async def test_acknowledge_unknown_id_is_noop(self, engine, store, publisher, alert_id):
        await engine.submit_external({"type": "slow_page"})
        publisher.reset_mock()

        assert await engine.acknowledge(alert_id) is False

        assert all(not a.acknowledged for a in store.alerts)
        publisher.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_id_recorded_as_unknown_resource(self, engine, error_handler):
        assert await engine.acknowledge("alert_missing") is False

        stats = error_handler.get_error_statistics()
        assert stats["error_by_category"] == {"unknown_resource": {"low": 1}}
        assert "alert_missing" in stats["recent_errors"][0]["message"]
