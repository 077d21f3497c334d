"""Tests for the dashboard query surface"""

import pytest

from src.api import QueryAPI, TIME_RANGES
from src.monitoring import AggregationEngine
from src.storage import Alert, Sample

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


@pytest.fixture
def queries(store):
    return QueryAPI(store, AggregationEngine(store))


class TestRecentAlerts:

    def test_newest_first_with_limit(self, queries, store, clock):
        for i in range(5):
            store.append_alert(Alert(type=f"alert_{i}"))
            clock.advance(1000)

        alerts = queries.recent_alerts(limit=3)

        assert [a["type"] for a in alerts] == ["alert_4", "alert_3", "alert_2"]
        assert "receivedAt" in alerts[0]

    def test_default_limit_is_fifty(self, queries, store):
        for i in range(60):
            store.append_alert(Alert(type="x"))
        assert len(queries.recent_alerts()) == 50

    def test_zero_and_negative_limit(self, queries, store):
        store.append_alert(Alert(type="x"))
        assert queries.recent_alerts(0) == []
        assert queries.recent_alerts(-5) == []


class TestActiveSessions:

    def test_session_expires_at_thirty_minutes(self, queries, store, clock):
        store.append(Sample(name="page_load_time", value=1, tags={"sessionId": "s1"}))

        clock.advance(30 * MINUTE_MS - 1)
        assert [s["sessionId"] for s in queries.active_sessions()] == ["s1"]

        clock.advance(1)
        assert queries.active_sessions() == []
        assert "s1" in store.sessions

    def test_session_projection(self, queries, store, clock):
        user_agent = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko)"
        start = clock.now
        store.append(Sample(name="page_load_time", value=1, tags={
            "sessionId": "s1", "userAgent": user_agent, "url": "/search"
        }))
        clock.advance(2000)
        store.append(Sample(name="search_response_time", value=2, tags={"sessionId": "s1"}))
        clock.advance(1000)

        session = queries.active_sessions()[0]

        assert session == {
            "sessionId": "s1",
            "startTime": start,
            "lastActivity": start + 2000,
            "duration": 3000,
            "metricCount": 2,
            "truncatedUserAgent": user_agent[:50] + "...",
            "url": "/search"
        }

    def test_missing_user_agent(self, queries, store):
        store.append(Sample(name="x", value=1, tags={"sessionId": "s"}))
        assert queries.active_sessions()[0]["truncatedUserAgent"] is None


class TestHistoricalData:

    def test_default_window_is_one_hour(self, queries, store, clock):
        store.append(Sample(name="page_load_time", value=1))
        clock.advance(90 * MINUTE_MS)
        recent = store.append(Sample(name="page_load_time", value=2))
        store.append(Sample(name="search_response_time", value=3))
        clock.advance(30 * MINUTE_MS)

        assert queries.historical_data("page_load_time") == [
            {"timestamp": recent.received_at, "value": 2}
        ]

    @pytest.mark.parametrize("time_range,expected", [("6h", [1, 2]), ("24h", [1, 2]), ("7d", [1, 2]), ("bogus", [2]), (None, [2])])
    def test_time_ranges(self, queries, store, clock, time_range, expected):
        store.append(Sample(name="api_response_time", value=1))
        clock.advance(2 * HOUR_MS)
        store.append(Sample(name="api_response_time", value=2))

        points = queries.historical_data("api_response_time", time_range)

        assert [p["value"] for p in points] == expected

    def test_time_range_table(self):
        assert TIME_RANGES == {"1h": HOUR_MS, "6h": 6 * HOUR_MS, "24h": 24 * HOUR_MS, "7d": 7 * 24 * HOUR_MS}

    def test_unknown_metric(self, queries):
        assert queries.historical_data("nothing") == []


class TestSnapshotAndHealth:

    def test_dashboard_metrics(self, queries, store):
        store.append(Sample(name="page_load_time", value=100))
        assert queries.dashboard_metrics()["totalMetrics"] == 1

    def test_health(self, queries):
        health = queries.health()

        assert health["status"] == "healthy"
        assert health["uptime"] >= 0
        assert health["memory"]["rss"] > 0
        assert "T" in health["timestamp"]
