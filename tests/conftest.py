"""Shared fixtures for the telemetry core tests"""

import pytest

from src.storage.metric_store import MetricStore

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


class FakeClock:
    """Manually advanced epoch-millisecond clock"""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MetricStore(clock=clock)
