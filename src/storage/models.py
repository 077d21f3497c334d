"""Telemetry Data Models

Sample, Session and Alert records held by the MetricStore, together with
their camelCase wire projections used by the HTTP and push-channel surfaces.
Timestamps are epoch milliseconds.
"""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Dict, List, Optional, Any, Mapping

from ..error_handling.error_manager import MalformedPayloadError


def is_numeric(value: Any) -> bool:
    """Whether a sample value can take part in statistics and thresholds"""
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class Sample:
    """One timestamped (metric name, value) observation

    Values are usually latencies in milliseconds, but any JSON value is kept
    (e.g. a ``session_summary`` object); only numeric values are aggregated.
    """
    name: str
    value: Any
    tags: Dict[str, Any] = field(default_factory=dict)
    received_at: int = 0
    timestamp: Optional[Any] = None  # client-side timestamp, passed through

    @property
    def session_id(self) -> Optional[str]:
        return self.tags.get("sessionId")

    @classmethod
    def from_payload(cls, payload: Any) -> "Sample":
        """Build an unstamped sample from a submitted metric body

        Raises:
            MalformedPayloadError: If name, value or tags are unusable
        """
        if not isinstance(payload, Mapping):
            raise MalformedPayloadError("Metric payload must be an object")

        name = payload.get("name")
        if not isinstance(name, str) or not name:
            raise MalformedPayloadError("Metric name must be a non-empty string")

        if "value" not in payload:
            raise MalformedPayloadError(f"Metric {name} has no value")

        value = payload["value"]
        # NaN and Infinity cannot be written back out as JSON
        if isinstance(value, float) and not math.isfinite(value):
            raise MalformedPayloadError(f"Metric value for {name} must be finite")

        tags = payload.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise MalformedPayloadError(f"Metric tags for {name} must be an object")

        return cls(
            name=name,
            value=value,
            tags=dict(tags),
            timestamp=payload.get("timestamp")
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "value": self.value,
            "tags": dict(self.tags),
            "receivedAt": self.received_at
        }
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        return result


@dataclass
class Session:
    """Client-side grouping of samples sharing a session identifier"""
    session_id: str
    start_time: int
    last_activity: int
    metrics: List[Sample] = field(default_factory=list)
    user_agent: Optional[str] = None
    url: Optional[str] = None

    def record(self, sample: Sample) -> None:
        self.last_activity = sample.received_at
        self.metrics.append(sample)

    def is_active(self, now: int, timeout_ms: float) -> bool:
        return (now - self.last_activity) < timeout_ms


@dataclass
class Alert:
    """Alert raised by the system or submitted by a client"""
    type: str
    data: Any = None
    source: str = "client"
    timestamp: Optional[Any] = None
    session_id: Optional[str] = None
    id: Optional[str] = None
    received_at: int = 0
    acknowledged: bool = False
    acknowledged_at: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    RESERVED_KEYS = frozenset({
        "type", "data", "source", "timestamp", "sessionId", "id",
        "receivedAt", "acknowledged", "acknowledgedAt"
    })

    @classmethod
    def from_payload(cls, payload: Any) -> "Alert":
        """Build an unstamped alert from a submitted alert body

        Only structural presence is checked: the body must be an object with a
        non-empty string ``type``. Submitted alerts are always sourced from
        ``client``; a caller-supplied ``source`` is ignored.

        Raises:
            MalformedPayloadError: If the body has no usable type
        """
        if not isinstance(payload, Mapping):
            raise MalformedPayloadError("Alert payload must be an object")

        alert_type = payload.get("type")
        if not isinstance(alert_type, str) or not alert_type:
            raise MalformedPayloadError("Alert type must be a non-empty string")

        return cls(
            type=alert_type,
            data=payload.get("data"),
            source="client",
            timestamp=payload.get("timestamp"),
            session_id=payload.get("sessionId"),
            extra={k: v for k, v in payload.items() if k not in cls.RESERVED_KEYS}
        )

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        result.update({
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
            "receivedAt": self.received_at,
            "acknowledged": self.acknowledged
        })
        if self.session_id is not None:
            result["sessionId"] = self.session_id
        if self.acknowledged_at is not None:
            result["acknowledgedAt"] = self.acknowledged_at
        return result
