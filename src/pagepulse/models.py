"""
Core telemetry records for pagepulse.

A Metric is produced by exactly one source adapter and is never mutated.
Enrichment creates a new EnrichedMetric rather than decorating the Metric
in place, so every consumer can hold its own reference safely.

PerformanceEvent is the wire envelope shipped to the collection endpoint:

    {"type": "metric", "data": {...}, "timestamp": 1700000000000.0,
     "url": "https://shop.example/cart", "sessionId": "...", "userId": null}
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


class MetricName(StrEnum):
    """Standard metric names. Custom metrics use free-form strings."""

    LCP = "lcp"
    INP = "inp"
    FID = "fid"
    CLS = "cls"
    FCP = "fcp"
    TTFB = "ttfb"


class Rating(StrEnum):
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs-improvement"
    POOR = "poor"


class ConnectionClass(StrEnum):
    SLOW_2G = "slow-2g"
    TWO_G = "2g"
    THREE_G = "3g"
    FOUR_G = "4g"
    UNKNOWN = "unknown"


class DeviceClass(StrEnum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    UNKNOWN = "unknown"


# (good upper bound, poor lower bound) per standard metric
RATING_THRESHOLDS: dict[str, tuple[float, float]] = {
    MetricName.LCP: (2500.0, 4000.0),
    MetricName.INP: (200.0, 500.0),
    MetricName.FID: (100.0, 300.0),
    MetricName.CLS: (0.1, 0.25),
    MetricName.FCP: (1800.0, 3000.0),
    MetricName.TTFB: (800.0, 1800.0),
}


def rate(name: str, value: float) -> Rating | None:
    """Rate a value against the vendor thresholds; None for custom metrics."""
    bounds = RATING_THRESHOLDS.get(name)
    if bounds is None:
        return None
    good, poor = bounds
    if value <= good:
        return Rating.GOOD
    if value <= poor:
        return Rating.NEEDS_IMPROVEMENT
    return Rating.POOR


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class Metric:
    """
    One observed measurement.

    Attributes:
        name: Lower-case metric name (see MetricName for the standard set)
        value: Measured value; unit depends on the metric
        timestamp: Epoch milliseconds when the observation was made
        rating: good / needs-improvement / poor, None for custom metrics
        source: Name of the adapter that produced the metric
        attributes: Read-only extra detail (resource URL, initiator, ...)
    """

    name: str
    value: float
    timestamp: float = field(default_factory=now_ms)
    rating: Rating | None = None
    source: str = "custom"
    attributes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def create(
        cls,
        name: str,
        value: float,
        *,
        source: str = "custom",
        timestamp: float | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> Metric:
        """Build a metric with a normalised name and a derived rating."""
        normalised = name.strip().lower()
        return cls(
            name=normalised,
            value=float(value),
            timestamp=now_ms() if timestamp is None else timestamp,
            rating=rate(normalised, float(value)),
            source=source,
            attributes=_frozen(attributes),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "timestamp": self.timestamp,
            "rating": self.rating.value if self.rating else None,
            "source": self.source,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True, slots=True)
class Viewport:
    width: int
    height: int
    pixel_ratio: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height, "pixelRatio": self.pixel_ratio}


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    """Snapshot of the Network Information API."""

    effective_type: str | None = None
    downlink_mbps: float | None = None
    rtt_ms: float | None = None
    save_data: bool = False


@dataclass(frozen=True, slots=True)
class EnrichedMetric:
    """A Metric plus the ambient context it was observed in."""

    metric: Metric
    url: str
    connection_class: ConnectionClass
    viewport: Viewport | None
    device_class: DeviceClass
    session_id: str
    user_id: str | None
    build_version: str

    @property
    def name(self) -> str:
        return self.metric.name

    @property
    def value(self) -> float:
        return self.metric.value

    @property
    def timestamp(self) -> float:
        return self.metric.timestamp

    @property
    def rating(self) -> Rating | None:
        return self.metric.rating

    def context_dict(self) -> dict[str, Any]:
        """Context fields copied into violations and alerts."""
        return {
            "url": self.url,
            "connectionClass": self.connection_class.value,
            "deviceClass": self.device_class.value,
            "viewport": self.viewport.to_dict() if self.viewport else None,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "buildVersion": self.build_version,
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.metric.to_dict(), **self.context_dict()}


class PerformanceEventType:
    """Standard performance event types."""

    METRIC = "metric"
    BUDGET_VIOLATION = "budget_violation"
    SESSION_ESCALATION = "session_escalation"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class PerformanceEvent:
    """Envelope appended to the event buffer and shipped in batches."""

    type: str
    data: Mapping[str, Any]
    timestamp: float
    url: str
    session_id: str
    user_id: str | None = None

    @classmethod
    def from_metric(cls, enriched: EnrichedMetric) -> PerformanceEvent:
        return cls(
            type=PerformanceEventType.METRIC,
            data=_frozen(enriched.metric.to_dict()),
            timestamp=enriched.timestamp,
            url=enriched.url,
            session_id=enriched.session_id,
            user_id=enriched.user_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "data": dict(self.data),
            "timestamp": self.timestamp,
            "url": self.url,
            "sessionId": self.session_id,
            "userId": self.user_id,
        }
