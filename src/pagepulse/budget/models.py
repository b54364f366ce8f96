"""
Budget violation records.

Severity is a pure function of value / threshold under a SeverityPolicy;
it is recomputed from the violation, never stored separately or mutated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pagepulse.config import SeverityPolicy

_DEFAULT_POLICY = SeverityPolicy()


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH)


def classify_severity(
    value: float, threshold: float, policy: SeverityPolicy = _DEFAULT_POLICY
) -> Severity:
    """
    Grade an over-threshold value.

    ratio > high_ratio -> high; medium_ratio < ratio <= high_ratio -> medium;
    anything else over the threshold -> low.
    """
    ratio = value / threshold
    if ratio > policy.high_ratio:
        return Severity.HIGH
    if ratio > policy.medium_ratio:
        return Severity.MEDIUM
    return Severity.LOW


@dataclass(frozen=True, slots=True)
class Violation:
    """A metric observed above its budget. Append-only; never mutated."""

    metric: str
    value: float
    threshold: float
    unit: str
    timestamp: float
    context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    policy: SeverityPolicy = _DEFAULT_POLICY

    @property
    def overage(self) -> float:
        return self.value - self.threshold

    @property
    def ratio(self) -> float:
        return self.value / self.threshold

    @property
    def severity(self) -> Severity:
        return classify_severity(self.value, self.threshold, self.policy)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "unit": self.unit,
            "overage": self.overage,
            "ratio": round(self.ratio, 4),
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "context": dict(self.context),
        }


class AlertType:
    """Alert types sent to sinks."""

    BUDGET_VIOLATION = "budget_violation"
    SESSION_ESCALATION = "session_escalation"


@dataclass(frozen=True, slots=True)
class Alert:
    """Payload delivered to an alert sink."""

    type: str
    metric: str
    value: float
    threshold: float
    severity: Severity
    context: Mapping[str, Any]
    timestamp: float

    @classmethod
    def for_violation(cls, violation: Violation) -> Alert:
        return cls(
            type=AlertType.BUDGET_VIOLATION,
            metric=violation.metric,
            value=violation.value,
            threshold=violation.threshold,
            severity=violation.severity,
            context=violation.context,
            timestamp=violation.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "context": dict(self.context),
            "timestamp": self.timestamp,
        }
