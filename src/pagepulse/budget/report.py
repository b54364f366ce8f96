"""Budget health reporting."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from .models import SEVERITY_ORDER, Violation


@dataclass(frozen=True)
class BudgetReport:
    """
    Aggregated violations for a time window.

    budget_health = (configured - distinct violated) / configured * 100,
    clamped at 0; 100.0 when no budgets are configured.
    """

    window_ms: float
    total_violations: int
    configured_metrics: int
    violated_metrics: tuple[str, ...]
    by_metric: dict[str, dict[str, int]] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)
    budget_health: float = 100.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["violated_metrics"] = list(self.violated_metrics)
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def budget_health(configured: int, violated: int) -> float:
    if configured <= 0:
        return 100.0
    return max(0.0, (configured - violated) / configured * 100.0)


def build_report(
    violations: Iterable[Violation],
    *,
    configured: Iterable[str],
    window_ms: float,
) -> BudgetReport:
    configured_names = set(configured)
    by_metric: dict[str, dict[str, int]] = {}
    by_severity = {s.value: 0 for s in SEVERITY_ORDER}
    total = 0

    for violation in violations:
        severity = violation.severity.value
        counts = by_metric.setdefault(
            violation.metric, {**{s.value: 0 for s in SEVERITY_ORDER}, "total": 0}
        )
        counts[severity] += 1
        counts["total"] += 1
        by_severity[severity] += 1
        total += 1

    violated = tuple(sorted(by_metric))
    return BudgetReport(
        window_ms=window_ms,
        total_violations=total,
        configured_metrics=len(configured_names),
        violated_metrics=violated,
        by_metric={name: by_metric[name] for name in violated},
        by_severity=by_severity,
        budget_health=budget_health(
            len(configured_names), len(configured_names.intersection(violated))
        ),
    )
