"""
Budget validator and severity escalation.

For every enriched metric the validator looks up the configured budget by
metric name. No budget means no enforcement. A value above the threshold
becomes a Violation, is appended to the rolling log, and is escalated:

- high:   alert to every sink + corrective actions for the metric
- medium: alert to every sink
- low:    logged only

Independently of severity, more than ``burst_threshold`` violations within
``burst_window_ms`` raises one session escalation alert per window.

validate() is synchronous and bounded; sinks and actions run detached and
nothing they do can propagate back to the caller.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from pagepulse.background import BackgroundTasks
from pagepulse.config import BudgetEntry, EscalationConfig, SeverityPolicy
from pagepulse.host import Unsubscribe
from pagepulse.models import EnrichedMetric, now_ms

from .actions import CorrectiveActionRegistry
from .alerts import AlertSink
from .models import Alert, AlertType, Severity, Violation
from .report import BudgetReport, build_report

logger = logging.getLogger(__name__)

ViolationListener = Callable[[Violation], None]
EscalationListener = Callable[[Alert], None]


@dataclass
class ValidatorStats:
    validated: int = 0
    passed: int = 0
    unbudgeted: int = 0
    violations: int = 0
    alerts_dispatched: int = 0
    escalations: int = 0


class BudgetValidator:
    """
    Validates enriched metrics against a read-only budget map.

    Example:
        validator = BudgetValidator(
            {"lcp": BudgetEntry(threshold=2500, unit="ms")},
            sinks=[LoggingAlertSink()],
        )
        violation = validator.validate(enriched)
        report = validator.generate_report(window_ms=3_600_000)
    """

    def __init__(
        self,
        budgets: Mapping[str, BudgetEntry],
        *,
        severity: SeverityPolicy | None = None,
        escalation: EscalationConfig | None = None,
        sinks: Iterable[AlertSink] = (),
        actions: CorrectiveActionRegistry | None = None,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self._budgets = MappingProxyType({k.lower(): v for k, v in budgets.items()})
        self._policy = severity or SeverityPolicy()
        self._escalation = escalation or EscalationConfig()
        self._sinks = tuple(sinks)
        self.actions = actions or CorrectiveActionRegistry()
        self._clock = clock

        self._log: deque[Violation] = deque(maxlen=self._escalation.max_violations)
        # metric name -> timestamps of violations inside the burst window
        self._rates: dict[str, deque[float]] = {}
        self._last_escalation: float | None = None
        self._violation_listeners: list[ViolationListener] = []
        self._escalation_listeners: list[EscalationListener] = []
        self._tasks = BackgroundTasks("budget-validator")
        self.stats = ValidatorStats()

    @property
    def budgets(self) -> Mapping[str, BudgetEntry]:
        return self._budgets

    @property
    def violations(self) -> list[Violation]:
        return list(self._log)

    def on_violation(self, listener: ViolationListener) -> Unsubscribe:
        return _add(self._violation_listeners, listener)

    def on_escalation(self, listener: EscalationListener) -> Unsubscribe:
        return _add(self._escalation_listeners, listener)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, enriched: EnrichedMetric) -> Violation | None:
        """Check one metric; returns the Violation when its budget is exceeded."""
        try:
            return self._validate(enriched)
        except Exception:
            logger.warning("Budget validation failed for %s", enriched.name, exc_info=True)
            return None

    def _validate(self, enriched: EnrichedMetric) -> Violation | None:
        self.stats.validated += 1
        entry = self._budgets.get(enriched.name)
        if entry is None:
            self.stats.unbudgeted += 1
            return None
        if not enriched.value > entry.threshold:
            self.stats.passed += 1
            return None

        violation = Violation(
            metric=enriched.name,
            value=enriched.value,
            threshold=entry.threshold,
            unit=entry.unit,
            timestamp=self._clock(),
            context=MappingProxyType(enriched.context_dict()),
            policy=self._policy,
        )
        self._record(violation)
        self._escalate(violation)
        self._check_burst(violation)
        return violation

    def _record(self, violation: Violation) -> None:
        self._evict(violation.timestamp)
        self._log.append(violation)
        self._rates.setdefault(violation.metric, deque()).append(violation.timestamp)
        self.stats.violations += 1
        for listener in list(self._violation_listeners):
            try:
                listener(violation)
            except Exception:
                logger.warning("Violation listener failed", exc_info=True)

    def _evict(self, now: float) -> None:
        cutoff = now - self._escalation.retention_ms
        while self._log and self._log[0].timestamp < cutoff:
            self._log.popleft()

        burst_cutoff = now - self._escalation.burst_window_ms
        for name in list(self._rates):
            timestamps = self._rates[name]
            while timestamps and timestamps[0] < burst_cutoff:
                timestamps.popleft()
            if not timestamps:
                del self._rates[name]

    # =========================================================================
    # Escalation
    # =========================================================================

    def _escalate(self, violation: Violation) -> None:
        severity = violation.severity
        if severity == Severity.LOW:
            logger.info(
                "Budget exceeded: %s=%.2f > %.2f (low)",
                violation.metric,
                violation.value,
                violation.threshold,
            )
            return

        self._dispatch(Alert.for_violation(violation))
        if severity == Severity.HIGH:
            self.actions.invoke(violation)

    def _check_burst(self, violation: Violation) -> None:
        now = violation.timestamp
        window = self._escalation.burst_window_ms
        count = self.recent_violation_count()
        if count <= self._escalation.burst_threshold:
            return
        if self._last_escalation is not None and now - self._last_escalation < window:
            return

        self._last_escalation = now
        self.stats.escalations += 1
        alert = Alert(
            type=AlertType.SESSION_ESCALATION,
            metric=violation.metric,
            value=float(count),
            threshold=float(self._escalation.burst_threshold),
            severity=Severity.HIGH,
            context=MappingProxyType(
                {
                    **violation.context,
                    "window_ms": window,
                    "by_metric": {name: len(ts) for name, ts in self._rates.items()},
                }
            ),
            timestamp=now,
        )
        logger.warning(
            "Session escalation: %d budget violations within %.0fms", count, window
        )
        self._dispatch(alert)
        for listener in list(self._escalation_listeners):
            try:
                listener(alert)
            except Exception:
                logger.warning("Escalation listener failed", exc_info=True)

    def _dispatch(self, alert: Alert) -> None:
        for sink in self._sinks:
            try:
                result = sink.send(alert)
            except Exception:
                logger.warning("Alert sink %r failed", sink, exc_info=True)
                continue
            self._tasks.spawn(result, name=f"alert:{alert.metric}")
            self.stats.alerts_dispatched += 1

    def recent_violation_count(self, metric_name: str | None = None) -> int:
        """Violations inside the burst window, for one metric or all of them."""
        if metric_name is not None:
            return len(self._rates.get(metric_name.lower(), ()))
        return sum(len(ts) for ts in self._rates.values())

    # =========================================================================
    # Reporting
    # =========================================================================

    def generate_report(self, window_ms: float) -> BudgetReport:
        """Aggregate violations observed within the last window_ms."""
        now = self._clock()
        self._evict(now)
        cutoff = now - window_ms
        recent = [v for v in self._log if v.timestamp >= cutoff]
        return build_report(recent, configured=self._budgets.keys(), window_ms=window_ms)

    async def drain(self) -> None:
        """Wait for detached alert sends and corrective actions."""
        await self._tasks.drain()
        await self.actions.drain()


def _add(listeners: list, listener: object) -> Unsubscribe:
    listeners.append(listener)

    def remove() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return remove
