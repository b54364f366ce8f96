"""
PerformanceMonitor: the composition root.

Wires the source adapters into enrichment and fans each EnrichedMetric out
to two independent consumers: the event buffer (analytics shipping) and
the budget validator (real-time policy). The preload engine shares the
context's network reader but runs on its own trigger stream.

Example:
    host = InMemoryHost(url="https://shop.example/")
    config = load_config(Path("pagepulse.toml"))

    async with create_monitor(config, host, channels=["funnel:add_to_cart"]) as monitor:
        monitor.record("bundle_size", 312, unit="kb")
        monitor.preloader.predict({"/checkout": 0.82})

After construction nothing raised inside the monitor reaches the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from pagepulse.budget import (
    Alert,
    AlertSink,
    BudgetReport,
    BudgetValidator,
    CorrectiveActionRegistry,
    LoggingAlertSink,
    Violation,
)
from pagepulse.config import MonitorConfig
from pagepulse.context import MonitorContext
from pagepulse.delivery import DeliveryTransport, EventBuffer, HttpTransport, NullTransport
from pagepulse.enrichment import enrich
from pagepulse.host import PerformanceHost, Unsubscribe
from pagepulse.logging import log_with_context
from pagepulse.models import (
    EnrichedMetric,
    Metric,
    PerformanceEvent,
    PerformanceEventType,
    now_ms,
)
from pagepulse.preload import PreloadEngine
from pagepulse.sources import (
    CustomEventSource,
    InteractionSource,
    LongTaskSource,
    MetricSource,
    NavigationTimingSource,
    ResourceTimingSource,
    WebVitalsSource,
)

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    def __init__(
        self,
        config: MonitorConfig,
        context: MonitorContext,
        *,
        transport: DeliveryTransport | None = None,
        sinks: Iterable[AlertSink] | None = None,
        actions: CorrectiveActionRegistry | None = None,
        channels: Iterable[str] = (),
    ) -> None:
        self.config = config
        self.context = context

        self.buffer = EventBuffer(transport or _default_transport(config), config.buffer)
        self.validator = BudgetValidator(
            config.budgets,
            severity=config.severity,
            escalation=config.escalation,
            sinks=[LoggingAlertSink()] if sinks is None else sinks,
            actions=actions,
            clock=context.clock,
        )
        self.preloader = PreloadEngine(context, config.preload)

        self.custom_events = CustomEventSource(context, channels=channels)
        self.interaction = InteractionSource(context, config=config.interaction)
        self.long_tasks = LongTaskSource(context)
        self.sources: list[MetricSource] = [
            NavigationTimingSource(context),
            ResourceTimingSource(context),
            self.long_tasks,
            WebVitalsSource(context),
            self.custom_events,
            self.interaction,
        ]

        self._subscriptions: list[Unsubscribe] = []
        self._enriched_listeners: list[Callable[[EnrichedMetric], None]] = []
        self._started = False

        self.validator.on_violation(self._on_violation)
        self.validator.on_escalation(self._on_escalation)

    @property
    def actions(self) -> CorrectiveActionRegistry:
        return self.validator.actions

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Attach every source, start the flush timer and intent listeners."""
        if self._started:
            return
        self._started = True
        for source in self.sources:
            self._subscriptions.append(source.subscribe(self.handle_metric))
            try:
                await source.initialize()
            except Exception:
                logger.warning("Source %s failed to initialise", source.name, exc_info=True)
        await self.buffer.start()
        self.preloader.start()
        log_with_context(
            logger,
            logging.INFO,
            "Performance monitor started",
            session_id=self.context.session_id,
            budgets=sorted(self.config.budgets),
            sources=[s.name for s in self.sources],
        )

    async def stop(self) -> None:
        """Tear down sources, timers and in-flight work, then flush."""
        if not self._started:
            return
        self._started = False
        for source in self.sources:
            source.stop()
        while self._subscriptions:
            self._subscriptions.pop()()
        await self.preloader.stop()
        await self.buffer.stop()
        await self.validator.drain()
        logger.info("Performance monitor stopped")

    async def __aenter__(self) -> PerformanceMonitor:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    # =========================================================================
    # Metric pipeline
    # =========================================================================

    def on_enriched(self, listener: Callable[[EnrichedMetric], None]) -> Unsubscribe:
        self._enriched_listeners.append(listener)

        def remove() -> None:
            if listener in self._enriched_listeners:
                self._enriched_listeners.remove(listener)

        return remove

    def handle_metric(self, metric: Metric) -> EnrichedMetric | None:
        """Enrich one metric and hand it to the validator and the buffer."""
        try:
            enriched = enrich(metric, self.context)
        except Exception:
            logger.warning("Enrichment failed for %s", metric.name, exc_info=True)
            return None

        self.validator.validate(enriched)
        try:
            self.buffer.record_event(PerformanceEvent.from_metric(enriched))
        except Exception:
            logger.warning("Could not buffer %s", metric.name, exc_info=True)
        for listener in list(self._enriched_listeners):
            try:
                listener(enriched)
            except Exception:
                logger.warning("Enriched-metric listener failed", exc_info=True)
        return enriched

    def record(
        self,
        name: str,
        value: float,
        *,
        attributes: Mapping[str, Any] | None = None,
        **extra: Any,
    ) -> EnrichedMetric | None:
        """Record an application-defined metric such as bundle_size."""
        try:
            metric = Metric.create(
                name,
                value,
                source="application",
                timestamp=self.context.clock(),
                attributes={**(attributes or {}), **extra},
            )
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed metric %r=%r", name, value)
            return None
        return self.handle_metric(metric)

    def track(self, name: str, detail: Mapping[str, Any] | None = None) -> Metric | None:
        """Record a business funnel step (``funnel:add_to_cart``)."""
        return self.custom_events.track(name, detail)

    def report(self, window_ms: float) -> BudgetReport:
        return self.validator.generate_report(window_ms)

    # =========================================================================
    # Validator listeners
    # =========================================================================

    def _on_violation(self, violation: Violation) -> None:
        self.buffer.record_event(
            self._event(PerformanceEventType.BUDGET_VIOLATION, violation.to_dict(), violation)
        )

    def _on_escalation(self, alert: Alert) -> None:
        self.buffer.record_event(
            self._event(PerformanceEventType.SESSION_ESCALATION, alert.to_dict(), alert)
        )

    def _event(
        self, event_type: str, data: dict[str, Any], source: Violation | Alert
    ) -> PerformanceEvent:
        return PerformanceEvent(
            type=event_type,
            data=MappingProxyType(data),
            timestamp=source.timestamp,
            url=str(source.context.get("url", "")),
            session_id=self.context.session_id,
            user_id=self.context.user_id,
        )


def _default_transport(config: MonitorConfig) -> DeliveryTransport:
    if config.buffer.endpoint:
        return HttpTransport(config.buffer.endpoint, timeout_s=config.buffer.timeout_s)
    return NullTransport()


def create_monitor(
    config: MonitorConfig | None,
    host: PerformanceHost,
    *,
    session_id: str | None = None,
    user_id: str | None = None,
    transport: DeliveryTransport | None = None,
    sinks: Iterable[AlertSink] | None = None,
    actions: CorrectiveActionRegistry | None = None,
    channels: Iterable[str] = (),
    clock: Callable[[], float] = now_ms,
) -> PerformanceMonitor:
    """
    Build an isolated monitor for one page session.

    Configuration errors surface here (ConfigurationError); afterwards the
    monitor absorbs all failures.
    """
    config = config or MonitorConfig()
    context = MonitorContext(
        host=host,
        build_version=config.build_version,
        user_id=user_id,
        clock=clock,
    )
    if session_id:
        context.session_id = session_id
    return PerformanceMonitor(
        config,
        context,
        transport=transport,
        sinks=sinks,
        actions=actions,
        channels=channels,
    )
