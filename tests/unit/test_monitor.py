"""End-to-end tests for the composed PerformanceMonitor."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from pagepulse import create_monitor
from pagepulse.budget import Alert, Severity, Violation
from pagepulse.config import BufferConfig, MonitorConfig
from pagepulse.delivery import DeliveryAttempt, HttpTransport, NullTransport
from pagepulse.host import DomEvent, InMemoryHost
from pagepulse.models import EnrichedMetric, PerformanceEvent, PerformanceEventType


class RecordingTransport:
    def __init__(self) -> None:
        self.events: list[PerformanceEvent] = []

    async def send(self, events: Sequence[PerformanceEvent]) -> DeliveryAttempt:
        self.events.extend(events)
        return DeliveryAttempt(endpoint="memory", event_count=len(events))


class RecordingSink:
    def __init__(self) -> None:
        self.alerts: list[Alert] = []

    def send(self, alert: Alert) -> None:
        self.alerts.append(alert)


class TestPerformanceMonitor:
    @pytest.mark.asyncio
    async def test_vital_flows_to_buffer_and_validator(
        self, config: MonitorConfig, host: InMemoryHost, clock
    ) -> None:
        transport = RecordingTransport()
        sink = RecordingSink()
        monitor = create_monitor(
            config, host, transport=transport, sinks=[sink], session_id="sess-42", clock=clock
        )
        shed: list[Violation] = []
        monitor.actions.register("lcp", shed.append)

        async with monitor:
            host.report_vital("on_lcp", 6000)

        types = [e.type for e in transport.events]
        assert types == [PerformanceEventType.BUDGET_VIOLATION, PerformanceEventType.METRIC]
        metric_event = transport.events[1]
        assert metric_event.data["name"] == "lcp"
        assert metric_event.session_id == "sess-42"
        assert transport.events[0].data["severity"] == "high"

        assert [a.severity for a in sink.alerts] == [Severity.HIGH]
        assert [v.value for v in shed] == [6000.0]

    @pytest.mark.asyncio
    async def test_sources_attached_and_detached(
        self, config: MonitorConfig, host: InMemoryHost
    ) -> None:
        monitor = create_monitor(config, host, transport=RecordingTransport(), sinks=[])
        await monitor.start()
        assert host.observer_count("resource") == 1
        assert host.observer_count("longtask") == 1
        assert host.listener_count("click") == 1
        assert host.listener_count("mouseover") == 1

        await monitor.stop()
        assert host.observer_count("resource") == 0
        assert host.listener_count("click") == 0
        assert host.listener_count("mouseover") == 0
        assert not monitor.buffer.running

    @pytest.mark.asyncio
    async def test_each_metric_enriched_once(
        self, config: MonitorConfig, host: InMemoryHost
    ) -> None:
        monitor = create_monitor(config, host, transport=RecordingTransport(), sinks=[])
        seen: list[EnrichedMetric] = []
        monitor.on_enriched(seen.append)

        async with monitor:
            host.push_entry("resource", {"name": "/app.js", "duration": 40})
            host.push_entry("longtask", {"duration": 120})
            for at in (0.0, 100.0, 200.0):
                host.dispatch(DomEvent(type="click", target_id="buy", timestamp=at))

        assert [m.name for m in seen] == ["resource", "long_task", "rage_click"]
        assert all(m.device_class == "desktop" for m in seen)

    @pytest.mark.asyncio
    async def test_record_and_track(self, config: MonitorConfig, host: InMemoryHost) -> None:
        transport = RecordingTransport()
        monitor = create_monitor(
            config, host, transport=transport, sinks=[], channels=["funnel:checkout"]
        )
        async with monitor:
            enriched = monitor.record("bundle_size", 312, unit="kb")
            tracked = monitor.track("funnel:add_to_cart", {"sku": "A-1"})
            host.dispatch(DomEvent(type="funnel:checkout"))
            report = monitor.report(60_000)

        assert enriched is not None and enriched.metric.attributes["unit"] == "kb"
        assert tracked is not None
        assert report.violated_metrics == ("bundle_size",)
        names = [e.data.get("name") for e in transport.events if e.type == "metric"]
        assert names == ["bundle_size", "funnel:add_to_cart", "funnel:checkout"]

    @pytest.mark.asyncio
    async def test_failing_host_never_raises(self, config: MonitorConfig) -> None:
        class HostileHost(InMemoryHost):
            def observe(self, entry_type, callback):
                raise RuntimeError("PerformanceObserver is broken")

            def add_listener(self, event_type, callback):
                raise RuntimeError("no DOM")

            async def load_vitals(self):
                raise RuntimeError("script blocked")

            def current_url(self) -> str:
                raise RuntimeError("no location")

        host = HostileHost()
        monitor = create_monitor(config, host, transport=RecordingTransport(), sinks=[])
        async with monitor:
            assert monitor.record("lcp", 9000) is not None
            assert monitor.record("lcp", "not-a-number") is None  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_escalation_event_buffered(self, host: InMemoryHost, clock) -> None:
        config = MonitorConfig.model_validate(
            {
                "budgets": {"cls": {"threshold": 0.1, "unit": "score"}},
                "escalation": {"burst_threshold": 2},
            }
        )
        transport = RecordingTransport()
        monitor = create_monitor(config, host, transport=transport, sinks=[], clock=clock)
        async with monitor:
            for _ in range(3):
                clock.advance(100)
                monitor.record("cls", 0.12)

        types = [e.type for e in transport.events]
        assert types.count(PerformanceEventType.SESSION_ESCALATION) == 1
        assert types.count(PerformanceEventType.BUDGET_VIOLATION) == 3

    @pytest.mark.asyncio
    async def test_preload_shares_network_reader(
        self, config: MonitorConfig, host: InMemoryHost
    ) -> None:
        monitor = create_monitor(config, host, transport=RecordingTransport(), sinks=[])
        async with monitor:
            monitor.preloader.predict({"/checkout": 0.82})
            await monitor.preloader.drain()

        assert host.hints == [("https://shop.example/checkout", "prefetch")]


class TestCreateMonitor:
    def test_transport_from_config(self, host: InMemoryHost) -> None:
        config = MonitorConfig(buffer=BufferConfig(endpoint="https://rum.example/collect"))
        monitor = create_monitor(config, host)
        assert isinstance(monitor.buffer.transport, HttpTransport)

    def test_defaults(self, host: InMemoryHost) -> None:
        monitor = create_monitor(None, host, user_id="u1")
        assert isinstance(monitor.buffer.transport, NullTransport)
        assert monitor.context.user_id == "u1"
        assert len(monitor.context.session_id) == 32

    def test_isolated_instances(self, config: MonitorConfig) -> None:
        a = create_monitor(config, InMemoryHost(url="https://a.example/"))
        b = create_monitor(config, InMemoryHost(url="https://b.example/"))
        assert a.context.session_id != b.context.session_id
        assert a.buffer is not b.buffer
