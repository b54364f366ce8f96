"""Tests for metric source adapters."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from pagepulse.context import MonitorContext
from pagepulse.host import DomEvent, InMemoryHost, VitalsRegistrar
from pagepulse.models import Metric, Rating
from pagepulse.sources import (
    ClickState,
    CustomEventSource,
    InteractionSource,
    LongTaskSource,
    NavigationTimingSource,
    RapidClickDetector,
    ResourceTimingSource,
    WebVitalsSource,
)


def collect(source) -> list[Metric]:
    seen: list[Metric] = []
    source.subscribe(seen.append)
    return seen


# =============================================================================
# Navigation / resource / long task
# =============================================================================


class TestNavigationTiming:
    def test_emits_milestones_once(self, context: MonitorContext, host: InMemoryHost) -> None:
        host.set_navigation_entry(
            {
                "fetchStart": 5.0,
                "requestStart": 20.0,
                "responseStart": 140.0,
                "domContentLoadedEventEnd": 900.0,
                "loadEventEnd": 1500.0,
            }
        )
        source = NavigationTimingSource(context)
        seen = collect(source)

        source.start()
        source.stop()
        source.start()

        assert {m.name: m.value for m in seen} == {
            "ttfb": 120.0,
            "dom_content_loaded": 895.0,
            "page_load": 1495.0,
        }
        assert seen[0].rating == Rating.GOOD

    def test_incomplete_entry_skips_milestones(
        self, context: MonitorContext, host: InMemoryHost
    ) -> None:
        host.set_navigation_entry({"requestStart": 20.0, "responseStart": 140.0, "loadEventEnd": 0})
        source = NavigationTimingSource(context)
        seen = collect(source)
        source.start()
        assert [m.name for m in seen] == ["ttfb"]

    def test_no_entry_emits_nothing(self, context: MonitorContext) -> None:
        source = NavigationTimingSource(context)
        seen = collect(source)
        source.start()
        assert seen == []


class TestResourceTiming:
    def test_one_metric_per_entry(self, context: MonitorContext, host: InMemoryHost) -> None:
        source = ResourceTimingSource(context)
        seen = collect(source)
        source.start()

        host.push_entry(
            "resource",
            {"name": "https://cdn.example/app.js", "duration": 84.5, "initiatorType": "script",
             "transferSize": 20480},
        )

        assert len(seen) == 1
        metric = seen[0]
        assert (metric.name, metric.value, metric.source) == ("resource", 84.5, "resource")
        assert metric.attributes["initiator_type"] == "script"
        assert metric.attributes["transfer_size"] == 20480
        assert metric.timestamp == context.clock()

    def test_stop_detaches_observer(self, context: MonitorContext, host: InMemoryHost) -> None:
        source = ResourceTimingSource(context)
        seen = collect(source)
        source.start()
        source.stop()

        host.push_entry("resource", {"name": "/x.css", "duration": 3})
        assert seen == []
        assert host.observer_count("resource") == 0

    def test_unsupported_api_emits_nothing(self, context: MonitorContext) -> None:
        context.host = InMemoryHost(supported_entry_types=frozenset())
        source = ResourceTimingSource(context)
        seen = collect(source)

        source.start()

        assert source.started
        assert seen == []

    def test_failing_handler_isolated(self, context: MonitorContext, host: InMemoryHost) -> None:
        source = ResourceTimingSource(context)

        def explode(metric: Metric) -> None:
            raise RuntimeError("consumer bug")

        source.subscribe(explode)
        seen = collect(source)
        source.start()

        host.push_entry("resource", {"name": "/a.png", "duration": 10})
        assert len(seen) == 1

    def test_malformed_entry_does_not_escape(
        self, context: MonitorContext, host: InMemoryHost
    ) -> None:
        source = ResourceTimingSource(context)
        seen = collect(source)
        source.start()

        host.push_entry("resource", {"name": "/a.png", "duration": "not-a-number"})
        host.push_entry("resource", {"name": "/b.png", "duration": 7})

        assert [m.value for m in seen] == [7.0]


class TestLongTasks:
    def test_emits_and_tracks_blocking_time(
        self, context: MonitorContext, host: InMemoryHost
    ) -> None:
        source = LongTaskSource(context, window=3)
        seen = collect(source)
        source.start()

        for duration in (60, 120, 80, 250):
            host.push_entry("longtask", {"duration": duration})

        assert [m.name for m in seen] == ["long_task"] * 4
        # window keeps 120, 80, 250
        assert source.blocking_time() == pytest.approx(70 + 30 + 200)


# =============================================================================
# Web vitals
# =============================================================================


class TestWebVitals:
    @pytest.mark.asyncio
    async def test_registers_offered_capabilities(
        self, context: MonitorContext, host: InMemoryHost
    ) -> None:
        source = WebVitalsSource(context)
        seen = collect(source)

        await source.initialize()
        host.report_vital("on_lcp", 3100)
        host.report_vital("on_cls", 0.02)

        assert source.registered == {"on_lcp", "on_cls", "on_inp", "on_fid", "on_fcp", "on_ttfb"}
        assert [(m.name, m.rating) for m in seen] == [
            ("lcp", Rating.NEEDS_IMPROVEMENT),
            ("cls", Rating.GOOD),
        ]

    @pytest.mark.asyncio
    async def test_missing_capabilities_skipped(self, context: MonitorContext) -> None:
        host = InMemoryHost(vitals=frozenset({"on_lcp"}))
        context.host = host
        source = WebVitalsSource(context)
        seen = collect(source)

        await source.initialize()
        host.report_vital("on_lcp", 1200)

        assert source.registered == {"on_lcp"}
        assert [m.name for m in seen] == ["lcp"]

    @pytest.mark.asyncio
    async def test_library_load_failure(self, context: MonitorContext) -> None:
        class NoVitalsHost(InMemoryHost):
            async def load_vitals(self) -> Mapping[str, VitalsRegistrar]:
                raise ImportError("web-vitals blocked")

        context.host = NoVitalsHost()
        source = WebVitalsSource(context)
        await source.initialize()
        assert source.registered == frozenset()

    @pytest.mark.asyncio
    async def test_stop_silences_callbacks(
        self, context: MonitorContext, host: InMemoryHost
    ) -> None:
        source = WebVitalsSource(context)
        seen = collect(source)
        await source.initialize()

        source.stop()
        host.report_vital("on_lcp", 5000)

        assert seen == []


# =============================================================================
# Custom events
# =============================================================================


class TestCustomEvents:
    def test_track_measures_from_time_origin(
        self, context: MonitorContext, host: InMemoryHost, clock
    ) -> None:
        host.set_navigation_entry({"timeOrigin": clock() - 1500})
        source = CustomEventSource(context)
        seen = collect(source)
        source.start()

        clock.advance(500)
        metric = source.track("funnel:add_to_cart", {"sku": "A-1"})

        assert metric is not None
        assert metric.value == 2000.0
        assert metric.attributes["sku"] == "A-1"
        assert seen == [metric]

    def test_channel_events(self, context: MonitorContext, host: InMemoryHost, clock) -> None:
        source = CustomEventSource(context, channels=["funnel:checkout"])
        seen = collect(source)
        source.start()

        host.dispatch(DomEvent(type="funnel:checkout", timestamp=clock() + 250, detail={"step": 2}))

        assert [(m.name, m.value) for m in seen] == [("funnel:checkout", 250.0)]

    def test_track_before_start_is_ignored(self, context: MonitorContext) -> None:
        source = CustomEventSource(context)
        assert source.track("funnel:checkout") is None


# =============================================================================
# Rapid clicks
# =============================================================================


class TestRapidClickDetector:
    def test_state_machine(self) -> None:
        detector = RapidClickDetector(threshold=3, window_ms=1000, cooldown_ms=2000)
        assert detector.state == ClickState.IDLE

        assert detector.click("buy", 0) is None
        assert detector.state == ClickState.COUNTING
        assert detector.click("buy", 200) is None

        detected = detector.click("buy", 400)
        assert detected is not None
        assert (detected.clicks, detected.span_ms) == (3, 400)
        assert detector.state == ClickState.TRIGGERED

        detector.settle()
        assert detector.state == ClickState.COOLDOWN

        # still cooling down
        assert detector.click("buy", 1000) is None
        assert detector.click("buy", 1200) is None
        assert detector.click("buy", 1300) is None
        assert detector.state == ClickState.COOLDOWN

        # cooldown over: counting restarts from this click
        assert detector.click("buy", 2500) is None
        assert detector.state == ClickState.COUNTING

    def test_slow_clicks_never_trigger(self) -> None:
        detector = RapidClickDetector()
        for at in range(0, 10_000, 600):
            assert detector.click("buy", at) is None

    def test_target_change_restarts_counting(self) -> None:
        detector = RapidClickDetector()
        detector.click("a", 0)
        detector.click("a", 100)
        assert detector.click("b", 200) is None
        assert detector.click("b", 300) is None
        assert detector.click("b", 400) is not None


class TestInteractionSource:
    def test_emits_rage_click(self, context: MonitorContext, host: InMemoryHost) -> None:
        source = InteractionSource(context)
        seen = collect(source)
        source.start()

        for at in (0.0, 150.0, 300.0, 450.0):
            host.dispatch(DomEvent(type="click", target_id="pay-button", timestamp=at))

        assert len(seen) == 1
        assert seen[0].name == "rage_click"
        assert seen[0].value == 3
        assert seen[0].attributes["target"] == "pay-button"
        assert source.detector.state == ClickState.COOLDOWN

    def test_stop_removes_listener(self, context: MonitorContext, host: InMemoryHost) -> None:
        source = InteractionSource(context)
        source.start()
        assert host.listener_count("click") == 1
        source.stop()
        assert host.listener_count("click") == 0


def test_subscribe_returns_unsubscribe(context: MonitorContext, host: InMemoryHost) -> None:
    source = ResourceTimingSource(context)
    seen: list[Any] = []
    unsubscribe = source.subscribe(seen.append)
    source.start()
    unsubscribe()

    host.push_entry("resource", {"name": "/a.js", "duration": 1})
    assert seen == []
