"""
Host boundary for pagepulse.

PerformanceHost is the only way pagepulse touches the page it instruments.
A browser bridge, a headless-browser driver or a replay harness each
implement it; every method may be missing or raise, and callers treat
that as "instrumentation unavailable".

InMemoryHost is a complete in-process implementation for tests and
replays. Entries, DOM events and hint outcomes are pushed by the caller.

Example:
    host = InMemoryHost(url="https://shop.example/", viewport=Viewport(1280, 800))
    host.set_navigation_entry({"requestStart": 10, "responseStart": 130})

    unsubscribe = host.observe("resource", print)
    host.push_entry("resource", {"name": "/app.js", "duration": 84.0})
    unsubscribe()
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pagepulse.errors import InstrumentationUnavailable
from pagepulse.models import ConnectionInfo, Viewport, now_ms

Unsubscribe = Callable[[], None]
EntryCallback = Callable[[Mapping[str, Any]], None]
VitalsCallback = Callable[[float], None]
VitalsRegistrar = Callable[[VitalsCallback], Any]


@dataclass(frozen=True, slots=True)
class DomEvent:
    """A DOM or custom-channel event as seen by pagepulse."""

    type: str
    target_href: str | None = None
    target_id: str | None = None
    timestamp: float = field(default_factory=now_ms)
    detail: Mapping[str, Any] = field(default_factory=dict)


DomCallback = Callable[[DomEvent], None]


@runtime_checkable
class PerformanceHost(Protocol):
    """Interface to the instrumented page."""

    def current_url(self) -> str: ...

    def navigation_entry(self) -> Mapping[str, Any] | None: ...

    def observe(self, entry_type: str, callback: EntryCallback) -> Unsubscribe: ...

    def add_listener(self, event_type: str, callback: DomCallback) -> Unsubscribe: ...

    def connection(self) -> ConnectionInfo | None: ...

    def viewport(self) -> Viewport | None: ...

    async def load_vitals(self) -> Mapping[str, VitalsRegistrar]: ...

    async def prefetch(self, path: str, rel: str = "prefetch") -> bool: ...


class InMemoryHost:
    """
    In-process PerformanceHost for tests and replays.

    Args:
        url: Current page URL
        viewport: Viewport reported to enrichment (None = unavailable)
        connection: Network information (None = unavailable)
        supported_entry_types: Entry types observe() accepts; others raise
        vitals: Capability names load_vitals() offers
    """

    def __init__(
        self,
        url: str = "https://example.test/",
        *,
        viewport: Viewport | None = None,
        connection: ConnectionInfo | None = None,
        supported_entry_types: frozenset[str] = frozenset({"resource", "longtask"}),
        vitals: frozenset[str] = frozenset(
            {"on_lcp", "on_cls", "on_inp", "on_fid", "on_fcp", "on_ttfb"}
        ),
    ) -> None:
        self._url = url
        self._viewport = viewport
        self._connection = connection
        self._supported = supported_entry_types
        self._vitals = vitals
        self._navigation: Mapping[str, Any] | None = None
        self._observers: dict[str, list[EntryCallback]] = defaultdict(list)
        self._listeners: dict[str, list[DomCallback]] = defaultdict(list)
        self._vitals_callbacks: dict[str, list[VitalsCallback]] = defaultdict(list)
        # path -> outcome; missing paths load successfully
        self._hint_outcomes: dict[str, bool] = {}
        self._hint_delays: dict[str, float] = {}
        self.hint_delay_s: float = 0.0
        self.hints: list[tuple[str, str]] = []

    # ------------------------------------------------------------------
    # PerformanceHost
    # ------------------------------------------------------------------

    def current_url(self) -> str:
        return self._url

    def navigation_entry(self) -> Mapping[str, Any] | None:
        return self._navigation

    def observe(self, entry_type: str, callback: EntryCallback) -> Unsubscribe:
        if entry_type not in self._supported:
            raise InstrumentationUnavailable(f"PerformanceObserver[{entry_type}]")
        self._observers[entry_type].append(callback)
        return _remover(self._observers[entry_type], callback)

    def add_listener(self, event_type: str, callback: DomCallback) -> Unsubscribe:
        self._listeners[event_type].append(callback)
        return _remover(self._listeners[event_type], callback)

    def connection(self) -> ConnectionInfo | None:
        return self._connection

    def viewport(self) -> Viewport | None:
        return self._viewport

    async def load_vitals(self) -> Mapping[str, VitalsRegistrar]:
        def registrar(name: str) -> VitalsRegistrar:
            def register(callback: VitalsCallback) -> None:
                self._vitals_callbacks[name].append(callback)

            return register

        return {name: registrar(name) for name in self._vitals}

    async def prefetch(self, path: str, rel: str = "prefetch") -> bool:
        self.hints.append((path, rel))
        delay = self._hint_delays.get(path, self.hint_delay_s)
        if delay:
            await asyncio.sleep(delay)
        return self._hint_outcomes.get(path, True)

    # ------------------------------------------------------------------
    # Driving the host
    # ------------------------------------------------------------------

    def navigate(self, url: str) -> None:
        self._url = url

    def set_navigation_entry(self, entry: Mapping[str, Any] | None) -> None:
        self._navigation = entry

    def set_connection(self, connection: ConnectionInfo | None) -> None:
        self._connection = connection

    def set_viewport(self, viewport: Viewport | None) -> None:
        self._viewport = viewport

    def set_hint_outcome(self, path: str, loaded: bool) -> None:
        self._hint_outcomes[path] = loaded

    def set_hint_delay(self, path: str, seconds: float) -> None:
        self._hint_delays[path] = seconds

    def push_entry(self, entry_type: str, entry: Mapping[str, Any]) -> None:
        for callback in list(self._observers[entry_type]):
            callback(entry)

    def dispatch(self, event: DomEvent) -> None:
        for callback in list(self._listeners[event.type]):
            callback(event)

    def report_vital(self, capability: str, value: float) -> None:
        for callback in list(self._vitals_callbacks[capability]):
            callback(value)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners[event_type])

    def observer_count(self, entry_type: str) -> int:
        return len(self._observers[entry_type])


def _remover(callbacks: list[Any], callback: Any) -> Unsubscribe:
    def unsubscribe() -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    return unsubscribe

