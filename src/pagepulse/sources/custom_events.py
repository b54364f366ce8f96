"""
Custom domain-event channel.

Business funnel steps (``funnel:add_to_cart``, ``funnel:checkout``) are
recorded as metrics valued at milliseconds since the page's time origin.
They arrive either from host-dispatched channel events or from track().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pagepulse.host import DomEvent
from pagepulse.models import Metric

from .base import MetricSource

logger = logging.getLogger("pagepulse.sources")


class CustomEventSource(MetricSource):
    name = "custom"

    def __init__(self, *args: Any, channels: Iterable[str] = (), **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._channels = tuple(channels)
        self._origin: float | None = None

    def _attach(self) -> None:
        self._origin = self._time_origin()
        for channel in self._channels:
            self._listen(channel, self._on_event)

    def _time_origin(self) -> float:
        try:
            entry = self._context.host.navigation_entry()
        except Exception as e:
            logger.debug("Navigation entry unavailable: %s", e)
            entry = None
        if entry and entry.get("timeOrigin"):
            return float(entry["timeOrigin"])
        return self._context.clock()

    def _on_event(self, event: DomEvent) -> None:
        self.track(event.type, event.detail, timestamp=event.timestamp)

    def track(
        self,
        name: str,
        detail: Mapping[str, Any] | None = None,
        *,
        timestamp: float | None = None,
    ) -> Metric | None:
        """Record a domain event; returns the emitted metric (None if stopped)."""
        if not self._started or self._origin is None:
            return None
        at = self._context.clock() if timestamp is None else timestamp
        return self._emit(
            name,
            max(0.0, at - self._origin),
            timestamp=at,
            attributes=dict(detail or {}),
        )
