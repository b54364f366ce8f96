"""Navigation timing source: page-load milestones, once per page load."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pagepulse.models import MetricName

from .base import MetricSource

logger = logging.getLogger("pagepulse.sources")


def _span(entry: Mapping[str, Any], start: str, end: str) -> float | None:
    try:
        begin = float(entry.get(start, 0) or 0)
        finish = float(entry[end])
    except (KeyError, TypeError, ValueError):
        return None
    if finish <= 0 or finish < begin:
        return None
    return finish - begin


class NavigationTimingSource(MetricSource):
    """
    Emits ttfb, dom_content_loaded and page_load from the navigation entry.

    TTFB is measured from requestStart; the load milestones from fetchStart.
    """

    name = "navigation"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._emitted = False

    def _attach(self) -> None:
        if self._emitted:
            return
        entry = self._context.host.navigation_entry()
        if not entry:
            logger.debug("Navigation timing unavailable")
            return
        self._emitted = True

        milestones = (
            (MetricName.TTFB.value, "requestStart", "responseStart"),
            ("dom_content_loaded", "fetchStart", "domContentLoadedEventEnd"),
            ("page_load", "fetchStart", "loadEventEnd"),
        )
        for name, start, end in milestones:
            value = _span(entry, start, end)
            if value is not None:
                self._emit(name, value, attributes={"entry_type": "navigation"})
