"""
Core Web Vitals source.

The vitals library is not loaded ambiently: initialize() asks the host for
its capability set and registers a callback for each declared capability
the host offers. Capabilities the host lacks are skipped.
"""

from __future__ import annotations

import logging
from typing import Any

from pagepulse.models import MetricName

from .base import MetricSource

logger = logging.getLogger("pagepulse.sources")

CAPABILITIES: dict[str, MetricName] = {
    "on_lcp": MetricName.LCP,
    "on_cls": MetricName.CLS,
    "on_inp": MetricName.INP,
    "on_fid": MetricName.FID,
    "on_fcp": MetricName.FCP,
    "on_ttfb": MetricName.TTFB,
}


class WebVitalsSource(MetricSource):
    name = "web-vitals"

    def __init__(self, *args: Any, capabilities: frozenset[str] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._wanted = capabilities if capabilities is not None else frozenset(CAPABILITIES)
        self._registered: set[str] = set()
        self._active = False

    @property
    def registered(self) -> frozenset[str]:
        return frozenset(self._registered)

    def _attach(self) -> None:
        # registration happens in initialize(); start() alone only arms the source
        self._active = True

    async def initialize(self) -> None:
        self.start()
        if self._registered:
            return
        try:
            available = await self._context.host.load_vitals()
        except Exception as e:
            logger.info("web-vitals unavailable: %s", e)
            return

        for capability in sorted(self._wanted):
            register = available.get(capability)
            metric_name = CAPABILITIES.get(capability)
            if register is None or metric_name is None:
                logger.debug("web-vitals capability %s not offered", capability)
                continue
            try:
                register(self._guard(self._reporter(metric_name)))
            except Exception as e:
                logger.info("web-vitals %s registration failed: %s", capability, e)
                continue
            self._registered.add(capability)

    def stop(self) -> None:
        # the vitals library offers no unregistration; callbacks go quiet instead
        self._active = False
        super().stop()

    def _reporter(self, metric_name: MetricName) -> Any:
        def report(value: float) -> None:
            if self._active:
                self._emit(metric_name.value, float(value))

        return report
