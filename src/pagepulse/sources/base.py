"""
Base metric source adapter.

A source observes one host signal and emits Metric records to its
subscribers. Sources only observe: when the host API is missing or
throws, the source logs and emits nothing, and a failing subscriber never
affects the others or the host.

Example:
    source = ResourceTimingSource(context)
    unsubscribe = source.subscribe(lambda metric: print(metric.name, metric.value))
    source.start()
    ...
    source.stop()
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from pagepulse.context import MonitorContext
from pagepulse.host import DomCallback, EntryCallback, Unsubscribe
from pagepulse.models import Metric

logger = logging.getLogger("pagepulse.sources")

MetricHandler = Callable[[Metric], None]


class MetricSource(ABC):
    """Base class for source adapters."""

    name: ClassVar[str] = "source"

    def __init__(self, context: MonitorContext) -> None:
        self._context = context
        self._handlers: list[MetricHandler] = []
        self._teardown: list[Unsubscribe] = []
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def subscribe(self, handler: MetricHandler) -> Unsubscribe:
        """Register a metric handler; returns a callable that removes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def start(self) -> None:
        """Attach to the host. Unavailable APIs are logged, never raised."""
        if self._started:
            return
        self._started = True
        try:
            self._attach()
        except Exception as e:
            logger.info("%s unavailable: %s", self.name, e)

    async def initialize(self) -> None:
        """Asynchronous start; sources with async capability loading override this."""
        self.start()

    def stop(self) -> None:
        """Detach every host subscription made by this source."""
        while self._teardown:
            unsubscribe = self._teardown.pop()
            try:
                unsubscribe()
            except Exception as e:
                logger.debug("%s teardown failed: %s", self.name, e)
        self._started = False

    @abstractmethod
    def _attach(self) -> None:
        """Subscribe to host signals."""
        ...

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _observe(self, entry_type: str, callback: EntryCallback) -> None:
        self._teardown.append(self._context.host.observe(entry_type, self._guard(callback)))

    def _listen(self, event_type: str, callback: DomCallback) -> None:
        self._teardown.append(self._context.host.add_listener(event_type, self._guard(callback)))

    def _guard(self, callback: Callable[[Any], None]) -> Callable[[Any], None]:
        @functools.wraps(callback)
        def guarded(payload: Any) -> None:
            try:
                callback(payload)
            except Exception:
                logger.warning("%s failed to handle host signal", self.name, exc_info=True)

        return guarded

    def _emit(
        self,
        name: str,
        value: float,
        *,
        timestamp: float | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> Metric:
        metric = Metric.create(
            name,
            value,
            source=self.name,
            timestamp=self._context.clock() if timestamp is None else timestamp,
            attributes=attributes,
        )
        for handler in list(self._handlers):
            try:
                handler(metric)
            except Exception:
                logger.warning("Metric handler failed for %s", metric.name, exc_info=True)
        return metric
