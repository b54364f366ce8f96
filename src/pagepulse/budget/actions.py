"""
Corrective-action registry.

Handlers are registered per metric name and invoked with the violation
when a high-severity violation is recorded. Handlers must be idempotent;
coroutine handlers are scheduled and never awaited by the validator.

Example:
    registry = CorrectiveActionRegistry()

    def shed_hero_image(violation: Violation) -> None:
        ...

    unregister = registry.register("lcp", shed_hero_image)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pagepulse.background import BackgroundTasks
from pagepulse.host import Unsubscribe

from .models import Violation

logger = logging.getLogger(__name__)

CorrectiveAction = Callable[[Violation], Any]


@dataclass
class CorrectiveActionRegistry:
    _handlers: dict[str, list[CorrectiveAction]] = field(default_factory=dict)
    _tasks: BackgroundTasks = field(default_factory=lambda: BackgroundTasks("corrective-actions"))

    def register(self, metric_name: str, handler: CorrectiveAction) -> Unsubscribe:
        key = metric_name.strip().lower()
        self._handlers.setdefault(key, []).append(handler)
        logger.info("Registered corrective action for %s", key)

        def unregister() -> None:
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return unregister

    def handlers_for(self, metric_name: str) -> list[CorrectiveAction]:
        return list(self._handlers.get(metric_name, []))

    def invoke(self, violation: Violation) -> int:
        """Run every handler for the violation's metric; returns how many were started."""
        started = 0
        for handler in self.handlers_for(violation.metric):
            try:
                result = handler(violation)
            except Exception:
                logger.warning(
                    "Corrective action for %s failed", violation.metric, exc_info=True
                )
                continue
            self._tasks.spawn(result, name=f"action:{violation.metric}")
            started += 1
        return started

    async def drain(self) -> None:
        await self._tasks.drain()
