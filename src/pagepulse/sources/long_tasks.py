"""Long task source: main-thread tasks over 50ms."""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from typing import Any

from .base import MetricSource

LONG_TASK_MS = 50.0


class LongTaskSource(MetricSource):
    """
    Emits a long_task metric per entry.

    Keeps the last `window` durations to approximate total blocking time.
    """

    name = "longtask"

    def __init__(self, *args: Any, window: int = 20, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._recent: deque[float] = deque(maxlen=window)

    def _attach(self) -> None:
        self._observe("longtask", self._on_entry)

    def _on_entry(self, entry: Mapping[str, Any]) -> None:
        duration = float(entry.get("duration", 0.0))
        self._recent.append(duration)
        self._emit(
            "long_task",
            duration,
            attributes={"attribution": entry.get("attribution", "unknown")},
        )

    def blocking_time(self) -> float:
        """Blocking time (ms beyond 50ms) across the recent window."""
        return sum(max(0.0, d - LONG_TASK_MS) for d in self._recent)
