"""
Rapid-click ("rage click") detection.

The detector is an explicit state machine rather than counters and timers
shared across handlers:

    IDLE --click--> COUNTING --N clicks within window--> TRIGGERED
    TRIGGERED --(metric emitted)--> COOLDOWN --cooldown elapsed--> IDLE

A click on a different target, or after the window has elapsed, restarts
counting from that click.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pagepulse.config import InteractionConfig
from pagepulse.host import DomEvent

from .base import MetricSource


class ClickState(StrEnum):
    IDLE = "idle"
    COUNTING = "counting"
    TRIGGERED = "triggered"
    COOLDOWN = "cooldown"


@dataclass(frozen=True, slots=True)
class RapidClick:
    target: str
    clicks: int
    span_ms: float


class RapidClickDetector:
    def __init__(self, threshold: int = 3, window_ms: float = 1000.0, cooldown_ms: float = 2000.0):
        self.threshold = threshold
        self.window_ms = window_ms
        self.cooldown_ms = cooldown_ms
        self.state = ClickState.IDLE
        self._target = ""
        self._count = 0
        self._window_start = 0.0
        self._triggered_at = 0.0

    def click(self, target: str, at: float) -> RapidClick | None:
        """Feed one click; returns a RapidClick when the threshold is crossed."""
        if self.state in (ClickState.TRIGGERED, ClickState.COOLDOWN):
            if at - self._triggered_at < self.cooldown_ms:
                self.state = ClickState.COOLDOWN
                return None
            self.state = ClickState.IDLE

        if (
            self.state == ClickState.IDLE
            or target != self._target
            or at - self._window_start > self.window_ms
        ):
            self.state = ClickState.COUNTING
            self._target = target
            self._count = 1
            self._window_start = at
            return None

        self._count += 1
        if self._count < self.threshold:
            return None

        self.state = ClickState.TRIGGERED
        self._triggered_at = at
        return RapidClick(target=target, clicks=self._count, span_ms=at - self._window_start)

    def settle(self) -> None:
        """Move out of TRIGGERED once the detection has been reported."""
        if self.state == ClickState.TRIGGERED:
            self.state = ClickState.COOLDOWN


class InteractionSource(MetricSource):
    name = "interaction"

    def __init__(self, *args: Any, config: InteractionConfig | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        config = config or InteractionConfig()
        self.detector = RapidClickDetector(
            threshold=config.rapid_click_count,
            window_ms=config.rapid_click_window_ms,
            cooldown_ms=config.cooldown_ms,
        )

    def _attach(self) -> None:
        self._listen("click", self._on_click)

    def _on_click(self, event: DomEvent) -> None:
        target = event.target_id or event.target_href or "document"
        detected = self.detector.click(target, event.timestamp)
        if detected is None:
            return
        self._emit(
            "rage_click",
            detected.clicks,
            timestamp=event.timestamp,
            attributes={"target": detected.target, "span_ms": detected.span_ms},
        )
        self.detector.settle()
