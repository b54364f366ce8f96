"""Preload task records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pagepulse.network import NetworkCondition


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2}


class Trigger(StrEnum):
    PREDICTION = "prediction"
    VIEWPORT = "viewport"
    HOVER = "hover"
    FOCUS = "focus"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class PreloadTask:
    """A candidate speculative load; consumed at most once."""

    path: str
    priority: Priority
    timestamp: float
    network_condition: NetworkCondition
    trigger: Trigger = Trigger.MANUAL
    sequence: int = 0

    @property
    def sort_key(self) -> tuple[int, int]:
        """High priority first, then first-come first-served."""
        return (-self.priority.rank, self.sequence)


@dataclass(frozen=True, slots=True)
class PreloadOutcome:
    path: str
    priority: Priority
    trigger: Trigger
    network_condition: NetworkCondition
    loaded: bool
    elapsed_ms: float


@dataclass
class PreloadStats:
    enqueued: int = 0
    deduplicated: int = 0
    skipped: int = 0
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    outcomes: list[PreloadOutcome] = field(default_factory=list)
