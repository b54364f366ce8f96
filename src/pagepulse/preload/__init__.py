"""Speculative resource loading driven by navigation, viewport and intent signals."""

from .engine import PreloadEngine, prediction_priority
from .models import PreloadOutcome, PreloadStats, PreloadTask, Priority, Trigger

__all__ = [
    "PreloadEngine",
    "PreloadOutcome",
    "PreloadStats",
    "PreloadTask",
    "Priority",
    "Trigger",
    "prediction_priority",
]
