"""
Metric source adapters.

Each adapter observes one host signal and emits normalised Metric records:

- NavigationTimingSource: ttfb / dom_content_loaded / page_load, once
- ResourceTimingSource: one metric per resource entry
- LongTaskSource: main-thread long tasks
- WebVitalsSource: LCP, CLS, INP, FID, FCP, TTFB via declared capabilities
- CustomEventSource: business funnel events
- InteractionSource: rapid-click detection
"""

from .base import MetricHandler, MetricSource
from .custom_events import CustomEventSource
from .interaction import ClickState, InteractionSource, RapidClick, RapidClickDetector
from .long_tasks import LongTaskSource
from .navigation import NavigationTimingSource
from .resources import ResourceTimingSource
from .vitals import CAPABILITIES, WebVitalsSource

__all__ = [
    "CAPABILITIES",
    "ClickState",
    "CustomEventSource",
    "InteractionSource",
    "LongTaskSource",
    "MetricHandler",
    "MetricSource",
    "NavigationTimingSource",
    "RapidClick",
    "RapidClickDetector",
    "ResourceTimingSource",
    "WebVitalsSource",
]
