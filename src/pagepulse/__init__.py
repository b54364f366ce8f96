"""
pagepulse - performance telemetry and adaptive resource loading.

Observes page performance signals through a host boundary, enriches them
with session context, ships them in batches, enforces performance budgets
and decides which resources to load speculatively.
"""

from __future__ import annotations

from ._version import get_version
from .budget import Alert, BudgetReport, BudgetValidator, Severity, Violation
from .config import BudgetEntry, MonitorConfig, build_config, load_config
from .context import MonitorContext
from .errors import ConfigurationError, DeliveryError, InstrumentationUnavailable, PagePulseError
from .host import DomEvent, InMemoryHost, PerformanceHost
from .models import ConnectionInfo, EnrichedMetric, Metric, PerformanceEvent, Viewport
from .monitor import PerformanceMonitor, create_monitor

__version__ = get_version()

__all__ = [
    "__version__",
    "Alert",
    "BudgetEntry",
    "BudgetReport",
    "BudgetValidator",
    "ConfigurationError",
    "ConnectionInfo",
    "DeliveryError",
    "DomEvent",
    "EnrichedMetric",
    "InMemoryHost",
    "InstrumentationUnavailable",
    "Metric",
    "MonitorConfig",
    "MonitorContext",
    "PagePulseError",
    "PerformanceEvent",
    "PerformanceHost",
    "PerformanceMonitor",
    "Severity",
    "Viewport",
    "Violation",
    "build_config",
    "create_monitor",
    "load_config",
]
