"""
Metric enrichment.

enrich() is a pure function of (Metric, ambient context): it reads the
current URL, connection, viewport and identifiers, performs no I/O and
returns a new EnrichedMetric without touching the input.
"""

from __future__ import annotations

import logging

from pagepulse.context import MonitorContext
from pagepulse.models import DeviceClass, EnrichedMetric, Metric, Viewport

logger = logging.getLogger(__name__)

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024


def classify_device(viewport: Viewport | None) -> DeviceClass:
    if viewport is None or viewport.width <= 0:
        return DeviceClass.UNKNOWN
    if viewport.width < MOBILE_MAX_WIDTH:
        return DeviceClass.MOBILE
    if viewport.width < TABLET_MAX_WIDTH:
        return DeviceClass.TABLET
    return DeviceClass.DESKTOP


def enrich(metric: Metric, context: MonitorContext) -> EnrichedMetric:
    """Decorate a metric with the context it was observed in."""
    host = context.host
    try:
        url = host.current_url()
    except Exception as e:
        logger.debug("Current URL unavailable: %s", e)
        url = ""
    try:
        viewport = host.viewport()
    except Exception as e:
        logger.debug("Viewport unavailable: %s", e)
        viewport = None

    return EnrichedMetric(
        metric=metric,
        url=url,
        connection_class=context.network.connection_class(),
        viewport=viewport,
        device_class=classify_device(viewport),
        session_id=context.session_id,
        user_id=context.user_id,
        build_version=context.build_version,
    )
