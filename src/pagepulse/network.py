"""
Network condition reader shared by enrichment and preloading.

Maps the Network Information API snapshot onto two vocabularies:
ConnectionClass (what the browser reported) and NetworkCondition (how
aggressively speculative loading may use the network).
"""

from __future__ import annotations

import logging
from enum import StrEnum

from pagepulse.host import PerformanceHost
from pagepulse.models import ConnectionClass, ConnectionInfo

logger = logging.getLogger(__name__)


class NetworkCondition(StrEnum):
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"


_CONNECTION_CLASSES = {c.value: c for c in ConnectionClass}


class NetworkConditionReader:
    """Reads the host connection at call time; never raises."""

    def __init__(self, host: PerformanceHost) -> None:
        self._host = host

    def snapshot(self) -> ConnectionInfo | None:
        try:
            return self._host.connection()
        except Exception as e:
            logger.debug("Connection info unavailable: %s", e)
            return None

    def connection_class(self) -> ConnectionClass:
        return classify_connection(self.snapshot())

    def condition(self) -> NetworkCondition:
        return classify_condition(self.snapshot())


def classify_connection(info: ConnectionInfo | None) -> ConnectionClass:
    if info is None or not info.effective_type:
        return ConnectionClass.UNKNOWN
    return _CONNECTION_CLASSES.get(info.effective_type.lower(), ConnectionClass.UNKNOWN)


def classify_condition(info: ConnectionInfo | None) -> NetworkCondition:
    """fast = 4g without save-data; slow = 2g/slow-2g or save-data; else moderate."""
    if info is not None and info.save_data:
        return NetworkCondition.SLOW
    connection = classify_connection(info)
    if connection == ConnectionClass.FOUR_G:
        return NetworkCondition.FAST
    if connection in (ConnectionClass.TWO_G, ConnectionClass.SLOW_2G):
        return NetworkCondition.SLOW
    return NetworkCondition.MODERATE
