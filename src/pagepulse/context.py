"""
Explicit monitor context.

The host, session, user, build and clock are carried by a MonitorContext
passed to each component, so several isolated monitors can coexist in one
process.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from pagepulse.host import PerformanceHost
from pagepulse.models import now_ms
from pagepulse.network import NetworkConditionReader


def _new_session_id() -> str:
    return uuid4().hex


@dataclass
class MonitorContext:
    """
    Ambient context for one monitored page session.

    Attributes:
        host: The instrumented page
        build_version: Application build identifier
        session_id: RUM session identifier (generated when omitted)
        user_id: Authenticated user, if any
        clock: Epoch-millisecond clock, injectable for tests
    """

    host: PerformanceHost
    build_version: str = "dev"
    session_id: str = field(default_factory=_new_session_id)
    user_id: str | None = None
    clock: Callable[[], float] = now_ms
    network: NetworkConditionReader = field(init=False)

    def __post_init__(self) -> None:
        self.network = NetworkConditionReader(self.host)

    def identify(self, user_id: str | None) -> None:
        """Attach (or clear) the authenticated user for subsequent metrics."""
        self.user_id = user_id
