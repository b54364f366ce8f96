"""
Fire-and-forget delivery of event batches.

The transport owns a batch only for the duration of one send attempt.
Network errors and non-2xx responses are recorded and the batch is
dropped: telemetry is never retried and never surfaces an error.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import httpx

from pagepulse.errors import DeliveryError
from pagepulse.models import PerformanceEvent

logger = logging.getLogger(__name__)


@dataclass
class DeliveryAttempt:
    """Record of one batch delivery attempt."""

    endpoint: str
    event_count: int
    status_code: int | None = None
    error: str | None = None
    timestamp: float = field(default_factory=time.time)
    elapsed_ms: float = 0.0

    @property
    def delivered(self) -> bool:
        return self.error is None


@dataclass
class TransportStats:
    batches_sent: int = 0
    batches_failed: int = 0
    events_sent: int = 0
    events_dropped: int = 0


@runtime_checkable
class DeliveryTransport(Protocol):
    async def send(self, events: Sequence[PerformanceEvent]) -> DeliveryAttempt: ...


class HttpTransport:
    """
    POSTs ``{"events": [...]}`` to the collection endpoint with httpx.

    Args:
        endpoint: Collection URL
        client: Optional shared httpx.AsyncClient (owned by the caller)
        timeout_s: Request timeout when the transport creates its own client
        history: Number of delivery attempts to keep for inspection
    """

    def __init__(
        self,
        endpoint: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 5.0,
        history: int = 50,
    ) -> None:
        self.endpoint = endpoint
        self._client = client
        self._timeout = timeout_s
        self._attempts: deque[DeliveryAttempt] = deque(maxlen=history)
        self.stats = TransportStats()

    @property
    def attempts(self) -> list[DeliveryAttempt]:
        return list(self._attempts)

    async def send(self, events: Sequence[PerformanceEvent]) -> DeliveryAttempt:
        attempt = DeliveryAttempt(endpoint=self.endpoint, event_count=len(events))
        payload = {"events": [event.to_dict() for event in events]}

        start = time.monotonic()
        try:
            attempt.status_code = await self._post(payload)
        except (DeliveryError, httpx.HTTPError) as e:
            attempt.status_code = getattr(e, "status_code", None)
            attempt.error = str(e) or type(e).__name__
        attempt.elapsed_ms = (time.monotonic() - start) * 1000

        if attempt.delivered:
            self.stats.batches_sent += 1
            self.stats.events_sent += len(events)
        else:
            self.stats.batches_failed += 1
            self.stats.events_dropped += len(events)
            logger.debug(
                "Dropped batch of %d events for %s: %s",
                len(events),
                self.endpoint,
                attempt.error,
            )
        self._attempts.append(attempt)
        return attempt

    async def _post(self, payload: dict[str, object]) -> int:
        if self._client is not None:
            resp = await self._client.post(self.endpoint, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self.endpoint, json=payload)
        if not resp.is_success:
            raise DeliveryError(
                f"collector responded HTTP {resp.status_code}", status_code=resp.status_code
            )
        return resp.status_code


class NullTransport:
    """Discards batches; used when no endpoint is configured."""

    def __init__(self) -> None:
        self.stats = TransportStats()

    async def send(self, events: Sequence[PerformanceEvent]) -> DeliveryAttempt:
        self.stats.events_dropped += len(events)
        return DeliveryAttempt(endpoint="", event_count=len(events), error="no endpoint")
