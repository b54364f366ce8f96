"""
Bounded event buffer with size- and time-triggered flushing.

record_event() never blocks: it appends under a lock and, when the buffer
is already at capacity, swaps the full queue for an empty one first and
hands the old queue to the transport as a background task. The buffer
therefore never holds more than ``capacity`` events. With no running loop
the swapped batch is held (at most ``MAX_PENDING_BATCHES``) and delivered
by the next flush() or stop().

A repeating timer flushes every ``flush_interval_ms``; stop() cancels it
and performs a final flush so teardown leaves no dangling timers.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass

from pagepulse.background import BackgroundTasks
from pagepulse.config import BufferConfig
from pagepulse.models import PerformanceEvent

from .transport import DeliveryTransport, NullTransport

logger = logging.getLogger(__name__)

MAX_PENDING_BATCHES = 10


@dataclass
class BufferStats:
    recorded: int = 0
    flushes: int = 0
    capacity_flushes: int = 0
    delivery_errors: int = 0
    dropped_events: int = 0


class EventBuffer:
    """
    Accepts PerformanceEvents and ships them in batches.

    Example:
        buffer = EventBuffer(HttpTransport("https://rum.example/collect"))
        await buffer.start()
        buffer.record_event(event)
        ...
        await buffer.stop()
    """

    def __init__(
        self,
        transport: DeliveryTransport | None = None,
        config: BufferConfig | None = None,
    ) -> None:
        self.transport = transport or NullTransport()
        self.config = config or BufferConfig()

        self._queue: list[PerformanceEvent] = []
        self._pending: list[list[PerformanceEvent]] = []
        self._lock = threading.Lock()
        self._running = False
        self._flush_task: asyncio.Task[None] | None = None
        self._deliveries = BackgroundTasks("event-buffer")
        self.stats = BufferStats()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def pending_events(self) -> int:
        """Events swapped out at capacity while no loop was running."""
        return sum(len(batch) for batch in self._pending)

    @property
    def capacity(self) -> int:
        return self.config.capacity

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the interval flush loop."""
        if self._running:
            return
        self._running = True
        self._flush_task = asyncio.create_task(self._flush_loop(), name="event-buffer:flush")

    async def stop(self) -> None:
        """Cancel the interval timer, flush what is left and wait for deliveries."""
        self._running = False
        if self._flush_task:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        await self.flush()
        await self.drain()

    # =========================================================================
    # Recording
    # =========================================================================

    def record_event(self, event: PerformanceEvent) -> None:
        """Append an event; a full buffer is flushed before the append."""
        with self._lock:
            batch = self._swap_locked() if len(self._queue) >= self.config.capacity else None
            self._queue.append(event)
            self.stats.recorded += 1

        if batch:
            self.stats.capacity_flushes += 1
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                self._hold(batch)
            else:
                self._deliveries.spawn(self._deliver(batch), name="capacity-flush")

    def _hold(self, batch: list[PerformanceEvent]) -> None:
        with self._lock:
            self._pending.append(batch)
            if len(self._pending) <= MAX_PENDING_BATCHES:
                return
            dropped = self._pending.pop(0)
        self.stats.dropped_events += len(dropped)
        logger.warning("No event loop to deliver to; dropped %d held events", len(dropped))

    def _swap_locked(self) -> list[PerformanceEvent]:
        batch = self._queue
        self._queue = []
        return batch

    def swap(self) -> list[PerformanceEvent]:
        """Atomically take the queued events, leaving an empty buffer."""
        with self._lock:
            return self._swap_locked()

    # =========================================================================
    # Flushing
    # =========================================================================

    async def flush(self) -> int:
        """Deliver held batches and the current queue; returns the event count. Never raises."""
        with self._lock:
            batches, self._pending = self._pending, []
            batches.append(self._swap_locked())

        delivered = 0
        for batch in batches:
            if batch:
                await self._deliver(batch)
                delivered += len(batch)
        return delivered

    async def _deliver(self, batch: list[PerformanceEvent]) -> None:
        self.stats.flushes += 1
        try:
            await self.transport.send(batch)
        except Exception as e:
            self.stats.delivery_errors += 1
            logger.debug("Batch of %d events dropped: %s", len(batch), e)

    async def _flush_loop(self) -> None:
        interval = self.config.flush_interval_ms / 1000.0
        while self._running:
            await asyncio.sleep(interval)
            try:
                await self.flush()
            except Exception:
                logger.warning("Event buffer flush failed", exc_info=True)

    async def drain(self) -> None:
        """Wait for capacity-triggered deliveries still in flight."""
        await self._deliveries.drain()
