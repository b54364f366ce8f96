"""
Preload decision engine.

Three independent trigger streams feed one priority queue of PreloadTasks:

- predicted navigation: ``predict({"/checkout": 0.8, ...})``
- viewport proximity: ``handle_intersection(path, distance_px)``
- pointer / keyboard intent: host ``mouseover``/``mouseout`` (hover held
  for ``hover_delay_ms``) and ``focusin``

Paths are resolved against the current page URL and deduplicated: a path
already preloaded, queued or in flight is skipped. Each processing pass
sorts the queue (high > medium > low) and dispatches at most
``cap - in_flight`` tasks, where the cap comes from the current network
condition. A settled hint, cancelled ones included, frees its slot and the next
queued task is dispatched straight away. A dispatch is a passive
resource hint; failures are recorded for tuning and otherwise ignored.
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
import time
from collections.abc import Mapping
from urllib.parse import urldefrag, urljoin, urlsplit

from pagepulse.background import BackgroundTasks
from pagepulse.config import PreloadConfig
from pagepulse.context import MonitorContext
from pagepulse.host import DomEvent, Unsubscribe
from pagepulse.network import NetworkCondition

from .models import PreloadOutcome, PreloadStats, PreloadTask, Priority, Trigger

logger = logging.getLogger(__name__)

MAX_OUTCOMES = 100


def prediction_priority(
    probability: float, condition: NetworkCondition, config: PreloadConfig
) -> Priority | None:
    """
    Map a route prediction to a priority, or None to skip it.

    high when probable and the network is fast; low when moderately probable
    and the network is not slow; otherwise no speculative load.
    """
    if probability > config.high_probability and condition == NetworkCondition.FAST:
        return Priority.HIGH
    if probability > config.low_probability and condition != NetworkCondition.SLOW:
        return Priority.LOW
    return None


class PreloadEngine:
    def __init__(self, context: MonitorContext, config: PreloadConfig | None = None) -> None:
        self._context = context
        self.config = config or PreloadConfig()

        self._queue: list[PreloadTask] = []
        self._queued: set[str] = set()
        self._preloaded: set[str] = set()
        self._in_flight: dict[str, asyncio.Task[bool]] = {}
        self._hover_timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[Unsubscribe] = []
        self._sequence = itertools.count()
        self._runner: asyncio.Task[None] | None = None
        self._tasks = BackgroundTasks("preload")
        self.stats = PreloadStats()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Listen for pointer and keyboard intent on the host."""
        if self._listeners or not self.config.enabled:
            return
        host = self._context.host
        for event_type, handler in (
            ("mouseover", self._on_mouseover),
            ("mouseout", self._on_mouseout),
            ("focusin", self._on_focusin),
        ):
            try:
                self._listeners.append(host.add_listener(event_type, handler))
            except Exception as e:
                logger.info("Preload intent listener %s unavailable: %s", event_type, e)

    async def stop(self) -> None:
        """Detach listeners, drop the queue and cancel in-flight hints."""
        while self._listeners:
            unsubscribe = self._listeners.pop()
            try:
                unsubscribe()
            except Exception as e:
                logger.debug("Preload listener teardown failed: %s", e)
        for handle in self._hover_timers.values():
            handle.cancel()
        self._hover_timers.clear()
        self.stats.cancelled += len(self._queue)
        self._queue.clear()
        self._queued.clear()
        hints = list(self._in_flight.values())
        for hint in hints:
            hint.cancel()
        if hints:
            await asyncio.gather(*hints, return_exceptions=True)
        self._in_flight.clear()
        await self._tasks.cancel_all()
        self._runner = None

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def queued(self) -> list[PreloadTask]:
        return sorted(self._queue, key=lambda t: t.sort_key)

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def is_preloaded(self, path: str) -> bool:
        resolved = self.resolve(path)
        return resolved is not None and resolved in self._preloaded

    def current_cap(self) -> int:
        return self.config.cap_for(self._context.network.condition())

    def resolve(self, path: str) -> str | None:
        """Absolute same-origin URL without fragment; None for other origins."""
        try:
            base = self._context.host.current_url()
        except Exception:
            base = ""
        resolved, _ = urldefrag(urljoin(base, path.strip()))
        target, page = urlsplit(resolved), urlsplit(base)
        if target.scheme not in ("http", "https"):
            return None
        if page.netloc and target.netloc != page.netloc:
            return None
        return resolved

    # =========================================================================
    # Triggers
    # =========================================================================

    def enqueue(
        self, path: str, priority: Priority, *, trigger: Trigger = Trigger.MANUAL
    ) -> PreloadTask | None:
        """Queue a candidate unless it is disabled, foreign or already known."""
        if not self.config.enabled:
            return None
        resolved = self.resolve(path)
        if resolved is None:
            self.stats.skipped += 1
            return None
        if resolved in self._preloaded or resolved in self._queued or resolved in self._in_flight:
            self.stats.deduplicated += 1
            return None

        task = PreloadTask(
            path=resolved,
            priority=priority,
            timestamp=self._context.clock(),
            network_condition=self._context.network.condition(),
            trigger=trigger,
            sequence=next(self._sequence),
        )
        self._queue.append(task)
        self._queued.add(resolved)
        self.stats.enqueued += 1
        self.schedule()
        return task

    def predict(self, probabilities: Mapping[str, float]) -> list[PreloadTask]:
        """Queue route predictions according to probability and network condition."""
        condition = self._context.network.condition()
        queued: list[PreloadTask] = []
        for path, probability in sorted(probabilities.items(), key=lambda kv: -kv[1]):
            priority = prediction_priority(probability, condition, self.config)
            if priority is None:
                self.stats.skipped += 1
                continue
            task = self.enqueue(path, priority, trigger=Trigger.PREDICTION)
            if task is not None:
                queued.append(task)
        return queued

    def handle_intersection(self, path: str, distance_px: float) -> PreloadTask | None:
        """An element is within distance_px of the viewport (0 = visible)."""
        if distance_px > self.config.viewport_margin_px:
            return None
        return self.enqueue(path, Priority.MEDIUM, trigger=Trigger.VIEWPORT)

    def _on_mouseover(self, event: DomEvent) -> None:
        href = event.target_href
        if not href:
            return
        self._cancel_hover(href)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop for hover intent on %s", href)
            return
        self._hover_timers[href] = loop.call_later(
            self.config.hover_delay_ms / 1000.0, self._hover_elapsed, href
        )

    def _on_mouseout(self, event: DomEvent) -> None:
        if event.target_href:
            self._cancel_hover(event.target_href)

    def _cancel_hover(self, href: str) -> None:
        handle = self._hover_timers.pop(href, None)
        if handle is not None:
            handle.cancel()

    def _hover_elapsed(self, href: str) -> None:
        self._hover_timers.pop(href, None)
        self.enqueue(href, Priority.HIGH, trigger=Trigger.HOVER)

    def _on_focusin(self, event: DomEvent) -> None:
        if event.target_href:
            self.enqueue(event.target_href, Priority.MEDIUM, trigger=Trigger.FOCUS)

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel(self, path: str) -> bool:
        """Drop a queued task or abort an in-flight hint for path."""
        resolved = self.resolve(path) or path
        cancelled = False
        if resolved in self._queued:
            self._queue = [t for t in self._queue if t.path != resolved]
            self._queued.discard(resolved)
            self.stats.cancelled += 1
            cancelled = True
        task = self._in_flight.get(resolved)
        if task is not None and not task.done():
            task.cancel()
            cancelled = True
        return cancelled

    def mark_satisfied(self, path: str) -> None:
        """Record that path was loaded by other means; pending work for it is cancelled."""
        resolved = self.resolve(path)
        if resolved is None:
            return
        self._preloaded.add(resolved)
        self.cancel(resolved)

    # =========================================================================
    # Execution
    # =========================================================================

    def schedule(self) -> None:
        """Ensure a processing runner is active on the loop."""
        if self._runner is not None and not self._runner.done():
            return
        self._runner = self._tasks.spawn(self._run(), name="runner")

    async def _run(self) -> None:
        self._fill()

    async def process(self) -> list[PreloadTask]:
        """One pass: dispatch up to the free concurrency slots without waiting on them."""
        return self._fill()

    def _fill(self) -> list[PreloadTask]:
        slots = self.current_cap() - len(self._in_flight)
        if slots <= 0 or not self._queue:
            return []

        self._queue.sort(key=lambda t: t.sort_key)
        batch, self._queue = self._queue[:slots], self._queue[slots:]
        loop = asyncio.get_running_loop()
        for task in batch:
            self._queued.discard(task.path)
            hint = loop.create_task(self._dispatch(task), name=f"preload:{task.path}")
            self._in_flight[task.path] = hint
            hint.add_done_callback(functools.partial(self._hint_done, task.path))
            self.stats.dispatched += 1
        return batch

    def _hint_done(self, path: str, hint: asyncio.Task[bool]) -> None:
        # Runs even when the hint was cancelled before its first step.
        if self._in_flight.get(path) is hint:
            del self._in_flight[path]
        if hint.cancelled():
            self.stats.cancelled += 1
        if self._queue:
            self._fill()

    async def _dispatch(self, task: PreloadTask) -> bool:
        start = time.monotonic()
        try:
            loaded = bool(await self._context.host.prefetch(task.path, self.config.rel))
        except Exception as e:
            logger.debug("Preload of %s failed: %s", task.path, e)
            loaded = False

        if loaded:
            self._preloaded.add(task.path)
            self.stats.succeeded += 1
        else:
            self.stats.failed += 1
        self._record(task, loaded, (time.monotonic() - start) * 1000)
        return loaded

    def _record(self, task: PreloadTask, loaded: bool, elapsed_ms: float) -> None:
        outcomes = self.stats.outcomes
        outcomes.append(
            PreloadOutcome(
                path=task.path,
                priority=task.priority,
                trigger=task.trigger,
                network_condition=task.network_condition,
                loaded=loaded,
                elapsed_ms=elapsed_ms,
            )
        )
        if len(outcomes) > MAX_OUTCOMES:
            del outcomes[: len(outcomes) - MAX_OUTCOMES]

    async def drain(self) -> None:
        """Wait until queued work has been processed as far as the caps allow."""
        while self._in_flight or len(self._tasks):
            await self._tasks.drain()
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)
