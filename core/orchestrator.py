"""Refresh orchestrator -- one schedule table, one shared clock.

Each tracked signal (media, stats, throughput, network, calendar,
weather) has a cadence, an enable gate, a force-refresh flag and an
in-flight marker. tick() is called from the shared clock; it launches
at most one fetch per signal and never queues a second one behind it.

A fetch's outcome, success or failure, always moves lastFetch forward,
so a failing source waits for its next cadence boundary instead of
retry-looping. Results are published on the EventBus as SignalUpdate.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.errors import ProviderFailure, SignalDisabled
from core.event_bus import EventBus
from core.models import ActivationMode, SignalState, SignalUpdate

logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[Any]]


@dataclass
class SignalSchedule:
    """Bookkeeping for one signal. Mutated only on the decision loop."""

    name: str
    cadence: float
    enabled: bool = True
    skip_when_collapsed: bool = False
    last_fetch: Optional[float] = None
    in_flight: bool = False
    force: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    def is_due(self, now: float) -> bool:
        if self.force or self.last_fetch is None:
            return True
        return now - self.last_fetch >= self.cadence


@dataclass
class _Signal:
    schedule: SignalSchedule
    fetch: Fetch
    published: Optional[SignalState] = None


class RefreshOrchestrator:
    """Launches signal fetches when they are due and publishes the results."""

    def __init__(self, bus: EventBus, clock: Callable[[], float] = time.monotonic):
        self._bus = bus
        self._clock = clock
        self._signals: Dict[str, _Signal] = {}
        self._mode = ActivationMode.COLLAPSED

    # ------------------------------------------------------------------
    # Registration and configuration
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        fetch: Fetch,
        cadence: float,
        enabled: bool = True,
        skip_when_collapsed: bool = False,
    ) -> SignalSchedule:
        """Add a signal. It is force-refreshed on the first tick (cold start)."""
        if name in self._signals:
            raise ValueError(f"signal '{name}' already registered")
        schedule = SignalSchedule(
            name=name,
            cadence=cadence,
            enabled=enabled,
            skip_when_collapsed=skip_when_collapsed,
            force=True,
        )
        self._signals[name] = _Signal(schedule, fetch)
        logger.debug("Registered signal %s (cadence %.1fs, enabled=%s)", name, cadence, enabled)
        return schedule

    def schedule(self, name: str) -> SignalSchedule:
        return self._signals[name].schedule

    @property
    def signals(self) -> List[str]:
        return list(self._signals)

    @property
    def mode(self) -> ActivationMode:
        return self._mode

    def set_mode(self, mode: ActivationMode):
        """Follow the activation state machine."""
        if mode is not self._mode:
            logger.debug("Orchestrator mode -> %s", mode.value)
        self._mode = mode

    def set_enabled(self, name: str, enabled: bool):
        """Toggle a signal.

        Off cancels any in-flight fetch and hides the value. On performs
        one immediate fetch instead of waiting for the cadence boundary.
        """
        signal = self._signals[name]
        schedule = signal.schedule
        if schedule.enabled == enabled:
            return
        schedule.enabled = enabled

        if not enabled:
            logger.info("Signal %s disabled", name)
            self._cancel(schedule)
            schedule.force = False
            self._publish(signal, SignalUpdate.hidden(name))
            return

        logger.info("Signal %s enabled, refreshing now", name)
        schedule.force = True
        self._launch(signal, self._clock())

    def set_cadence(self, name: str, cadence: float):
        """Change a cadence; takes effect on the very next tick."""
        schedule = self._signals[name].schedule
        if cadence <= 0:
            raise ValueError(f"cadence for '{name}' must be positive")
        schedule.cadence = cadence

    def request_refresh(self, name: str):
        """Force the next tick to fetch this signal regardless of cadence."""
        schedule = self._signals[name].schedule
        if not schedule.enabled:
            raise SignalDisabled(name)
        schedule.force = True

    # ------------------------------------------------------------------
    # Shared clock entry point
    # ------------------------------------------------------------------

    def tick(self) -> List[str]:
        """Launch every due signal. Returns the names launched this tick."""
        now = self._clock()
        launched = []
        for signal in self._signals.values():
            schedule = signal.schedule
            if not schedule.enabled:
                if signal.published is not SignalState.HIDDEN:
                    self._publish(signal, SignalUpdate.hidden(schedule.name))
                continue
            if schedule.in_flight:
                continue
            if (
                schedule.skip_when_collapsed
                and self._mode is ActivationMode.COLLAPSED
                and not schedule.force
            ):
                continue
            if schedule.is_due(now) and self._launch(signal, now):
                launched.append(schedule.name)
        return launched

    async def stop(self):
        """Cancel every in-flight fetch and wait for them to unwind."""
        tasks = []
        for signal in self._signals.values():
            task = signal.schedule.task
            self._cancel(signal.schedule)
            if task is not None:
                tasks.append(task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Orchestrator stopped (%d fetches cancelled)", len(tasks))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _launch(self, signal: _Signal, now: float) -> bool:
        schedule = signal.schedule
        if schedule.in_flight:
            return False
        schedule.in_flight = True
        schedule.force = False
        schedule.task = asyncio.get_running_loop().create_task(
            self._run(signal), name=f"refresh-{schedule.name}"
        )
        return True

    def _cancel(self, schedule: SignalSchedule):
        task = schedule.task
        # detach first so a late completion of the old task is ignored
        schedule.task = None
        schedule.in_flight = False
        if task is not None and not task.done():
            logger.debug("Cancelling in-flight %s fetch", schedule.name)
            task.cancel()

    async def _run(self, signal: _Signal):
        schedule = signal.schedule
        me = asyncio.current_task()
        current = False
        try:
            value = await signal.fetch()
            update = SignalUpdate.live(schedule.name, value)
        except ProviderFailure as exc:
            logger.warning("Signal %s fetch failed: %s", schedule.name, exc)
            update = SignalUpdate.unavailable(schedule.name, exc.reason)
        except Exception as exc:
            logger.error("Signal %s fetch error: %s", schedule.name, exc)
            update = SignalUpdate.unavailable(schedule.name, str(exc))
        finally:
            current = schedule.task is me
            if current:
                schedule.in_flight = False
                schedule.task = None
                schedule.last_fetch = self._clock()

        # detached by a disable or stop: the result is stale
        if current:
            self._publish(signal, update)

    def _publish(self, signal: _Signal, update: SignalUpdate):
        signal.published = update.state
        self._bus.publish(signal.schedule.name, update)
