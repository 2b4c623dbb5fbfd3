"""PanelRuntime -- wires the panel core together and drives the shared clock.

One asyncio loop, one ~80 ms tick. Every tick:
    1. the activation state machine samples the pointer
    2. the focus timer advances
    3. the refresh orchestrator launches whatever signals are due

Everything that mutates state runs on this loop. Other threads (the web
status server) hand work over with dispatch().
"""

import asyncio
import concurrent.futures
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

import sources  # noqa: F401  registers built-in source/provider types
from config import SECTION_HEIGHTS, SIGNALS, TICK_INTERVAL
from core.activation import PANEL_TOPIC, ActivationStateMachine
from core.arbiter import ArtworkResolver, SourceArbiter
from core.data_source import DataSource
from core.event_bus import EventBus
from core.focus_timer import FOCUS_TOPIC, FocusTimer
from core.geometry import Display, Point
from core.models import ActivationMode, Artwork, MediaSnapshot, SignalState, SignalUpdate
from core.orchestrator import RefreshOrchestrator
from core.panel import PanelController
from core.preferences import Preferences
from core.registry import get_source_class
from sources.artwork import load_artwork
from sources.media_source import MediaControls, build_arbiter

logger = logging.getLogger(__name__)

ARTWORK_TOPIC = "artwork"
PREFERENCES_TOPIC = "preferences"

# signal name -> registered source type
SIGNAL_SOURCES = {
    "stats": "stats",
    "throughput": "throughput",
    "network": "ping",
    "calendar": "calendar",
    "weather": "weather",
    "app": "app",
}

METRIC_KEYS = ("show_cpu", "show_ram", "show_gpu", "show_battery")
WEATHER_KEYS = ("latitude", "longitude", "temperature_unit")
FOCUS_STEP_MINUTES = 5


def build_sources(prefs: Preferences) -> Dict[str, DataSource]:
    """Instantiate one DataSource per non-media signal."""
    built = {}
    for signal, type_name in SIGNAL_SOURCES.items():
        cls = get_source_class(type_name)
        if cls is None:
            logger.error("No source registered for type '%s'", type_name)
            continue
        config: Dict[str, Any] = {"interval": prefs.cadence(signal)}
        if signal == "weather":
            config.update({key: prefs.get(key) for key in WEATHER_KEYS})
        elif signal == "calendar":
            config["reminders_path"] = prefs.get("reminders_path")

        if signal == "stats":
            built[signal] = cls(signal, config, prefs=prefs)
        else:
            built[signal] = cls(signal, config)
    return built


class PanelRuntime:
    """Owns the bus, the state machine, the orchestrator and friends."""

    def __init__(
        self,
        prefs: Preferences,
        controller: PanelController,
        pointer: Callable[[], Point],
        buttons: Callable[[], bool],
        displays: Callable[[], Sequence[Display]],
        bus: Optional[EventBus] = None,
        arbiter: Optional[SourceArbiter] = None,
        signal_sources: Optional[Dict[str, DataSource]] = None,
        media_controls: Optional[MediaControls] = None,
        artwork_loader: Callable = load_artwork,
        scheduler=None,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: float = TICK_INTERVAL,
        initial_mode: ActivationMode = ActivationMode.COLLAPSED,
    ):
        self.prefs = prefs
        self.bus = bus or EventBus()
        self.bus.bind_to_current_thread()
        self._loop = asyncio.get_running_loop()
        self._clock = clock
        self._tick_interval = tick_interval
        self._last_tick: Optional[float] = None
        self._stopping = asyncio.Event()
        self._tick_hooks: List[Callable[[], None]] = []
        self._command_tasks: Set[asyncio.Task] = set()

        self.arbiter = arbiter or build_arbiter(prefs.get("players"))
        self.sources = signal_sources if signal_sources is not None else build_sources(prefs)
        self.controls = media_controls or MediaControls()
        self.media: Optional[MediaSnapshot] = None

        self.machine = ActivationStateMachine(
            controller,
            pointer=pointer,
            buttons=buttons,
            displays=displays,
            scheduler=scheduler or self._loop,
            prefs=prefs,
            bus=self.bus,
            initial_mode=initial_mode,
        )
        self.focus = FocusTimer(prefs, bus=self.bus)
        self.orchestrator = RefreshOrchestrator(self.bus, clock=clock)
        self.orchestrator.set_mode(initial_mode)
        self.artwork = ArtworkResolver(artwork_loader, self._on_artwork)

        self._register_signals()
        self.bus.subscribe(PANEL_TOPIC, self._on_panel)
        self.bus.subscribe(FOCUS_TOPIC, self._on_focus)
        self.bus.subscribe("media", self._on_media)
        self.bus.subscribe("app", self._on_app)
        prefs.observe(self._on_preference)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _register_signals(self):
        for name, entry in SIGNALS.items():
            if name == "media":
                fetch = self._fetch_media
            elif name in self.sources:
                fetch = self.sources[name].refresh
            else:
                logger.warning("Signal %s has no source, skipping", name)
                continue
            self.orchestrator.register(
                name,
                fetch,
                cadence=self.prefs.cadence(name),
                enabled=bool(self.prefs.get(entry["toggle"])),
                skip_when_collapsed=entry["skip_when_collapsed"],
            )

    async def _fetch_media(self) -> Optional[MediaSnapshot]:
        return await self.arbiter.resolve()

    def add_tick_hook(self, hook: Callable[[], None]):
        """Run hook at the end of every tick (the Tk controller pumps events here)."""
        self._tick_hooks.append(hook)

    # ------------------------------------------------------------------
    # Shared clock
    # ------------------------------------------------------------------

    def start(self):
        self.machine.start()
        self.bus.publish(PREFERENCES_TOPIC, self.prefs.as_dict())
        self.focus.on_visibility_change()
        logger.info("Runtime started (%d signals)", len(self.orchestrator.signals))

    def tick(self):
        now = self._clock()
        elapsed = 0.0 if self._last_tick is None else now - self._last_tick
        self._last_tick = now
        try:
            self.machine.sample()
            self.focus.advance(elapsed)
            self.orchestrator.tick()
            for hook in self._tick_hooks:
                hook()
        except Exception:
            logger.exception("Tick failed")

    async def run(self):
        """Drive the shared clock until stop()."""
        self.start()
        try:
            while not self._stopping.is_set():
                self.tick()
                try:
                    await asyncio.wait_for(self._stopping.wait(), self._tick_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.shutdown()

    def stop(self):
        self._stopping.set()

    def stop_threadsafe(self):
        self._loop.call_soon_threadsafe(self._stopping.set)

    async def shutdown(self):
        """Cancel every timer and task; no stale work survives this."""
        self.machine.stop()
        self.artwork.cancel()
        for task in list(self._command_tasks):
            task.cancel()
        await self.orchestrator.stop()
        for source in self.sources.values():
            try:
                source.close()
            except Exception as exc:
                logger.warning("Closing source %s failed: %s", source.source_id, exc)
        self.prefs.unobserve(self._on_preference)
        logger.info("Runtime stopped")

    def dispatch(self, func: Callable, *args) -> concurrent.futures.Future:
        """Run func(*args) on the decision loop from any thread."""
        async def call():
            result = func(*args)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return asyncio.run_coroutine_threadsafe(call(), self._loop)

    # ------------------------------------------------------------------
    # Bus subscribers
    # ------------------------------------------------------------------

    def _on_panel(self, state):
        self.orchestrator.set_mode(state.mode)

    def _on_focus(self, state):
        self._update_live_widget()

    def _on_media(self, update: SignalUpdate):
        if update.state is SignalState.LIVE:
            self.media = update.value
        else:
            self.media = None
        self.artwork.update(self.media)
        self._update_live_widget()

    def _on_app(self, update: SignalUpdate):
        if update.state is not SignalState.LIVE or not update.value:
            return
        profile = self.prefs.apply_profile_for_app(update.value.get("app_id"))
        if profile:
            logger.info("Auto profile -> %s", profile)

    def _on_artwork(self, identity, result):
        if result is None:
            self.bus.publish(ARTWORK_TOPIC, None)
            return
        png, width, height = result
        self.bus.publish(ARTWORK_TOPIC, Artwork(identity, png, width, height))

    def _update_live_widget(self):
        media_live = (
            bool(self.prefs.get("media_live_indicator"))
            and self.media is not None
            and self.media.is_playing
        )
        self.machine.set_live_widget(self.focus.live or media_live)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def _on_preference(self, key: str, old, new):
        for name, entry in SIGNALS.items():
            if entry["toggle"] == key and name in self.orchestrator.signals:
                self.orchestrator.set_enabled(name, bool(new))

        if key in METRIC_KEYS:
            self._refresh_if_enabled("stats")
        elif key == "cadences":
            for name in self.orchestrator.signals:
                self.orchestrator.set_cadence(name, self.prefs.cadence(name))
        elif key in ("focus_minutes", "break_minutes"):
            self.focus.on_duration_change(key, new)
        elif key == "show_focus_timer":
            self.focus.on_visibility_change()
        elif key == "media_live_indicator":
            self._update_live_widget()
        elif key in WEATHER_KEYS and "weather" in self.sources:
            setattr(self.sources["weather"], "unit" if key == "temperature_unit" else key, new)
            self._refresh_if_enabled("weather")
        elif key == "reminders_path" and "calendar" in self.sources:
            self.sources["calendar"].path = new
            self._refresh_if_enabled("calendar")
        elif key == "players":
            self.arbiter = build_arbiter(new)
            self._refresh_if_enabled("media")

        if key in SECTION_HEIGHTS:
            self.machine.layout_changed()
        self.bus.publish(PREFERENCES_TOPIC, self.prefs.as_dict())

    def _refresh_if_enabled(self, name: str):
        if name in self.orchestrator.signals and self.orchestrator.schedule(name).enabled:
            self.orchestrator.request_refresh(name)

    # ------------------------------------------------------------------
    # Commands (decision loop only; use dispatch() from other threads)
    # ------------------------------------------------------------------

    def focus_action(self, action: str):
        if action == "toggle":
            self.focus.toggle()
        elif action == "reset":
            self.focus.reset()
        elif action == "skip":
            self.focus.skip()
        elif action == "plus":
            self.focus.adjust_and_start(FOCUS_STEP_MINUTES)
        elif action == "minus":
            self.focus.adjust_and_start(-FOCUS_STEP_MINUTES)
        else:
            raise ValueError(f"unknown focus action '{action}'")
        return self.focus.state()

    async def media_action(self, action: str) -> bool:
        """Run a transport control on a worker, then refresh media at once."""
        ok = await self._loop.run_in_executor(None, self.controls.perform, action, self.media)
        self._refresh_if_enabled("media")
        return ok

    def submit_media_action(self, action: str) -> asyncio.Task:
        """Start media_action without waiting; failures are logged."""
        task = self._loop.create_task(self.media_action(action))
        self._command_tasks.add(task)
        task.add_done_callback(self._command_done)
        return task

    def _command_done(self, task: asyncio.Task):
        self._command_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Media command failed: %s", exc)

    def set_preference(self, key: str, value):
        return self.prefs.set(key, value)

    def apply_profile(self, name: str):
        self.prefs.apply_profile(name)
