"""Integration tests for PanelRuntime wiring."""

import asyncio
import threading

import pytest

from core.arbiter import SourceArbiter
from core.data_source import DataSource
from core.focus_timer import FocusPhase
from core.models import ActivationMode, Artwork, MediaSnapshot, SignalState, SignalUpdate
from core.preferences import Preferences
from core.runtime import ARTWORK_TOPIC, PREFERENCES_TOPIC, PanelRuntime


class StaticSource(DataSource):
    def __init__(self, source_id, value):
        super().__init__(source_id, {})
        self.value = value
        self.calls = 0
        self.closed = False

    def fetch(self):
        self.calls += 1
        return self.value

    def close(self):
        self.closed = True


class FakeControls:
    def __init__(self):
        self.actions = []

    def perform(self, action, snapshot=None):
        self.actions.append((action, snapshot))
        return True


async def settle():
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def runtime_prefs():
    return Preferences({"show_weather": False, "show_focus_timer": True})


@pytest.fixture
def fake_sources():
    return {
        "stats": StaticSource("stats", {"cpu": "5%"}),
        "weather": StaticSource("weather", {"weather": "70°F"}),
        "calendar": StaticSource("calendar", {"items": ()}),
        "throughput": StaticSource("throughput", {"down": "0 B/s"}),
        "network": StaticSource("network", {"ping": "9 ms"}),
        "app": StaticSource("app", {"app_id": None}),
    }


@pytest.fixture
def make_runtime(runtime_prefs, controller, pointer, scheduler, bus, laptop, fake_sources):
    def factory(**overrides):
        kwargs = dict(
            pointer=pointer.position,
            buttons=pointer.buttons,
            displays=lambda: [laptop],
            bus=bus,
            arbiter=SourceArbiter([]),
            signal_sources=fake_sources,
            media_controls=FakeControls(),
            artwork_loader=lambda ref: (b"\x89PNG", 1, 1),
            scheduler=scheduler,
        )
        kwargs.update(overrides)
        return PanelRuntime(runtime_prefs, controller, **kwargs)
    return factory


class TestWiring:
    @pytest.mark.asyncio
    async def test_start_publishes_panel_and_preferences(self, make_runtime, bus):
        runtime = make_runtime()
        runtime.start()
        assert bus.get_latest("panel").mode is ActivationMode.COLLAPSED
        assert bus.get_latest(PREFERENCES_TOPIC)["show_focus_timer"] is True

    @pytest.mark.asyncio
    async def test_tick_refreshes_enabled_signals(self, make_runtime, bus, fake_sources):
        runtime = make_runtime()
        runtime.start()
        runtime.tick()
        await asyncio.sleep(0.1)
        assert bus.get_latest("stats").value["cpu"] == "5%"
        assert bus.get_latest("weather").state is SignalState.HIDDEN
        assert fake_sources["weather"].calls == 0
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_hover_expands_and_orchestrator_follows(self, make_runtime, pointer):
        runtime = make_runtime()
        runtime.start()
        pointer.move(756, 5)
        runtime.tick()
        assert runtime.machine.expanded
        assert runtime.orchestrator.mode is ActivationMode.EXPANDED
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_tick_errors_are_contained(self, make_runtime):
        runtime = make_runtime()
        runtime.start()

        def broken():
            raise RuntimeError("hook bug")

        runtime.add_tick_hook(broken)
        runtime.tick()
        runtime.tick()
        await runtime.shutdown()


class TestPreferenceReactions:
    @pytest.mark.asyncio
    async def test_enabling_weather_fetches_immediately(self, make_runtime, runtime_prefs, fake_sources):
        runtime = make_runtime()
        runtime.start()
        runtime_prefs.set("show_weather", True)
        await asyncio.sleep(0.1)
        assert fake_sources["weather"].calls == 1
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_cadence_override_applies(self, make_runtime, runtime_prefs):
        runtime = make_runtime()
        runtime_prefs.set_cadence("stats", 5.0)
        assert runtime.orchestrator.schedule("stats").cadence == 5.0
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_weather_location_is_pushed_to_source(self, make_runtime, runtime_prefs, fake_sources):
        runtime = make_runtime()
        runtime_prefs.set("latitude", 48.85)
        assert fake_sources["weather"].latitude == 48.85
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_section_toggle_resizes_panel(self, make_runtime, runtime_prefs, controller):
        runtime = make_runtime(initial_mode=ActivationMode.EXPANDED)
        runtime.start()
        before = runtime.machine.snapshot().size
        runtime_prefs.set("show_calendar", True)
        assert runtime.machine.snapshot().size[1] == before[1] + 64
        await runtime.shutdown()


class TestLiveWidget:
    @pytest.mark.asyncio
    async def test_running_focus_timer_keeps_pill(self, make_runtime):
        runtime = make_runtime()
        runtime.start()
        state = runtime.focus_action("toggle")
        assert state.phase is FocusPhase.FOCUS
        assert runtime.machine.live_widget
        assert runtime.machine.visible

        runtime.focus_action("reset")
        assert not runtime.machine.live_widget
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_unknown_focus_action(self, make_runtime):
        runtime = make_runtime()
        with pytest.raises(ValueError):
            runtime.focus_action("explode")
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_playing_media_with_live_indicator(self, make_runtime, runtime_prefs, bus):
        runtime = make_runtime()
        runtime.start()
        runtime_prefs.set("media_live_indicator", True)
        snapshot = MediaSnapshot("Song", "Spotify", True, artwork_ref="file:///tmp/a.png")
        bus.publish("media", SignalUpdate.live("media", snapshot))
        assert runtime.machine.live_widget

        await asyncio.sleep(0.1)
        artwork = bus.get_latest(ARTWORK_TOPIC)
        assert isinstance(artwork, Artwork)
        assert artwork.identity == snapshot.identity

        bus.publish("media", SignalUpdate.live("media", None))
        assert not runtime.machine.live_widget
        assert bus.get_latest(ARTWORK_TOPIC) is None
        await runtime.shutdown()


class TestCommands:
    @pytest.mark.asyncio
    async def test_media_action_runs_on_worker(self, make_runtime):
        controls = FakeControls()
        runtime = make_runtime(media_controls=controls)
        assert await runtime.media_action("next") is True
        assert controls.actions == [("next", None)]
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_submitted_media_failure_is_logged(self, make_runtime, caplog):
        class BrokenControls(FakeControls):
            def perform(self, action, snapshot=None):
                raise RuntimeError("pactl missing")

        runtime = make_runtime(media_controls=BrokenControls())
        task = runtime.submit_media_action("mute")
        await asyncio.wait([task])
        assert "Media command failed" in caplog.text
        assert runtime._command_tasks == set()
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_media_command(self, make_runtime):
        release = threading.Event()

        class SlowControls(FakeControls):
            def perform(self, action, snapshot=None):
                release.wait(2.0)
                return True

        runtime = make_runtime(media_controls=SlowControls())
        task = runtime.submit_media_action("next")
        await asyncio.sleep(0)
        await runtime.shutdown()
        release.set()
        await asyncio.wait([task])
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_auto_profile_from_active_app(self, make_runtime, runtime_prefs, bus):
        runtime = make_runtime()
        runtime_prefs.set("auto_profile", True)
        bus.publish("app", SignalUpdate.live("app", {"app_id": "steam"}))
        assert runtime_prefs.get("profile") == "gaming"
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_dispatch_from_another_thread(self, make_runtime):
        runtime = make_runtime()
        future = await asyncio.get_running_loop().run_in_executor(
            None, runtime.dispatch, runtime.set_preference, "show_gpu", True)
        assert await asyncio.wrap_future(future) is True
        assert runtime.prefs.get("show_gpu") is True
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, make_runtime, fake_sources):
        runtime = make_runtime(tick_interval=0.01)
        loop = asyncio.get_running_loop()
        loop.call_later(0.1, runtime.stop)
        await asyncio.wait_for(runtime.run(), 2.0)
        assert fake_sources["stats"].calls >= 1
        assert all(source.closed for source in fake_sources.values())
