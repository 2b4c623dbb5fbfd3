"""Tests for the playerctl-backed media providers and controls."""

import subprocess
import time
from unittest.mock import MagicMock, patch

import pytest

from core.errors import ProviderFailure
from core.models import MediaSnapshot, SignalUpdate
from sources import media_source
from sources.media_source import (
    BrowserProvider,
    MediaControls,
    PlayerctlProvider,
    SessionFallback,
    build_arbiter,
    now_playing_text,
    parse_metadata,
    player_label,
    run_playerctl,
    sanitize,
)

LINE = "playing\thttps://i.scdn.co/image/abc\t215000000\t12500000\tDaft Punk\tOne More Time"


class TestParsing:
    def test_full_line(self):
        snapshot = parse_metadata(LINE, "Spotify", player="spotify")
        assert snapshot.track_title == "Daft Punk — One More Time"
        assert snapshot.is_playing
        assert snapshot.duration_seconds == pytest.approx(215.0)
        assert snapshot.position_seconds == pytest.approx(12.5)
        assert snapshot.artwork_ref == "https://i.scdn.co/image/abc"
        assert snapshot.player == "spotify"
        assert snapshot.display_text == "Spotify • Daft Punk — One More Time"

    def test_title_only_for_browsers(self):
        line = "paused\t\t\t\tSome Channel\tLofi beats - YouTube"
        snapshot = parse_metadata(line, "YouTube (Firefox)", title_only=True)
        assert snapshot.track_title == "Lofi beats"
        assert not snapshot.is_playing
        assert snapshot.artwork_ref is None
        assert snapshot.duration_seconds is None

    def test_stopped_is_nothing(self):
        assert parse_metadata("stopped\t\t\t\t\tX", "VLC") is None

    def test_short_line_is_nothing(self):
        assert parse_metadata("playing\tonly", "VLC") is None

    def test_empty_title_is_nothing(self):
        assert parse_metadata("playing\t\t\t\t\t  ", "VLC") is None

    def test_sanitize_truncates(self):
        value = sanitize("x" * 200, limit=20)
        assert len(value) == 20
        assert value.endswith("...")

    def test_player_label(self):
        assert player_label("spotify") == "Spotify"
        assert player_label("firefox.instance_1_23") == "YouTube (Firefox)"
        assert player_label("mpv") == "Mpv"


class TestSnapshotTiming:
    def test_position_interpolates_while_playing(self):
        snapshot = MediaSnapshot("T", "S", True, position_seconds=10, duration_seconds=100,
                                 fetch_timestamp=1000.0)
        assert snapshot.current_position(now=1005.0) == 15
        assert snapshot.remaining_text(now=1005.0) == "-1:25"
        assert snapshot.progress(now=1005.0) == pytest.approx(0.15)

    def test_position_frozen_when_paused(self):
        snapshot = MediaSnapshot("T", "S", False, position_seconds=10, fetch_timestamp=1000.0)
        assert snapshot.current_position(now=2000.0) == 10


class TestProviders:
    def test_native_provider_queries_its_player(self):
        with patch.object(media_source, "run_playerctl", return_value=LINE) as run:
            snapshot = PlayerctlProvider("spotify").query()
        args = run.call_args.args[0]
        assert args[:2] == ["-p", "spotify"]
        assert snapshot.source_label == "Spotify"

    def test_no_player_is_empty(self):
        with patch.object(media_source, "run_playerctl", return_value=None):
            assert PlayerctlProvider("vlc").query() is None

    def test_browser_provider_uses_title_only(self):
        line = "playing\t\t\t\tChannel\tTalk - YouTube"
        with patch.object(media_source, "run_playerctl", return_value=line):
            snapshot = BrowserProvider("brave").query()
        assert snapshot.track_title == "Talk"
        assert snapshot.source_label == "YouTube (Brave)"
        assert BrowserProvider("brave").timeout == 1.0

    def test_session_fallback_reads_player_name(self):
        with patch.object(media_source, "run_playerctl", return_value="chromium\t" + LINE):
            snapshot = SessionFallback().query()
        assert snapshot.player == "chromium"
        assert snapshot.source_label == "YouTube (Chromium)"
        assert snapshot.track_title == "One More Time"

    def test_missing_playerctl_is_failure(self):
        with patch.object(media_source.subprocess, "run", side_effect=FileNotFoundError):
            with pytest.raises(ProviderFailure):
                run_playerctl(["status"], 1.0)

    def test_nonzero_exit_is_nothing(self):
        with patch.object(media_source.subprocess, "run",
                          return_value=MagicMock(returncode=1, stdout="")):
            assert run_playerctl(["status"], 1.0) is None

    @pytest.mark.asyncio
    async def test_provider_timeout_inside_attempt(self):
        def slow(*args, **kwargs):
            time.sleep(0.3)
            return LINE

        with patch.object(media_source, "run_playerctl", side_effect=slow):
            result = await PlayerctlProvider("spotify", {"timeout": 0.05}).attempt()
        assert not result.ok


class TestBuildArbiter:
    def test_spotify_first_then_browsers(self):
        arbiter = build_arbiter(["vlc", "spotify"])
        names = [p.name for p in arbiter.providers]
        assert names[:2] == ["spotify", "vlc"]
        assert names[2:] == ["brave", "chromium", "chrome", "firefox"]
        assert isinstance(arbiter.fallback, SessionFallback)

    def test_browser_listed_as_player(self):
        arbiter = build_arbiter(["firefox"])
        assert isinstance(arbiter.providers[0], BrowserProvider)
        assert [p.name for p in arbiter.providers].count("firefox") == 1


class TestNowPlayingText:
    def test_states(self):
        snapshot = MediaSnapshot("Song", "VLC", True)
        assert now_playing_text(None) == "Not playing"
        assert now_playing_text(SignalUpdate.hidden("media")) == "Hidden in settings"
        assert now_playing_text(SignalUpdate.live("media", None)) == "Not playing"
        assert now_playing_text(SignalUpdate.live("media", snapshot)) == "VLC • Song"


class TestControls:
    @pytest.fixture
    def run(self):
        with patch.object(media_source.subprocess, "run",
                          return_value=MagicMock(returncode=0, stdout="")) as run:
            yield run

    def test_play_pause_targets_player(self, run):
        snapshot = MediaSnapshot("T", "Spotify", True, player="spotify")
        assert MediaControls().perform("play_pause", snapshot)
        assert run.call_args.args[0] == ["playerctl", "-p", "spotify", "play-pause"]

    def test_previous_restarts_late_in_track(self, run):
        snapshot = MediaSnapshot("T", "S", False, position_seconds=42.0, player="vlc")
        MediaControls().perform("previous", snapshot)
        assert run.call_args.args[0] == ["playerctl", "-p", "vlc", "position", "0"]

    def test_previous_goes_back_early_in_track(self, run):
        snapshot = MediaSnapshot("T", "S", False, position_seconds=1.0, player="vlc")
        MediaControls().perform("previous", snapshot)
        assert run.call_args.args[0] == ["playerctl", "-p", "vlc", "previous"]

    def test_mute_uses_pactl(self, run):
        MediaControls().perform("mute")
        assert run.call_args.args[0][0] == "pactl"

    def test_unknown_action(self, run):
        with pytest.raises(ValueError):
            MediaControls().perform("rewind")

    def test_failure_returns_false(self):
        with patch.object(media_source.subprocess, "run",
                          side_effect=subprocess.TimeoutExpired("playerctl", 2)):
            assert MediaControls().perform("next") is False
