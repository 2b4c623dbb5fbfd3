"""Now-playing providers backed by MPRIS (via playerctl).

Three kinds of provider feed the SourceArbiter, in trust order:

  PlayerctlProvider  native players (Spotify, Rhythmbox, Elisa, VLC)
  BrowserProvider    browser tabs (Brave, Chromium, Chrome, Firefox);
                     the tab title is the track, " - YouTube" stripped
  SessionFallback    playerctl without -p: whatever session is active

Each query is one playerctl call with a tab-separated format:
    status <TAB> artUrl <TAB> length <TAB> position <TAB> artist <TAB> title
length and position are microseconds.

MediaControls drives the current player (play/pause, next, previous,
mute). Previous restarts the track when more than 3 s in.
"""

import logging
import subprocess
from typing import Dict, List, Optional, Sequence

from config import (
    BROWSER_PLAYERS,
    BROWSER_PROVIDER_TIMEOUT,
    FALLBACK_PROVIDER_TIMEOUT,
    MAX_TRACK_LENGTH,
    NATIVE_PLAYERS,
    NATIVE_PROVIDER_TIMEOUT,
    PLAYER_LABELS,
)
from core.arbiter import SourceArbiter
from core.errors import ProviderFailure
from core.models import MediaSnapshot, SignalState, SignalUpdate
from core.provider import MediaProvider
from core.registry import get_provider_class, register_provider

logger = logging.getLogger(__name__)

FIELDS = "{{lc(status)}}\t{{mpris:artUrl}}\t{{mpris:length}}\t{{position}}\t{{artist}}\t{{title}}"
RESTART_THRESHOLD = 3.0  # seconds


def sanitize(raw: str, limit: int = MAX_TRACK_LENGTH) -> str:
    value = raw.replace(" - YouTube", "").replace("— YouTube", "").strip()
    if len(value) > limit:
        value = value[:limit - 3] + "..."
    return value


def _micros(value: str) -> Optional[float]:
    try:
        seconds = float(value) / 1_000_000
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def parse_metadata(raw: str, label: str, player: Optional[str] = None,
                   title_only: bool = False) -> Optional[MediaSnapshot]:
    """Parse one playerctl line. None when nothing usable is loaded."""
    parts = raw.rstrip("\n").split("\t")
    if len(parts) < 6:
        return None

    status = parts[0].strip().lower()
    if status not in ("playing", "paused"):
        return None

    artist = parts[4].strip()
    title = "\t".join(parts[5:]).strip()
    if title_only or not artist:
        track = title
    else:
        track = f"{artist} — {title}"
    track = sanitize(track)
    if not track:
        return None

    return MediaSnapshot(
        track_title=track,
        source_label=label,
        is_playing=status == "playing",
        position_seconds=_micros(parts[3]),
        duration_seconds=_micros(parts[2]),
        artwork_ref=parts[1].strip() or None,
        player=player,
    )


def player_label(player: str) -> str:
    base = player.split(".", 1)[0].lower()
    return PLAYER_LABELS.get(base, base.capitalize() or "Media")


def run_playerctl(args: Sequence[str], timeout: float) -> Optional[str]:
    """Run playerctl; stdout on success, None when no player answers."""
    try:
        result = subprocess.run(
            ["playerctl", *args],
            capture_output=True, text=True, timeout=timeout,
        )
    except FileNotFoundError:
        raise ProviderFailure("playerctl", "playerctl is not installed") from None
    except subprocess.TimeoutExpired:
        raise ProviderFailure("playerctl", f"no answer within {timeout:.1f}s") from None
    if result.returncode != 0:
        return None
    output = result.stdout.strip()
    return output or None


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

@register_provider("playerctl")
class PlayerctlProvider(MediaProvider):
    """One named MPRIS player."""

    title_only = False

    def __init__(self, name: str, config: Optional[Dict] = None):
        config = dict(config or {})
        config.setdefault("timeout", NATIVE_PROVIDER_TIMEOUT)
        super().__init__(name, config)
        self.player = config.get("player", name)
        self.label = config.get("label") or player_label(self.player)

    def query(self) -> Optional[MediaSnapshot]:
        raw = run_playerctl(["-p", self.player, "metadata", "--format", FIELDS], self.timeout)
        if raw is None:
            return None
        return parse_metadata(raw, self.label, player=self.player, title_only=self.title_only)


@register_provider("browser")
class BrowserProvider(PlayerctlProvider):
    """A browser's media session; the tab title is the track."""

    title_only = True

    def __init__(self, name: str, config: Optional[Dict] = None):
        config = dict(config or {})
        config.setdefault("timeout", BROWSER_PROVIDER_TIMEOUT)
        super().__init__(name, config)


@register_provider("session")
class SessionFallback(MediaProvider):
    """Whatever MPRIS session playerctl considers active."""

    def __init__(self, name: str = "session", config: Optional[Dict] = None):
        config = dict(config or {})
        config.setdefault("timeout", FALLBACK_PROVIDER_TIMEOUT)
        super().__init__(name, config)

    def query(self) -> Optional[MediaSnapshot]:
        raw = run_playerctl(["metadata", "--format", "{{playerName}}\t" + FIELDS], self.timeout)
        if raw is None:
            return None
        player, _, rest = raw.partition("\t")
        base = player.split(".", 1)[0].lower()
        return parse_metadata(
            rest, player_label(player), player=player, title_only=base in BROWSER_PLAYERS
        )


def build_arbiter(players: Optional[Sequence[str]] = None,
                  browsers: Sequence[str] = BROWSER_PLAYERS,
                  parallel: bool = False) -> SourceArbiter:
    """Native players (Spotify first), then browsers, then the session fallback."""
    natives: List[str] = list(players if players is not None else NATIVE_PLAYERS)
    if "spotify" in natives:
        natives.remove("spotify")
        natives.insert(0, "spotify")

    providers: List[MediaProvider] = []
    for player in natives:
        kind = "browser" if player in browsers else "playerctl"
        providers.append(get_provider_class(kind)(player))
    for browser in browsers:
        if browser not in natives:
            providers.append(get_provider_class("browser")(browser))

    logger.info("Media providers: %s", ", ".join(p.name for p in providers))
    return SourceArbiter(providers, fallback=SessionFallback(), parallel=parallel)


def now_playing_text(update: Optional[SignalUpdate]) -> str:
    """What the media tile shows for a published media update."""
    if update is None:
        return "Not playing"
    if update.state is SignalState.HIDDEN:
        return "Hidden in settings"
    if update.value is None:
        return "Not playing"
    return update.value.display_text


# ---------------------------------------------------------------------------
# Controls
# ---------------------------------------------------------------------------

class MediaControls:
    """Transport controls. Blocking; call from a worker thread."""

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout

    def _player_args(self, snapshot: Optional[MediaSnapshot]) -> List[str]:
        if snapshot is not None and snapshot.player:
            return ["-p", snapshot.player]
        return []

    def _run(self, args: List[str]) -> bool:
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("Media control %s failed: %s", " ".join(args), exc)
            return False
        if result.returncode != 0:
            logger.warning("Media control %s exited %d", " ".join(args), result.returncode)
            return False
        return True

    def play_pause(self, snapshot: Optional[MediaSnapshot] = None) -> bool:
        return self._run(["playerctl", *self._player_args(snapshot), "play-pause"])

    def next_track(self, snapshot: Optional[MediaSnapshot] = None) -> bool:
        return self._run(["playerctl", *self._player_args(snapshot), "next"])

    def previous_track(self, snapshot: Optional[MediaSnapshot] = None) -> bool:
        position = snapshot.current_position() if snapshot is not None else None
        if position is not None and position > RESTART_THRESHOLD:
            return self._run(["playerctl", *self._player_args(snapshot), "position", "0"])
        return self._run(["playerctl", *self._player_args(snapshot), "previous"])

    def toggle_mute(self, snapshot: Optional[MediaSnapshot] = None) -> bool:
        return self._run(["pactl", "set-sink-mute", "@DEFAULT_SINK@", "toggle"])

    def perform(self, action: str, snapshot: Optional[MediaSnapshot] = None) -> bool:
        handler = {
            "play_pause": self.play_pause,
            "next": self.next_track,
            "previous": self.previous_track,
            "mute": self.toggle_mute,
        }.get(action)
        if handler is None:
            raise ValueError(f"unknown media action '{action}'")
        return handler(snapshot)
