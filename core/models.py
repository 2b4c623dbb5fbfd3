"""Immutable value types shared by the panel core.

Everything published on the EventBus is one of these (or wrapped
read-only), so consumers never see the decision loop's working state.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional, Tuple


class ActivationMode(Enum):
    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


@dataclass(frozen=True)
class MediaSnapshot:
    """One "now playing" reading from a single source."""

    track_title: str
    source_label: str
    is_playing: bool
    position_seconds: Optional[float] = None
    duration_seconds: Optional[float] = None
    artwork_ref: Optional[str] = None
    fetch_timestamp: float = field(default_factory=time.time)
    player: Optional[str] = None  # playerctl name, used to route media controls

    @property
    def identity(self) -> Tuple[str, str]:
        """Stable key for artwork lookups: same source + track, same artwork."""
        return (self.source_label, self.track_title)

    @property
    def display_text(self) -> str:
        return f"{self.source_label} • {self.track_title}"

    def current_position(self, now: Optional[float] = None) -> Optional[float]:
        """Position interpolated from the fetch time while playing."""
        if self.position_seconds is None:
            return None
        if not self.is_playing:
            return self.position_seconds
        now = time.time() if now is None else now
        position = self.position_seconds + max(0.0, now - self.fetch_timestamp)
        if self.duration_seconds is not None:
            position = min(position, self.duration_seconds)
        return position

    def progress(self, now: Optional[float] = None) -> Optional[float]:
        current = self.current_position(now)
        if not self.duration_seconds or current is None:
            return None
        return min(1.0, max(0.0, current / self.duration_seconds))

    def remaining_text(self, now: Optional[float] = None) -> Optional[str]:
        """Remaining time as "-m:ss"."""
        current = self.current_position(now)
        if not self.duration_seconds or current is None:
            return None
        remaining = int(max(0.0, self.duration_seconds - current))
        return f"-{remaining // 60}:{remaining % 60:02d}"


class ResultKind(Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ProviderResult:
    """Outcome of one provider attempt. Only SUCCESS carries a snapshot."""

    kind: ResultKind
    snapshot: Optional[MediaSnapshot] = None
    reason: str = ""

    @classmethod
    def success(cls, snapshot: MediaSnapshot) -> "ProviderResult":
        return cls(ResultKind.SUCCESS, snapshot=snapshot)

    @classmethod
    def empty(cls) -> "ProviderResult":
        return cls(ResultKind.EMPTY)

    @classmethod
    def failed(cls, reason: str) -> "ProviderResult":
        return cls(ResultKind.FAILED, reason=reason)

    @classmethod
    def timed_out(cls) -> "ProviderResult":
        return cls(ResultKind.TIMED_OUT, reason="timed out")

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS


class SignalState(Enum):
    LIVE = "live"
    UNAVAILABLE = "unavailable"  # last attempt failed
    HIDDEN = "hidden"            # switched off in preferences


@dataclass(frozen=True)
class SignalUpdate:
    """Published value of one tracked signal."""

    signal: str
    state: SignalState
    value: Any = None
    reason: str = ""
    fetched_at: float = field(default_factory=time.time)

    @classmethod
    def live(cls, signal: str, value: Any) -> "SignalUpdate":
        if isinstance(value, dict):
            value = MappingProxyType(dict(value))
        return cls(signal, SignalState.LIVE, value)

    @classmethod
    def unavailable(cls, signal: str, reason: str = "") -> "SignalUpdate":
        return cls(signal, SignalState.UNAVAILABLE, reason=reason)

    @classmethod
    def hidden(cls, signal: str) -> "SignalUpdate":
        return cls(signal, SignalState.HIDDEN)

    @property
    def available(self) -> bool:
        return self.state is SignalState.LIVE


@dataclass(frozen=True)
class Artwork:
    """Decoded, thumbnailed artwork for one media identity (PNG bytes)."""

    identity: Tuple[str, str]
    png: bytes = field(repr=False)
    width: int
    height: int


@dataclass(frozen=True)
class PanelState:
    """What the panel currently looks like, as decided by the state machine."""

    mode: ActivationMode
    visible: bool
    live_widget: bool
    size: Tuple[int, int]
    frame: Optional[Tuple[float, float, float, float]] = None
