"""Shared fixtures for notchdeck tests.

The activation state machine takes its scheduler, pointer, buttons and
displays as collaborators; the fakes here let tests drive time and the
pointer by hand.
"""

from typing import Callable, List

import pytest

from core.event_bus import EventBus
from core.geometry import Display, Point, Rect
from core.panel import LoggingPanelController
from core.preferences import Preferences


class ManualHandle:
    def __init__(self, when: float, callback: Callable):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """call_later() look-alike whose clock only moves on advance()."""

    def __init__(self):
        self.now = 0.0
        self.handles: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and h.callback is not None]

    def advance(self, seconds: float):
        """Move the clock forward, firing due callbacks in time order."""
        target = self.now + seconds
        while True:
            due = sorted(
                (h for h in self.pending if h.when <= target + 1e-9),
                key=lambda h: h.when,
            )
            if not due:
                break
            handle = due[0]
            self.now = max(self.now, handle.when)
            callback, handle.callback = handle.callback, None
            callback()
        self.now = target


class FakePointer:
    def __init__(self, x: float = 0, y: float = 500):
        self.point = Point(x, y)
        self.pressed = False

    def move(self, x: float, y: float):
        self.point = Point(x, y)

    def position(self) -> Point:
        return self.point

    def buttons(self) -> bool:
        return self.pressed


@pytest.fixture
def laptop():
    """A built-in 1512x982 display with a notch at the top-center."""
    return Display(
        display_id=1,
        frame=Rect(0, 0, 1512, 982),
        visible_frame=Rect(0, 38, 1512, 944),
        builtin=True,
        safe_area_top=38,
        notch=Rect(656, 0, 200, 38),
    )


@pytest.fixture
def monitor():
    """An external 1920x1080 monitor to the right of the laptop."""
    return Display(
        display_id=2,
        frame=Rect(1512, 0, 1920, 1080),
        visible_frame=Rect(1512, 25, 1920, 1055),
        primary=True,
    )


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def pointer():
    return FakePointer()


@pytest.fixture
def controller():
    return LoggingPanelController()


@pytest.fixture
def prefs():
    return Preferences()


@pytest.fixture
def bus():
    return EventBus()
