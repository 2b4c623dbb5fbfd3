"""Screen geometry for the hover panel.

Coordinates are global screen points with a top-left origin and y
growing downward. A Display may carry a notch rect (the camera housing
at the top-center); the activation zone and the panel both hang from it.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from config import (
    ACTIVATION_ZONE_HEIGHT,
    ACTIVATION_ZONE_WIDTH,
    COLLAPSED_HEIGHT,
    COLLAPSED_LIVE_WIDTH,
    COLLAPSED_MAX_HEIGHT,
    COLLAPSED_TOP_OVERLAP,
    COLLAPSED_WIDTH,
    EXPANDED_BASE_HEIGHT,
    EXPANDED_MAX_HEIGHT,
    EXPANDED_TOP_OVERLAP,
    EXPANDED_WIDTH,
    SECTION_HEIGHTS,
)
from core.errors import NoTargetDisplay
from core.models import ActivationMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, point: Point) -> bool:
        """Half-open containment: left/top edges inside, right/bottom outside."""
        if self.is_empty:
            return False
        return self.min_x <= point.x < self.max_x and self.min_y <= point.y < self.max_y

    def inset(self, dx: float, dy: float) -> "Rect":
        """Shrink by dx/dy on every side (negative values grow the rect)."""
        return Rect(self.x + dx, self.y + dy, self.width - 2 * dx, self.height - 2 * dy)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class Display:
    """One attached monitor as reported by the platform display reader."""

    display_id: Optional[int]
    frame: Rect
    visible_frame: Optional[Rect] = None
    builtin: bool = False
    primary: bool = False
    safe_area_top: float = 0.0
    notch: Optional[Rect] = None

    @property
    def usable_frame(self) -> Rect:
        return self.visible_frame or self.frame

    @property
    def has_notch(self) -> bool:
        return self.safe_area_top > 0 or self.notch is not None


# ------------------------------------------------------------------
# Display resolution
# ------------------------------------------------------------------

def preferred_display(displays: Sequence[Display]) -> Display:
    """Pick the display that hosts the activation zone.

    Built-in notched panel first, then any built-in, then the primary,
    then whatever is first. Raises NoTargetDisplay when nothing is attached.
    """
    if not displays:
        raise NoTargetDisplay("no displays attached")

    builtin = [d for d in displays if d.builtin]
    for display in builtin:
        if display.has_notch:
            return display
    if builtin:
        return builtin[0]
    for display in displays:
        if display.primary:
            return display
    return displays[0]


def display_at(point: Point, displays: Iterable[Display]) -> Optional[Display]:
    for display in displays:
        if display.frame.contains(point):
            return display
    return None


def pointer_on_display(point: Point, target: Display, displays: Sequence[Display]) -> bool:
    """True when the pointer is on the target display.

    Mirrored or overlapping displays can share global coordinates, so the
    match goes by display id whenever both ids are known.
    """
    under_pointer = display_at(point, displays)
    if under_pointer is None:
        return False
    if under_pointer.display_id is None or target.display_id is None:
        return under_pointer == target
    return under_pointer.display_id == target.display_id


def activation_rect(display: Display) -> Rect:
    """The small hover strip that expands the panel."""
    if display.notch is not None and not display.notch.is_empty:
        notch = display.notch
        width = min(ACTIVATION_ZONE_WIDTH, notch.width)
        height = min(ACTIVATION_ZONE_HEIGHT, notch.height)
        return Rect(notch.mid_x - width / 2, notch.min_y, width, height)

    top = display.frame.min_y if display.has_notch else display.usable_frame.min_y
    return Rect(
        display.frame.mid_x - ACTIVATION_ZONE_WIDTH / 2,
        top,
        ACTIVATION_ZONE_WIDTH,
        ACTIVATION_ZONE_HEIGHT,
    )


# ------------------------------------------------------------------
# Panel layout
# ------------------------------------------------------------------

def panel_size(mode: ActivationMode, prefs, live_widget: bool) -> Tuple[int, int]:
    """Panel size for a mode. prefs is anything with a dict-style get()."""
    if mode is ActivationMode.EXPANDED:
        height = EXPANDED_BASE_HEIGHT
        for key, extra in SECTION_HEIGHTS.items():
            if prefs.get(key):
                height += extra
        return (EXPANDED_WIDTH, min(height, EXPANDED_MAX_HEIGHT))
    if live_widget:
        return (COLLAPSED_LIVE_WIDTH, COLLAPSED_HEIGHT)
    return (COLLAPSED_WIDTH, COLLAPSED_HEIGHT)


def _anchor_y(display: Display) -> float:
    if display.has_notch:
        return display.frame.min_y

    anchors = [display.usable_frame.min_y]
    if display.safe_area_top > 0:
        anchors.append(display.frame.min_y + display.safe_area_top)
    if display.notch is not None:
        anchors.append(display.notch.max_y)
    return min(anchors)


def _top_overlap(size: Tuple[int, int], display: Display, live_widget: bool) -> float:
    collapsed = size[1] <= COLLAPSED_MAX_HEIGHT
    if display.has_notch:
        if collapsed and live_widget:
            notch_height = display.safe_area_top or (display.notch.height if display.notch else 0)
            # sit just below the notch so the live pill stays visible
            return -(notch_height + 2)
        return 0
    return COLLAPSED_TOP_OVERLAP if collapsed else EXPANDED_TOP_OVERLAP


def panel_frame(size: Tuple[int, int], display: Display, live_widget: bool = False) -> Rect:
    """Where the panel window goes: centered, hanging from the top, clamped."""
    width, height = size
    frame = display.frame
    x = frame.mid_x - width / 2
    y = _anchor_y(display) - _top_overlap(size, display, live_widget)

    max_x = frame.max_x - width
    max_y = frame.max_y - height
    if frame.min_x <= max_x:
        x = min(max(x, frame.min_x), max_x)
    if frame.min_y <= max_y:
        y = min(max(y, frame.min_y), max_y)
    return Rect(x, y, width, height)
