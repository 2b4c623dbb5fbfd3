"""Activation state machine -- hover to expand, leave to collapse.

States: COLLAPSED, EXPANDED. sample() runs on every tick of the shared
clock (about 80 ms) and looks at the pointer:

  * off the target display      -> arm a pending collapse if expanded
  * in the activation zone, or
    inside the panel (+margin)  -> cancel any pending collapse, expand
  * anywhere else               -> arm a pending collapse if expanded

A pending collapse fires after COLLAPSE_DELAY. On fire it re-checks the
pointer (back inside: abort), then the mouse buttons (held: a drag out of
the panel is in progress, re-arm), and only then collapses. The window
is hidden after the collapse animation, unless a live widget (running
focus timer) keeps a small pill on screen.

At most one pending collapse exists at any time; arming is idempotent.
"""

import logging
from typing import Callable, Optional, Sequence, Tuple

from config import COLLAPSE_DELAY, FRAME_ANIMATION_DURATION, HIDE_GRACE, HOVER_TOLERANCE
from core.errors import NoTargetDisplay
from core.event_bus import EventBus
from core.geometry import (
    Display,
    Point,
    Rect,
    activation_rect,
    panel_frame,
    panel_size,
    pointer_on_display,
    preferred_display,
)
from core.models import ActivationMode, PanelState
from core.panel import PanelController

logger = logging.getLogger(__name__)

PANEL_TOPIC = "panel"


class ActivationStateMachine:
    """Owns ActivationMode; the only writer of it.

    Collaborators are injected so the machine can be driven by tests:
        pointer()   -> Point, global pointer position
        buttons()   -> bool, True while any mouse button is held
        displays()  -> sequence of Display
        scheduler   -> anything with call_later(delay, callback) returning
                       a handle with cancel() (the asyncio loop in production)
        prefs       -> anything with get(key), used for panel sizing
    """

    def __init__(
        self,
        controller: PanelController,
        pointer: Callable[[], Point],
        buttons: Callable[[], bool],
        displays: Callable[[], Sequence[Display]],
        scheduler,
        prefs,
        bus: Optional[EventBus] = None,
        initial_mode: ActivationMode = ActivationMode.COLLAPSED,
        collapse_delay: float = COLLAPSE_DELAY,
        hide_delay: float = FRAME_ANIMATION_DURATION + HIDE_GRACE,
        tolerance: float = HOVER_TOLERANCE,
    ):
        self._controller = controller
        self._pointer = pointer
        self._buttons = buttons
        self._displays = displays
        self._scheduler = scheduler
        self._prefs = prefs
        self._bus = bus
        self._collapse_delay = collapse_delay
        self._hide_delay = hide_delay
        self._tolerance = tolerance

        self._mode = initial_mode
        self._visible = False
        self._live_widget = False
        self._frame: Optional[Rect] = None
        self._size: Tuple[int, int] = panel_size(initial_mode, prefs, False)
        self._pending_collapse = None
        self._pending_hide = None
        self._display_missing = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ActivationMode:
        return self._mode

    @property
    def expanded(self) -> bool:
        return self._mode is ActivationMode.EXPANDED

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def live_widget(self) -> bool:
        return self._live_widget

    @property
    def collapse_pending(self) -> bool:
        return self._pending_collapse is not None

    @property
    def frame(self) -> Optional[Rect]:
        return self._frame

    def snapshot(self) -> PanelState:
        return PanelState(
            mode=self._mode,
            visible=self._visible,
            live_widget=self._live_widget,
            size=self._size,
            frame=self._frame.as_tuple() if self._frame else None,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Place the panel for the initial mode. Collapsed starts hidden."""
        self._controller.set_mode(self._mode, animated=False)
        self._resize(animated=False)
        if self.expanded or self._live_widget:
            self._show()
        logger.info("Activation started (%s)", self._mode.value)
        self._publish()

    def stop(self):
        """Drop every pending timer."""
        self.cancel_collapse()
        self._cancel_hide()

    def reposition(self):
        """Display configuration changed: recompute the frame without animating."""
        self._resize(animated=False)
        self._publish()

    # ------------------------------------------------------------------
    # Pointer sampling
    # ------------------------------------------------------------------

    def sample(self):
        """One pointer sample. Safe to call any number of times."""
        try:
            target, displays = self._target_display()
        except NoTargetDisplay:
            if not self._display_missing:
                logger.info("No target display; activation paused")
                self._display_missing = True
            return
        if self._display_missing:
            logger.info("Target display available again")
            self._display_missing = False

        point = self._pointer()
        if not pointer_on_display(point, target, displays):
            if self.expanded:
                self.schedule_collapse()
            return

        if self._in_zone(point, target) or self._in_panel(point):
            self.cancel_collapse()
            if not self.expanded:
                self.set_expanded(True)
            # already expanded: no resize, it would restart the animation
            return

        if self.expanded:
            self.schedule_collapse()

    def schedule_collapse(self):
        """Arm the pending collapse. A second arm while one is pending is ignored."""
        if self._pending_collapse is not None:
            return
        self._pending_collapse = self._scheduler.call_later(
            self._collapse_delay, self._fire_collapse
        )
        logger.debug("Collapse armed (%.0f ms)", self._collapse_delay * 1000)

    def cancel_collapse(self):
        if self._pending_collapse is None:
            return
        self._pending_collapse.cancel()
        self._pending_collapse = None
        logger.debug("Collapse cancelled")

    def _fire_collapse(self):
        self._pending_collapse = None
        point = self._pointer()

        in_zone = False
        try:
            target, _ = self._target_display()
            in_zone = self._in_zone(point, target)
        except NoTargetDisplay:
            pass
        if in_zone or self._in_panel(point):
            logger.debug("Collapse aborted, pointer is back")
            return

        if self._buttons():
            logger.debug("Collapse deferred, drag in progress")
            self.schedule_collapse()
            return

        self.set_expanded(False)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def set_expanded(self, expanded: bool):
        target = ActivationMode.EXPANDED if expanded else ActivationMode.COLLAPSED
        if self._mode is target:
            return

        if expanded:
            self._cancel_hide()
            self._show()
        else:
            self.cancel_collapse()

        self._mode = target
        logger.info("Panel %s", target.value)
        self._controller.set_mode(target, animated=True)
        self._resize(animated=True)

        if not expanded and not self._live_widget:
            self._schedule_hide()
        self._publish()

    def toggle_expanded(self):
        self.set_expanded(not self.expanded)

    def set_live_widget(self, active: bool):
        """A live widget keeps a minimal pill visible while collapsed."""
        if active == self._live_widget:
            return
        self._live_widget = active
        logger.debug("Live widget %s", "on" if active else "off")

        if not self.expanded:
            if active:
                self._cancel_hide()
                self._show()
                self._resize(animated=True)
            else:
                self._resize(animated=True)
                self._schedule_hide()
        else:
            self._resize(animated=True)
        self._publish()

    def layout_changed(self):
        """Preferences that affect panel size changed."""
        self._resize(animated=True)
        self._publish()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _target_display(self) -> Tuple[Display, Sequence[Display]]:
        displays = self._displays()
        return preferred_display(displays), displays

    def _in_zone(self, point: Point, display: Display) -> bool:
        return activation_rect(display).contains(point)

    def _in_panel(self, point: Point) -> bool:
        if not self._visible or self._frame is None:
            return False
        return self._frame.inset(-self._tolerance, -self._tolerance).contains(point)

    def _show(self):
        if self._visible:
            return
        self._visible = True
        self._controller.show()

    def _resize(self, animated: bool):
        self._size = panel_size(self._mode, self._prefs, self._live_widget)
        try:
            target, _ = self._target_display()
            self._frame = panel_frame(self._size, target, self._live_widget)
        except NoTargetDisplay:
            pass
        self._controller.resize(self._size, animated=animated)

    def _schedule_hide(self):
        self._cancel_hide()
        self._pending_hide = self._scheduler.call_later(self._hide_delay, self._deferred_hide)

    def _cancel_hide(self):
        if self._pending_hide is not None:
            self._pending_hide.cancel()
            self._pending_hide = None

    def _deferred_hide(self):
        self._pending_hide = None
        if self.expanded or self._live_widget or not self._visible:
            return
        self._visible = False
        self._controller.hide()
        self._publish()

    def _publish(self):
        if self._bus is not None:
            self._bus.publish(PANEL_TOPIC, self.snapshot())
