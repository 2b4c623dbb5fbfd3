"""Focus timer -- the panel's live widget.

A pomodoro-style countdown: FOCUS, then BREAK, then FOCUS again, until
reset. advance() is driven by the shared clock; the remaining time moves
in whole seconds. While the timer is anywhere but IDLE (and the feature
is enabled) it keeps a small pill visible on the collapsed panel.

Changing focus or break minutes applies at once to the matching phase.
Publishes a FocusState on topic "focus" after every change.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import BREAK_MINUTES_RANGE, FEEDBACK_DURATION, FOCUS_MINUTES_RANGE
from core.event_bus import EventBus

logger = logging.getLogger(__name__)

FOCUS_TOPIC = "focus"


class FocusPhase(Enum):
    IDLE = "idle"
    FOCUS = "focus"
    BREAK = "break"
    PAUSED_FOCUS = "paused_focus"
    PAUSED_BREAK = "paused_break"

    @property
    def is_running(self) -> bool:
        return self in (FocusPhase.FOCUS, FocusPhase.BREAK)

    @property
    def is_paused(self) -> bool:
        return self in (FocusPhase.PAUSED_FOCUS, FocusPhase.PAUSED_BREAK)

    @property
    def is_focus(self) -> bool:
        return self in (FocusPhase.IDLE, FocusPhase.FOCUS, FocusPhase.PAUSED_FOCUS)


@dataclass(frozen=True)
class FocusState:
    phase: FocusPhase
    remaining_seconds: int
    feedback: str
    live: bool

    @property
    def title(self) -> str:
        return "Focus" if self.phase.is_focus else "Break"

    @property
    def time_text(self) -> str:
        return f"{self.remaining_seconds // 60:02d}:{self.remaining_seconds % 60:02d}"

    @property
    def button_title(self) -> str:
        return "Pause" if self.phase.is_running else "Start"


class FocusTimer:
    """Owns the focus phase and countdown. Mutated only on the decision loop."""

    def __init__(self, prefs, bus: Optional[EventBus] = None):
        self._prefs = prefs
        self._bus = bus
        self.phase = FocusPhase.IDLE
        self.remaining = self._focus_seconds()
        self.feedback = ""
        self._feedback_left = 0.0
        self._carry = 0.0

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def live(self) -> bool:
        return bool(self._prefs.get("show_focus_timer")) and self.phase is not FocusPhase.IDLE

    def state(self) -> FocusState:
        return FocusState(self.phase, self.remaining, self.feedback, self.live)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def toggle(self):
        """Start, pause or resume."""
        if self.phase.is_running:
            self.phase = (
                FocusPhase.PAUSED_FOCUS if self.phase is FocusPhase.FOCUS
                else FocusPhase.PAUSED_BREAK
            )
        elif self.phase is FocusPhase.IDLE:
            self.phase = FocusPhase.FOCUS
            self.remaining = self._focus_seconds()
            self._carry = 0.0
        elif self.phase is FocusPhase.PAUSED_FOCUS:
            self.phase = FocusPhase.FOCUS
        else:
            self.phase = FocusPhase.BREAK
        logger.info("Focus timer -> %s", self.phase.value)
        self._publish()

    def adjust_and_start(self, delta_minutes: int):
        """Nudge the current phase's duration and restart it from the top.

        IDLE starts a focus phase; a paused phase stays paused.
        """
        focus_phase = self.phase.is_focus
        if focus_phase:
            low, high = FOCUS_MINUTES_RANGE
            self._prefs.set("focus_minutes", min(max(self._prefs.get("focus_minutes") + delta_minutes, low), high))
        else:
            low, high = BREAK_MINUTES_RANGE
            self._prefs.set("break_minutes", min(max(self._prefs.get("break_minutes") + delta_minutes, low), high))

        if self.phase is FocusPhase.IDLE:
            self.phase = FocusPhase.FOCUS
        self.remaining = self._focus_seconds() if focus_phase else self._break_seconds()
        self._carry = 0.0
        self._publish()

    def reset(self):
        self.phase = FocusPhase.IDLE
        self.remaining = self._focus_seconds()
        self._carry = 0.0
        self._set_feedback("Focus timer reset")
        logger.info("Focus timer reset")
        self._publish()

    def skip(self):
        """Jump to the other phase and run it."""
        if self.phase in (FocusPhase.BREAK, FocusPhase.PAUSED_BREAK):
            self.phase = FocusPhase.FOCUS
            self.remaining = self._focus_seconds()
        else:
            self.phase = FocusPhase.BREAK
            self.remaining = self._break_seconds()
        self._carry = 0.0
        logger.info("Focus timer skipped to %s", self.phase.value)
        self._publish()

    # ------------------------------------------------------------------
    # Shared clock
    # ------------------------------------------------------------------

    def advance(self, elapsed: float):
        """Move time forward by elapsed seconds."""
        changed = False

        if self._feedback_left > 0:
            self._feedback_left -= elapsed
            if self._feedback_left <= 0:
                self._feedback_left = 0.0
                self.feedback = ""
                changed = True

        if self.phase.is_running:
            self._carry += elapsed
            while self._carry >= 1.0:
                self._carry -= 1.0
                self._tick_second()
                changed = True

        if changed:
            self._publish()

    def _tick_second(self):
        self.remaining -= 1
        if self.remaining > 0:
            return
        if self.phase is FocusPhase.FOCUS:
            self.phase = FocusPhase.BREAK
            self.remaining = self._break_seconds()
            self._set_feedback("Focus complete. Break started.")
        else:
            self.phase = FocusPhase.FOCUS
            self.remaining = self._focus_seconds()
            self._set_feedback("Break complete. Focus started.")
        logger.info("Focus timer phase -> %s", self.phase.value)

    # ------------------------------------------------------------------
    # Preference changes
    # ------------------------------------------------------------------

    def on_duration_change(self, key: str, minutes: int):
        """Apply a new focus/break duration to the matching phase right away."""
        seconds = max(1, minutes) * 60
        if key == "focus_minutes":
            if self.phase is FocusPhase.IDLE:
                self.remaining = seconds
            elif self.phase in (FocusPhase.FOCUS, FocusPhase.PAUSED_FOCUS):
                self.remaining = seconds
                self._set_feedback(f"Focus: {minutes} min")
            else:
                return
        elif key == "break_minutes":
            if self.phase in (FocusPhase.BREAK, FocusPhase.PAUSED_BREAK):
                self.remaining = seconds
                self._set_feedback(f"Break: {minutes} min")
            else:
                return
        else:
            return
        self._carry = 0.0
        self._publish()

    def on_visibility_change(self):
        """show_focus_timer flipped: the live flag may have changed."""
        self._publish()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _focus_seconds(self) -> int:
        return max(1, int(self._prefs.get("focus_minutes"))) * 60

    def _break_seconds(self) -> int:
        return max(1, int(self._prefs.get("break_minutes"))) * 60

    def _set_feedback(self, message: str):
        self.feedback = message
        self._feedback_left = FEEDBACK_DURATION

    def _publish(self):
        if self._bus is not None:
            self._bus.publish(FOCUS_TOPIC, self.state())
