"""Tkinter panel window, pointer reader and display reader.

TkPanelController is the PanelController used on a desktop: an
undecorated (overrideredirect) window hanging from the top of the target
display. It only follows orders from the activation state machine and
renders whatever is published on the EventBus.

Tk is pumped from the runtime's tick (pump()), so the asyncio loop and
Tk share the main thread and no Tk call ever happens on another thread.
"""

import base64
import logging
import re
import subprocess
import tkinter as tk
from typing import List, Optional, Tuple

from config import FRAME_ANIMATION_DURATION, THEME
from core.activation import PANEL_TOPIC
from core.event_bus import EventBus
from core.focus_timer import FOCUS_TOPIC
from core.geometry import Display, Point, Rect
from core.models import ActivationMode, SignalState
from core.panel import PanelController
from sources.media_source import now_playing_text

logger = logging.getLogger(__name__)

ANIMATION_STEPS = 6
BUILTIN_OUTPUTS = ("eDP", "LVDS", "DSI")

# " 0: +*eDP-1 1920/344x1080/194+0+0  eDP-1"
_MONITOR = re.compile(
    r"^\s*(\d+):\s+\+?(\*?)(\S+)\s+(\d+)/\d+x(\d+)/\d+\+(-?\d+)\+(-?\d+)"
)


# ---------------------------------------------------------------------------
# Displays and pointer
# ---------------------------------------------------------------------------

def parse_xrandr_monitors(output: str) -> List[Display]:
    displays = []
    for line in output.splitlines():
        match = _MONITOR.match(line)
        if not match:
            continue
        index, primary, name, width, height, x, y = match.groups()
        displays.append(Display(
            display_id=int(index),
            frame=Rect(int(x), int(y), int(width), int(height)),
            builtin=name.startswith(BUILTIN_OUTPUTS),
            primary=bool(primary),
        ))
    return displays


class TkDisplays:
    """Attached monitors from xrandr, or the Tk screen when xrandr is missing.

    Read once and cached; call refresh() after a monitor change.
    """

    def __init__(self, root: tk.Misc):
        self._root = root
        self._displays: List[Display] = []
        self.refresh()

    def refresh(self):
        displays: List[Display] = []
        try:
            result = subprocess.run(
                ["xrandr", "--listmonitors"], capture_output=True, text=True, timeout=2,
            )
            if result.returncode == 0:
                displays = parse_xrandr_monitors(result.stdout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("xrandr unavailable: %s", exc)

        if not displays:
            displays = [Display(
                display_id=0,
                frame=Rect(0, 0, self._root.winfo_screenwidth(), self._root.winfo_screenheight()),
                primary=True,
            )]
        self._displays = displays
        logger.info("Displays: %s", ", ".join(
            f"#{d.display_id} {int(d.frame.width)}x{int(d.frame.height)}" for d in displays
        ))

    def __call__(self) -> List[Display]:
        return list(self._displays)


class TkPointer:
    """Global pointer position plus a held-button flag.

    Tk cannot query global button state, so presses on the panel are
    tracked; X11's implicit grab delivers the release even when the drag
    ends outside the window.
    """

    def __init__(self, root: tk.Misc):
        self._root = root
        self._pressed = set()
        root.bind_all("<ButtonPress>", self._on_press, add="+")
        root.bind_all("<ButtonRelease>", self._on_release, add="+")

    def _on_press(self, event):
        self._pressed.add(event.num)

    def _on_release(self, event):
        self._pressed.discard(event.num)

    def position(self) -> Point:
        x, y = self._root.winfo_pointerxy()
        return Point(x, y)

    def buttons(self) -> bool:
        return bool(self._pressed)


# ---------------------------------------------------------------------------
# Panel window
# ---------------------------------------------------------------------------

class TkPanelController(PanelController):
    """Undecorated top-of-screen panel rendered from EventBus topics."""

    def __init__(self, root: tk.Tk, bus: EventBus):
        self.root = root
        self.bus = bus
        self.runtime = None
        self._mode = ActivationMode.COLLAPSED
        self._animate_next = False
        self._geometry: Optional[Tuple[int, int, int, int]] = None
        self._animation = None
        self._artwork_image = None

        root.title("notchdeck")
        root.configure(bg=THEME["bg"])
        root.overrideredirect(True)
        root.attributes("-topmost", True)
        root.withdraw()

        self._build()
        bus.subscribe(PANEL_TOPIC, self._on_panel)
        bus.subscribe(FOCUS_TOPIC, self._on_focus)
        bus.subscribe("media", self._on_media)
        bus.subscribe("artwork", self._on_artwork)
        bus.subscribe("stats", self._on_stats)
        bus.subscribe("weather", self._on_weather)
        bus.subscribe("network", self._on_ping)
        bus.subscribe("throughput", self._on_throughput)
        bus.subscribe("calendar", self._on_calendar)

    def bind_runtime(self, runtime):
        """Buttons need somewhere to send commands."""
        self.runtime = runtime
        runtime.add_tick_hook(self.pump)

    # ------------------------------------------------------------------
    # PanelController
    # ------------------------------------------------------------------

    def show(self):
        self.root.deiconify()
        self.root.lift()

    def hide(self):
        self.root.withdraw()

    def set_mode(self, mode: ActivationMode, animated: bool = True):
        self._mode = mode
        if mode is ActivationMode.EXPANDED:
            self._pill.pack_forget()
            self._body.pack(fill="both", expand=True, padx=10, pady=(6, 8))
        else:
            self._body.pack_forget()
            self._pill.pack(fill="both", expand=True)

    def resize(self, size: Tuple[int, int], animated: bool = True):
        # the position comes with the PanelState published right after
        self._animate_next = animated

    def pump(self):
        """Process pending Tk events. Called from the runtime tick."""
        try:
            self.root.update()
        except tk.TclError as exc:
            logger.warning("Tk window gone: %s", exc)
            if self.runtime is not None:
                self.runtime.stop()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _label(self, parent, text="", size=11, dim=False, bold=False, **kw):
        font = ("Arial", size, "bold") if bold else ("Arial", size)
        kw.setdefault("anchor", "w")
        return tk.Label(
            parent, text=text, font=font,
            bg=THEME["bg"], fg=THEME["text_dim"] if dim else THEME["text"], **kw,
        )

    def _button(self, parent, text, command):
        return tk.Button(
            parent, text=text, command=command, relief="flat",
            bg="#2a2a2a", fg=THEME["text"], activebackground=THEME["accent"],
            font=("Arial", 10, "bold"), width=3, cursor="hand2",
        )

    def _build(self):
        self._pill = tk.Frame(self.root, bg=THEME["bg"])
        self._pill_lbl = self._label(self._pill, "", size=11, bold=True, anchor="center")
        self._pill_lbl.pack(fill="both", expand=True)

        self._body = tk.Frame(self.root, bg=THEME["bg"])

        stats = tk.Frame(self._body, bg=THEME["bg"])
        stats.pack(fill="x")
        self._stats_lbl = self._label(stats, "", size=10, dim=True)
        self._stats_lbl.pack(side="left")
        self._weather_lbl = self._label(stats, "", size=10, dim=True)
        self._weather_lbl.pack(side="right")

        media = tk.Frame(self._body, bg=THEME["bg"])
        media.pack(fill="x", pady=(6, 0))
        self._art_lbl = tk.Label(media, bg=THEME["bg"])
        self._art_lbl.pack(side="left", padx=(0, 8))
        info = tk.Frame(media, bg=THEME["bg"])
        info.pack(side="left", fill="x", expand=True)
        self._media_lbl = self._label(info, "Not playing", size=11, wraplength=240)
        self._media_lbl.pack(fill="x")
        self._remaining_lbl = self._label(info, "", size=9, dim=True)
        self._remaining_lbl.pack(fill="x")
        controls = tk.Frame(info, bg=THEME["bg"])
        controls.pack(fill="x")
        for text, action in (("⏮", "previous"), ("⏯", "play_pause"),
                             ("⏭", "next"), ("\U0001F507", "mute")):
            self._button(controls, text, lambda a=action: self._media_command(a)).pack(side="left", padx=1)

        focus = tk.Frame(self._body, bg=THEME["bg"])
        focus.pack(fill="x", pady=(6, 0))
        self._focus_lbl = self._label(focus, "Focus 25:00", size=12, bold=True)
        self._focus_lbl.pack(side="left")
        for text, action in (("+", "plus"), ("-", "minus"), ("↻", "reset"),
                             ("⏭", "skip"), ("⏯", "toggle")):
            self._button(focus, text, lambda a=action: self._focus_command(a)).pack(side="right", padx=1)
        self._feedback_lbl = self._label(self._body, "", size=9, dim=True)
        self._feedback_lbl.pack(fill="x")

        self._network_lbl = self._label(self._body, "", size=10, dim=True)
        self._network_lbl.pack(fill="x", pady=(6, 0))
        self._calendar_lbl = self._label(self._body, "", size=10, dim=True, justify="left")
        self._calendar_lbl.pack(fill="x", pady=(6, 0))

        self._pill.pack(fill="both", expand=True)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _focus_command(self, action: str):
        if self.runtime is not None:
            self.runtime.focus_action(action)

    def _media_command(self, action: str):
        if self.runtime is not None:
            self.runtime.submit_media_action(action)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def _on_panel(self, state):
        if state.frame is None:
            return
        target = tuple(int(round(v)) for v in state.frame)
        animated, self._animate_next = self._animate_next, False
        if self._animation is not None:
            self.root.after_cancel(self._animation)
            self._animation = None
        if not animated or self._geometry is None:
            self._apply_geometry(target)
            return
        self._animate(self._geometry, target, 1)

    def _animate(self, start, target, step):
        t = step / ANIMATION_STEPS
        frame = tuple(int(round(a + (b - a) * t)) for a, b in zip(start, target))
        self._apply_geometry(frame)
        if step < ANIMATION_STEPS:
            delay = int(FRAME_ANIMATION_DURATION * 1000 / ANIMATION_STEPS)
            self._animation = self.root.after(delay, self._animate, start, target, step + 1)
        else:
            self._animation = None

    def _apply_geometry(self, frame):
        x, y, width, height = frame
        self._geometry = frame
        self.root.geometry(f"{width}x{height}+{x}+{y}")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _on_focus(self, state):
        self._focus_lbl.config(text=f"{state.title} {state.time_text}")
        self._feedback_lbl.config(text=state.feedback)
        self._pill_lbl.config(text=f"{state.title} {state.time_text}" if state.live else "")

    def _on_media(self, update):
        self._media_lbl.config(text=now_playing_text(update))
        snapshot = update.value if update.state is SignalState.LIVE else None
        remaining = snapshot.remaining_text() if snapshot is not None else None
        self._remaining_lbl.config(text=remaining or "")

    def _on_artwork(self, artwork):
        if artwork is None:
            self._artwork_image = None
            self._art_lbl.config(image="")
            return
        try:
            self._artwork_image = tk.PhotoImage(data=base64.b64encode(artwork.png))
        except tk.TclError as exc:
            logger.debug("Artwork not displayable: %s", exc)
            return
        self._art_lbl.config(image=self._artwork_image)

    def _on_stats(self, update):
        if update.state is SignalState.HIDDEN:
            self._stats_lbl.config(text="")
            return
        value = update.value or {}
        parts = []
        for key, label in (("cpu", "CPU"), ("ram", "RAM"), ("gpu", "GPU"), ("battery", "BAT")):
            if key in value:
                parts.append(f"{label} {value[key]}")
        self._stats_lbl.config(text="   ".join(parts) if parts else "--")

    def _on_weather(self, update):
        if update.state is SignalState.HIDDEN:
            self._weather_lbl.config(text="")
        elif update.state is SignalState.LIVE and update.value:
            self._weather_lbl.config(text=update.value["weather"])
        else:
            self._weather_lbl.config(text="--")

    def _network_text(self):
        ping = self.bus.get_latest("network")
        rate = self.bus.get_latest("throughput")
        if ping is not None and ping.state is SignalState.HIDDEN:
            return ""
        ping_text = ping.value["ping"] if ping is not None and ping.available else "--"
        if rate is not None and rate.available:
            down, up, vpn = rate.value["down"], rate.value["up"], rate.value["vpn"]
        else:
            down, up, vpn = "--", "--", "--"
        return f"↓ {down}   ↑ {up}   Ping {ping_text}   VPN {vpn}"

    def _on_ping(self, update):
        self._network_lbl.config(text=self._network_text())

    def _on_throughput(self, update):
        self._network_lbl.config(text=self._network_text())

    def _on_calendar(self, update):
        if update.state is SignalState.HIDDEN:
            self._calendar_lbl.config(text="")
            return
        if not update.available:
            self._calendar_lbl.config(text="Could not load reminders")
            return
        lines = [f"{update.value['day']}  {update.value['status']}"]
        lines.extend(f"  {item['due_text']}  {item['title']}" for item in update.value["items"])
        self._calendar_lbl.config(text="\n".join(lines))
