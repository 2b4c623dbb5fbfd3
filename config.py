"""notchdeck - Configuration

Timing values are in seconds unless the name says otherwise.
Geometry is in screen points, top-left origin, y growing downward.

Signal cadences (minimum time between two refreshes of one signal):
  media      2.5 s   refreshes while collapsed (live indicator)
  stats      1.5 s   skipped while collapsed
  throughput 1.5 s   skipped while collapsed
  network    8 s     ping probe, independent of expand state
  calendar   300 s
  weather    600 s
  app        2 s     active window, only with auto profile on
"""

# ---------------------------------------------------------------------------
# Shared clock
# ---------------------------------------------------------------------------
TICK_INTERVAL = 0.08            # pointer sampling + orchestrator tick

# ---------------------------------------------------------------------------
# Activation / collapse
# ---------------------------------------------------------------------------
COLLAPSE_DELAY = 0.2            # PendingCollapse fires after this
FRAME_ANIMATION_DURATION = 0.36
HIDE_GRACE = 0.05               # extra wait after the collapse animation
HOVER_TOLERANCE = 8             # panel bounds are grown by this margin
ACTIVATION_ZONE_WIDTH = 200
ACTIVATION_ZONE_HEIGHT = 15

# ---------------------------------------------------------------------------
# Panel layout
# ---------------------------------------------------------------------------
EXPANDED_WIDTH = 380
EXPANDED_BASE_HEIGHT = 56
EXPANDED_MAX_HEIGHT = 460
COLLAPSED_HEIGHT = 32
COLLAPSED_WIDTH = 190
COLLAPSED_LIVE_WIDTH = 240
COLLAPSED_MAX_HEIGHT = 44       # anything taller counts as expanded
COLLAPSED_TOP_OVERLAP = 20      # displays without a notch
EXPANDED_TOP_OVERLAP = 10

# Extra height each expanded section adds, keyed by the preference that shows it
SECTION_HEIGHTS = {
    "show_media": 80,
    "show_focus_timer": 56,
    "show_calendar": 64,
    "show_network": 48,
}

# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------
SIGNALS = {
    "media": {
        "cadence": 2.5,
        "toggle": "show_media",
        "skip_when_collapsed": False,
    },
    "stats": {
        "cadence": 1.5,
        "toggle": "show_system_metrics",
        "skip_when_collapsed": True,
    },
    "throughput": {
        "cadence": 1.5,
        "toggle": "show_network",
        "skip_when_collapsed": True,
    },
    "network": {
        "cadence": 8.0,
        "toggle": "show_network",
        "skip_when_collapsed": False,
    },
    "calendar": {
        "cadence": 300.0,
        "toggle": "show_calendar",
        "skip_when_collapsed": False,
    },
    "weather": {
        "cadence": 600.0,
        "toggle": "show_weather",
        "skip_when_collapsed": False,
    },
    # frontmost application, only watched while auto profile is on
    "app": {
        "cadence": 2.0,
        "toggle": "auto_profile",
        "skip_when_collapsed": False,
    },
}

# ---------------------------------------------------------------------------
# Media providers
# ---------------------------------------------------------------------------
# Trust order: native players, then browser tabs. The generic fallback
# (whatever MPRIS session is active) is consulted last and only once.
NATIVE_PLAYERS = ["spotify", "rhythmbox", "elisa", "vlc"]
BROWSER_PLAYERS = ["brave", "chromium", "chrome", "firefox"]

PLAYER_LABELS = {
    "spotify": "Spotify",
    "rhythmbox": "Music",
    "elisa": "Music",
    "vlc": "VLC",
    "brave": "YouTube (Brave)",
    "chromium": "YouTube (Chromium)",
    "chrome": "YouTube (Chrome)",
    "firefox": "YouTube (Firefox)",
}

NATIVE_PROVIDER_TIMEOUT = 2.0
BROWSER_PROVIDER_TIMEOUT = 1.0
FALLBACK_PROVIDER_TIMEOUT = 0.3
MAX_TRACK_LENGTH = 90
ARTWORK_TIMEOUT = 5.0
ARTWORK_SIZE = (96, 96)

# ---------------------------------------------------------------------------
# Network / weather / calendar
# ---------------------------------------------------------------------------
PING_HOST = "1.1.1.1"
VPN_INTERFACE_PREFIXES = ("utun", "ppp", "ipsec", "tun", "tap", "wg")
WEATHER_TIMEOUT = 4.0
REMINDER_WINDOW_DAYS = 3
MAX_REMINDERS = 4

# ---------------------------------------------------------------------------
# Focus timer
# ---------------------------------------------------------------------------
FOCUS_MINUTES_RANGE = (5, 120)
BREAK_MINUTES_RANGE = (1, 60)
FEEDBACK_DURATION = 2.2

# ---------------------------------------------------------------------------
# Preferences - defaults and profiles
# ---------------------------------------------------------------------------
DEFAULT_PREFERENCES = {
    "show_system_metrics": True,
    "show_cpu": True,
    "show_ram": True,
    "show_gpu": False,
    "show_battery": True,
    "show_weather": False,
    "show_media": True,
    "show_network": False,
    "show_calendar": False,
    "show_focus_timer": False,
    "focus_minutes": 25,
    "break_minutes": 5,
    "media_live_indicator": False,
    "profile": "work",
    "auto_profile": False,
    "cadences": {},
    "latitude": 34.4275,
    "longitude": -119.859,
    "temperature_unit": "fahrenheit",
    "reminders_path": "reminders.yaml",
    "players": NATIVE_PLAYERS,
}

PROFILES = {
    "work": {
        "show_battery": True, "show_cpu": True, "show_ram": True,
        "show_gpu": False, "show_weather": True, "show_media": True,
        "show_network": True, "show_calendar": True,
        "show_focus_timer": True, "focus_minutes": 25, "break_minutes": 5,
    },
    "gaming": {
        "show_battery": True, "show_cpu": True, "show_ram": True,
        "show_gpu": True, "show_weather": False, "show_media": True,
        "show_network": True, "show_calendar": False,
        "show_focus_timer": True, "focus_minutes": 45, "break_minutes": 10,
    },
    "meeting": {
        "show_battery": True, "show_cpu": False, "show_ram": False,
        "show_gpu": False, "show_weather": True, "show_media": False,
        "show_network": True, "show_calendar": True,
        "show_focus_timer": True, "focus_minutes": 20, "break_minutes": 5,
    },
}

GAMING_APPS = {
    "com.blizzard.battlenet",
    "com.epicgames.launcher",
    "com.riotgames.riotgames.riotclient",
    "steam",
    "com.valvesoftware.steam",
    "lutris",
    "heroic",
    "com.heroicgameslauncher.hgl",
}
MEETING_APPS = {
    "us.zoom.xos",
    "com.microsoft.teams2",
    "com.webex.meetingmanager",
    "com.google.chrome",
    "zoom",
    "us.zoom.zoom",
    "teams-for-linux",
    "com.microsoft.teams",
    "webex",
}

# ---------------------------------------------------------------------------
# Panel theme (tkinter controller)
# ---------------------------------------------------------------------------
THEME = {
    "bg": "#141414",
    "text": "#e0e0e0",
    "text_dim": "#8a8a8a",
    "accent": "#00bcd4",
}
