"""User preferences for notchdeck.

Loaded from panel.yaml (PyYAML safe_load) on top of DEFAULT_PREFERENCES.
Every change goes through set(), which validates and clamps the value and
notifies observers with (key, old, new) -- only when the value actually
changed. The runtime observes preferences to react live: signal toggles,
cadence overrides, focus/break durations and panel layout.

Config example (panel.yaml):
    show_weather: true
    show_network: true
    focus_minutes: 50
    cadences:
      weather: 900
    latitude: 51.5
    longitude: -0.12
    temperature_unit: celsius
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

import yaml

from config import (
    BREAK_MINUTES_RANGE,
    DEFAULT_PREFERENCES,
    FOCUS_MINUTES_RANGE,
    GAMING_APPS,
    MEETING_APPS,
    PROFILES,
    SIGNALS,
)

logger = logging.getLogger(__name__)

Observer = Callable[[str, Any, Any], None]

_CLAMPED = {
    "focus_minutes": FOCUS_MINUTES_RANGE,
    "break_minutes": BREAK_MINUTES_RANGE,
}


def load_config(path: str) -> Dict:
    """Load a panel config from YAML. Missing file -> empty dict."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file not found: %s (using defaults)", path)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def infer_profile(app_id: Optional[str]) -> Optional[str]:
    """Map an application id to a profile name, or None to leave things alone."""
    if not app_id:
        return None
    app = app_id.lower()
    if app in GAMING_APPS or "game" in app:
        return "gaming"
    if app in MEETING_APPS:
        return "meeting"
    return "work"


class Preferences:
    """Validated, observable preference store."""

    def __init__(self, values: Optional[Dict] = None, path: Optional[str] = None):
        self.path = path
        self._values: Dict[str, Any] = copy.deepcopy(DEFAULT_PREFERENCES)
        self._observers: List[Observer] = []
        for key, value in (values or {}).items():
            if key not in self._values:
                logger.warning("Ignoring unknown preference: %s", key)
                continue
            try:
                self._values[key] = self._coerce(key, value)
            except ValueError as exc:
                logger.warning("Ignoring preference %s: %s", key, exc)

    @classmethod
    def load(cls, path: str) -> "Preferences":
        return cls(load_config(path), path=path)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def cadence(self, signal: str) -> float:
        """Cadence for a signal: user override or the built-in default."""
        override = self._values["cadences"].get(signal)
        if override is not None:
            return override
        return SIGNALS[signal]["cadence"]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> Any:
        """Validate, clamp and store a value. Returns the stored value."""
        if key not in self._values:
            raise KeyError(f"unknown preference '{key}'")
        value = self._coerce(key, value)
        old = self._values[key]
        if value == old:
            return value
        self._values[key] = value
        logger.debug("Preference %s: %r -> %r", key, old, value)
        self._notify(key, old, value)
        return value

    def update(self, values: Dict[str, Any]):
        for key, value in values.items():
            self.set(key, value)

    def set_cadence(self, signal: str, seconds: float):
        if signal not in SIGNALS:
            raise KeyError(f"unknown signal '{signal}'")
        cadences = dict(self._values["cadences"])
        cadences[signal] = seconds
        self.set("cadences", cadences)

    def apply_profile(self, name: str):
        """Apply a preset. Unknown names raise KeyError."""
        preset = PROFILES[name]
        logger.info("Applying profile: %s", name)
        self.set("profile", name)
        self.update(preset)

    def apply_profile_for_app(self, app_id: Optional[str]) -> Optional[str]:
        """Switch profile for the frontmost app when auto profile is on."""
        if not self._values["auto_profile"]:
            return None
        name = infer_profile(app_id)
        if name is None or name == self._values["profile"]:
            return None
        self.apply_profile(name)
        return name

    def reset(self):
        for key, value in copy.deepcopy(DEFAULT_PREFERENCES).items():
            self.set(key, value)

    def save(self, path: Optional[str] = None):
        path = path or self.path
        if not path:
            raise ValueError("no path to save preferences to")
        with open(path, "w") as f:
            yaml.safe_dump(self._values, f, default_flow_style=False, sort_keys=True)
        logger.info("Preferences saved to %s", path)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def observe(self, callback: Observer):
        self._observers.append(callback)

    def unobserve(self, callback: Observer):
        self._observers = [cb for cb in self._observers if cb != callback]

    def _notify(self, key: str, old: Any, new: Any):
        for cb in list(self._observers):
            try:
                cb(key, old, new)
            except Exception as exc:
                logger.error("Preference observer error [%s]: %s", key, exc)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _coerce(self, key: str, value: Any) -> Any:
        default = DEFAULT_PREFERENCES[key]

        if key in _CLAMPED:
            low, high = _CLAMPED[key]
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be a whole number of minutes") from None
            return min(max(number, low), high)

        if key == "cadences":
            if not isinstance(value, dict):
                raise ValueError("cadences must be a mapping of signal -> seconds")
            cadences = {}
            for signal, seconds in value.items():
                if signal not in SIGNALS:
                    raise ValueError(f"unknown signal '{signal}' in cadences")
                try:
                    seconds = float(seconds)
                except (TypeError, ValueError):
                    raise ValueError(f"cadence for '{signal}' must be a number of seconds") from None
                if seconds <= 0:
                    raise ValueError(f"cadence for '{signal}' must be positive")
                cadences[signal] = seconds
            return cadences

        if key == "profile":
            if value not in PROFILES:
                raise ValueError(f"unknown profile '{value}'")
            return value

        if key == "temperature_unit":
            if value not in ("fahrenheit", "celsius"):
                raise ValueError("temperature_unit must be fahrenheit or celsius")
            return value

        if key == "players":
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, (list, tuple)):
                raise ValueError("players must be a list of player names")
            return [str(p) for p in value]

        if isinstance(default, bool):
            return bool(value)
        if isinstance(default, float):
            try:
                return float(value)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be a number") from None
        return value
