"""Data source implementations for notchdeck.

Importing this package registers all built-in source and provider types.
"""

from sources.system_source import ActiveAppSource, StatsSource
from sources.network_source import PingSource, ThroughputSource
from sources.weather_source import WeatherSource
from sources.calendar_source import CalendarSource
from sources.media_source import BrowserProvider, PlayerctlProvider, SessionFallback

__all__ = [
    "StatsSource",
    "ActiveAppSource",
    "PingSource",
    "ThroughputSource",
    "WeatherSource",
    "CalendarSource",
    "PlayerctlProvider",
    "BrowserProvider",
    "SessionFallback",
]
