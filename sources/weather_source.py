"""Weather data source using the Open-Meteo API.

Fetches current conditions for one location. No API key needed.
A failed fetch publishes "--" with a crossed-out cloud icon; the next
attempt waits for the regular cadence.

Config example (in panel.yaml):
    show_weather: true
    latitude: 34.4275
    longitude: -119.859
    temperature_unit: fahrenheit
    cadences:
      weather: 600
"""

import logging
from typing import Any, Dict, Optional

import requests

from config import WEATHER_TIMEOUT
from core.data_source import DataSource
from core.errors import ProviderFailure
from core.registry import register_source

logger = logging.getLogger(__name__)

API_URL = "https://api.open-meteo.com/v1/forecast"

# WMO Weather interpretation codes -> description + icon
# https://open-meteo.com/en/docs#weathervariables
WMO_CODES = {
    0: ("Clear sky", "clear"),
    1: ("Mainly clear", "clear"),
    2: ("Partly cloudy", "partly_cloudy"),
    3: ("Overcast", "cloudy"),
    45: ("Fog", "fog"),
    48: ("Depositing rime fog", "fog"),
    51: ("Light drizzle", "rain"),
    53: ("Moderate drizzle", "rain"),
    55: ("Dense drizzle", "rain"),
    56: ("Light freezing drizzle", "rain"),
    57: ("Dense freezing drizzle", "rain"),
    61: ("Slight rain", "rain"),
    63: ("Moderate rain", "rain"),
    65: ("Heavy rain", "rain"),
    66: ("Light freezing rain", "rain"),
    67: ("Heavy freezing rain", "rain"),
    71: ("Slight snow", "snow"),
    73: ("Moderate snow", "snow"),
    75: ("Heavy snow", "snow"),
    77: ("Snow grains", "snow"),
    80: ("Slight showers", "rain"),
    81: ("Moderate showers", "rain"),
    82: ("Violent showers", "rain"),
    85: ("Slight snow showers", "snow"),
    86: ("Heavy snow showers", "snow"),
    95: ("Thunderstorm", "thunderstorm"),
    96: ("Thunderstorm with slight hail", "thunderstorm"),
    99: ("Thunderstorm with heavy hail", "thunderstorm"),
}

UNIT_SUFFIX = {"fahrenheit": "°F", "celsius": "°C"}


def parse_current(raw: Dict, unit: str = "fahrenheit") -> Optional[Dict[str, Any]]:
    """Turn an Open-Meteo response into the published weather dict."""
    current = raw.get("current") or {}
    temp = current.get("temperature_2m")
    if temp is None:
        return None

    code = current.get("weather_code", 0)
    desc, icon = WMO_CODES.get(code, ("Unknown", "cloudy"))
    return {
        "temperature": temp,
        "weather": f"{round(temp)}{UNIT_SUFFIX.get(unit, '°')}",
        "weather_code": code,
        "weather_desc": desc,
        "weather_icon": icon,
        "is_day": bool(current.get("is_day", 1)),
    }


@register_source("weather")
class WeatherSource(DataSource):
    """Fetches current weather from Open-Meteo."""

    def __init__(self, source_id: str, config: Dict, session: Optional[requests.Session] = None):
        config.setdefault("interval", 600)  # 10 minutes
        config.setdefault("timeout", WEATHER_TIMEOUT + 1)
        super().__init__(source_id, config)
        self.latitude = config.get("latitude", 34.4275)
        self.longitude = config.get("longitude", -119.859)
        self.unit = config.get("temperature_unit", "fahrenheit")
        self._http_timeout = config.get("http_timeout", WEATHER_TIMEOUT)
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", "notchdeck/1.0")

    def fetch(self) -> Optional[Dict[str, Any]]:
        params = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "current": "temperature_2m,weather_code,is_day",
            "temperature_unit": self.unit,
            "timezone": "auto",
        }
        try:
            resp = self._session.get(API_URL, params=params, timeout=self._http_timeout)
            resp.raise_for_status()
            raw = resp.json()
        except requests.RequestException as exc:
            raise ProviderFailure(self.source_id, str(exc)) from exc
        except ValueError as exc:
            raise ProviderFailure(self.source_id, f"bad JSON: {exc}") from exc

        result = parse_current(raw, self.unit)
        if result is None:
            raise ProviderFailure(self.source_id, "no current conditions in response")
        return result

    def close(self):
        self._session.close()
