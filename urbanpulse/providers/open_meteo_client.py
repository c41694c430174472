"""Helpers for fetching weather and air-quality data from the Open-Meteo APIs."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

import requests

from urbanpulse.config import settings
from urbanpulse.providers.errors import ProviderPayloadError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="open_meteo_client")

session = requests.Session()

OPEN_METEO_WEATHER_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_AIR_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

WEATHER_VARS = ["temperature_2m", "relative_humidity_2m", "wind_speed_10m", "pressure_msl"]
AIR_VARS = ["us_aqi", "pm2_5", "pm10"]
LOCATION_CURRENT_VARS = [
    "temperature_2m",
    "relative_humidity_2m",
    "weather_code",
    "wind_speed_10m",
    "uv_index",
    "apparent_temperature",
    "precipitation",
]
LOCATION_DAILY_VARS = ["temperature_2m_max", "temperature_2m_min", "weather_code"]

# Units Open-Meteo returns with default request settings, plus tolerated synonyms.
ALLOWED_UNITS = {
    "temperature_2m": {"°C"},
    "relative_humidity_2m": {"%", "percent"},
    "wind_speed_10m": {"km/h"},
    "pressure_msl": {"hPa"},
    "us_aqi": {"USAQI", "aqi", "US AQI"},
    "pm2_5": {"μg/m³", "µg/m³", "ug/m3"},
    "pm10": {"μg/m³", "µg/m³", "ug/m3"},
}

WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Foggy with rime",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with hail",
}


@dataclass
class WeatherSummary:
    """Current weather snapshot; None means the provider did not report the field."""
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    pressure: Optional[float] = None


@dataclass
class WeatherHour:
    """One hourly weather sample."""
    time: str  # provider local ISO timestamp
    temperature: Optional[float]
    humidity: Optional[float]
    wind_speed: Optional[float]
    pressure: Optional[float]


@dataclass
class WeatherReport:
    summary: WeatherSummary
    hourly: List[WeatherHour] = field(default_factory=list)
    timezone: Optional[str] = None


@dataclass
class AirQualitySummary:
    """Air-quality snapshot taken from the first hourly sample."""
    aqi: Optional[int] = None
    category: str = "Unknown"
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None


@dataclass
class AirHour:
    """One hourly air-quality sample."""
    time: str
    aqi: Optional[int]
    pm2_5: Optional[float]
    pm10: Optional[float]


@dataclass
class AirQualityReport:
    summary: AirQualitySummary
    hourly: List[AirHour] = field(default_factory=list)


@dataclass
class CurrentLocationWeather:
    """Rounded current conditions used on the simulation page."""
    temperature: Optional[int]
    humidity: Optional[float]
    wind_speed: Optional[float]
    weather_code: Optional[int]
    condition: str
    uv_index: Optional[float]
    apparent_temperature: Optional[int]
    precipitation: Optional[float]


@dataclass
class LocationWeather:
    current: CurrentLocationWeather
    daily_max: List[Optional[float]]
    daily_min: List[Optional[float]]
    daily_weather_code: List[Optional[int]]
    timezone: Optional[str]


def describe_aqi_category(aqi: Optional[float]) -> str:
    """Map a US AQI value to its band label."""
    if aqi is None:
        return "Unknown"
    if aqi <= 50:
        return "Good"
    if aqi <= 100:
        return "Moderate"
    if aqi <= 150:
        return "Sensitive"
    if aqi <= 200:
        return "Unhealthy"
    if aqi <= 300:
        return "Very Unhealthy"
    return "Hazardous"


def describe_weather_code(code: Optional[int]) -> str:
    """Convert a WMO weather code into a readable condition."""
    if code is None:
        return "Unknown"
    return WEATHER_CODES.get(int(code), "Unknown")


def _warn_on_unexpected_units(units: Optional[Mapping[str, Any]], *, context: str) -> None:
    """Log a warning if Open-Meteo returns units we do not expect."""
    if not units:
        return
    for name, allowed in ALLOWED_UNITS.items():
        actual = units.get(name)
        if actual and actual not in allowed:
            logger.warning(
                "Unexpected Open-Meteo unit",
                extra={"context": context, "field": name, "unit": actual, "allowed": sorted(allowed)},
            )


def _at(values: Optional[List[Any]], idx: int) -> Any:
    """Return values[idx], or None when the array is missing or too short."""
    if not values or idx >= len(values):
        return None
    return values[idx]


def _get_json(url: str, params: Mapping[str, Any]) -> dict:
    resp = session.get(url, params=params, timeout=settings.provider_timeout_seconds)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict):
        raise ProviderPayloadError("Open-Meteo returned a non-object payload", provider="open_meteo")
    return data


def fetch_weather(latitude: float, longitude: float, *, timezone: str = "auto") -> WeatherReport:
    """Fetch current weather plus the hourly forecast for a coordinate pair."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": ",".join(WEATHER_VARS),
        "hourly": ",".join(WEATHER_VARS),
        "timezone": timezone,
    }
    data = _get_json(OPEN_METEO_WEATHER_URL, params)

    current = data.get("current") or {}
    _warn_on_unexpected_units(data.get("current_units"), context="weather_current")
    summary = WeatherSummary(
        temperature=current.get("temperature_2m"),
        humidity=current.get("relative_humidity_2m"),
        wind_speed=current.get("wind_speed_10m"),
        pressure=current.get("pressure_msl"),
    )

    hourly = data.get("hourly") or {}
    _warn_on_unexpected_units(data.get("hourly_units"), context="weather_hourly")
    times = hourly.get("time") or []
    hours = [
        WeatherHour(
            time=t,
            temperature=_at(hourly.get("temperature_2m"), i),
            humidity=_at(hourly.get("relative_humidity_2m"), i),
            wind_speed=_at(hourly.get("wind_speed_10m"), i),
            pressure=_at(hourly.get("pressure_msl"), i),
        )
        for i, t in enumerate(times)
    ]
    return WeatherReport(summary=summary, hourly=hours, timezone=data.get("timezone"))


def fetch_air_quality(latitude: float, longitude: float, *, timezone: str = "auto") -> AirQualityReport:
    """Fetch the hourly air-quality forecast and summarize its first hour."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(AIR_VARS),
        "timezone": timezone,
    }
    data = _get_json(OPEN_METEO_AIR_URL, params)

    hourly = data.get("hourly") or {}
    _warn_on_unexpected_units(data.get("hourly_units"), context="air_hourly")
    times = hourly.get("time") or []
    hours = [
        AirHour(
            time=t,
            aqi=_at(hourly.get("us_aqi"), i),
            pm2_5=_at(hourly.get("pm2_5"), i),
            pm10=_at(hourly.get("pm10"), i),
        )
        for i, t in enumerate(times)
    ]

    latest_aqi = _at(hourly.get("us_aqi"), 0)
    summary = AirQualitySummary(
        aqi=latest_aqi,
        category=describe_aqi_category(latest_aqi),
        pm2_5=_at(hourly.get("pm2_5"), 0),
        pm10=_at(hourly.get("pm10"), 0),
    )
    return AirQualityReport(summary=summary, hourly=hours)


def _round(value: Optional[float], ndigits: int | None = None):
    if value is None:
        return None
    return round(value, ndigits) if ndigits is not None else round(value)


def fetch_location_weather(latitude: float, longitude: float) -> LocationWeather:
    """Fetch current conditions and the daily outlook for a saved simulation location."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": ",".join(LOCATION_CURRENT_VARS),
        "daily": ",".join(LOCATION_DAILY_VARS),
        "timezone": "auto",
    }
    data = _get_json(OPEN_METEO_WEATHER_URL, params)

    current = data.get("current")
    daily = data.get("daily")
    if not current or daily is None:
        raise ProviderPayloadError("Open-Meteo response missing current or daily data", provider="open_meteo")

    code = current.get("weather_code")
    return LocationWeather(
        current=CurrentLocationWeather(
            temperature=_round(current.get("temperature_2m")),
            humidity=current.get("relative_humidity_2m"),
            wind_speed=_round(current.get("wind_speed_10m"), 1),
            weather_code=code,
            condition=describe_weather_code(code),
            uv_index=current.get("uv_index"),
            apparent_temperature=_round(current.get("apparent_temperature")),
            precipitation=current.get("precipitation"),
        ),
        daily_max=daily.get("temperature_2m_max") or [],
        daily_min=daily.get("temperature_2m_min") or [],
        daily_weather_code=daily.get("weather_code") or [],
        timezone=data.get("timezone"),
    )


def parse_local_time(value: str) -> Optional[dt.datetime]:
    """Parse an Open-Meteo local ISO timestamp, returning None if malformed."""
    try:
        return dt.datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
