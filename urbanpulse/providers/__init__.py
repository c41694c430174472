"""Clients for the third-party providers UrbanPulse aggregates."""

from .errors import ProviderError, ProviderHTTPError, ProviderNotConfigured, ProviderPayloadError
from .gemini_client import GeminiClient
from .open_meteo_client import (
    AirQualityReport,
    AirQualitySummary,
    LocationWeather,
    WeatherReport,
    WeatherSummary,
    describe_aqi_category,
    fetch_air_quality,
    fetch_location_weather,
    fetch_weather,
)
from .tomtom_client import (
    LocationSuggestion,
    TrafficFlow,
    calculate_route,
    fetch_traffic_flow,
    reverse_geocode,
    search_locations,
)

__all__ = [
    "ProviderError",
    "ProviderHTTPError",
    "ProviderNotConfigured",
    "ProviderPayloadError",
    "GeminiClient",
    "AirQualityReport",
    "AirQualitySummary",
    "LocationWeather",
    "WeatherReport",
    "WeatherSummary",
    "describe_aqi_category",
    "fetch_air_quality",
    "fetch_location_weather",
    "fetch_weather",
    "LocationSuggestion",
    "TrafficFlow",
    "calculate_route",
    "fetch_traffic_flow",
    "reverse_geocode",
    "search_locations",
]
