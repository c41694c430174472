"""Merge weather, air-quality, traffic, incident and insight data into page view-models."""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from urbanpulse import incident_manager, location_service
from urbanpulse.config import settings
from urbanpulse.incident_store import Incident
from urbanpulse.insights import Insight, InsightContext, build_insight_prompt, get_llm_insights
from urbanpulse.providers import open_meteo_client, tomtom_client
from urbanpulse.providers.open_meteo_client import (
    AirHour,
    AirQualityReport,
    AirQualitySummary,
    LocationWeather,
    WeatherHour,
    WeatherReport,
    WeatherSummary,
    parse_local_time,
)
from urbanpulse.providers.tomtom_client import TrafficFlow
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="aggregator")

RECENT_INCIDENT_LIMIT = 5

SIMULATION_INSTRUCTION = (
    "Provide up to 4 short insight objects (icon,title,suggestion,color) in JSON array format "
    "that are actionable for city operators and residents."
)


class ForecastEntry(BaseModel):
    """Hourly weather sample with the air-quality reading for the same hour."""
    time: str
    time_label: Optional[str] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    pressure: Optional[float] = None
    aqi: Optional[int] = None


class DashboardView(BaseModel):
    """Everything the dashboard renders for one coordinate."""
    latitude: float
    longitude: float
    location_source: Literal["request", "default"]
    timezone: str
    address: Dict[str, Any]
    weather: WeatherSummary
    air_quality: AirQualitySummary
    hourly: List[ForecastEntry] = Field(default_factory=list)
    traffic: Optional[TrafficFlow] = None
    incidents: List[Incident] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    degraded: List[str] = Field(default_factory=list)
    updated_at: datetime


class SimulationInsights(BaseModel):
    """Weather context and generated insights for a new simulation."""
    name: str
    location: str
    latitude: float
    longitude: float
    weather: WeatherSummary
    air_quality: AirQualitySummary
    insights: List[Insight] = Field(default_factory=list)
    degraded: List[str] = Field(default_factory=list)


def _run_concurrently(tasks: Mapping[str, Callable[[], Any]]) -> Tuple[Dict[str, Any], List[str]]:
    """Run provider calls in parallel; each one fails independently."""
    results: Dict[str, Any] = {}
    failed: List[str] = []
    if not tasks:
        return results, failed
    with ThreadPoolExecutor(max_workers=max(1, min(settings.aggregator_workers, len(tasks)))) as pool:
        futures = {name: pool.submit(fn) for name, fn in tasks.items()}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except Exception as exc:
                logger.warning("Provider call failed; using fallback", extra={"provider": name, "error": str(exc)})
                failed.append(name)
    return results, failed


def _time_label(iso: str) -> Optional[str]:
    parsed = parse_local_time(iso)
    return parsed.strftime("%H:%M") if parsed else None


def merge_hourly(weather_hours: List[WeatherHour], air_hours: List[AirHour]) -> List[ForecastEntry]:
    """
    Pair each weather hour with the air sample carrying the same timestamp.

    The two series come from independent requests, so they are joined on time
    rather than position; hours with no air sample get aqi=None.
    """
    if air_hours and len(air_hours) != len(weather_hours):
        logger.info(
            "Weather and air-quality hourly series differ in length",
            extra={"weather_hours": len(weather_hours), "air_hours": len(air_hours)},
        )
    air_index = {a.time: a for a in air_hours}
    out: List[ForecastEntry] = []
    for w in weather_hours:
        a = air_index.get(w.time)
        out.append(
            ForecastEntry(
                time=w.time,
                time_label=_time_label(w.time),
                temperature=w.temperature,
                humidity=w.humidity,
                wind_speed=w.wind_speed,
                pressure=w.pressure,
                aqi=a.aqi if a else None,
            )
        )
    return out


def _insight_context(weather: WeatherSummary, air: AirQualitySummary) -> InsightContext:
    return InsightContext(
        temperature=weather.temperature,
        humidity=weather.humidity,
        wind_speed=weather.wind_speed,
        aqi=air.aqi,
        pm2_5=air.pm2_5,
    )


def build_dashboard(
    latitude: float | None = None,
    longitude: float | None = None,
    *,
    timezone: str | None = None,
    include_traffic: bool = True,
    include_incidents: bool = True,
) -> DashboardView:
    """
    Build the dashboard view-model for a coordinate.

    Weather, air quality, address, traffic and incidents are fetched in
    parallel; the insight request runs once they have all resolved because its
    prompt is built from their values.
    """
    location_source = "request"
    if latitude is None or longitude is None:
        latitude, longitude = settings.default_latitude, settings.default_longitude
        location_source = "default"
    tz = timezone or settings.default_timezone

    logger.info(
        "Building dashboard",
        extra={"latitude": latitude, "longitude": longitude, "timezone": tz, "source": location_source},
    )

    tasks: Dict[str, Callable[[], Any]] = {
        "weather": lambda: open_meteo_client.fetch_weather(latitude, longitude, timezone=tz),
        "air_quality": lambda: open_meteo_client.fetch_air_quality(latitude, longitude, timezone=tz),
        "address": lambda: location_service.reverse_geocode_cached(latitude, longitude),
    }
    if include_traffic and settings.tomtom_configured:
        tasks["traffic"] = lambda: tomtom_client.fetch_traffic_flow(latitude, longitude)
    if include_incidents:
        tasks["incidents"] = incident_manager.list_incidents

    results, degraded = _run_concurrently(tasks)

    weather_report: WeatherReport = results.get("weather") or WeatherReport(summary=WeatherSummary())
    air_report: AirQualityReport = results.get("air_quality") or AirQualityReport(summary=AirQualitySummary())
    address = results.get("address") or location_service.fallback_address(latitude, longitude)
    incidents = (results.get("incidents") or [])[:RECENT_INCIDENT_LIMIT]

    context = _insight_context(weather_report.summary, air_report.summary)
    prompt = build_insight_prompt(context, header_lines=[f"Location: {latitude},{longitude}"])
    insights = get_llm_insights(prompt, context)

    return DashboardView(
        latitude=latitude,
        longitude=longitude,
        location_source=location_source,
        timezone=weather_report.timezone or tz,
        address=address,
        weather=weather_report.summary,
        air_quality=air_report.summary,
        hourly=merge_hourly(weather_report.hourly, air_report.hourly),
        traffic=results.get("traffic"),
        incidents=incidents,
        insights=insights,
        degraded=degraded,
        updated_at=datetime.now(dt_timezone.utc),
    )


def build_simulation_insights(
    name: str,
    location_name: str,
    latitude: float,
    longitude: float,
    included_options: Mapping[str, bool] | None = None,
    *,
    timezone: str | None = None,
) -> SimulationInsights:
    """Fetch current weather and air quality for a simulation site and generate insights for it."""
    tz = timezone or settings.default_timezone
    results, degraded = _run_concurrently({
        "weather": lambda: open_meteo_client.fetch_weather(latitude, longitude, timezone=tz),
        "air_quality": lambda: open_meteo_client.fetch_air_quality(latitude, longitude, timezone=tz),
    })
    weather = results["weather"].summary if "weather" in results else WeatherSummary()
    air = results["air_quality"].summary if "air_quality" in results else AirQualitySummary()

    context = _insight_context(weather, air)
    prompt = build_insight_prompt(
        context,
        header_lines=[
            f"Simulation: {name}",
            f"Location: {location_name}",
            f"Latitude: {latitude}",
            f"Longitude: {longitude}",
        ],
        footer_lines=[f"Included options: {json.dumps(dict(included_options or {}))}"],
        instruction=SIMULATION_INSTRUCTION,
    )
    insights = get_llm_insights(prompt, context)

    return SimulationInsights(
        name=name,
        location=location_name,
        latitude=latitude,
        longitude=longitude,
        weather=weather,
        air_quality=air,
        insights=insights,
        degraded=degraded,
    )


def fetch_simulation_weather(latitude: float, longitude: float) -> LocationWeather:
    """Current conditions and daily outlook for the simulation detail page."""
    return open_meteo_client.fetch_location_weather(latitude, longitude)
