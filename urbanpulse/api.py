"""HTTP API for the UrbanPulse dashboard, maps and simulation pages."""

from typing import Dict, List, Optional

import requests
from fastapi import APIRouter, Body, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import aggregator, incident_manager, location_service
from .aggregator import DashboardView, SimulationInsights
from .config import settings
from .incident_store import IncidentCreate, IncidentNotFound
from .insights import Insight, get_llm_insights
from .providers import tomtom_client
from .providers.errors import ProviderError, ProviderHTTPError, ProviderNotConfigured, ProviderPayloadError
from .providers.open_meteo_client import LocationWeather
from utils.logging_utils import get_tagged_logger, redact_secrets

logger = get_tagged_logger(__name__, tag="urbanpulse/api")

router = APIRouter(prefix="/api")

ROUTE_TRANSPORT_ERROR = "TomTom routing request failed"


class InsightRequest(BaseModel):
    """Free-text prompt for insight generation."""
    prompt: str = Field(min_length=1, max_length=4000)


class SimulationInsightRequest(BaseModel):
    """Simulation draft the insights are generated for."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    location: str = ""
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    included_options: Dict[str, bool] = Field(default_factory=dict, alias="includedOptions")


class IncidentCreateRequest(IncidentCreate):
    """Incident report body; the reporter id comes from the identity provider."""
    user_id: str = Field(default="anonymous", alias="userId")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _route_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def _parse_coordinate(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


@router.get("/geocode")
def geocode(lat: Optional[str] = None, lon: Optional[str] = None):
    """Reverse-geocode a coordinate pair to a TomTom address record."""
    lat = (lat or "").strip()
    lon = (lon or "").strip()
    if not lat or not lon:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing lat or lon parameters")
    if _parse_coordinate(lat) is None or _parse_coordinate(lon) is None:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid lat or lon parameters")

    try:
        return location_service.reverse_geocode_cached(lat, lon)
    except ProviderNotConfigured as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)
    except ProviderHTTPError as exc:
        return _error(exc.status_code, exc.message)
    except ProviderPayloadError as exc:
        return _error(status.HTTP_404_NOT_FOUND, exc.message)
    except requests.RequestException as exc:
        logger.error("Reverse geocode transport error", extra={"error": redact_secrets(str(exc))})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@router.get("/location-search")
def location_search(query: Optional[str] = None):
    """Forward-search places; failures degrade to an empty list."""
    try:
        results = location_service.search_locations_cached(query)
    except ProviderNotConfigured as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)
    except (ProviderError, requests.RequestException) as exc:
        logger.error("Location search error", extra={"error": redact_secrets(str(exc))})
        return []
    return [r.to_dict() for r in results]


@router.get("/incidents")
def get_incidents():
    """List community incident reports, newest first."""
    try:
        incidents = incident_manager.list_incidents()
    except Exception as exc:
        logger.warning("Incidents route error", extra={"error": redact_secrets(str(exc))})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "message": "Failed to fetch incidents"},
        )
    return {"ok": True, "incidents": [i.model_dump(mode="json", by_alias=True) for i in incidents]}


@router.post("/incidents", status_code=status.HTTP_201_CREATED)
def create_incident(req: IncidentCreateRequest):
    """Store a new incident report."""
    data = IncidentCreate.model_validate(req.model_dump(exclude={"user_id"}))
    incident = incident_manager.create_incident(req.user_id, data)
    return {"ok": True, "incident": incident.model_dump(mode="json", by_alias=True)}


@router.post("/incidents/{incident_id}/pulse")
def pulse_incident(incident_id: str):
    """Add one community confirmation to an incident."""
    try:
        incident = incident_manager.pulse_incident(incident_id)
    except IncidentNotFound:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"ok": False, "message": "Unknown incident ID"},
        )
    return {"ok": True, "incident": incident.model_dump(mode="json", by_alias=True)}


def _route_locations(request: Request) -> Optional[str]:
    qp = request.query_params
    explicit = qp.get("routePlanningLocations")
    if explicit:
        return explicit
    coords = [_parse_coordinate(qp.get(name)) for name in ("origLat", "origLon", "destLat", "destLon")]
    if any(c is None for c in coords):
        return None
    return tomtom_client.build_route_locations(*coords)


def _proxy_route(locations: str, request: Request, body: Optional[bytes] = None):
    try:
        data = tomtom_client.calculate_route(locations, dict(request.query_params), body=body)
    except ProviderError as exc:
        logger.error("TomTom route error", extra={"error": exc.message, "method": request.method})
        return _route_error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)
    except requests.RequestException as exc:
        # transport errors embed the upstream URL, key included
        logger.error("TomTom route transport error: %s", redact_secrets(str(exc)), extra={"method": request.method})
        return _route_error(status.HTTP_500_INTERNAL_SERVER_ERROR, ROUTE_TRANSPORT_ERROR)
    return {"ok": True, "data": data}


@router.get("/tomtom-route")
def tomtom_route(request: Request):
    """Calculate a route from routePlanningLocations or origin/destination coordinates."""
    locations = _route_locations(request)
    if not locations:
        return _route_error(status.HTTP_400_BAD_REQUEST,
                            "Missing routePlanningLocations or origin/destination coordinates")
    return _proxy_route(locations, request)


@router.post("/tomtom-route")
async def tomtom_route_post(request: Request):
    """Forward a POST body (supporting points, encoded polylines) to TomTom routing."""
    locations = request.query_params.get("routePlanningLocations")
    if not locations:
        return _route_error(status.HTTP_400_BAD_REQUEST, "Missing routePlanningLocations in URL path for POST")
    body = await request.body()
    # calculate_route blocks on network I/O
    return await run_in_threadpool(_proxy_route, locations, request, body or b"{}")


@router.get("/dashboard", response_model=DashboardView)
def dashboard(
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lon: Optional[float] = Query(default=None, ge=-180, le=180),
    timezone: Optional[str] = None,
    traffic: bool = True,
):
    """Aggregate weather, air quality, address, traffic, incidents and insights for a location."""
    return aggregator.build_dashboard(lat, lon, timezone=timezone, include_traffic=traffic)


@router.post("/simulations/insights", response_model=SimulationInsights)
def simulation_insights(req: SimulationInsightRequest):
    """Generate weather-aware insights for a simulation draft."""
    return aggregator.build_simulation_insights(
        req.name, req.location, req.lat, req.lon, req.included_options
    )


@router.get("/simulations/weather", response_model=LocationWeather)
def simulation_weather(
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
):
    """Current conditions and daily outlook for a simulation location."""
    try:
        return aggregator.fetch_simulation_weather(lat, lon)
    except (ProviderError, requests.RequestException) as exc:
        logger.error("Error fetching simulation weather", extra={"error": redact_secrets(str(exc))})
        return _error(status.HTTP_502_BAD_GATEWAY, "Failed to load weather data")


@router.post("/insights", response_model=List[Insight])
def insights(req: InsightRequest = Body(...)):
    """Generate insights for a caller-built prompt."""
    return get_llm_insights(req.prompt)


@router.get("/healthz", include_in_schema=False)
def healthz():
    """Report which providers are configured (never the keys themselves)."""
    return {
        "ok": True,
        "providers": {
            "tomtom": settings.tomtom_configured,
            "gemini": settings.gemini_configured,
            "incidents": settings.incident_source,
        },
    }
