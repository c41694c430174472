"""Helpers for the TomTom search, routing and traffic APIs."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional
from urllib.parse import quote

import requests

from urbanpulse.config import settings
from urbanpulse.providers.errors import ProviderHTTPError, ProviderNotConfigured, ProviderPayloadError
from utils.logging_utils import get_tagged_logger, mask_secret_url

logger = get_tagged_logger(__name__, tag="tomtom_client")

session = requests.Session()

TOMTOM_SEARCH_URL = "https://api.tomtom.com/search/2"
TOMTOM_ROUTING_URL = "https://api.tomtom.com/routing/1"
TOMTOM_TRAFFIC_FLOW_URL = "https://api.tomtom.com/traffic/services/4/flowSegmentData/absolute/10/json"

MIN_QUERY_LENGTH = 2

# Routing options forwarded to TomTom; anything else on the request is dropped.
ROUTE_OPTION_WHITELIST = (
    "routeType",
    "maxAlternatives",
    "alternativeType",
    "minDeviationDistance",
    "minDeviationTime",
    "routeRepresentation",
    "computeTravelTimeFor",
    "traffic",
    "travelMode",
    "sectionType",
    "report",
    "instructionsType",
    "language",
    "departAt",
    "arriveAt",
    "coordinatePrecision",
)

ROUTE_OPTION_DEFAULTS = {
    "routeRepresentation": "polyline",
    "maxAlternatives": "2",
    "traffic": "true",
    "routeType": "fastest",
    "report": "effectiveSettings",
}

# POST forwards routeType only when the caller sets it.
POST_ROUTE_OPTION_DEFAULTS = {k: v for k, v in ROUTE_OPTION_DEFAULTS.items() if k != "routeType"}


@dataclass
class LocationSuggestion:
    """Normalized location search hit."""
    id: str
    name: str
    address: Optional[str]
    lat: float
    lon: float

    def to_dict(self) -> dict:
        out = {"id": self.id, "name": self.name, "lat": self.lat, "lon": self.lon}
        if self.address is not None:
            out["address"] = self.address
        return out


@dataclass
class TrafficFlow:
    """Flow segment reading for the road nearest to a point."""
    current_speed: Optional[float]
    free_flow_speed: Optional[float]
    current_travel_time: Optional[float]
    free_flow_travel_time: Optional[float]
    confidence: Optional[float]
    road_closure: bool
    congestion: Optional[float]  # 0 = free flowing, 1 = standstill


def _require_key(api_key: str | None) -> str:
    key = api_key or settings.tomtom_api_key
    if not key:
        raise ProviderNotConfigured("TomTom API key not configured", provider="tomtom")
    return key


def _get(url: str, params: Mapping[str, Any]) -> requests.Response:
    logger.debug("TomTom GET %s", mask_secret_url(requests.Request("GET", url, params=params).prepare().url))
    return session.get(url, params=params, timeout=settings.provider_timeout_seconds)


def reverse_geocode(lat: float | str, lon: float | str, *, api_key: str | None = None) -> dict:
    """Return the first address record TomTom knows for a coordinate pair."""
    key = _require_key(api_key)
    url = f"{TOMTOM_SEARCH_URL}/reverseGeocode/{lat},{lon}.json"
    resp = _get(url, {"key": key, "radius": settings.geocode_radius_m})

    if not resp.ok:
        logger.error("TomTom reverse geocode non-OK response", extra={"status": resp.status_code, "body": resp.text[:200]})
        raise ProviderHTTPError(resp.status_code, f"TomTom API error: {resp.status_code}", provider="tomtom",
                                body=resp.text)

    data = resp.json()
    addresses = data.get("addresses") or []
    if not addresses:
        logger.warning("TomTom returned no addresses", extra={"lat": lat, "lon": lon})
        raise ProviderPayloadError("No address data returned from TomTom", provider="tomtom")
    return addresses[0].get("address", {})


def _to_suggestion(result: Mapping[str, Any]) -> LocationSuggestion:
    address = result.get("address") or {}
    poi = result.get("poi") or {}
    position = result.get("position") or {}
    freeform = address.get("freeformAddress")
    return LocationSuggestion(
        id=str(result.get("id", "")),
        name=freeform or poi.get("name") or "Unknown",
        address=freeform,
        lat=position.get("lat"),
        lon=position.get("lon"),
    )


def search_locations(query: str | None, *, api_key: str | None = None) -> List[LocationSuggestion]:
    """Forward-search TomTom for places matching free text."""
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    key = _require_key(api_key)
    url = f"{TOMTOM_SEARCH_URL}/search/{quote(query, safe='')}.json"
    params = {
        "key": key,
        "query": query,
        "limit": settings.search_limit,
        "language": settings.search_language,
    }
    resp = _get(url, params)
    if not resp.ok:
        logger.error("TomTom search non-OK response", extra={"status": resp.status_code, "reason": resp.reason})
        raise ProviderHTTPError(resp.status_code, f"TomTom API error: {resp.status_code}", provider="tomtom",
                                body=resp.text)

    results = resp.json().get("results") or []
    return [_to_suggestion(r) for r in results]


def build_route_locations(orig_lat: float, orig_lon: float, dest_lat: float, dest_lon: float) -> str:
    """Format an origin/destination pair as TomTom routePlanningLocations."""
    return f"{orig_lat},{orig_lon}:{dest_lat},{dest_lon}"


def build_route_params(options: Mapping[str, Any], defaults: Mapping[str, str] = ROUTE_OPTION_DEFAULTS) -> dict:
    """Apply routing defaults, then copy whitelisted caller options over them."""
    params = dict(defaults)
    for name in ROUTE_OPTION_WHITELIST:
        value = options.get(name)
        if value is not None:
            params[name] = value
    return params


def calculate_route(
    route_planning_locations: str,
    options: Mapping[str, Any] | None = None,
    *,
    body: str | bytes | None = None,
    api_key: str | None = None,
) -> Any:
    """
    Calculate a route with TomTom.

    With `body` the request is a POST that forwards the caller's JSON (supporting
    points, encoded polylines, legs); otherwise it is a plain GET.
    """
    key = _require_key(api_key)
    defaults = ROUTE_OPTION_DEFAULTS if body is None else POST_ROUTE_OPTION_DEFAULTS
    params = build_route_params(options or {}, defaults)
    params["key"] = key
    url = f"{TOMTOM_ROUTING_URL}/calculateRoute/{quote(route_planning_locations, safe='')}/json"

    if body is None:
        resp = _get(url, params)
    else:
        logger.debug("TomTom POST calculateRoute", extra={"locations": route_planning_locations})
        resp = session.post(
            url,
            params=params,
            data=body,
            headers={"Content-Type": "application/json"},
            timeout=settings.provider_timeout_seconds,
        )

    text = resp.text
    if not resp.ok:
        try:
            detail = json.dumps(json.loads(text))
        except ValueError:
            detail = json.dumps(text)
        raise ProviderHTTPError(resp.status_code, f"TomTom routing error: {resp.status_code} {detail}",
                                provider="tomtom", body=text)
    try:
        return json.loads(text)
    except ValueError:
        return text


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def fetch_traffic_flow(lat: float, lon: float, *, api_key: str | None = None) -> TrafficFlow:
    """Return live traffic flow for the road segment closest to a point."""
    key = _require_key(api_key)
    resp = _get(TOMTOM_TRAFFIC_FLOW_URL, {"key": key, "point": f"{lat},{lon}", "unit": "KMPH"})
    if not resp.ok:
        raise ProviderHTTPError(resp.status_code, f"TomTom traffic error: {resp.status_code}", provider="tomtom",
                                body=resp.text)

    segment = resp.json().get("flowSegmentData")
    if not segment:
        raise ProviderPayloadError("No flow segment data returned from TomTom", provider="tomtom")

    current = _as_float(segment.get("currentSpeed"))
    free_flow = _as_float(segment.get("freeFlowSpeed"))
    congestion = None
    if current is not None and free_flow:
        congestion = min(1.0, max(0.0, 1.0 - current / free_flow))

    return TrafficFlow(
        current_speed=current,
        free_flow_speed=free_flow,
        current_travel_time=_as_float(segment.get("currentTravelTime")),
        free_flow_travel_time=_as_float(segment.get("freeFlowTravelTime")),
        confidence=_as_float(segment.get("confidence")),
        road_closure=bool(segment.get("roadClosure", False)),
        congestion=congestion,
    )
