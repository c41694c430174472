"""Cached reverse-geocoding and location search shared by all requests in the process."""
from __future__ import annotations

from urbanpulse.cache import TTLCache
from urbanpulse.config import settings
from urbanpulse.providers import tomtom_client
from urbanpulse.providers.tomtom_client import MIN_QUERY_LENGTH, LocationSuggestion
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="location_service")

geocode_cache: TTLCache[dict] = TTLCache(
    settings.geocode_cache_ttl_seconds, settings.cache_max_entries, name="geocode"
)
search_cache: TTLCache[list] = TTLCache(
    settings.search_cache_ttl_seconds, settings.cache_max_entries, name="location_search"
)


def geocode_key(lat: str | float, lon: str | float) -> str:
    return f"{lat},{lon}"


def normalize_query(query: str | None) -> str:
    return (query or "").strip().lower()


def reverse_geocode_cached(lat: str | float, lon: str | float) -> dict:
    """Reverse-geocode a coordinate pair, serving repeats from the one-hour cache."""
    key = geocode_key(lat, lon)
    return geocode_cache.get_or_fetch(key, lambda: tomtom_client.reverse_geocode(lat, lon))


def search_locations_cached(query: str | None) -> list[LocationSuggestion]:
    """Search locations, serving repeated (case-insensitive) queries from the cache."""
    if len(normalize_query(query)) < MIN_QUERY_LENGTH:
        return []
    key = normalize_query(query)
    return search_cache.get_or_fetch(key, lambda: tomtom_client.search_locations(query))


def fallback_address(lat: float, lon: float) -> dict:
    """Placeholder address shown when reverse geocoding is unavailable."""
    return {"freeformAddress": f"{lat:.4f}, {lon:.4f}", "countryCode": "Unknown"}


def reset_caches() -> None:
    """Drop all cached lookups (tests and admin use)."""
    geocode_cache.clear()
    search_cache.clear()
