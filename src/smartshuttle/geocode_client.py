"""Forward and reverse geocoding against Nominatim."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import GeocodeError
from .http_session import AsyncRequestsSession
from .models import SearchResult, SourceCategory, parse_coordinate, valid_coordinates

logger = logging.getLogger(__name__)

FALLBACK_LOCATION_NAME = "Current Location"
MIN_QUERY_LENGTH = 3

STOP_CLASSES = ("highway", "amenity")


def classify(candidate: Dict[str, Any]) -> SourceCategory:
    """
    Classify a raw Nominatim candidate.

    A candidate is a transit stop if its class/category is highway or
    amenity with type bus_stop, if its display name mentions "bus stop",
    or if its display name mentions "stop" and its class is highway or
    amenity.
    """
    osm_class = candidate.get("class")
    category = candidate.get("category")
    osm_type = candidate.get("type")
    name = str(candidate.get("display_name") or "").lower()

    if osm_type == "bus_stop" and (osm_class in STOP_CLASSES or category in STOP_CLASSES):
        return SourceCategory.TRANSIT_STOP
    if "bus stop" in name:
        return SourceCategory.TRANSIT_STOP
    if "stop" in name and osm_class in STOP_CLASSES:
        return SourceCategory.TRANSIT_STOP

    tag = osm_class or category
    if tag == "highway":
        return SourceCategory.HIGHWAY
    if tag == "amenity":
        return SourceCategory.AMENITY
    return SourceCategory.OTHER


def to_search_result(candidate: Any) -> Optional[SearchResult]:
    """Convert a raw candidate, or return None if it is unusable."""
    if not isinstance(candidate, dict) or not candidate.get("display_name"):
        return None
    lat = parse_coordinate(candidate.get("lat"))
    lon = parse_coordinate(candidate.get("lon"))
    if not valid_coordinates(lat, lon):
        return None
    address = candidate.get("address")
    return SearchResult(
        latitude=lat,
        longitude=lon,
        display_name=str(candidate["display_name"]),
        source_category=classify(candidate),
        raw_address=address if isinstance(address, dict) else {},
    )


def order_transit_first(results: List[SearchResult]) -> List[SearchResult]:
    """Stable partition: transit stops first, then everything else."""
    stops = [r for r in results if r.is_transit_stop]
    others = [r for r in results if not r.is_transit_stop]
    return stops + others


def shorten_display_name(display_name: Optional[str]) -> str:
    """
    Shorten a full address to its first two comma-separated segments.

    "Forbes Ave, Oakland, Pittsburgh, PA, USA" -> "Forbes Ave, Oakland"
    """
    if not display_name:
        return FALLBACK_LOCATION_NAME
    parts = [part.strip() for part in str(display_name).split(",")]
    if len(parts) >= 2 and parts[0] and parts[1]:
        return f"{parts[0]}, {parts[1]}"
    return parts[0] or FALLBACK_LOCATION_NAME


class GeocodeClient:
    """Wraps forward search and reverse lookup."""

    def __init__(self, http: AsyncRequestsSession, base_url: str = "https://nominatim.openstreetmap.org",
                 country_filter: Optional[str] = "US", limit: int = 10):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.country_filter = country_filter
        self.limit = limit

    async def forward_search(self, query: str, country_filter: Optional[str] = None) -> List[SearchResult]:
        """
        Search for places matching free text.

        Issues a stop-biased lookup and a general lookup concurrently; a
        failed lookup contributes no results instead of aborting the other.

        Args:
            query: Free text, at least 3 characters (caller's responsibility).
            country_filter: ISO country code; defaults to the client's filter.

        Returns:
            Valid SearchResults, transit stops first.
        """
        countries = country_filter or self.country_filter
        stop_lookup, general_lookup = await asyncio.gather(
            self._search_candidates(f"{query} bus stop", countries),
            self._search_candidates(query, countries),
        )
        candidates = stop_lookup + general_lookup

        results = []
        for candidate in candidates:
            result = to_search_result(candidate)
            if result is not None:
                results.append(result)

        invalid_count = len(candidates) - len(results)
        if invalid_count:
            logger.warning(f"Filtered out {invalid_count} invalid search results")

        return order_transit_first(results)

    async def _search_candidates(self, query: str, countries: Optional[str]) -> List[Dict[str, Any]]:
        params = {
            "q": query,
            "format": "json",
            "limit": self.limit,
            "addressdetails": 1,
        }
        if countries:
            params["countrycodes"] = countries
        try:
            data = await self._get_json("/search", params)
        except GeocodeError as e:
            logger.warning(f"Geocode search for '{query}' failed: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Geocode search for '{query}' returned a non-list body")
            return []
        return data

    async def reverse_lookup(self, lat: float, lon: float) -> str:
        """
        Name a point.

        Returns:
            The first two address segments, or "Current Location" on any failure.
        """
        try:
            data = await self._get_json("/reverse", {"format": "json", "lat": lat, "lon": lon})
        except GeocodeError as e:
            logger.warning(f"Reverse geocode for ({lat}, {lon}) failed: {e}")
            return FALLBACK_LOCATION_NAME
        if not isinstance(data, dict):
            return FALLBACK_LOCATION_NAME
        return shorten_display_name(data.get("display_name"))

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await self.http.get(f"{self.base_url}{path}", params=params)
        except requests.RequestException as e:
            raise GeocodeError(f"network error: {e}") from e
        if not response.ok:
            raise GeocodeError(f"HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise GeocodeError(f"malformed response: {e}") from e
