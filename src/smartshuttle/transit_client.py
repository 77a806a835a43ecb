"""Transit API client for nearby routes and stop search."""

import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import TransitHttpError, TransitNetworkError
from .http_session import AsyncRequestsSession
from .models import (
    AlertEffect,
    NearbyRoutes,
    RouteMode,
    ScheduleItem,
    SearchResult,
    SourceCategory,
    TransitAlert,
    TransitItinerary,
    TransitRoute,
    TransitStop,
    VehiclePosition,
    WheelchairAccess,
    parse_coordinate,
    valid_coordinates,
)

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_COLOR = "6A63F6"


def parse_stop(data: Any) -> Optional[TransitStop]:
    """Parse a stop object; None if it has no usable position."""
    if not isinstance(data, dict):
        return None
    lat = parse_coordinate(data.get("stop_lat"))
    lon = parse_coordinate(data.get("stop_lon"))
    if not valid_coordinates(lat, lon):
        logger.debug(f"Skipping stop without valid position: {data.get('stop_name')}")
        return None
    return TransitStop(
        name=data.get("stop_name") or "Unnamed stop",
        latitude=lat,
        longitude=lon,
        code=data.get("stop_code") or None,
        wheelchair_access=WheelchairAccess.from_code(data.get("wheelchair_boarding")),
        global_stop_id=data.get("global_stop_id") or None,
    )


def parse_vehicle(data: Any) -> Optional[VehiclePosition]:
    if not isinstance(data, dict):
        return None
    lat = parse_coordinate(data.get("latitude", data.get("lat")))
    lon = parse_coordinate(data.get("longitude", data.get("lon")))
    if not valid_coordinates(lat, lon):
        return None
    return VehiclePosition(latitude=lat, longitude=lon, bearing=parse_coordinate(data.get("bearing")))


def parse_schedule_item(data: Dict[str, Any]) -> ScheduleItem:
    departure = data.get("departure_time")
    vehicle = data.get("vehicle")
    vehicle_id = data.get("vehicle_id")
    if vehicle_id is None and isinstance(vehicle, dict):
        vehicle_id = vehicle.get("vehicle_id") or vehicle.get("id")
    return ScheduleItem(
        departure_epoch_seconds=int(departure) if isinstance(departure, (int, float)) and departure else None,
        is_real_time=bool(data.get("is_real_time")),
        vehicle_position=parse_vehicle(vehicle),
        vehicle_id=str(vehicle_id) if vehicle_id is not None else None,
        trip_id=data.get("rt_trip_id") or None,
    )


def parse_itinerary(data: Dict[str, Any]) -> TransitItinerary:
    items = data.get("schedule_items") or []
    return TransitItinerary(
        headsign=data.get("headsign") or None,
        closest_stop=parse_stop(data.get("closest_stop")),
        schedule_items=[parse_schedule_item(item) for item in items if isinstance(item, dict)],
    )


def parse_alert(data: Dict[str, Any]) -> TransitAlert:
    entities = data.get("informed_entities")
    alert_id = data.get("id")
    return TransitAlert(
        effect=AlertEffect.parse(data.get("effect")),
        id=str(alert_id) if alert_id else None,
        title=data.get("title") or None,
        description=data.get("description") or None,
        informed_entities=entities if isinstance(entities, list) else [],
    )


def parse_route(data: Dict[str, Any]) -> TransitRoute:
    type_code = data.get("route_type")
    if type_code is None:
        type_code = data.get("route_type_id")
    try:
        type_code = int(type_code) if type_code is not None else None
    except (TypeError, ValueError):
        type_code = None

    itineraries = data.get("itineraries") or []
    alerts = data.get("alerts") or []
    return TransitRoute(
        short_name=data.get("route_short_name") or None,
        long_name=data.get("route_long_name") or None,
        color_hex=(data.get("route_color") or DEFAULT_ROUTE_COLOR).lstrip("#"),
        text_color_hex=data.get("route_text_color") or None,
        mode=RouteMode.from_code(type_code),
        route_type_code=type_code,
        mode_name=data.get("mode_name") or None,
        real_time_route_id=data.get("real_time_route_id") or None,
        global_route_id=data.get("global_route_id") or None,
        itineraries=[parse_itinerary(i) for i in itineraries if isinstance(i, dict)],
        alerts=[parse_alert(a) for a in alerts if isinstance(a, dict)],
    )


class TransitClient:
    """
    Fetches nearby routes and stops from the transit collaborator.

    ``base_url`` is either the upstream API (with ``api_key``) or the
    proxy's ``/api/transit`` prefix, which injects the key itself.
    """

    def __init__(self, http: AsyncRequestsSession, base_url: str, api_key: Optional[str] = None):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    async def nearby_routes(self, lat: float, lon: float, max_distance_meters: int = 1500,
                            force_realtime_refresh: bool = True) -> NearbyRoutes:
        """
        Get routes serving stops near a point.

        Returns:
            NearbyRoutes; an empty list means no coverage, not an error.

        Raises:
            TransitHttpError: On a non-success HTTP status.
            TransitNetworkError: On transport failure or an unreadable body.
        """
        params = {
            "lat": lat,
            "lon": lon,
            "max_distance": max_distance_meters,
            "should_update_realtime": "true" if force_realtime_refresh else "false",
        }
        data = await self._get_json("public/nearby_routes", params)
        routes = data.get("routes") if isinstance(data, dict) else None
        if not isinstance(routes, list):
            return NearbyRoutes(routes=[])

        parsed = [parse_route(route) for route in routes if isinstance(route, dict)]
        logger.debug(f"Parsed {len(parsed)} routes near ({lat}, {lon})")
        return NearbyRoutes(routes=parsed)

    async def search_stops(self, query: str, lat: float, lon: float, max_results: int = 10) -> List[SearchResult]:
        """
        Text search over the transit system's own stop index, near a point.

        Raises:
            TransitHttpError, TransitNetworkError: As for nearby_routes.
        """
        params = {
            "query": query,
            "lat": lat,
            "lon": lon,
            "max_num_results": max_results,
        }
        data = await self._get_json("public/search_stops", params)
        stops = data.get("results", data.get("stops")) if isinstance(data, dict) else None
        if not isinstance(stops, list):
            return []

        results = []
        for raw in stops:
            stop = parse_stop(raw)
            if stop is None:
                continue
            results.append(SearchResult(
                latitude=stop.latitude,
                longitude=stop.longitude,
                display_name=stop.name,
                source_category=SourceCategory.TRANSIT_STOP,
                raw_address={"stop_code": stop.code} if stop.code else {},
            ))
        return results

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apiKey"] = self.api_key
        url = f"{self.base_url}/{path}"
        try:
            response = await self.http.get(url, params=params, headers=headers)
        except requests.RequestException as e:
            logger.error(f"Transit API unreachable at {url}: {e}")
            raise TransitNetworkError(f"Transit API unreachable: {e}") from e

        if not response.ok:
            logger.error(f"Transit API returned HTTP {response.status_code} for {url}")
            raise TransitHttpError(response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Transit API returned a malformed body for {url}: {e}")
            raise TransitNetworkError(f"Malformed Transit API response: {e}") from e
