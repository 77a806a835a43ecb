"""Map overlay ownership: one marker per logical entity, redrawn each cycle."""

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from .models import SearchResult, TransitItinerary, TransitRoute, TransitStop, VehiclePosition

logger = logging.getLogger(__name__)

USER_MARKER_COLOR = "#6A63F6"
USER_OUTER_RING_COLOR = "#CCCAF6"
ACCURACY_RING_FACTOR = 1.5


class MarkerPurpose(Enum):
    """Role of an overlay, used for selective clearing."""
    USER_LOCATION = "user-location"
    BUS_STOP = "bus-stop"
    ACTIVE_SHUTTLE = "active-shuttle"
    SEARCH_RESULT = "search-result"


ALL_EXCEPT_USER = "all-except-user"
TRANSIT_PURPOSES = (MarkerPurpose.BUS_STOP, MarkerPurpose.ACTIVE_SHUTTLE)


@dataclass(frozen=True)
class MapMarker:
    """Opaque overlay handle owned by MarkerLifecycleManager."""
    marker_id: int
    purpose: MarkerPurpose
    latitude: float
    longitude: float
    shape: str = "marker"  # "marker" or "circle"
    radius_meters: Optional[float] = None
    color: Optional[str] = None
    popup: Optional[str] = None


class MapSurface:
    """The map-rendering collaborator."""

    def add_layer(self, marker: MapMarker) -> None:
        raise NotImplementedError

    def remove_layer(self, marker: MapMarker) -> None:
        raise NotImplementedError

    def set_view(self, latitude: float, longitude: float, zoom: int) -> None:
        raise NotImplementedError


class RecordingMap(MapSurface):
    """Headless map surface that keeps its layers in memory."""

    def __init__(self):
        self.layers: Dict[int, MapMarker] = {}
        self.center: Optional[Tuple[float, float]] = None
        self.zoom: Optional[int] = None

    def add_layer(self, marker: MapMarker) -> None:
        self.layers[marker.marker_id] = marker

    def remove_layer(self, marker: MapMarker) -> None:
        self.layers.pop(marker.marker_id, None)

    def set_view(self, latitude: float, longitude: float, zoom: int) -> None:
        self.center = (latitude, longitude)
        self.zoom = zoom


PurposeSelector = Union[MarkerPurpose, str]
StopDescriber = Callable[[TransitStop, TransitRoute, TransitItinerary], str]


class MarkerLifecycleManager:
    """
    Tracks every overlay placed on the map, tagged by purpose.

    Markers are never updated in place: each refresh clears the transit
    overlays and redraws them from the latest response.
    """

    def __init__(self, surface: MapSurface):
        self.surface = surface
        self._markers: List[MapMarker] = []
        self._ids = itertools.count(1)

    def markers(self, purpose: Optional[PurposeSelector] = None) -> List[MapMarker]:
        if purpose is None:
            return list(self._markers)
        return [m for m in self._markers if self._matches(m, purpose)]

    @staticmethod
    def _matches(marker: MapMarker, purpose: PurposeSelector) -> bool:
        if purpose == ALL_EXCEPT_USER:
            return marker.purpose is not MarkerPurpose.USER_LOCATION
        if isinstance(purpose, str):
            purpose = MarkerPurpose(purpose)
        return marker.purpose is purpose

    def _add(self, purpose: MarkerPurpose, latitude: float, longitude: float, **options) -> MapMarker:
        marker = MapMarker(
            marker_id=next(self._ids),
            purpose=purpose,
            latitude=latitude,
            longitude=longitude,
            **options,
        )
        self.surface.add_layer(marker)
        self._markers.append(marker)
        return marker

    def clear(self, purpose: PurposeSelector) -> int:
        """
        Remove every tracked overlay matching ``purpose``.

        Args:
            purpose: A MarkerPurpose (or its tag string) or "all-except-user".

        Returns:
            Number of overlays removed.
        """
        doomed = [m for m in self._markers if self._matches(m, purpose)]
        for marker in doomed:
            self.surface.remove_layer(marker)
        self._markers = [m for m in self._markers if not self._matches(m, purpose)]
        if doomed:
            logger.debug(f"Cleared {len(doomed)} markers ({purpose})")
        return len(doomed)

    def clear_transit(self) -> None:
        for purpose in TRANSIT_PURPOSES:
            self.clear(purpose)

    def draw_stop(self, stop: TransitStop, route: TransitRoute, popup: Optional[str] = None) -> MapMarker:
        """Draw one stop marker coloured by its route."""
        return self._add(
            MarkerPurpose.BUS_STOP,
            stop.latitude,
            stop.longitude,
            color=f"#{route.color_hex}",
            popup=popup or f"{route.display_name}: {stop.name}",
        )

    def draw_active_shuttle(self, position: VehiclePosition, route: TransitRoute,
                            vehicle_id: Optional[str] = None) -> MapMarker:
        label = f"{route.display_name} vehicle {vehicle_id}" if vehicle_id else f"{route.display_name} vehicle"
        return self._add(
            MarkerPurpose.ACTIVE_SHUTTLE,
            position.latitude,
            position.longitude,
            color=f"#{route.color_hex}",
            popup=label,
        )

    def draw_search_result(self, result: SearchResult) -> MapMarker:
        """Replace any search pin with one for ``result``."""
        self.clear(MarkerPurpose.SEARCH_RESULT)
        return self._add(
            MarkerPurpose.SEARCH_RESULT,
            result.latitude,
            result.longitude,
            popup=result.display_name,
        )

    def draw_user_location(self, latitude: float, longitude: float, accuracy_meters: float) -> None:
        """Draw the user marker and its two accuracy rings, replacing any prior ones."""
        self.clear(MarkerPurpose.USER_LOCATION)
        self._add(MarkerPurpose.USER_LOCATION, latitude, longitude, popup="Your Location")
        self._add(
            MarkerPurpose.USER_LOCATION,
            latitude,
            longitude,
            shape="circle",
            radius_meters=accuracy_meters,
            color=USER_MARKER_COLOR,
        )
        self._add(
            MarkerPurpose.USER_LOCATION,
            latitude,
            longitude,
            shape="circle",
            radius_meters=accuracy_meters * ACCURACY_RING_FACTOR,
            color=USER_OUTER_RING_COLOR,
        )

    def redraw_transit(self, routes: List[TransitRoute], dedupe_stops: bool = False,
                       describe_stop: Optional[StopDescriber] = None) -> None:
        """
        Replace all stop and shuttle markers with those in ``routes``.

        Each itinerary's closest stop is drawn once per itinerary unless
        ``dedupe_stops`` is set, in which case a physical stop is drawn once.
        Schedule items carrying a vehicle position become shuttle markers.
        """
        self.clear_transit()

        seen_stops = set()
        seen_vehicles = set()
        for route in routes:
            for itinerary in route.itineraries:
                stop = itinerary.closest_stop
                if stop is not None and not (dedupe_stops and stop.identity in seen_stops):
                    seen_stops.add(stop.identity)
                    popup = describe_stop(stop, route, itinerary) if describe_stop else None
                    self.draw_stop(stop, route, popup=popup)

                for item in itinerary.schedule_items:
                    if item.vehicle_position is None:
                        continue
                    vehicle_key = item.vehicle_id or item.trip_id or id(item)
                    if vehicle_key in seen_vehicles:
                        continue
                    seen_vehicles.add(vehicle_key)
                    self.draw_active_shuttle(item.vehicle_position, route, item.vehicle_id)

        logger.debug(
            f"Drew {len(self.markers(MarkerPurpose.BUS_STOP))} stops and "
            f"{len(self.markers(MarkerPurpose.ACTIVE_SHUTTLE))} shuttles"
        )
