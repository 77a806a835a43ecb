"""Data models for SmartShuttle."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from google.transit import gtfs_realtime_pb2


def valid_coordinates(latitude: Any, longitude: Any) -> bool:
    """Return True if latitude/longitude are finite numbers within range."""
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return False
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return False
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


def parse_coordinate(value: Any) -> Optional[float]:
    """Coerce an API coordinate (number or numeric string) to float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class SelectedLocation:
    """The single current point of interest for a view."""
    latitude: float
    longitude: float
    display_name: str
    acquired_at_millis: int

    def is_valid(self) -> bool:
        return valid_coordinates(self.latitude, self.longitude)

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the stored record layout."""
        return {
            "lat": self.latitude,
            "lon": self.longitude,
            "displayName": self.display_name,
            "timestamp": self.acquired_at_millis,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SelectedLocation":
        """
        Build from a stored record.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed.
        """
        location = cls(
            latitude=float(record["lat"]),
            longitude=float(record["lon"]),
            display_name=str(record.get("displayName") or "Saved Location"),
            acquired_at_millis=int(record.get("timestamp", 0)),
        )
        if not location.is_valid():
            raise ValueError(f"Coordinates out of range: {location.latitude}, {location.longitude}")
        return location


class SourceCategory(Enum):
    """Classification of a geocoding candidate."""
    HIGHWAY = "highway"
    AMENITY = "amenity"
    TRANSIT_STOP = "transit_stop"
    OTHER = "other"


@dataclass
class SearchResult:
    """A geocoding candidate, alive for one search interaction."""
    latitude: float
    longitude: float
    display_name: str
    source_category: SourceCategory
    raw_address: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_transit_stop(self) -> bool:
        return self.source_category is SourceCategory.TRANSIT_STOP

    @property
    def secondary_text(self) -> str:
        """Region line shown under the result title."""
        address = self.raw_address or {}
        return address.get("state") or address.get("county") or address.get("country") or "United States"


class RouteMode(Enum):
    """Transit mode keyed by GTFS route type code."""
    TRAM = 0
    SUBWAY = 1
    RAIL = 2
    BUS = 3
    FERRY = 4
    CABLE = 5
    AERIAL = 6
    FUNICULAR = 7
    TROLLEYBUS = 11
    MONORAIL = 12

    @classmethod
    def from_code(cls, code: Any) -> Optional["RouteMode"]:
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return None

    @property
    def label(self) -> str:
        return ROUTE_MODE_TABLE[self][0]

    @property
    def vehicle_class(self) -> str:
        return ROUTE_MODE_TABLE[self][1]

    @property
    def capacity_class(self) -> str:
        return ROUTE_MODE_TABLE[self][2]


# mode -> (display label, vehicle category, shuttle capacity class)
ROUTE_MODE_TABLE: Dict[RouteMode, Tuple[str, str, str]] = {
    RouteMode.TRAM: ("Tram, Streetcar, Light rail", "tram", "standard"),
    RouteMode.SUBWAY: ("Subway, Metro", "subway", "large"),
    RouteMode.RAIL: ("Rail", "rail", "bus"),
    RouteMode.BUS: ("Bus", "bus", "bus"),
    RouteMode.FERRY: ("Ferry", "ferry", "large"),
    RouteMode.CABLE: ("Cable tram", "tram", "small"),
    RouteMode.AERIAL: ("Aerial lift, suspended cable car", "bus", "small"),
    RouteMode.FUNICULAR: ("Funicular", "bus", "bus"),
    RouteMode.TROLLEYBUS: ("Trolleybus", "bus", "bus"),
    RouteMode.MONORAIL: ("Monorail", "rail", "bus"),
}


class WheelchairAccess(Enum):
    """GTFS wheelchair_boarding values."""
    UNKNOWN = 0
    ACCESSIBLE = 1
    NOT_ACCESSIBLE = 2

    @classmethod
    def from_code(cls, code: Any) -> "WheelchairAccess":
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        return {
            WheelchairAccess.ACCESSIBLE: "Accessible",
            WheelchairAccess.NOT_ACCESSIBLE: "Not Accessible",
        }.get(self, "Unknown")


@dataclass
class TransitStop:
    """A physical stop served by an itinerary."""
    name: str
    latitude: float
    longitude: float
    code: Optional[str] = None
    wheelchair_access: WheelchairAccess = WheelchairAccess.UNKNOWN
    global_stop_id: Optional[str] = None

    @property
    def identity(self) -> Tuple:
        """Key identifying the physical stop across itineraries."""
        if self.global_stop_id:
            return (self.global_stop_id,)
        return (self.name, round(self.latitude, 6), round(self.longitude, 6))


@dataclass
class VehiclePosition:
    """Upstream-reported position of a vehicle."""
    latitude: float
    longitude: float
    bearing: Optional[float] = None


@dataclass
class ScheduleItem:
    """One upcoming departure."""
    departure_epoch_seconds: Optional[int]
    is_real_time: bool = False
    vehicle_position: Optional[VehiclePosition] = None
    vehicle_id: Optional[str] = None
    trip_id: Optional[str] = None


@dataclass
class TransitItinerary:
    """One directional pattern of a route."""
    headsign: Optional[str]
    closest_stop: Optional[TransitStop] = None
    schedule_items: List[ScheduleItem] = field(default_factory=list)


class AlertEffect(Enum):
    """Service alert effect."""
    NO_SERVICE = "NO_SERVICE"
    REDUCED_SERVICE = "REDUCED_SERVICE"
    ADDITIONAL_SERVICE = "ADDITIONAL_SERVICE"
    MODIFIED_SERVICE = "MODIFIED_SERVICE"
    SIGNIFICANT_DELAYS = "SIGNIFICANT_DELAYS"
    DETOUR = "DETOUR"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> "AlertEffect":
        """
        Normalize an effect given as a GTFS-Realtime enum name or number.

        Effects GTFS-Realtime knows but the feed does not distinguish
        (OTHER_EFFECT, UNKNOWN_EFFECT, STOP_MOVED, ...) collapse to OTHER.
        """
        effect_enum = gtfs_realtime_pb2.Alert.Effect
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                name = effect_enum.Name(value)
            except ValueError:
                return cls.OTHER
        elif isinstance(value, str):
            name = value.strip().upper()
        else:
            return cls.OTHER

        if name in cls.__members__:
            return cls[name]
        return cls.OTHER


@dataclass
class TransitAlert:
    """A service alert attached to a route."""
    effect: AlertEffect
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    informed_entities: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def dedupe_key(self) -> Tuple:
        """Two alerts with equal keys are the same logical alert."""
        if self.id:
            return ("id", self.id)
        return ("content", self.effect.value, self.title or "", self.description or "")


@dataclass
class TransitRoute:
    """A route near the selected point, with its itineraries and alerts."""
    short_name: Optional[str]
    color_hex: str
    mode: Optional[RouteMode]
    itineraries: List[TransitItinerary] = field(default_factory=list)
    alerts: List[TransitAlert] = field(default_factory=list)
    long_name: Optional[str] = None
    text_color_hex: Optional[str] = None
    real_time_route_id: Optional[str] = None
    global_route_id: Optional[str] = None
    mode_name: Optional[str] = None  # Upstream label, overrides the mode table
    route_type_code: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.short_name or self.real_time_route_id or "Unknown Route"

    @property
    def mode_label(self) -> str:
        if self.mode_name:
            return self.mode_name
        if self.mode is not None:
            return self.mode.label
        if self.route_type_code is not None:
            return f"Unknown ({self.route_type_code})"
        return RouteMode.BUS.label


@dataclass
class NearbyRoutes:
    """Response of a nearby-routes lookup. An empty list means no coverage."""
    routes: List[TransitRoute] = field(default_factory=list)
