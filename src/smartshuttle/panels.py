"""Dependent UI panels derived from a single nearby-routes response."""

import html
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .models import (
    AlertEffect,
    RouteMode,
    ScheduleItem,
    SearchResult,
    TransitAlert,
    TransitItinerary,
    TransitRoute,
    TransitStop,
)

NO_COVERAGE_TEXT = "No buses available in this area"
ERROR_TEXT = "Error fetching bus data"
NO_LOCATION_TEXT = "Select a location"

MAX_CAPACITY_ROWS = 4

# Seats per shuttle class
SHUTTLE_CAPACITY = {
    "micro": 6,
    "small": 12,
    "standard": 16,
    "large": 24,
    "minibus": 30,
    "bus": 40,
}

ALERT_FILTERS = ("all", "SERVICE", "SIGNIFICANT_DELAYS", "DETOUR")

SERVICE_EFFECT_TITLES = {
    AlertEffect.NO_SERVICE: "No Service",
    AlertEffect.REDUCED_SERVICE: "Reduced Service",
    AlertEffect.ADDITIONAL_SERVICE: "Additional Service",
    AlertEffect.MODIFIED_SERVICE: "Modified Service",
}


@dataclass
class ArrivalRow:
    route_label: str
    arrival_text: str


@dataclass
class CapacityRow:
    name: str
    seats: int
    level: str  # "low-capacity", "medium-capacity" or "high-capacity"

    @property
    def text(self) -> str:
        return f"{self.seats} seats available"


@dataclass
class AlertItem:
    title: str
    description: str
    icon: str
    category: str
    route_label: str


@dataclass
class PanelMessage:
    title: str
    description: str = ""


NO_ALERTS = PanelMessage("No alerts", "No transit disruptions in your area at this time.")
NO_ROUTES = PanelMessage("No routes found", "No transit routes found in your area")
NO_LOCATION = PanelMessage("No location selected", "Please select a location in Routes first")
ALERTS_ERROR = PanelMessage("Error loading alerts", "Could not fetch service alerts. Please check your connection.")


@dataclass
class ViewPanels:
    """Everything a view shows besides the map."""
    status_text: str = NO_LOCATION_TEXT
    arrivals: List[ArrivalRow] = field(default_factory=list)
    arrivals_message: Optional[str] = None
    capacity: List[CapacityRow] = field(default_factory=list)
    capacity_message: Optional[str] = None
    alerts: List[AlertItem] = field(default_factory=list)
    alerts_message: Optional[PanelMessage] = None
    alert_filter: str = "all"

    def visible_alerts(self) -> List[AlertItem]:
        return filter_alerts(self.alerts, self.alert_filter)


def minutes_until(departure_epoch_seconds: int, now: Optional[float] = None) -> int:
    now = time.time() if now is None else now
    return math.ceil(max(0.0, departure_epoch_seconds - now) / 60)


def departure_text(item: Optional[ScheduleItem], now: Optional[float] = None, verb: str = "Arriving") -> Optional[str]:
    """'Arriving now' / 'Arriving in N min', or None without a departure time."""
    if item is None or not item.departure_epoch_seconds:
        return None
    minutes = minutes_until(item.departure_epoch_seconds, now)
    if minutes == 0:
        return f"{verb} now"
    return f"{verb} in {minutes} min"


def build_arrivals(routes: Sequence[TransitRoute], now: Optional[float] = None) -> List[ArrivalRow]:
    """One row per route itinerary, using each itinerary's first departure."""
    rows: List[ArrivalRow] = []
    for route in routes:
        if not route.itineraries:
            rows.append(ArrivalRow(route.display_name, "No schedule data"))
            continue
        for itinerary in route.itineraries:
            if not itinerary.schedule_items:
                rows.append(ArrivalRow(route.display_name, "Schedule unavailable"))
                continue
            text = departure_text(itinerary.schedule_items[0], now) or "Arriving soon"
            headsign = itinerary.headsign or "Direction Unknown"
            rows.append(ArrivalRow(f"{route.display_name} - {headsign}", text))
    return rows


def occupancy_factor(moment: datetime) -> float:
    """Share of seats assumed free at a given local time."""
    hour = moment.hour
    if 7 <= hour <= 9 or 16 <= hour <= 18:
        return 0.3
    if moment.weekday() >= 5:
        return 0.8
    return 0.6


def capacity_level(seats: int, base: int) -> str:
    ratio = seats / base
    if ratio < 0.4:
        return "low-capacity"
    if ratio < 0.7:
        return "medium-capacity"
    return "high-capacity"


def build_capacity(routes: Sequence[TransitRoute], moment: Optional[datetime] = None) -> List[CapacityRow]:
    """Estimate free seats for the first few routes from mode and time of day."""
    moment = moment or datetime.now()
    factor = occupancy_factor(moment)

    rows: List[CapacityRow] = []
    for index, route in enumerate(routes[:MAX_CAPACITY_ROWS]):
        mode = route.mode or RouteMode.BUS
        base = SHUTTLE_CAPACITY.get(mode.capacity_class, SHUTTLE_CAPACITY["standard"])
        seats = max(1, math.floor(base * factor))
        name = route.short_name or route.real_time_route_id or f"Route {index + 1}"
        rows.append(CapacityRow(name=name, seats=seats, level=capacity_level(seats, base)))
    return rows


def dedupe_alerts(routes: Sequence[TransitRoute]) -> List[Tuple[TransitAlert, TransitRoute]]:
    """All alerts across routes, first occurrence of each logical alert only."""
    seen = set()
    unique: List[Tuple[TransitAlert, TransitRoute]] = []
    for route in routes:
        for alert in route.alerts:
            if alert.dedupe_key in seen:
                continue
            seen.add(alert.dedupe_key)
            unique.append((alert, route))
    return unique


def describe_alert(alert: TransitAlert, route: TransitRoute) -> AlertItem:
    """Map an alert to its feed icon, title and filter category."""
    description = alert.description or "Service disruption on route"
    if alert.effect in SERVICE_EFFECT_TITLES:
        title = alert.title or SERVICE_EFFECT_TITLES[alert.effect]
        return AlertItem(title, description, "alert.svg", "SERVICE", route.display_name)
    if alert.effect is AlertEffect.SIGNIFICANT_DELAYS:
        return AlertItem("Significant Delays", description, "clock.svg", "SIGNIFICANT_DELAYS", route.display_name)
    if alert.effect is AlertEffect.DETOUR:
        return AlertItem("Detour", description, "directions.svg", "DETOUR", route.display_name)
    return AlertItem(alert.title or "Service Alert", description, "alert.svg", "SERVICE", route.display_name)


def build_alert_feed(routes: Sequence[TransitRoute]) -> Tuple[List[AlertItem], Optional[PanelMessage]]:
    """
    Build the alerts feed.

    Returns:
        (items, message) where message explains an empty feed.
    """
    if not routes:
        return [], NO_ROUTES
    items = [describe_alert(alert, route) for alert, route in dedupe_alerts(routes)]
    if not items:
        return [], NO_ALERTS
    return items, None


def filter_alerts(items: Sequence[AlertItem], filter_value: str = "all") -> List[AlertItem]:
    if filter_value not in ALERT_FILTERS:
        raise ValueError(f"Unknown alert filter '{filter_value}'")
    if filter_value == "all":
        return list(items)
    return [item for item in items if item.category == filter_value]


def stop_popup(stop: TransitStop, route: TransitRoute, itinerary: TransitItinerary,
               now: Optional[float] = None) -> str:
    """HTML popup describing a stop marker."""
    first = itinerary.schedule_items[0] if itinerary.schedule_items else None
    next_departure = departure_text(first, now, verb="Departing") or "No schedule available"
    realtime = "Real-time" if first is not None and first.is_real_time else "Scheduled"
    headsign = itinerary.headsign or "Direction Unknown"

    return (
        '<div class="stop-popup">'
        f'<h3 class="stop-name">{html.escape(stop.name)}</h3>'
        f'<div class="route-info">{html.escape(route.display_name)} - {html.escape(headsign)}</div>'
        f'<div class="stop-code">Stop: {html.escape(stop.code or "N/A")}</div>'
        f'<div class="vehicle-type {route.mode.vehicle_class if route.mode else "bus"}">'
        f'Vehicle: {html.escape(route.mode_label)}</div>'
        f'<div class="departure-info">{next_departure} &bull; {realtime}</div>'
        f'<div class="accessibility-info">Accessibility: {stop.wheelchair_access.label}</div>'
        '</div>'
    )


@dataclass
class SearchPanel:
    rows: List[Tuple[str, str]] = field(default_factory=list)  # (title, secondary line)
    message: Optional[str] = None


SEARCH_EMPTY = "No results found. Try a different search term."
SEARCH_ERROR = "Error performing search. Please try again."


def build_search_panel(results: Sequence[SearchResult]) -> SearchPanel:
    if not results:
        return SearchPanel(message=SEARCH_EMPTY)
    return SearchPanel(rows=[(r.display_name, r.secondary_text) for r in results])
