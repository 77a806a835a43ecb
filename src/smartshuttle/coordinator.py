"""Real-time overlay coordinator: location -> debounced fetch -> markers -> panels."""

import logging
import time
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, Optional

from .config import ApplicationConfig
from .debounce import DebouncedRefresher, PeriodicPoller
from .errors import TransitApiError
from .geocode_client import GeocodeClient
from .location_store import LocationStore, PreferenceStore
from .markers import MarkerLifecycleManager, MarkerPurpose
from .models import NearbyRoutes, SearchResult, SelectedLocation, valid_coordinates
from .panels import (
    ALERTS_ERROR,
    ERROR_TEXT,
    NO_COVERAGE_TEXT,
    NO_LOCATION,
    NO_ROUTES,
    ViewPanels,
    build_alert_feed,
    build_arrivals,
    build_capacity,
    stop_popup,
)
from .transit_client import TransitClient

logger = logging.getLogger(__name__)

SELECTED_ZOOM = 13


class CoordinatorState(Enum):
    IDLE = "idle"
    RESOLVING_LOCATION = "resolving_location"
    FETCHING = "fetching"
    RENDERING = "rendering"
    ERROR = "error"


class CycleOutcome(Enum):
    RENDERED = "rendered"
    NO_COVERAGE = "no_coverage"
    ERROR = "error"
    SUPERSEDED = "superseded"


class OverlayCoordinator:
    """
    Keeps the map overlays, dependent panels and selected location consistent.

    One instance per view. It is the only writer of its LocationStore and
    the only caller of its MarkerLifecycleManager. Every panel is derived
    from the same response, so panels cannot disagree with each other or
    with the markers.
    """

    def __init__(
        self,
        transit_client: TransitClient,
        geocode_client: GeocodeClient,
        location_store: LocationStore,
        markers: MarkerLifecycleManager,
        config: Optional[ApplicationConfig] = None,
        preferences: Optional[PreferenceStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.transit_client = transit_client
        self.geocode_client = geocode_client
        self.location_store = location_store
        self.markers = markers
        self.config = config or ApplicationConfig()
        self.preferences = preferences
        self.clock = clock

        self.panels = ViewPanels()
        self.state = CoordinatorState.IDLE
        self.history: Deque[CoordinatorState] = deque(maxlen=64)
        self.last_outcome: Optional[CycleOutcome] = None
        self.last_response: Optional[NearbyRoutes] = None
        self.last_error: Optional[TransitApiError] = None

        self._generation = 0
        # Bumped by every user location event; an awaited event that sees a newer value is dropped.
        self._location_seq = 0
        self.debouncer = DebouncedRefresher(
            self._refresh, self.config.refresh_debounce_seconds, name="transit refresh"
        )
        self._poller: Optional[PeriodicPoller] = None

    def _transition(self, state: CoordinatorState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _now_millis(self) -> int:
        return int(self.clock() * 1000)

    def _begin_location_event(self) -> int:
        self._location_seq += 1
        self._transition(CoordinatorState.RESOLVING_LOCATION)
        return self._location_seq

    def _superseded(self, token: int, source: str) -> bool:
        if token == self._location_seq:
            return False
        logger.info(f"Dropping {source} location, a newer location was selected")
        return True

    @property
    def current_location(self) -> Optional[SelectedLocation]:
        return self.location_store.get()

    # Location events

    async def restore(self) -> Optional[SelectedLocation]:
        """Resume from the persisted location, if any."""
        location = self.location_store.get()
        if location is None:
            self.panels.alerts_message = NO_LOCATION
            return None
        self._begin_location_event()
        self.markers.surface.set_view(location.latitude, location.longitude, SELECTED_ZOOM)
        self._accept(location)
        return location

    async def select_search_result(self, result: SearchResult) -> bool:
        """User picked a search result."""
        self._begin_location_event()
        if not valid_coordinates(result.latitude, result.longitude):
            logger.error(f"Invalid coordinates from search result: {result.latitude}, {result.longitude}")
            self._reject()
            return False

        self.markers.clear(MarkerPurpose.SEARCH_RESULT)
        self.markers.draw_search_result(result)
        self.markers.surface.set_view(result.latitude, result.longitude, SELECTED_ZOOM)
        location = SelectedLocation(result.latitude, result.longitude, result.display_name, self._now_millis())
        return self._accept(location)

    async def on_geolocation_success(self, latitude: float, longitude: float,
                                     accuracy_meters: Optional[float] = None) -> bool:
        """Browser granted geolocation and reported a position.

        The reverse lookup is awaited, so a location selected meanwhile
        wins and this result is dropped.
        """
        token = self._begin_location_event()
        if self.preferences is not None:
            self.preferences.set_location_permission("granted")
        if not valid_coordinates(latitude, longitude):
            logger.error(f"Invalid coordinates from geolocation: {latitude}, {longitude}")
            self._reject()
            return False

        accuracy = accuracy_meters if accuracy_meters else self.config.default_accuracy_meters
        self.markers.draw_user_location(latitude, longitude, accuracy)
        self.markers.surface.set_view(latitude, longitude, SELECTED_ZOOM)
        name = await self.geocode_client.reverse_lookup(latitude, longitude)
        if self._superseded(token, "geolocation"):
            return False
        return self._accept(SelectedLocation(latitude, longitude, name, self._now_millis()))

    async def on_geolocation_denied(self) -> bool:
        """Geolocation unavailable or denied: fall back to the default point."""
        token = self._begin_location_event()
        if self.preferences is not None:
            self.preferences.set_location_permission("denied")
        latitude, longitude = self.config.default_latitude, self.config.default_longitude
        logger.info(f"Geolocation denied, using fallback ({latitude}, {longitude})")
        self.markers.surface.set_view(latitude, longitude, SELECTED_ZOOM)
        name = await self.geocode_client.reverse_lookup(latitude, longitude)
        if self._superseded(token, "fallback"):
            return False
        return self._accept(SelectedLocation(latitude, longitude, name, self._now_millis()))

    def on_map_pan(self, latitude: float, longitude: float) -> bool:
        """Map settled on a new center. Keeps the current display name."""
        self._begin_location_event()
        current = self.location_store.get()
        name = current.display_name if current else "Map Center"
        return self._accept(SelectedLocation(latitude, longitude, name, self._now_millis()))

    async def on_timer(self) -> bool:
        """Periodic or user-requested refresh of the current location."""
        location = self.location_store.get()
        if location is None:
            self.panels.alerts_message = NO_LOCATION
            logger.info("Refresh requested with no location selected")
            return False
        self._transition(CoordinatorState.RESOLVING_LOCATION)
        return self._accept(location)

    refresh = on_timer

    def _reject(self) -> None:
        self._transition(CoordinatorState.ERROR)
        self._transition(CoordinatorState.IDLE)

    def _accept(self, location: SelectedLocation) -> bool:
        if not self.location_store.set(location):
            self._reject()
            return False
        self.panels.status_text = location.display_name
        self._generation += 1
        self._transition(CoordinatorState.FETCHING)
        self.debouncer.trigger(location.latitude, location.longitude, self._generation)
        return True

    # Fetch and render

    async def _refresh(self, latitude: float, longitude: float, generation: int) -> None:
        try:
            response = await self.transit_client.nearby_routes(
                latitude, longitude, self.config.max_distance_meters, force_realtime_refresh=True
            )
        except TransitApiError as e:
            if generation != self._generation:
                self.last_outcome = CycleOutcome.SUPERSEDED
                return
            if e.status_code is not None:
                logger.error(f"Transit fetch failed with HTTP {e.status_code}")
            else:
                logger.error(f"Transit fetch failed ({e.cause}): {e}")
            self._render_error(e)
            return

        if generation != self._generation:
            logger.debug(f"Dropping superseded response for ({latitude}, {longitude})")
            self.last_outcome = CycleOutcome.SUPERSEDED
            return

        self._render(response)

    def _render(self, response: NearbyRoutes) -> None:
        self._transition(CoordinatorState.RENDERING)
        self.last_response = response
        self.last_error = None
        routes = response.routes
        now = self.clock()

        self.markers.redraw_transit(
            routes,
            dedupe_stops=self.config.dedupe_stop_markers,
            describe_stop=lambda stop, route, itinerary: stop_popup(stop, route, itinerary, now),
        )

        if routes:
            self.panels.arrivals = build_arrivals(routes, now)
            self.panels.arrivals_message = None
            self.panels.capacity = build_capacity(routes, datetime.fromtimestamp(now))
            self.panels.capacity_message = None
            self.panels.alerts, self.panels.alerts_message = build_alert_feed(routes)
            self.last_outcome = CycleOutcome.RENDERED
        else:
            logger.info("No routes found near the selected location")
            self.panels.status_text = NO_COVERAGE_TEXT
            self.panels.arrivals = []
            self.panels.arrivals_message = "No routes available"
            self.panels.capacity = []
            self.panels.capacity_message = "No shuttles available"
            self.panels.alerts = []
            self.panels.alerts_message = NO_ROUTES
            self.last_outcome = CycleOutcome.NO_COVERAGE

        self._transition(CoordinatorState.IDLE)

    def _render_error(self, error: TransitApiError) -> None:
        self._transition(CoordinatorState.ERROR)
        self.last_response = None
        self.last_error = error
        self.markers.clear_transit()

        self.panels.status_text = ERROR_TEXT
        self.panels.arrivals = []
        self.panels.arrivals_message = ERROR_TEXT
        self.panels.capacity = []
        self.panels.capacity_message = "No shuttles available"
        self.panels.alerts = []
        self.panels.alerts_message = ALERTS_ERROR
        self.last_outcome = CycleOutcome.ERROR

        self._transition(CoordinatorState.IDLE)

    # Lifecycle

    def start_polling(self, interval_seconds: Optional[float] = None) -> PeriodicPoller:
        """Refresh every few minutes (alerts view)."""
        if self._poller is None:
            interval = interval_seconds or self.config.alerts_poll_interval_seconds
            self._poller = PeriodicPoller(self.on_timer, interval, name="alerts refresh")
        self._poller.start()
        return self._poller

    async def wait_idle(self) -> None:
        await self.debouncer.wait_idle()

    async def close(self) -> None:
        """Tear down: stop polling, drop pending work, remove every overlay."""
        if self._poller is not None:
            await self._poller.stop()
        self.debouncer.cancel()
        await self.debouncer.wait_idle()
        self.markers.clear("all-except-user")
        self.markers.clear(MarkerPurpose.USER_LOCATION)
        self._transition(CoordinatorState.IDLE)
