"""Debounced location search combining the geocoder and the transit stop index."""

import logging
from typing import List, Optional

from .debounce import DebouncedRefresher
from .errors import SmartShuttleError, TransitApiError
from .geocode_client import MIN_QUERY_LENGTH, GeocodeClient
from .location_store import LocationStore
from .models import SearchResult
from .panels import SEARCH_ERROR, SearchPanel, build_search_panel
from .transit_client import TransitClient

logger = logging.getLogger(__name__)


class SearchController:
    """Turns keystrokes into at most one search per quiet period."""

    def __init__(self, geocode_client: GeocodeClient, transit_client: Optional[TransitClient] = None,
                 location_store: Optional[LocationStore] = None, wait_seconds: float = 0.5):
        self.geocode_client = geocode_client
        self.transit_client = transit_client
        self.location_store = location_store
        self.debouncer = DebouncedRefresher(self.search, wait_seconds, name="search")
        self.results: List[SearchResult] = []
        self.panel = SearchPanel()

    def on_input(self, text: str) -> None:
        query = text.strip()
        if len(query) < MIN_QUERY_LENGTH:
            self.debouncer.cancel()
            self.results = []
            self.panel = SearchPanel()
            return
        self.debouncer.trigger(query)

    async def on_submit(self, text: str) -> List[SearchResult]:
        """Enter pressed: search now if the query is long enough."""
        query = text.strip()
        if len(query) < MIN_QUERY_LENGTH:
            return self.results
        self.debouncer.cancel()
        return await self.search(query)

    async def search(self, query: str) -> List[SearchResult]:
        try:
            places = await self.geocode_client.forward_search(query)
        except SmartShuttleError as e:
            logger.error(f"Error with search: {e}")
            self.results = []
            self.panel = SearchPanel(message=SEARCH_ERROR)
            return self.results

        stops = await self._transit_stops(query)
        self.results = stops + places
        self.panel = build_search_panel(self.results)
        return self.results

    async def _transit_stops(self, query: str) -> List[SearchResult]:
        if self.transit_client is None or self.location_store is None:
            return []
        near = self.location_store.get()
        if near is None:
            return []
        try:
            return await self.transit_client.search_stops(query, near.latitude, near.longitude)
        except TransitApiError as e:
            logger.warning(f"Transit stop search for '{query}' failed: {e}")
            return []

    async def wait_idle(self) -> None:
        await self.debouncer.wait_idle()
