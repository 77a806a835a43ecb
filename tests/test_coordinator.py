"""Scenario tests for OverlayCoordinator."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from support import route_payload

from smartshuttle.config import ApplicationConfig
from smartshuttle.coordinator import CoordinatorState, CycleOutcome, OverlayCoordinator
from smartshuttle.errors import TransitHttpError, TransitNetworkError
from smartshuttle.location_store import LocationStore, PreferenceStore
from smartshuttle.markers import MarkerLifecycleManager, MarkerPurpose, RecordingMap
from smartshuttle.models import NearbyRoutes, SearchResult, SelectedLocation, SourceCategory
from smartshuttle.panels import ALERTS_ERROR, ERROR_TEXT, NO_COVERAGE_TEXT, NO_LOCATION, NO_ROUTES
from smartshuttle.storage import MemoryStorage
from smartshuttle.transit_client import parse_route

NOW = 1700000000.0


def nearby(*short_names, vehicle=None, alerts=None):
    return NearbyRoutes([
        parse_route(route_payload(name, departures=(int(NOW) + 300,), vehicle=vehicle, alerts=alerts))
        for name in short_names
    ])


class CoordinatorTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.transit = MagicMock()
        self.transit.nearby_routes = AsyncMock(return_value=nearby("61C"))
        self.geocoder = MagicMock()
        self.geocoder.reverse_lookup = AsyncMock(return_value="Forbes Ave, Oakland")

        self.storage = MemoryStorage()
        self.store = LocationStore(self.storage)
        self.preferences = PreferenceStore(self.storage)
        self.surface = RecordingMap()
        self.markers = MarkerLifecycleManager(self.surface)
        self.config = ApplicationConfig(refresh_debounce_seconds=0.02)

        self.coordinator = OverlayCoordinator(
            self.transit,
            self.geocoder,
            self.store,
            self.markers,
            config=self.config,
            preferences=self.preferences,
            clock=lambda: NOW,
        )

    async def asyncTearDown(self):
        await self.coordinator.close()

    def transit_markers(self):
        return (self.markers.markers(MarkerPurpose.BUS_STOP)
                + self.markers.markers(MarkerPurpose.ACTIVE_SHUTTLE))


class TestRefreshCycle(CoordinatorTestCase):
    """Test fetch, render and error paths."""

    async def test_successful_refresh(self):
        vehicle = {"latitude": 40.45, "longitude": -79.94, "vehicle_id": "5501"}
        self.transit.nearby_routes.return_value = nearby("61C", "71A", vehicle=vehicle)

        self.assertTrue(self.coordinator.on_map_pan(40.4406, -79.9951))
        await self.coordinator.wait_idle()

        self.assertEqual(self.coordinator.last_outcome, CycleOutcome.RENDERED)
        self.assertEqual(self.coordinator.state, CoordinatorState.IDLE)
        self.assertEqual(len(self.markers.markers(MarkerPurpose.BUS_STOP)), 2)
        self.assertEqual(len(self.markers.markers(MarkerPurpose.ACTIVE_SHUTTLE)), 1)

        panels = self.coordinator.panels
        self.assertEqual([r.route_label for r in panels.arrivals], ["61C - Downtown", "71A - Downtown"])
        self.assertEqual([r.name for r in panels.capacity], ["61C", "71A"])
        self.assertEqual(panels.status_text, "Map Center")

        self.transit.nearby_routes.assert_awaited_once_with(40.4406, -79.9951, 1500, force_realtime_refresh=True)

    async def test_empty_routes_is_no_coverage(self):
        self.transit.nearby_routes.return_value = NearbyRoutes([])

        self.coordinator.on_map_pan(40.4406, -79.9951)
        await self.coordinator.wait_idle()

        history = list(self.coordinator.history)
        self.assertIn(CoordinatorState.RENDERING, history)
        self.assertNotIn(CoordinatorState.ERROR, history)
        self.assertEqual(self.coordinator.last_outcome, CycleOutcome.NO_COVERAGE)
        self.assertEqual(self.coordinator.panels.status_text, NO_COVERAGE_TEXT)
        self.assertEqual(self.coordinator.panels.alerts_message, NO_ROUTES)
        self.assertEqual(self.transit_markers(), [])

    async def test_http_error_clears_transit_markers(self):
        self.coordinator.on_map_pan(40.4406, -79.9951)
        await self.coordinator.wait_idle()
        self.assertEqual(len(self.transit_markers()), 1)

        self.transit.nearby_routes.side_effect = TransitHttpError(500)
        self.coordinator.on_map_pan(40.45, -79.99)
        await self.coordinator.wait_idle()

        self.assertIn(CoordinatorState.ERROR, self.coordinator.history)
        self.assertEqual(self.coordinator.state, CoordinatorState.IDLE)
        self.assertEqual(self.coordinator.last_outcome, CycleOutcome.ERROR)
        self.assertEqual(self.coordinator.last_error.status_code, 500)
        self.assertEqual(self.coordinator.panels.status_text, ERROR_TEXT)
        self.assertEqual(self.coordinator.panels.arrivals_message, ERROR_TEXT)
        self.assertEqual(self.coordinator.panels.alerts_message, ALERTS_ERROR)
        self.assertEqual(self.transit_markers(), [])

    async def test_network_error(self):
        self.transit.nearby_routes.side_effect = TransitNetworkError("unreachable")

        self.coordinator.on_map_pan(40.4406, -79.9951)
        await self.coordinator.wait_idle()

        self.assertEqual(self.coordinator.last_error.cause, "network")
        self.assertEqual(self.coordinator.panels.status_text, ERROR_TEXT)

    async def test_rapid_pans_fetch_once(self):
        self.coordinator.debouncer.wait_seconds = 0.1
        for latitude in (40.0, 40.01, 40.02, 40.03):
            self.coordinator.on_map_pan(latitude, -80.0)
            await asyncio.sleep(0.01)
        await self.coordinator.wait_idle()

        self.transit.nearby_routes.assert_awaited_once()
        self.assertEqual(self.transit.nearby_routes.await_args.args[:2], (40.03, -80.0))
        self.assertEqual(self.store.get().latitude, 40.03)

    async def test_stale_response_is_dropped(self):
        release = asyncio.Event()
        calls = []

        async def fake_nearby(lat, lon, *args, **kwargs):
            calls.append((lat, lon))
            if len(calls) == 1:
                await release.wait()
                return nearby("61C")
            return NearbyRoutes([])

        self.transit.nearby_routes.side_effect = fake_nearby

        self.coordinator.on_map_pan(40.0, -80.0)
        while not calls:
            await asyncio.sleep(0.01)
        self.coordinator.on_map_pan(41.0, -81.0)
        while len(calls) < 2:
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.01)
        release.set()
        await self.coordinator.wait_idle()

        self.assertEqual(self.coordinator.last_outcome, CycleOutcome.SUPERSEDED)
        self.assertEqual(self.coordinator.panels.status_text, NO_COVERAGE_TEXT)
        self.assertEqual(self.transit_markers(), [])

    async def test_panels_agree_with_response(self):
        detour = {"effect": "DETOUR", "title": "Detour", "description": "Forbes closed"}
        self.transit.nearby_routes.return_value = nearby("61C", "61D", alerts=[detour])

        self.coordinator.on_map_pan(40.4406, -79.9951)
        await self.coordinator.wait_idle()

        route_names = [r.short_name for r in self.coordinator.last_response.routes]
        self.assertEqual([r.name for r in self.coordinator.panels.capacity], route_names)
        self.assertEqual(len(self.coordinator.panels.alerts), 1)


class TestLocationEvents(CoordinatorTestCase):
    """Test the ways a location can be selected."""

    async def test_search_result_selection(self):
        result = SearchResult(40.4443, -79.9436, "Forbes Ave Bus Stop", SourceCategory.TRANSIT_STOP)

        self.assertTrue(await self.coordinator.select_search_result(result))
        await self.coordinator.wait_idle()

        stored = self.store.get()
        self.assertEqual((stored.latitude, stored.longitude), (40.4443, -79.9436))
        self.assertEqual(stored.display_name, "Forbes Ave Bus Stop")
        self.assertEqual(stored.acquired_at_millis, int(NOW * 1000))
        self.assertEqual(len(self.markers.markers(MarkerPurpose.SEARCH_RESULT)), 1)
        self.assertEqual(self.surface.center, (40.4443, -79.9436))
        self.assertEqual(self.surface.zoom, 13)

    async def test_invalid_search_result_is_rejected(self):
        self.store.set(SelectedLocation(40.0, -80.0, "Previous", 1))
        result = SearchResult(123.0, -79.9, "Broken", SourceCategory.OTHER)

        self.assertFalse(await self.coordinator.select_search_result(result))
        await self.coordinator.wait_idle()

        history = list(self.coordinator.history)
        self.assertEqual(history[-2:], [CoordinatorState.ERROR, CoordinatorState.IDLE])
        self.assertEqual(self.store.get().display_name, "Previous")
        self.transit.nearby_routes.assert_not_awaited()

    async def test_geolocation_success(self):
        self.assertTrue(await self.coordinator.on_geolocation_success(40.4443, -79.9436, 25))
        await self.coordinator.wait_idle()

        self.assertEqual(self.store.get().display_name, "Forbes Ave, Oakland")
        self.assertEqual(self.preferences.get_location_permission(), "granted")
        user = self.markers.markers(MarkerPurpose.USER_LOCATION)
        self.assertEqual(len(user), 3)
        self.assertEqual(sorted(m.radius_meters for m in user if m.shape == "circle"), [25, 37.5])
        self.geocoder.reverse_lookup.assert_awaited_once_with(40.4443, -79.9436)

    async def test_geolocation_denied_uses_default_point(self):
        self.assertTrue(await self.coordinator.on_geolocation_denied())
        await self.coordinator.wait_idle()

        stored = self.store.get()
        self.assertEqual((stored.latitude, stored.longitude), (40.4406, -79.9951))
        self.assertEqual(self.preferences.get_location_permission(), "denied")
        self.assertEqual(self.markers.markers(MarkerPurpose.USER_LOCATION), [])

    async def test_selection_during_reverse_lookup_wins(self):
        release = asyncio.Event()

        async def slow_lookup(lat, lon):
            await release.wait()
            return "Here"

        self.geocoder.reverse_lookup.side_effect = slow_lookup
        located = asyncio.create_task(self.coordinator.on_geolocation_success(10.0, 10.0))
        await asyncio.sleep(0.01)

        picked = SearchResult(20.0, 20.0, "Picked", SourceCategory.TRANSIT_STOP)
        self.assertTrue(await self.coordinator.select_search_result(picked))
        release.set()
        self.assertFalse(await located)
        await self.coordinator.wait_idle()

        self.assertEqual(self.store.get().display_name, "Picked")
        self.transit.nearby_routes.assert_awaited_once()
        self.assertEqual(self.transit.nearby_routes.await_args.args[:2], (20.0, 20.0))

    async def test_pan_during_fallback_lookup_wins(self):
        release = asyncio.Event()

        async def slow_lookup(lat, lon):
            await release.wait()
            return "Downtown"

        self.geocoder.reverse_lookup.side_effect = slow_lookup
        denied = asyncio.create_task(self.coordinator.on_geolocation_denied())
        await asyncio.sleep(0.01)

        self.coordinator.on_map_pan(41.0, -81.0)
        release.set()
        self.assertFalse(await denied)
        await self.coordinator.wait_idle()

        stored = self.store.get()
        self.assertEqual((stored.latitude, stored.longitude), (41.0, -81.0))
        self.assertEqual(self.transit.nearby_routes.await_args.args[:2], (41.0, -81.0))

    async def test_pan_keeps_display_name(self):
        self.store.set(SelectedLocation(40.0, -80.0, "Forbes Ave, Oakland", 1))

        self.coordinator.on_map_pan(40.01, -80.01)
        await self.coordinator.wait_idle()

        self.assertEqual(self.store.get().display_name, "Forbes Ave, Oakland")
        self.geocoder.reverse_lookup.assert_not_awaited()

    async def test_restore_resumes_stored_location(self):
        self.store.set(SelectedLocation(40.0, -80.0, "Squirrel Hill", 1))

        location = await self.coordinator.restore()
        await self.coordinator.wait_idle()

        self.assertEqual(location.display_name, "Squirrel Hill")
        self.transit.nearby_routes.assert_awaited_once()

    async def test_timer_without_location(self):
        self.assertFalse(await self.coordinator.on_timer())
        self.assertEqual(self.coordinator.panels.alerts_message, NO_LOCATION)
        self.transit.nearby_routes.assert_not_awaited()

    async def test_timer_refreshes_current_location(self):
        self.store.set(SelectedLocation(40.0, -80.0, "Squirrel Hill", 1))

        self.assertTrue(await self.coordinator.refresh())
        await self.coordinator.wait_idle()

        self.transit.nearby_routes.assert_awaited_once()

    async def test_polling(self):
        self.store.set(SelectedLocation(40.0, -80.0, "Squirrel Hill", 1))

        poller = self.coordinator.start_polling(interval_seconds=0.5)
        await asyncio.sleep(0.05)
        await poller.stop()
        await self.coordinator.wait_idle()

        self.transit.nearby_routes.assert_awaited_once()

    async def test_close_removes_overlays(self):
        await self.coordinator.on_geolocation_success(40.4443, -79.9436, 25)
        await self.coordinator.wait_idle()

        await self.coordinator.close()

        self.assertEqual(self.markers.markers(), [])
        self.assertEqual(self.surface.layers, {})


if __name__ == "__main__":
    unittest.main()
