"""Command line entry point: run the proxy or query nearby transit from a terminal."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import ApplicationConfig
from .coordinator import OverlayCoordinator
from .errors import SmartShuttleError
from .folium_map import FoliumMap
from .geocode_client import GeocodeClient
from .http_session import AsyncRequestsSession
from .location_store import NOTIFICATION_LOCATION_KEY, TRACKING_LOCATION_KEY, LocationStore, PreferenceStore
from .markers import MarkerLifecycleManager
from .panels import ALERT_FILTERS
from .search import SearchController
from .storage import JsonFileStorage
from .transit_client import TransitClient
from .web_server import WebServer

logger = logging.getLogger(__name__)


def build_coordinator(config: ApplicationConfig, http: AsyncRequestsSession,
                      storage_key: str = TRACKING_LOCATION_KEY) -> OverlayCoordinator:
    """Wire a coordinator to the configured collaborators and a folium map."""
    storage = JsonFileStorage(config.storage_path)
    surface = FoliumMap(config.default_latitude, config.default_longitude)
    return OverlayCoordinator(
        transit_client=TransitClient(http, config.transit_api_url, config.transit_api_key),
        geocode_client=GeocodeClient(http, config.geocode_url, config.geocode_country, config.geocode_limit),
        location_store=LocationStore(storage, storage_key),
        markers=MarkerLifecycleManager(surface),
        config=config,
        preferences=PreferenceStore(storage),
    )


async def run_server(config: ApplicationConfig) -> None:
    server = WebServer(config)
    await server.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await server.stop()


async def show_nearby(config: ApplicationConfig, lat: float, lon: float, html_path: Optional[str]) -> int:
    http = AsyncRequestsSession(config.request_timeout_seconds, config.user_agent)
    coordinator = build_coordinator(config, http)
    try:
        if not await coordinator.on_geolocation_success(lat, lon):
            print(f"Error: invalid coordinates ({lat}, {lon})")
            return 1
        await coordinator.wait_idle()

        panels = coordinator.panels
        print(f"\nLocation: {panels.status_text}")
        print("-" * 70)
        if panels.arrivals_message:
            print(f"  {panels.arrivals_message}")
        for row in panels.arrivals:
            print(f"  {row.route_label}: {row.arrival_text}")

        if panels.capacity:
            print("\nESTIMATED CAPACITY:")
            for row in panels.capacity:
                print(f"  {row.name}: {row.text}")

        if html_path:
            coordinator.markers.surface.save(html_path)
            print(f"\nMap written to {html_path}")
        return 0
    finally:
        await coordinator.close()
        http.close()


async def show_search(config: ApplicationConfig, query: str) -> int:
    http = AsyncRequestsSession(config.request_timeout_seconds, config.user_agent)
    try:
        geocoder = GeocodeClient(http, config.geocode_url, config.geocode_country, config.geocode_limit)
        controller = SearchController(geocoder, wait_seconds=config.search_debounce_seconds)
        await controller.on_submit(query)
        if controller.panel.message:
            print(controller.panel.message)
        for title, secondary in controller.panel.rows:
            print(f"  {title}\n    {secondary}")
        return 0
    finally:
        http.close()


async def show_alerts(config: ApplicationConfig, lat: float, lon: float, alert_filter: str) -> int:
    http = AsyncRequestsSession(config.request_timeout_seconds, config.user_agent)
    coordinator = build_coordinator(config, http, storage_key=NOTIFICATION_LOCATION_KEY)
    try:
        if not coordinator.on_map_pan(lat, lon):
            print(f"Error: invalid coordinates ({lat}, {lon})")
            return 1
        await coordinator.wait_idle()

        panels = coordinator.panels
        panels.alert_filter = alert_filter
        print("\nSERVICE ALERTS:")
        print("-" * 70)
        if panels.alerts_message:
            print(f"  {panels.alerts_message.title}: {panels.alerts_message.description}")
        for item in panels.visible_alerts():
            print(f"\n[{item.category}] {item.title} ({item.route_label})")
            print(f"  {item.description}")
        return 0
    finally:
        await coordinator.close()
        http.close()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="smartshuttle", description="Nearby shuttles, stops and service alerts")
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the feedback and transit proxy endpoints")

    nearby = sub.add_parser("nearby", help="Show arrivals and capacity near a point")
    nearby.add_argument("--lat", type=float, required=True)
    nearby.add_argument("--lon", type=float, required=True)
    nearby.add_argument("--html", default=None, help="Also write the map overlay to this HTML file")

    search = sub.add_parser("search", help="Search for a place or stop")
    search.add_argument("query")

    alerts = sub.add_parser("alerts", help="Show service alerts near a point")
    alerts.add_argument("--lat", type=float, required=True)
    alerts.add_argument("--lon", type=float, required=True)
    alerts.add_argument("--filter", default="all", choices=ALERT_FILTERS)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = ApplicationConfig.from_env()

    try:
        if args.command == "serve":
            asyncio.run(run_server(config))
            return 0
        if args.command == "nearby":
            return asyncio.run(show_nearby(config, args.lat, args.lon, args.html))
        if args.command == "search":
            return asyncio.run(show_search(config, args.query))
        return asyncio.run(show_alerts(config, args.lat, args.lon, args.filter))
    except KeyboardInterrupt:
        print("\nExiting...")
        return 0
    except SmartShuttleError as e:
        logger.error(f"Failed to fetch data: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
