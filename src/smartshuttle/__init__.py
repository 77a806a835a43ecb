"""SmartShuttle - Real-time shuttle and stop overlays for a selected location."""

__version__ = "0.1.0"

from .config import ApplicationConfig
from .coordinator import CoordinatorState, OverlayCoordinator
from .debounce import DebouncedRefresher
from .errors import SmartShuttleError, TransitApiError, ValidationError
from .geocode_client import GeocodeClient
from .location_store import LocationStore
from .markers import MarkerLifecycleManager, MarkerPurpose
from .models import NearbyRoutes, SearchResult, SelectedLocation, TransitRoute
from .transit_client import TransitClient
from .web_server import WebServer

__all__ = [
    "OverlayCoordinator",
    "CoordinatorState",
    "LocationStore",
    "GeocodeClient",
    "TransitClient",
    "DebouncedRefresher",
    "MarkerLifecycleManager",
    "MarkerPurpose",
    "WebServer",
    "ApplicationConfig",
    "SelectedLocation",
    "SearchResult",
    "TransitRoute",
    "NearbyRoutes",
    "SmartShuttleError",
    "TransitApiError",
    "ValidationError",
]
