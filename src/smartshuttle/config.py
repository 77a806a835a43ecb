"""Centralized configuration for SmartShuttle."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


def _default_storage_path() -> Path:
    return Path.home() / ".smartshuttle" / "storage.json"


@dataclass
class ApplicationConfig:
    """Centralized configuration"""

    # Transit collaborator
    transit_api_url: str = "https://external.transitapp.com/v3"
    transit_api_key: Optional[str] = None
    max_distance_meters: int = 1500

    # Geocoding collaborator
    geocode_url: str = "https://nominatim.openstreetmap.org"
    geocode_country: Optional[str] = "US"
    geocode_limit: int = 10
    user_agent: str = "SmartShuttle/1.0 (https://github.com/rhythmd22/SmartShuttle)"

    # Email relay collaborator
    emailjs_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    emailjs_service_id: Optional[str] = None
    emailjs_template_id: Optional[str] = None
    emailjs_public_key: Optional[str] = None
    feedback_recipient: str = "SmartShuttle Team"

    request_timeout_seconds: float = 10.0

    # Fallback point when geolocation is denied (Pittsburgh)
    default_latitude: float = 40.4406
    default_longitude: float = -79.9951
    default_accuracy_meters: float = 100.0

    # Timing
    refresh_debounce_seconds: float = 0.8
    search_debounce_seconds: float = 0.5
    alerts_poll_interval_seconds: float = 300.0

    # Client storage
    storage_path: Path = field(default_factory=_default_storage_path)

    # Proxy service
    host: str = "0.0.0.0"
    port: int = 8080

    # Draw a shared stop once instead of once per itinerary
    dedupe_stop_markers: bool = False

    @property
    def emailjs_configured(self) -> bool:
        return bool(self.emailjs_service_id and self.emailjs_template_id and self.emailjs_public_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ApplicationConfig":
        """Build a config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        config = cls()

        config.transit_api_url = env.get("TRANSIT_API_URL", config.transit_api_url).rstrip("/")
        config.transit_api_key = env.get("TRANSIT_API_KEY") or None
        config.geocode_url = env.get("GEOCODE_URL", config.geocode_url).rstrip("/")
        config.geocode_country = env.get("GEOCODE_COUNTRY", config.geocode_country) or None
        config.emailjs_url = env.get("EMAILJS_URL", config.emailjs_url)
        config.emailjs_service_id = env.get("EMAILJS_SERVICE_ID") or None
        config.emailjs_template_id = env.get("EMAILJS_TEMPLATE_ID") or None
        config.emailjs_public_key = env.get("EMAILJS_PUBLIC_KEY") or None
        config.feedback_recipient = env.get("FEEDBACK_RECIPIENT", config.feedback_recipient)

        if env.get("REQUEST_TIMEOUT_SECONDS"):
            config.request_timeout_seconds = float(env["REQUEST_TIMEOUT_SECONDS"])
        if env.get("SMARTSHUTTLE_STORAGE"):
            config.storage_path = Path(env["SMARTSHUTTLE_STORAGE"]).expanduser()
        config.host = env.get("HOST", config.host)
        if env.get("PORT"):
            config.port = int(env["PORT"])

        return config
