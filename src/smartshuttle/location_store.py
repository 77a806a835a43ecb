"""Persistence of the selected location and user preferences."""

import json
import logging
from typing import Optional

from .models import SelectedLocation
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

# Storage keys, one selected-location record per page flow
NOTIFICATION_LOCATION_KEY = "selectedNotificationLocation"
TRACKING_LOCATION_KEY = "selectedTrackingLocation"
THEME_KEY = "theme"
LOCATION_PERMISSION_KEY = "locationPermission"

THEMES = ("light", "dark")
PERMISSION_DECISIONS = ("granted", "denied")


class LocationStore:
    """Holds the current point of interest for one flow."""

    def __init__(self, storage: KeyValueStorage, key: str = TRACKING_LOCATION_KEY):
        self.storage = storage
        self.key = key

    def get(self) -> Optional[SelectedLocation]:
        """
        Read the stored location.

        Returns:
            SelectedLocation, or None if absent or malformed.
        """
        raw = self.storage.get_item(self.key)
        if raw is None:
            return None
        try:
            record = json.loads(raw)
            if not isinstance(record, dict):
                raise ValueError("record is not an object")
            return SelectedLocation.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed location record under {self.key}: {e}")
            return None

    def set(self, location: SelectedLocation) -> bool:
        """
        Persist a location if its coordinates are valid.

        Returns:
            True if written, False if rejected.
        """
        if not location.is_valid():
            logger.warning(
                f"Rejected invalid location ({location.latitude}, {location.longitude}) for {self.key}"
            )
            return False
        self.storage.set_item(self.key, json.dumps(location.to_record()))
        logger.debug(f"Saved location '{location.display_name}' under {self.key}")
        return True

    def clear(self) -> None:
        self.storage.remove_item(self.key)


class PreferenceStore:
    """Theme and location-permission preferences."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def get_theme(self) -> str:
        theme = self.storage.get_item(THEME_KEY)
        return theme if theme in THEMES else "light"

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme '{theme}'")
        self.storage.set_item(THEME_KEY, theme)

    def get_location_permission(self) -> Optional[str]:
        decision = self.storage.get_item(LOCATION_PERMISSION_KEY)
        return decision if decision in PERMISSION_DECISIONS else None

    def set_location_permission(self, decision: str) -> None:
        if decision not in PERMISSION_DECISIONS:
            raise ValueError(f"Unknown permission decision '{decision}'")
        self.storage.set_item(LOCATION_PERMISSION_KEY, decision)
