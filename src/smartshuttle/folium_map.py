"""Leaflet map surface rendered with folium."""

import logging
from pathlib import Path
from typing import Dict, Tuple, Union

import folium

from .markers import MapMarker, MapSurface, MarkerPurpose

logger = logging.getLogger(__name__)

TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'


class FoliumMap(MapSurface):
    """
    Map surface that renders its current layers to a standalone HTML map.

    Layers are kept by marker id and the folium.Map is built on demand, so
    removed layers never reach the rendered page.
    """

    def __init__(self, latitude: float, longitude: float, zoom: int = 15):
        self.center: Tuple[float, float] = (latitude, longitude)
        self.zoom = zoom
        self.layers: Dict[int, MapMarker] = {}

    def add_layer(self, marker: MapMarker) -> None:
        self.layers[marker.marker_id] = marker

    def remove_layer(self, marker: MapMarker) -> None:
        self.layers.pop(marker.marker_id, None)

    def set_view(self, latitude: float, longitude: float, zoom: int) -> None:
        self.center = (latitude, longitude)
        self.zoom = zoom

    def to_folium(self) -> folium.Map:
        m = folium.Map(location=list(self.center), zoom_start=self.zoom, tiles=None, control_scale=True)
        folium.TileLayer("OpenStreetMap", attr=TILE_ATTRIBUTION).add_to(m)

        for marker in self.layers.values():
            self._build_layer(marker).add_to(m)
        return m

    @staticmethod
    def _build_layer(marker: MapMarker):
        location = [marker.latitude, marker.longitude]
        popup = folium.Popup(marker.popup, max_width=320) if marker.popup else None

        if marker.shape == "circle":
            return folium.Circle(
                location=location,
                radius=marker.radius_meters or 0,
                color=marker.color,
                fill=True,
                fill_color=marker.color,
                fill_opacity=0.5,
            )
        if marker.purpose is MarkerPurpose.BUS_STOP:
            return folium.CircleMarker(
                location=location,
                radius=8,
                color="white",
                weight=2,
                fill=True,
                fill_color=marker.color or "#6A63F6",
                fill_opacity=1.0,
                popup=popup,
            )
        if marker.purpose is MarkerPurpose.ACTIVE_SHUTTLE:
            return folium.Marker(location=location, popup=popup, icon=folium.Icon(icon="bus", prefix="fa"))
        if marker.purpose is MarkerPurpose.USER_LOCATION:
            return folium.Marker(location=location, popup=popup, icon=folium.Icon(color="blue", icon="user", prefix="fa"))
        return folium.Marker(location=location, popup=popup)

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        self.to_folium().save(str(path))
        logger.info(f"Wrote map with {len(self.layers)} layers to {path}")
        return path

    def render_html(self) -> str:
        return self.to_folium().get_root().render()
