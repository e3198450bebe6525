"""Headless marker layer that records and logs what a map would draw."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from listingmap.domain.ports.rendering import ClickHandler, MarkerStyle, RenderSurface

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlacedMarker:
    marker_id: str
    lat: float
    lng: float
    style: MarkerStyle
    on_click: ClickHandler

    @property
    def bucket_id(self) -> str:
        return self.marker_id.partition(":")[0]


class LoggingMarkerLayer:
    """In-memory render surface used by the CLI."""

    def __init__(self) -> None:
        self._markers: dict[str, PlacedMarker] = {}
        self._hidden: set[str] = set()

    @property
    def markers(self) -> dict[str, PlacedMarker]:
        return dict(self._markers)

    def visible_markers(self) -> list[PlacedMarker]:
        return [marker for marker in self._markers.values() if marker.bucket_id not in self._hidden]

    def upsert_marker(
        self,
        marker_id: str,
        lat: float,
        lng: float,
        style: MarkerStyle,
        on_click: ClickHandler,
    ) -> None:
        verb = "Moved" if marker_id in self._markers else "Placed"
        self._markers[marker_id] = PlacedMarker(marker_id, lat, lng, style, on_click)
        log.info("%s marker %s at %.5f,%.5f: %s", verb, marker_id, lat, lng, style.title)

    def remove_marker(self, marker_id: str) -> None:
        if self._markers.pop(marker_id, None) is not None:
            log.info("Removed marker %s", marker_id)

    def set_visible(self, bucket_id: str, visible: bool) -> None:
        if visible:
            self._hidden.discard(bucket_id)
        else:
            self._hidden.add(bucket_id)
        log.info("%s bucket %s", "Showing" if visible else "Hiding", bucket_id)

    def click(self, marker_id: str) -> None:
        self._markers[marker_id].on_click()


if TYPE_CHECKING:

    def _check_surface(layer: LoggingMarkerLayer) -> RenderSurface:
        return layer
