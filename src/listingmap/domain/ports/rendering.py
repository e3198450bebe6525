"""Ports for the map rendering surface and vendor styling."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

ClickHandler = Callable[[], None]


@dataclass(frozen=True, slots=True)
class VendorStyle:
    color: str
    icon: str


@dataclass(frozen=True, slots=True)
class MarkerStyle:
    """Everything the surface needs to draw one marker."""

    color: str
    icon: str
    title: str
    opacity: float = 1.0
    z_index: int = 100
    badge: str | None = None


@runtime_checkable
class RenderSurface(Protocol):
    def upsert_marker(
        self,
        marker_id: str,
        lat: float,
        lng: float,
        style: MarkerStyle,
        on_click: ClickHandler,
    ) -> None: ...

    def remove_marker(self, marker_id: str) -> None: ...

    def set_visible(self, bucket_id: str, visible: bool) -> None: ...


@runtime_checkable
class StyleLookup(Protocol):
    def resolve_style(self, vendor_key: str) -> VendorStyle | None: ...


__all__ = ["ClickHandler", "MarkerStyle", "RenderSurface", "StyleLookup", "VendorStyle"]
