"""Listing entities as the sync engine sees them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from .enums import ListingStatus


@dataclass(frozen=True, slots=True)
class Position:
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")


def _frozen_fields(value: Mapping[str, object] | None = None) -> Mapping[str, object]:
    return MappingProxyType(dict(value or {}))


@dataclass(frozen=True, slots=True, kw_only=True)
class Listing:
    """Snapshot of one listing at a given store version.

    ``display_fields`` (title, vendor, price, ...) is opaque to the engine apart
    from rendering. A listing without ``position`` is tracked but never drawn.
    """

    id: str
    status: ListingStatus
    version: int
    position: Position | None = None
    owner_id: str | None = None
    display_fields: Mapping[str, object] = field(default_factory=_frozen_fields)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Listing id must not be empty")
        if not isinstance(self.display_fields, MappingProxyType):
            object.__setattr__(self, "display_fields", _frozen_fields(self.display_fields))

    @property
    def renderable(self) -> bool:
        return self.position is not None

    @property
    def title(self) -> str:
        value = self.display_fields.get("title")
        return str(value) if value else self.id

    @property
    def vendor(self) -> str | None:
        value = self.display_fields.get("vendor")
        return str(value) if value else None

    def with_version(self, version: int) -> Listing:
        if version == self.version:
            return self
        return replace(self, version=version)
